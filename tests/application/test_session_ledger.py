"""Testes para application/ledger.py (SessionLedger)."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from kinbox_pix.application.ledger import SessionLedger
from kinbox_pix.domain.enums import ItemKind, SessionStatus
from kinbox_pix.domain.errors import InvalidItemValueError, SessionClosedError


class FakeClock:
    """Relógio controlado pelos testes."""

    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def ledger() -> SessionLedger:
    return SessionLedger()


class TestGetOrCreate:
    """Criação de sessão sob demanda."""

    @pytest.mark.asyncio
    async def test_creates_open_empty_session(self, ledger: SessionLedger) -> None:
        session = await ledger.get_or_create("c1")
        assert session.status is SessionStatus.OPEN
        assert session.items == []
        assert session.valor_total == Decimal("0.00")
        assert session.session_id

    @pytest.mark.asyncio
    async def test_is_idempotent(self, ledger: SessionLedger) -> None:
        """Mesma chave, mesmo session_id."""
        first = await ledger.get_or_create("c1")
        second = await ledger.get_or_create("c1")
        assert first.session_id == second.session_id
        assert len(ledger) == 1

    @pytest.mark.asyncio
    async def test_concurrent_creation_yields_single_session(self, ledger: SessionLedger) -> None:
        sessions = await asyncio.gather(*(ledger.get_or_create("c1") for _ in range(20)))
        assert len({s.session_id for s in sessions}) == 1

    @pytest.mark.asyncio
    async def test_get_does_not_create(self, ledger: SessionLedger) -> None:
        assert await ledger.get("nobody") is None
        assert "nobody" not in ledger


class TestAppendItem:
    """Adição de comprovantes."""

    @pytest.mark.asyncio
    async def test_first_item_is_primary_then_upsell(self, ledger: SessionLedger) -> None:
        await ledger.append_item("c1", Decimal("10.00"))
        await ledger.append_item("c1", Decimal("5.50"))
        session = await ledger.append_item("c1", Decimal("4.50"))

        assert [i.kind for i in session.items] == [ItemKind.PRIMARY, ItemKind.UPSELL, ItemKind.UPSELL]
        assert session.primary_item is not None
        assert session.primary_item.value == Decimal("10.00")
        assert len(session.upsell_items) == 2
        assert session.valor_total == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_total_is_exact_decimal_sum(self, ledger: SessionLedger) -> None:
        for value in ("0.10", "0.20", "0.30"):
            session = await ledger.append_item("c1", Decimal(value))
        assert session.valor_total == Decimal("0.60")
        assert session.valor_total == sum(i.value for i in session.items)

    @pytest.mark.asyncio
    async def test_records_txid_and_hash(self, ledger: SessionLedger) -> None:
        session = await ledger.append_item(
            "c1", Decimal("1"), txid="E1234567890", document_hash="abc"
        )
        assert session.txids == ["E1234567890"]
        assert session.items[0].document_hash == "abc"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, Decimal("0"), Decimal("-1"), Decimal("0.004")])
    async def test_rejects_non_positive_values(self, ledger: SessionLedger, value) -> None:  # noqa: ANN001
        with pytest.raises(InvalidItemValueError):
            await ledger.append_item("c1", value)
        assert await ledger.get("c1") is None

    @pytest.mark.asyncio
    async def test_concurrent_appends_lose_nothing(self, ledger: SessionLedger) -> None:
        """N appends concorrentes: N itens, 1 PRIMARY, total exato."""
        n = 50
        await asyncio.gather(*(ledger.append_item("c1", Decimal("1.10")) for _ in range(n)))

        session = await ledger.get("c1")
        assert session is not None
        assert len(session.items) == n
        assert sum(1 for i in session.items if i.kind is ItemKind.PRIMARY) == 1
        assert session.valor_total == Decimal("55.00")

    @pytest.mark.asyncio
    async def test_keys_are_isolated(self, ledger: SessionLedger) -> None:
        await ledger.append_item("a", Decimal("1"))
        await ledger.append_item("b", Decimal("2"))
        assert (await ledger.get("a")).valor_total == Decimal("1.00")
        assert (await ledger.get("b")).valor_total == Decimal("2.00")

    @pytest.mark.asyncio
    async def test_total_overflow_leaves_session_untouched(self, ledger: SessionLedger) -> None:
        """Total fora da precisão decimal recusa o item sem alterar a sessão."""
        huge = Decimal("9" * 26 + ".00")
        before = await ledger.append_item("c1", huge, txid="TX-PRIMEIRO-1")

        with pytest.raises(InvalidItemValueError):
            await ledger.append_item("c1", huge, txid="TX-SEGUNDO-22")

        session = await ledger.get("c1")
        assert session is not None
        assert len(session.items) == 1
        assert session.txids == ["TX-PRIMEIRO-1"]
        assert session.valor_total == before.valor_total == sum(i.value for i in session.items)

    @pytest.mark.asyncio
    async def test_value_beyond_precision_is_invalid(self, ledger: SessionLedger) -> None:
        with pytest.raises(InvalidItemValueError):
            await ledger.append_item("c1", Decimal("9" * 30))
        assert "c1" not in ledger


class TestFinalize:
    """Fechamento da sessão."""

    @pytest.mark.asyncio
    async def test_closes_session(self, ledger: SessionLedger) -> None:
        await ledger.append_item("c1", Decimal("10"))
        session = await ledger.finalize("c1")
        assert session.status is SessionStatus.CLOSED
        assert session.closed_at is not None

    @pytest.mark.asyncio
    async def test_repeated_finalize_keeps_first_close(self) -> None:
        clock = FakeClock()
        ledger = SessionLedger(clock=clock)
        first = await ledger.finalize("c1")
        clock.advance(30)
        second = await ledger.finalize("c1")

        assert second.status is SessionStatus.CLOSED
        assert second.closed_at == first.closed_at
        assert second.session_id == first.session_id

    @pytest.mark.asyncio
    async def test_closed_session_rejects_new_items(self, ledger: SessionLedger) -> None:
        await ledger.append_item("c1", Decimal("10"))
        await ledger.finalize("c1")

        with pytest.raises(SessionClosedError):
            await ledger.append_item("c1", Decimal("5"))

        session = await ledger.get("c1")
        assert session.status is SessionStatus.CLOSED
        assert session.valor_total == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_mark_reported(self, ledger: SessionLedger) -> None:
        await ledger.finalize("c1")
        session = await ledger.mark_reported("c1", "trace-1")
        assert session.report_id == "trace-1"

    @pytest.mark.asyncio
    async def test_mark_reported_unknown_key(self, ledger: SessionLedger) -> None:
        with pytest.raises(KeyError):
            await ledger.mark_reported("nobody", "x")


class TestIdentifiers:
    """Identificadores hasheados por sessão."""

    @pytest.mark.asyncio
    async def test_merges_without_duplicates(self, ledger: SessionLedger) -> None:
        await ledger.remember_identifiers("c1", {"ph": ["h1"]})
        session = await ledger.remember_identifiers("c1", {"ph": ["h1", "h2"], "em": ["e1"]})
        assert session.identifiers == {"ph": ["h1", "h2"], "em": ["e1"]}


class TestSnapshots:
    """Snapshots não expõem o estado interno."""

    @pytest.mark.asyncio
    async def test_mutating_snapshot_does_not_affect_ledger(self, ledger: SessionLedger) -> None:
        snapshot = await ledger.append_item("c1", Decimal("10"))
        snapshot.items.clear()
        snapshot.valor_total = Decimal("999")
        snapshot.status = SessionStatus.CLOSED

        current = await ledger.get("c1")
        assert len(current.items) == 1
        assert current.valor_total == Decimal("10.00")
        assert current.status is SessionStatus.OPEN


class TestExpiry:
    """Expiração por inatividade (ttl_seconds > 0)."""

    @pytest.mark.asyncio
    async def test_idle_session_is_replaced(self) -> None:
        clock = FakeClock()
        ledger = SessionLedger(ttl_seconds=60, clock=clock)
        old = await ledger.append_item("c1", Decimal("10"))
        await ledger.finalize("c1")

        clock.advance(61)
        new = await ledger.append_item("c1", Decimal("7"))

        assert new.session_id != old.session_id
        assert new.status is SessionStatus.OPEN
        assert new.valor_total == Decimal("7.00")

    @pytest.mark.asyncio
    async def test_activity_renews_session(self) -> None:
        clock = FakeClock()
        ledger = SessionLedger(ttl_seconds=60, clock=clock)
        first = await ledger.append_item("c1", Decimal("1"))
        clock.advance(50)
        await ledger.append_item("c1", Decimal("1"))
        clock.advance(50)
        current = await ledger.get("c1")
        assert current is not None
        assert current.session_id == first.session_id

    @pytest.mark.asyncio
    async def test_zero_ttl_never_expires(self) -> None:
        clock = FakeClock()
        ledger = SessionLedger(ttl_seconds=0, clock=clock)
        first = await ledger.get_or_create("c1")
        clock.advance(10**7)
        assert (await ledger.get_or_create("c1")).session_id == first.session_id

    @pytest.mark.asyncio
    async def test_expired_sessions_of_idle_keys_are_swept(self) -> None:
        """Chaves que nunca voltam são descartadas junto com seus locks."""
        clock = FakeClock()
        ledger = SessionLedger(ttl_seconds=60, clock=clock)
        for n in range(100):
            await ledger.append_item(f"c{n}", Decimal("1"))
        assert len(ledger) == 100

        clock.advance(30 * 24 * 3600)
        await ledger.get_or_create("outro")

        assert len(ledger) == 1
        assert "outro" in ledger
        assert set(ledger._locks) == {"outro"}

    @pytest.mark.asyncio
    async def test_sweep_keeps_live_sessions(self) -> None:
        clock = FakeClock()
        ledger = SessionLedger(ttl_seconds=60, clock=clock)
        await ledger.append_item("antiga", Decimal("1"))
        clock.advance(40)
        await ledger.append_item("recente", Decimal("2"))
        clock.advance(30)

        await ledger.get_or_create("nova")

        assert "antiga" not in ledger
        assert "recente" in ledger
        assert len(ledger) == 2


class TestLocks:
    """Locks por chave só existem enquanto há sessão ou uso."""

    @pytest.mark.asyncio
    async def test_get_unknown_key_leaves_no_lock(self, ledger: SessionLedger) -> None:
        assert await ledger.get("desconhecida") is None
        assert "desconhecida" not in ledger._locks

    @pytest.mark.asyncio
    async def test_failed_operation_on_unknown_key_leaves_no_lock(self, ledger: SessionLedger) -> None:
        with pytest.raises(KeyError):
            await ledger.mark_reported("nenhuma", "r-1")
        assert ledger._locks == {}

    @pytest.mark.asyncio
    async def test_lock_is_kept_while_session_exists(self, ledger: SessionLedger) -> None:
        await ledger.append_item("c1", Decimal("1"))
        assert "c1" in ledger._locks

    @pytest.mark.asyncio
    async def test_concurrent_users_share_one_lock(self, ledger: SessionLedger) -> None:
        await asyncio.gather(*(ledger.get("c1") for _ in range(20)))
        assert ledger._locks == {}
        assert ledger._lock_users == {}
