"""SessionLedger: ledger de compras por conversa, em memória.

Regras:
- Uma sessão por customer_key, criada sob demanda exatamente uma vez
- Mutações da mesma chave são serializadas por um asyncio.Lock por chave;
  chaves diferentes não competem entre si
- valor_total é sempre recalculado a partir dos itens
- OPEN → CLOSED apenas uma vez; sessão fechada não aceita novos itens
- Toda operação devolve snapshot (cópia profunda), nunca a instância interna
- Sessões expiradas são varridas no máximo uma vez por ttl; o lock de uma
  chave some junto com a sessão quando ninguém o está usando

Nenhuma chamada de rede acontece com lock adquirido.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation

from kinbox_pix.domain.enums import ItemKind, SessionStatus
from kinbox_pix.domain.errors import InvalidItemValueError, SessionClosedError
from kinbox_pix.domain.models import PurchaseItem, PurchaseSession
from kinbox_pix.observability.logging import get_logger, mask_key
from kinbox_pix.utils.ids import new_session_id
from kinbox_pix.utils.money import round2, sum_values


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SessionLedger:
    """Dono exclusivo de todas as PurchaseSession do processo.

    Args:
        ttl_seconds: Expiração por inatividade (0 = nunca expira)
        clock: Relógio injetável (testes)
    """

    def __init__(
        self,
        ttl_seconds: int = 0,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._sessions: dict[str, PurchaseSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # Coroutines entre obter o lock e liberá-lo, por chave
        self._lock_users: dict[str, int] = {}
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds > 0 else None
        self._clock = clock or _utcnow
        self._logger = logger or get_logger(__name__)
        self._last_sweep = self._clock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, customer_key: object) -> bool:
        return customer_key in self._sessions

    @asynccontextmanager
    async def _key_lock(self, customer_key: str) -> AsyncIterator[None]:
        """Acesso exclusivo à chave; o lock é descartado quando ninguém o usa."""
        # Sem await entre leitura e escrita: atômico no event loop
        lock = self._locks.setdefault(customer_key, asyncio.Lock())
        self._lock_users[customer_key] = self._lock_users.get(customer_key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[customer_key] - 1
            if remaining:
                self._lock_users[customer_key] = remaining
            else:
                del self._lock_users[customer_key]
                if customer_key not in self._sessions:
                    self._locks.pop(customer_key, None)

    def _is_expired(self, session: PurchaseSession, now: datetime) -> bool:
        return self._ttl is not None and now - session.updated_at > self._ttl

    def _sweep_expired(self, now: datetime) -> None:
        """Remove sessões expiradas de chaves sem uso (no máximo uma vez por ttl)."""
        if self._ttl is None or now - self._last_sweep < self._ttl:
            return
        self._last_sweep = now

        expired = [
            key
            for key, session in self._sessions.items()
            if key not in self._lock_users and self._is_expired(session, now)
        ]
        for key in expired:
            del self._sessions[key]
            self._locks.pop(key, None)
        if expired:
            self._logger.info(
                "ledger_sessions_swept",
                extra={"expired": len(expired), "remaining": len(self._sessions)},
            )

    def _current(self, customer_key: str, now: datetime) -> PurchaseSession | None:
        """Sessão vigente da chave (descarta a expirada). Chamar com lock."""
        session = self._sessions.get(customer_key)
        if session is not None and self._is_expired(session, now):
            self._logger.info(
                "ledger_session_expired",
                extra={
                    "customer_key": mask_key(customer_key),
                    "session_id": mask_key(session.session_id),
                    "status": session.status.value,
                },
            )
            del self._sessions[customer_key]
            return None
        return session

    def _get_or_create_locked(self, customer_key: str, now: datetime) -> PurchaseSession:
        self._sweep_expired(now)
        session = self._current(customer_key, now)
        if session is not None:
            return session

        session = PurchaseSession(
            customer_key=customer_key,
            session_id=new_session_id(),
            created_at=now,
            updated_at=now,
        )
        self._sessions[customer_key] = session
        self._logger.info(
            "ledger_session_created",
            extra={
                "customer_key": mask_key(customer_key),
                "session_id": mask_key(session.session_id),
            },
        )
        return session

    async def get_or_create(self, customer_key: str) -> PurchaseSession:
        """Retorna a sessão da chave, criando uma OPEN vazia se não existir."""
        async with self._key_lock(customer_key):
            session = self._get_or_create_locked(customer_key, self._clock())
            return session.model_copy(deep=True)

    async def get(self, customer_key: str) -> PurchaseSession | None:
        """Snapshot da sessão vigente, sem criar."""
        async with self._key_lock(customer_key):
            session = self._current(customer_key, self._clock())
            return session.model_copy(deep=True) if session is not None else None

    async def append_item(
        self,
        customer_key: str,
        value: Decimal | None,
        txid: str | None = None,
        document_hash: str | None = None,
    ) -> PurchaseSession:
        """Adiciona um comprovante e recalcula o total.

        O novo total é calculado antes de qualquer mutação: se falhar, a
        sessão fica como estava.

        Raises:
            InvalidItemValueError: value ausente, <= 0 ou fora da precisão decimal
            SessionClosedError: sessão já finalizada
        """
        if value is None or value <= 0:
            raise InvalidItemValueError(f"Valor inválido para item: {value}")
        try:
            amount = round2(value)
        except InvalidOperation as exc:
            raise InvalidItemValueError(f"Valor fora da precisão suportada: {value}") from exc
        if amount <= 0:
            raise InvalidItemValueError(f"Valor inválido para item: {value}")

        async with self._key_lock(customer_key):
            now = self._clock()
            session = self._get_or_create_locked(customer_key, now)
            if session.is_closed:
                raise SessionClosedError(
                    f"Sessão {session.session_id} já finalizada; novo comprovante recusado"
                )

            try:
                total = sum_values([*(item.value for item in session.items), amount])
            except InvalidOperation as exc:
                raise InvalidItemValueError(
                    f"Total da sessão excede a precisão suportada com o item {amount}"
                ) from exc

            kind = ItemKind.PRIMARY if not session.items else ItemKind.UPSELL
            session.items.append(
                PurchaseItem(
                    kind=kind,
                    value=amount,
                    txid=txid,
                    document_hash=document_hash,
                    added_at=now,
                )
            )
            if txid:
                session.txids.append(txid)
            session.valor_total = total
            session.status = SessionStatus.OPEN
            session.updated_at = now

            self._logger.info(
                "ledger_item_appended",
                extra={
                    "session_id": mask_key(session.session_id),
                    "item_kind": kind.value,
                    "items_count": len(session.items),
                    "has_txid": bool(txid),
                },
            )
            return session.model_copy(deep=True)

    async def finalize(self, customer_key: str) -> PurchaseSession:
        """Fecha a sessão. Repetir a chamada é aceito e não altera o fechamento."""
        async with self._key_lock(customer_key):
            now = self._clock()
            session = self._get_or_create_locked(customer_key, now)
            if session.is_closed:
                self._logger.info(
                    "ledger_finalize_repeated",
                    extra={"session_id": mask_key(session.session_id)},
                )
            else:
                session.status = SessionStatus.CLOSED
                session.closed_at = now
                self._logger.info(
                    "ledger_session_closed",
                    extra={
                        "session_id": mask_key(session.session_id),
                        "items_count": len(session.items),
                    },
                )
            session.updated_at = now
            return session.model_copy(deep=True)

    async def remember_identifiers(
        self,
        customer_key: str,
        identifiers: dict[str, list[str]],
    ) -> PurchaseSession:
        """Mescla identificadores já hasheados (ph/em) na sessão."""
        async with self._key_lock(customer_key):
            now = self._clock()
            session = self._get_or_create_locked(customer_key, now)
            for field_name, hashes in identifiers.items():
                known = session.identifiers.setdefault(field_name, [])
                known.extend(h for h in hashes if h not in known)
            session.updated_at = now
            return session.model_copy(deep=True)

    async def mark_reported(self, customer_key: str, report_id: str) -> PurchaseSession:
        """Registra o id do reporte de conversão da sessão fechada.

        Raises:
            KeyError: chave sem sessão vigente
        """
        async with self._key_lock(customer_key):
            now = self._clock()
            session = self._current(customer_key, now)
            if session is None:
                raise KeyError(customer_key)
            session.report_id = report_id
            session.updated_at = now
            return session.model_copy(deep=True)
