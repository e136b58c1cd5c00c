"""Testes de integração das rotas HTTP com colaboradores fake."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from kinbox_pix.application.ledger import SessionLedger
from kinbox_pix.application.orchestrator import PurchaseOrchestrator
from kinbox_pix.config.settings import Settings
from kinbox_pix.domain.models import FetchedAttachment
from kinbox_pix.domain.protocols import AttachmentFetchError, ConversionReportError


def _install_orchestrator(client, *texts: str, reporter: MagicMock | None = None):  # noqa: ANN001
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(
        return_value=FetchedAttachment(content=b"%PDF-1.4", content_type="application/pdf")
    )
    extractor = MagicMock()
    extractor.extract = AsyncMock(side_effect=list(texts))
    if reporter is None:
        reporter = MagicMock()
        reporter.report_purchase = AsyncMock(return_value="trace-1")
    notifier = MagicMock()
    notifier.notify = AsyncMock()

    orchestrator = PurchaseOrchestrator(
        ledger=SessionLedger(),
        fetcher=fetcher,
        text_extractor=extractor,
        reporter=reporter,
        notifier=notifier,
    )
    client.app.state.orchestrator = orchestrator
    return orchestrator


def _parse(client, key: str = "cliente-1", url: str = "https://x/1.pdf", **extra):  # noqa: ANN001, ANN003
    return client.post(
        "/kinbox/parse",
        json={"customerPlatformId": key, "attachment_url": url, **extra},
    )


class TestHealth:
    def test_health_endpoint(self, client) -> None:  # noqa: ANN001
        response = client.get("/health")
        assert response.status_code == 200
        payload = response.json()
        assert payload["status"] == "ok"
        assert payload["service"] == "kinbox_pix"

    def test_root_liveness_text(self, client) -> None:  # noqa: ANN001
        """Raiz responde texto puro para monitores de uptime."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "Kinbox Pix Parser rodando" in response.text


class TestParseEndpoint:
    """POST /kinbox/parse."""

    def test_accepted_receipt(self, client) -> None:  # noqa: ANN001
        _install_orchestrator(client, "Valor: R$ 10,00\nE2E: E12345678202501011200abcde")

        response = _parse(client, phone="85 99999-0000")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        data = body["data"]
        assert data["customerPlatformId"] == "cliente-1"
        assert data["accepted"] is True
        assert data["reason"] == "receipt_accepted"
        assert data["valor"] == 10.0
        assert data["confidence"] == 0.95
        assert data["txid"] == "E12345678202501011200abcde"
        assert data["valor_total"] == 10.0
        assert data["itens"] == 1
        assert data["status"] == "open"

    def test_two_receipts_accumulate(self, client) -> None:  # noqa: ANN001
        _install_orchestrator(client, "Total: R$ 10,00", "Total: R$ 4,90")

        _parse(client)
        data = _parse(client, url="https://x/2.pdf").json()["data"]

        assert data["valor_total"] == 14.9
        assert data["itens"] == 2

    def test_value_not_read(self, client) -> None:  # noqa: ANN001
        _install_orchestrator(client, "sem valor aqui")

        data = _parse(client).json()["data"]

        assert data["accepted"] is False
        assert data["reason"] == "value_not_read"
        assert data["valor"] is None

    def test_fetch_failure(self, client) -> None:  # noqa: ANN001
        orchestrator = _install_orchestrator(client)
        orchestrator._fetcher.fetch = AsyncMock(side_effect=AttachmentFetchError("HTTP 404"))

        response = _parse(client)

        assert response.status_code == 200
        assert response.json()["data"]["reason"] == "fetch_failed"

    @pytest.mark.parametrize(
        ("payload", "error"),
        [
            ({"attachment_url": "https://x/1.pdf"}, "customerPlatformId obrigatório"),
            ({"customerPlatformId": "c1"}, "attachment_url obrigatório"),
            ({}, "customerPlatformId obrigatório"),
        ],
    )
    def test_missing_fields_return_400(self, client, payload, error) -> None:  # noqa: ANN001
        _install_orchestrator(client)

        response = client.post("/kinbox/parse", json=payload)

        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": error}

    def test_numeric_customer_id_is_accepted(self, client) -> None:  # noqa: ANN001
        _install_orchestrator(client, "Total: R$ 1,00")

        response = client.post(
            "/kinbox/parse", json={"customerPlatformId": 12345, "attachment_url": "https://x/1"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["customerPlatformId"] == "12345"


class TestFinalizeEndpoint:
    """POST /kinbox/finalizar."""

    def test_finalize_reports_purchase(self, client) -> None:  # noqa: ANN001
        orchestrator = _install_orchestrator(client, "Total: R$ 10,00")
        _parse(client)

        response = client.post(
            "/kinbox/finalizar",
            json={"customerPlatformId": "cliente-1", "email": "Cliente@Exemplo.com"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["message"] == "Compra finalizada"
        assert body["data"]["status"] == "closed"
        assert body["data"]["valor_total"] == 10.0
        assert body["capi"] == {"report_id": "trace-1", "already_reported": False, "error": None}
        amount = orchestrator.reporter.report_purchase.call_args.args[0]
        assert amount == Decimal("10.00")

    def test_repeated_finalize_is_idempotent(self, client) -> None:  # noqa: ANN001
        orchestrator = _install_orchestrator(client, "Total: R$ 10,00")
        _parse(client)

        client.post("/kinbox/finalizar", json={"customerPlatformId": "cliente-1"})
        response = client.post("/kinbox/finalizar", json={"customerPlatformId": "cliente-1"})

        assert response.status_code == 200
        assert response.json()["capi"]["already_reported"] is True
        assert orchestrator.reporter.report_purchase.await_count == 1

    def test_report_failure_returns_502(self, client) -> None:  # noqa: ANN001
        reporter = MagicMock()
        reporter.report_purchase = AsyncMock(side_effect=ConversionReportError("Timeout"))
        _install_orchestrator(client, "Total: R$ 10,00", reporter=reporter)
        _parse(client)

        response = client.post("/kinbox/finalizar", json={"customerPlatformId": "cliente-1"})

        assert response.status_code == 502
        body = response.json()
        assert body["ok"] is False
        assert body["error"] == "Timeout"
        assert body["data"]["status"] == "closed"

    def test_empty_purchase_is_not_reported(self, client) -> None:  # noqa: ANN001
        orchestrator = _install_orchestrator(client)

        response = client.post("/kinbox/finalizar", json={"customerPlatformId": "novo"})

        assert response.status_code == 200
        assert response.json()["capi"]["error"] == "nothing_to_report"
        orchestrator.reporter.report_purchase.assert_not_called()

    def test_missing_customer_returns_400(self, client) -> None:  # noqa: ANN001
        response = client.post("/kinbox/finalizar", json={})
        assert response.status_code == 400
        assert response.json()["ok"] is False


class TestTestPixelEndpoint:
    """GET /test-pixel."""

    def test_not_found_without_test_event_code(self, client) -> None:  # noqa: ANN001
        assert client.get("/test-pixel").status_code == 404

    def test_sends_test_event(self, client) -> None:  # noqa: ANN001
        reporter = MagicMock()
        reporter.send_test_purchase = AsyncMock(return_value={"events_received": 1})
        _install_orchestrator(client, reporter=reporter)
        client.app.state.settings = Settings(meta_test_event_code="TEST42")

        response = client.get("/test-pixel")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "data": {"events_received": 1}}
        reporter.send_test_purchase.assert_awaited_once()

    def test_report_error_returns_502(self, client) -> None:  # noqa: ANN001
        reporter = MagicMock()
        reporter.send_test_purchase = AsyncMock(side_effect=ConversionReportError("HTTP 400"))
        _install_orchestrator(client, reporter=reporter)
        client.app.state.settings = Settings(meta_test_event_code="TEST42")

        assert client.get("/test-pixel").status_code == 502


class TestCorrelationId:
    def test_response_carries_correlation_id(self, client) -> None:  # noqa: ANN001
        response = client.get("/health", headers={"X-Correlation-ID": "cid-1"})
        assert response.headers["X-Correlation-ID"] == "cid-1"
