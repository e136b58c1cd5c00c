"""Rotas HTTP: leitura de comprovante, fechamento da compra e pixel de teste."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, PlainTextResponse

from kinbox_pix.adapters.meta.conversions import MetaConversionsClient
from kinbox_pix.api.dependencies import (
    get_conversion_reporter,
    get_orchestrator,
    get_settings,
)
from kinbox_pix.api.schemas import FinalizeRequest, ParseRequest
from kinbox_pix.application.orchestrator import NOTHING_TO_REPORT, PurchaseOrchestrator
from kinbox_pix.config.settings import Settings
from kinbox_pix.domain.models import FinalizeOutcome, PurchaseSession, ReceiptOutcome
from kinbox_pix.domain.protocols import ConversionReportError
from kinbox_pix.observability.logging import get_logger
from kinbox_pix.observability.middleware import get_correlation_id

logger = get_logger(__name__)

router = APIRouter()

SERVICE_ALIVE_TEXT = "✅ Servidor do Kinbox Pix Parser rodando!"


def _session_data(session: PurchaseSession | None) -> dict[str, Any]:
    if session is None:
        return {"session_id": None, "status": None, "valor_total": 0.0, "itens": 0}
    return {
        "session_id": session.session_id,
        "status": session.status.value,
        "valor_total": float(session.valor_total),
        "itens": len(session.items),
    }


def _receipt_data(customer_key: str, outcome: ReceiptOutcome) -> dict[str, Any]:
    return {
        "customerPlatformId": customer_key,
        "accepted": outcome.accepted,
        "reason": outcome.reason.value,
        "valor": float(outcome.value) if outcome.value is not None else None,
        "confidence": outcome.confidence,
        "txid": outcome.txid,
        "notified": outcome.notified,
        **_session_data(outcome.session),
    }


def _finalize_data(customer_key: str, outcome: FinalizeOutcome) -> dict[str, Any]:
    return {
        "customerPlatformId": customer_key,
        "notified": outcome.notified,
        **_session_data(outcome.session),
    }


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    """Liveness em texto puro."""
    return SERVICE_ALIVE_TEXT


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Healthcheck simples."""
    return {"status": "ok", "service": settings.service_name, "version": settings.version}


@router.post("/kinbox/parse")
async def kinbox_parse(
    body: ParseRequest | None = None,
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Lê o comprovante anexado e soma o valor à compra da conversa."""
    body = body or ParseRequest()
    outcome = await orchestrator.submit_receipt(
        body.customer_platform_id,
        body.attachment_url,
        phone=body.phone,
        email=body.email,
    )
    customer_key = (body.customer_platform_id or "").strip()
    return {
        "ok": True,
        "message": outcome.reason.value,
        "data": _receipt_data(customer_key, outcome),
    }


@router.post("/kinbox/finalizar", response_model=None)
async def kinbox_finalizar(
    body: FinalizeRequest | None = None,
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any] | JSONResponse:
    """Fecha a compra e reporta o Purchase para a Conversions API."""
    body = body or FinalizeRequest()
    outcome = await orchestrator.finalize_purchase(
        body.customer_platform_id,
        phone=body.phone,
        email=body.email,
    )
    customer_key = (body.customer_platform_id or "").strip()
    data = _finalize_data(customer_key, outcome)

    if outcome.error and outcome.error != NOTHING_TO_REPORT:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "ok": False,
                "error": outcome.error,
                "data": data,
                "correlation_id": get_correlation_id(),
            },
        )

    return {
        "ok": True,
        "message": "Compra finalizada",
        "data": data,
        "capi": {
            "report_id": outcome.report_id,
            "already_reported": outcome.already_reported,
            "error": outcome.error,
        },
    }


@router.get("/test-pixel")
async def test_pixel(
    settings: Settings = Depends(get_settings),
    reporter: MetaConversionsClient = Depends(get_conversion_reporter),
) -> dict[str, Any]:
    """Envia um Purchase de teste (somente com FB_TEST_EVENT_CODE)."""
    if not settings.meta_test_event_code:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")

    try:
        response = await reporter.send_test_purchase()
    except ConversionReportError as exc:
        logger.warning("test_pixel_failed", extra={"error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)
        ) from exc

    return {"ok": True, "data": response}
