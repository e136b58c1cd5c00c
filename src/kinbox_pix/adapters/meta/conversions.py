"""Cliente da Meta Conversions API (evento Purchase).

Responsabilidade:
- Montar o evento Purchase com event_id estável (deduplicação na Meta)
- Enviar apenas identificadores hasheados (ph/em)
- Converter falhas de transporte em ConversionReportError
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from kinbox_pix.domain.protocols import ConversionReporter, ConversionReportError
from kinbox_pix.infra.http import HttpClient, HttpError, create_http_client
from kinbox_pix.observability.logging import get_logger
from kinbox_pix.utils.hashing import build_user_data
from kinbox_pix.utils.ids import conversion_event_id

if TYPE_CHECKING:
    from kinbox_pix.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

PURCHASE_EVENT = "Purchase"

# Dados fixos do evento de teste do pixel (nunca dados reais de cliente)
TEST_EVENT_ID = "teste-123"
TEST_EVENT_VALUE = Decimal("9.90")
TEST_EVENT_PHONE = "558598887777"
TEST_EVENT_EMAIL = "teste@exemplo.com"


class MetaConversionsClient(ConversionReporter):
    """Envia eventos para /{pixel_id}/events da Graph API."""

    def __init__(
        self,
        http_client: HttpClient,
        endpoint: str,
        access_token: str | None,
        *,
        action_source: str = "customer_chat",
        event_id_prefix: str = "kinbox",
        test_event_code: str | None = None,
        pixel_configured: bool = True,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._http = http_client
        self._endpoint = endpoint
        self._access_token = access_token
        self._action_source = action_source
        self._event_id_prefix = event_id_prefix
        self._test_event_code = test_event_code
        self._pixel_configured = pixel_configured
        self._clock = clock or time.time

    @property
    def test_event_code(self) -> str | None:
        return self._test_event_code

    def build_purchase_event(
        self,
        amount: Decimal,
        currency: str,
        event_id: str,
        user_data: dict[str, list[str]],
        action_source: str | None = None,
    ) -> dict[str, Any]:
        """Monta o corpo da requisição (data + test_event_code opcional)."""
        body: dict[str, Any] = {
            "data": [
                {
                    "event_name": PURCHASE_EVENT,
                    "event_time": int(self._clock()),
                    "action_source": action_source or self._action_source,
                    "event_id": event_id,
                    "user_data": user_data,
                    "custom_data": {"currency": currency, "value": float(amount)},
                }
            ]
        }
        if self._test_event_code:
            body["test_event_code"] = self._test_event_code
        return body

    async def report_purchase(
        self,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        user_data: dict[str, list[str]],
    ) -> str:
        event_id = conversion_event_id(idempotency_key, self._event_id_prefix)
        body = self.build_purchase_event(amount, currency, event_id, user_data)
        data = await self._send(body, event_id)

        if int(data.get("events_received") or 0) < 1:
            raise ConversionReportError("Meta CAPI não confirmou o recebimento do evento")

        report_id = str(data.get("fbtrace_id") or event_id)
        logger.info(
            "meta_capi_purchase_sent",
            extra={
                "event_id": event_id,
                "events_received": data.get("events_received"),
                "report_id": report_id,
            },
        )
        return report_id

    async def send_test_purchase(self) -> dict[str, Any]:
        """Envia um Purchase de teste (exige FB_TEST_EVENT_CODE)."""
        if not self._test_event_code:
            raise ConversionReportError("FB_TEST_EVENT_CODE não configurado")

        body = self.build_purchase_event(
            TEST_EVENT_VALUE,
            "BRL",
            TEST_EVENT_ID,
            build_user_data(TEST_EVENT_PHONE, TEST_EVENT_EMAIL),
            action_source="website",
        )
        return await self._send(body, TEST_EVENT_ID)

    async def _send(self, body: dict[str, Any], event_id: str) -> dict[str, Any]:
        if not self._pixel_configured or not self._access_token:
            raise ConversionReportError("Meta CAPI não configurado (FB_PIXEL_ID/FB_CAPI_TOKEN)")

        try:
            response = await self._http.post(
                self._endpoint,
                json=body,
                params={"access_token": self._access_token},
            )
        except HttpError as exc:
            logger.error(
                "meta_capi_purchase_failed",
                extra={"event_id": event_id, "status_code": exc.status_code, "error": str(exc)},
            )
            raise ConversionReportError(f"Falha ao enviar Purchase: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ConversionReportError("Resposta inválida da Meta CAPI") from exc
        if not isinstance(data, dict):
            raise ConversionReportError("Resposta inválida da Meta CAPI")
        return data


def create_conversion_reporter(
    settings: Settings,
    http_client: HttpClient | None = None,
) -> MetaConversionsClient:
    """Factory do reporter a partir de Settings."""
    client = http_client or create_http_client(
        settings, timeout_seconds=settings.conversion_report_timeout_seconds
    )
    return MetaConversionsClient(
        client,
        settings.meta_events_endpoint,
        settings.meta_capi_token,
        action_source=settings.meta_action_source,
        event_id_prefix=settings.meta_event_id_prefix,
        test_event_code=settings.meta_test_event_code,
        pixel_configured=bool(settings.meta_pixel_id),
    )
