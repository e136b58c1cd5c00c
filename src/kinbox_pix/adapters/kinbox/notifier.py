"""Notificação de volta ao chat (Kinbox).

WebhookNotifier envia texto + payload estruturado para o webhook configurado.
LoggingNotifier é usado quando nenhum webhook existe (dev/testes locais).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from kinbox_pix.domain.protocols import NotificationError, Notifier
from kinbox_pix.infra.http import HttpClient, HttpError, create_http_client
from kinbox_pix.observability.logging import get_logger, mask_key

if TYPE_CHECKING:
    from kinbox_pix.config.settings import Settings

logger: logging.Logger = get_logger(__name__)


class WebhookNotifier(Notifier):
    """POST JSON {customerPlatformId, text, payload} no webhook do chat."""

    def __init__(self, http_client: HttpClient, webhook_url: str) -> None:
        self._http = http_client
        self._webhook_url = webhook_url

    async def notify(self, customer_key: str, text: str, payload: dict[str, Any]) -> None:
        body = {"customerPlatformId": customer_key, "text": text, "payload": payload}
        try:
            await self._http.post(self._webhook_url, json=body)
        except HttpError as exc:
            raise NotificationError(f"Falha ao notificar chat: {exc}") from exc

        logger.debug(
            "chat_notified",
            extra={"customer_key": mask_key(customer_key), "event": payload.get("event")},
        )


class LoggingNotifier(Notifier):
    """Apenas registra a notificação (sem texto, que pode conter valores)."""

    async def notify(self, customer_key: str, text: str, payload: dict[str, Any]) -> None:
        logger.info(
            "chat_notification_skipped",
            extra={"customer_key": mask_key(customer_key), "event": payload.get("event")},
        )


def webhook_headers(settings: Settings) -> dict[str, str]:
    """Headers de autenticação do webhook (Bearer opcional)."""
    if not settings.notification_webhook_token:
        return {}
    return {"Authorization": f"Bearer {settings.notification_webhook_token}"}


def create_notifier(settings: Settings, http_client: HttpClient | None = None) -> Notifier:
    """Cria o notifier conforme NOTIFICATION_WEBHOOK_URL."""
    if not settings.notification_webhook_url:
        return LoggingNotifier()

    client = http_client or create_http_client(
        settings,
        timeout_seconds=settings.notification_timeout_seconds,
        headers=webhook_headers(settings),
    )
    return WebhookNotifier(client, settings.notification_webhook_url)
