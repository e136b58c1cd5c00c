"""Montagem das dependências do serviço a partir de Settings."""

from __future__ import annotations

from dataclasses import dataclass, field

from kinbox_pix.adapters.documents.text_sources import create_text_extractor
from kinbox_pix.adapters.kinbox.notifier import create_notifier, webhook_headers
from kinbox_pix.adapters.meta.conversions import create_conversion_reporter
from kinbox_pix.application.ledger import SessionLedger
from kinbox_pix.application.orchestrator import PurchaseOrchestrator
from kinbox_pix.config.settings import Settings
from kinbox_pix.infra.attachment_fetcher import HttpAttachmentFetcher
from kinbox_pix.infra.http import HttpClient, create_http_client
from kinbox_pix.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AppServices:
    """Serviços de longa duração criados uma vez no startup."""

    orchestrator: PurchaseOrchestrator
    http_clients: list[HttpClient] = field(default_factory=list)

    async def aclose(self) -> None:
        for client in self.http_clients:
            await client.close()


def build_services(settings: Settings) -> AppServices:
    """Cria ledger, colaboradores e o orquestrador."""
    fetch_client = create_http_client(
        settings, timeout_seconds=settings.attachment_fetch_timeout_seconds
    )
    report_client = create_http_client(
        settings, timeout_seconds=settings.conversion_report_timeout_seconds
    )
    http_clients = [fetch_client, report_client]

    notifier_client: HttpClient | None = None
    if settings.notification_webhook_url:
        notifier_client = create_http_client(
            settings,
            timeout_seconds=settings.notification_timeout_seconds,
            headers=webhook_headers(settings),
        )
        http_clients.append(notifier_client)
    notifier = create_notifier(settings, http_client=notifier_client)

    orchestrator = PurchaseOrchestrator(
        ledger=SessionLedger(ttl_seconds=settings.ledger_session_ttl_seconds),
        fetcher=HttpAttachmentFetcher(fetch_client, max_size_mb=settings.attachment_max_mb),
        text_extractor=create_text_extractor(
            language=settings.ocr_language,
            pdf_max_pages=settings.pdf_max_pages,
            pdf_min_text_chars=settings.pdf_min_text_chars,
        ),
        reporter=create_conversion_reporter(settings, http_client=report_client),
        notifier=notifier,
        currency=settings.currency,
    )

    logger.info(
        "services_built",
        extra={
            "ledger_ttl_seconds": settings.ledger_session_ttl_seconds,
            "notifier": type(notifier).__name__,
            "meta_configured": bool(settings.meta_pixel_id and settings.meta_capi_token),
        },
    )
    return AppServices(orchestrator=orchestrator, http_clients=http_clients)
