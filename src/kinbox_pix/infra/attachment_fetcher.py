"""Download de anexos de comprovante via HTTP."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from kinbox_pix.domain.models import FetchedAttachment
from kinbox_pix.domain.protocols import (
    AttachmentFetcher,
    AttachmentFetchError,
    AttachmentTooLargeError,
)
from kinbox_pix.infra.http import HttpClient, HttpError, sanitize_url
from kinbox_pix.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

_ALLOWED_SCHEMES = frozenset({"http", "https"})


class HttpAttachmentFetcher(AttachmentFetcher):
    """Baixa o anexo com timeout do HttpClient e limite de tamanho."""

    def __init__(self, http_client: HttpClient, max_size_mb: int = 25) -> None:
        self._http = http_client
        self._max_size_bytes = max_size_mb * 1024 * 1024

    async def fetch(self, url: str) -> FetchedAttachment:
        scheme = urlsplit(url).scheme.lower()
        if scheme not in _ALLOWED_SCHEMES:
            raise AttachmentFetchError(f"Esquema de URL não suportado: {scheme or 'vazio'}")

        try:
            response = await self._http.get(url)
        except HttpError as exc:
            logger.warning(
                "attachment_fetch_failed",
                extra={
                    "url": sanitize_url(url),
                    "status_code": exc.status_code,
                    "error": str(exc),
                },
            )
            raise AttachmentFetchError(f"Falha ao baixar anexo: {exc}") from exc

        content = response.content
        if len(content) > self._max_size_bytes:
            raise AttachmentTooLargeError(
                f"Anexo excede limite de {self._max_size_bytes // (1024 * 1024)}MB"
            )
        if not content:
            raise AttachmentFetchError("Anexo vazio")

        content_type = response.headers.get("content-type")
        logger.info(
            "attachment_fetched",
            extra={"size_bytes": len(content), "content_type": content_type},
        )
        return FetchedAttachment(content=content, content_type=content_type)
