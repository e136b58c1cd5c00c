"""Re-exports dos contratos de colaboradores para uso por Application."""

from __future__ import annotations

from kinbox_pix.domain.protocols.collaborators import (
    AttachmentFetcher,
    AttachmentFetchError,
    AttachmentTooLargeError,
    ConversionReporter,
    ConversionReportError,
    NotificationError,
    Notifier,
    TextSource,
)

__all__ = [
    "AttachmentFetcher",
    "AttachmentFetchError",
    "AttachmentTooLargeError",
    "ConversionReporter",
    "ConversionReportError",
    "Notifier",
    "NotificationError",
    "TextSource",
]
