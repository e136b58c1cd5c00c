"""Enums de domínio do ledger de compras e da leitura de comprovantes."""

from __future__ import annotations

from enum import StrEnum


class SessionStatus(StrEnum):
    """Estados da sessão de compra (OPEN → CLOSED, nunca o inverso)."""

    OPEN = "open"
    CLOSED = "closed"


class ItemKind(StrEnum):
    """Primeiro comprovante da sessão é o principal; os demais são upsell."""

    PRIMARY = "primary"
    UPSELL = "upsell"


class DocumentKind(StrEnum):
    """Tipo de documento que seleciona a fonte de texto."""

    PDF = "pdf"
    IMAGE = "image"


class ReceiptReason(StrEnum):
    """Motivo do resultado de um comprovante submetido."""

    RECEIPT_ACCEPTED = "receipt_accepted"
    VALUE_NOT_READ = "value_not_read"
    FETCH_FAILED = "fetch_failed"
    SESSION_CLOSED = "session_closed"
