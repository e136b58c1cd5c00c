"""Modelos de domínio (contratos principais).

PurchaseSession é a unidade de acumulação de uma conversa:
- Uma conversa (customer_key) = uma sessão
- Uma sessão = um session_id estável, usado como chave de idempotência
- Sessões são retornadas pelo ledger apenas como snapshots (cópias)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from kinbox_pix.domain.enums import DocumentKind, ItemKind, ReceiptReason, SessionStatus
from kinbox_pix.utils.money import ZERO


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class PurchaseItem(BaseModel):
    """Comprovante aceito e incorporado à sessão."""

    kind: ItemKind
    value: Decimal
    txid: str | None = None
    document_hash: str | None = None
    added_at: datetime = Field(default_factory=_utcnow)


class PurchaseSession(BaseModel):
    """Estado acumulado de compra de uma conversa.

    valor_total é sempre derivado de items (recalculado pelo ledger).
    identifiers guarda apenas hashes (ph/em), nunca telefone ou e-mail em claro.
    """

    customer_key: str
    session_id: str
    status: SessionStatus = SessionStatus.OPEN
    items: list[PurchaseItem] = Field(default_factory=list)
    txids: list[str] = Field(default_factory=list)
    valor_total: Decimal = ZERO
    identifiers: dict[str, list[str]] = Field(default_factory=dict)
    report_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    closed_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.status == SessionStatus.CLOSED

    @property
    def primary_item(self) -> PurchaseItem | None:
        return self.items[0] if self.items else None

    @property
    def upsell_items(self) -> list[PurchaseItem]:
        return self.items[1:]


@dataclass(slots=True, frozen=True)
class ValueExtraction:
    """Valor mais provável encontrado no texto do comprovante."""

    value: Decimal | None
    confidence: float
    all_candidates: tuple[Decimal, ...] = ()

    @property
    def found(self) -> bool:
        return self.value is not None


@dataclass(slots=True, frozen=True)
class FetchedAttachment:
    """Bytes baixados e o content-type informado pelo servidor."""

    content: bytes
    content_type: str | None = None


@dataclass(slots=True, frozen=True)
class ClassifiedAttachment:
    """Resultado da classificação de um anexo."""

    kind: DocumentKind
    sha256: str
    size_bytes: int
    detected_by: str  # signature | content_type | default


@dataclass(slots=True, frozen=True)
class ReceiptOutcome:
    """Resultado de submit_receipt consumido pela camada HTTP."""

    accepted: bool
    reason: ReceiptReason
    session: PurchaseSession | None = None
    value: Decimal | None = None
    confidence: float = 0.0
    txid: str | None = None
    document_hash: str | None = None
    notified: bool = False


@dataclass(slots=True, frozen=True)
class FinalizeOutcome:
    """Resultado de finalize_purchase.

    error preenchido indica falha recuperável no reporte; a sessão continua
    fechada mesmo assim.
    """

    session: PurchaseSession
    report_id: str | None = None
    error: str | None = None
    already_reported: bool = False
    notified: bool = False

    @property
    def reported(self) -> bool:
        return self.report_id is not None
