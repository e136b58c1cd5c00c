"""PurchaseOrchestrator: coordena leitura de comprovante e fechamento da compra.

Fluxo de submit_receipt:
    download → classificação → texto (PDF/OCR) → normalização →
    valor + txid → ledger.append_item → notificação

Fluxo de finalize_purchase:
    ledger.finalize → Meta CAPI (Purchase) → ledger.mark_reported → notificação

Erros de colaboradores viram campos do resultado; apenas InputValidationError
sobe para o chamador.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from kinbox_pix.adapters.documents.classifier import classify_attachment
from kinbox_pix.adapters.documents.text_sources import DocumentTextExtractor
from kinbox_pix.application import messages
from kinbox_pix.application.ledger import SessionLedger
from kinbox_pix.domain.enums import ReceiptReason
from kinbox_pix.domain.errors import (
    InputValidationError,
    InvalidItemValueError,
    SessionClosedError,
)
from kinbox_pix.domain.models import FinalizeOutcome, ReceiptOutcome
from kinbox_pix.domain.protocols import (
    AttachmentFetcher,
    AttachmentFetchError,
    ConversionReporter,
    ConversionReportError,
    Notifier,
)
from kinbox_pix.extraction import extract_txid, extract_value, normalize_text
from kinbox_pix.observability.logging import get_logger, mask_key
from kinbox_pix.utils.hashing import build_user_data

NOTHING_TO_REPORT = "nothing_to_report"


def _require(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise InputValidationError(field)
    return str(value).strip()


class PurchaseOrchestrator:
    """Ponto de entrada da aplicação para comprovantes e fechamento."""

    def __init__(
        self,
        ledger: SessionLedger,
        fetcher: AttachmentFetcher,
        text_extractor: DocumentTextExtractor,
        reporter: ConversionReporter,
        notifier: Notifier,
        currency: str = "BRL",
        logger: logging.Logger | None = None,
    ) -> None:
        self._ledger = ledger
        self._fetcher = fetcher
        self._text_extractor = text_extractor
        self._reporter = reporter
        self._notifier = notifier
        self._currency = currency
        self._logger = logger or get_logger(__name__)

    @property
    def ledger(self) -> SessionLedger:
        return self._ledger

    @property
    def reporter(self) -> ConversionReporter:
        return self._reporter

    async def submit_receipt(
        self,
        customer_key: str | None,
        attachment_url: str | None,
        phone: str | None = None,
        email: str | None = None,
    ) -> ReceiptOutcome:
        """Lê o comprovante e, se houver valor, adiciona item à sessão.

        Raises:
            InputValidationError: customer_key ou attachment_url ausentes
        """
        customer_key = _require(customer_key, "customerPlatformId")
        attachment_url = _require(attachment_url, "attachment_url")

        try:
            fetched = await self._fetcher.fetch(attachment_url)
        except AttachmentFetchError as exc:
            self._logger.warning(
                "receipt_fetch_failed",
                extra={"customer_key": mask_key(customer_key), "error": str(exc)},
            )
            outcome = ReceiptOutcome(
                accepted=False,
                reason=ReceiptReason.FETCH_FAILED,
                session=await self._ledger.get(customer_key),
            )
            return await self._notify_receipt(customer_key, outcome)

        classified = classify_attachment(fetched.content, fetched.content_type)
        raw_text = await self._text_extractor.extract(classified.kind, fetched.content)
        text = normalize_text(raw_text)
        extraction = extract_value(text)
        txid = extract_txid(text)

        self._logger.info(
            "receipt_extracted",
            extra={
                "customer_key": mask_key(customer_key),
                "document_kind": classified.kind.value,
                "detected_by": classified.detected_by,
                "document_hash": classified.sha256[:12],
                "text_chars": len(text),
                "value_found": extraction.found,
                "confidence": extraction.confidence,
                "candidates": len(extraction.all_candidates),
                "has_txid": txid is not None,
            },
        )

        value = extraction.value
        if value is None or value <= 0:
            outcome = ReceiptOutcome(
                accepted=False,
                reason=ReceiptReason.VALUE_NOT_READ,
                session=await self._ledger.get(customer_key),
                confidence=extraction.confidence,
                txid=txid,
                document_hash=classified.sha256,
            )
            return await self._notify_receipt(customer_key, outcome)

        try:
            session = await self._ledger.append_item(
                customer_key, value, txid=txid, document_hash=classified.sha256
            )
        except InvalidItemValueError as exc:
            self._logger.warning(
                "receipt_rejected_invalid_value",
                extra={"customer_key": mask_key(customer_key), "error": str(exc)},
            )
            outcome = ReceiptOutcome(
                accepted=False,
                reason=ReceiptReason.VALUE_NOT_READ,
                session=await self._ledger.get(customer_key),
                confidence=extraction.confidence,
                txid=txid,
                document_hash=classified.sha256,
            )
            return await self._notify_receipt(customer_key, outcome)
        except SessionClosedError:
            self._logger.info(
                "receipt_rejected_session_closed",
                extra={"customer_key": mask_key(customer_key)},
            )
            outcome = ReceiptOutcome(
                accepted=False,
                reason=ReceiptReason.SESSION_CLOSED,
                session=await self._ledger.get(customer_key),
                value=value,
                confidence=extraction.confidence,
                txid=txid,
                document_hash=classified.sha256,
            )
            return await self._notify_receipt(customer_key, outcome)

        identifiers = build_user_data(phone, email)
        if identifiers:
            session = await self._ledger.remember_identifiers(customer_key, identifiers)

        outcome = ReceiptOutcome(
            accepted=True,
            reason=ReceiptReason.RECEIPT_ACCEPTED,
            session=session,
            value=value,
            confidence=extraction.confidence,
            txid=txid,
            document_hash=classified.sha256,
        )
        return await self._notify_receipt(customer_key, outcome)

    async def finalize_purchase(
        self,
        customer_key: str | None,
        phone: str | None = None,
        email: str | None = None,
    ) -> FinalizeOutcome:
        """Fecha a sessão e reporta o Purchase (uma única vez por sessão).

        Falha no reporte volta em FinalizeOutcome.error; a sessão fica fechada.
        Um novo finalize de sessão sem report_id tenta reportar de novo com o
        mesmo event_id, que a Meta deduplica.

        Raises:
            InputValidationError: customer_key ausente
        """
        customer_key = _require(customer_key, "customerPlatformId")

        identifiers = build_user_data(phone, email)
        if identifiers:
            await self._ledger.remember_identifiers(customer_key, identifiers)
        session = await self._ledger.finalize(customer_key)

        if session.report_id:
            outcome = FinalizeOutcome(
                session=session, report_id=session.report_id, already_reported=True
            )
            return await self._notify_finalize(customer_key, outcome)

        if session.valor_total <= 0:
            self._logger.info(
                "purchase_without_value_not_reported",
                extra={"session_id": mask_key(session.session_id)},
            )
            outcome = FinalizeOutcome(session=session, error=NOTHING_TO_REPORT)
            return await self._notify_finalize(customer_key, outcome)

        try:
            report_id = await self._reporter.report_purchase(
                session.valor_total,
                self._currency,
                session.session_id,
                session.identifiers,
            )
        except ConversionReportError as exc:
            self._logger.error(
                "purchase_report_failed",
                extra={
                    "customer_key": mask_key(customer_key),
                    "session_id": mask_key(session.session_id),
                    "error": str(exc),
                },
            )
            outcome = FinalizeOutcome(session=session, error=str(exc))
            return await self._notify_finalize(customer_key, outcome)

        session = await self._ledger.mark_reported(customer_key, report_id)
        outcome = FinalizeOutcome(session=session, report_id=report_id)
        return await self._notify_finalize(customer_key, outcome)

    async def _notify_receipt(self, customer_key: str, outcome: ReceiptOutcome) -> ReceiptOutcome:
        notified = await self._notify(
            customer_key, messages.receipt_text(outcome), messages.receipt_payload(outcome)
        )
        return dataclasses.replace(outcome, notified=notified)

    async def _notify_finalize(
        self, customer_key: str, outcome: FinalizeOutcome
    ) -> FinalizeOutcome:
        notified = await self._notify(
            customer_key, messages.finalize_text(outcome), messages.finalize_payload(outcome)
        )
        return dataclasses.replace(outcome, notified=notified)

    async def _notify(self, customer_key: str, text: str, payload: dict[str, Any]) -> bool:
        """Notificação best-effort: falha é logada e nunca propagada."""
        try:
            await self._notifier.notify(customer_key, text, payload)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "chat_notification_failed",
                extra={
                    "customer_key": mask_key(customer_key),
                    "event": payload.get("event"),
                    "error": type(exc).__name__,
                },
            )
            return False
        return True
