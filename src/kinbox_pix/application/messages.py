"""Textos enviados ao cliente e payloads estruturados das notificações."""

from __future__ import annotations

from typing import Any

from kinbox_pix.domain.enums import ReceiptReason
from kinbox_pix.domain.models import FinalizeOutcome, ReceiptOutcome
from kinbox_pix.utils.money import format_brl

_RECEIPT_TEXTS: dict[ReceiptReason, str] = {
    ReceiptReason.VALUE_NOT_READ: (
        "Não consegui ler o valor do comprovante. "
        "Pode enviar uma foto mais nítida ou o PDF do comprovante?"
    ),
    ReceiptReason.FETCH_FAILED: (
        "Não consegui abrir o arquivo enviado. Pode tentar enviar o comprovante novamente?"
    ),
    ReceiptReason.SESSION_CLOSED: (
        "Esta compra já foi finalizada. Se fez um novo pagamento, fale com nosso atendimento."
    ),
}


def receipt_text(outcome: ReceiptOutcome) -> str:
    """Mensagem de retorno para um comprovante submetido."""
    if outcome.accepted and outcome.value is not None and outcome.session is not None:
        return (
            f"Comprovante recebido! Valor: R$ {format_brl(outcome.value)}. "
            f"Subtotal da compra: R$ {format_brl(outcome.session.valor_total)}."
        )
    return _RECEIPT_TEXTS[outcome.reason]


def receipt_payload(outcome: ReceiptOutcome) -> dict[str, Any]:
    """Payload estruturado (sem PII) que acompanha a mensagem."""
    session = outcome.session
    return {
        "event": "receipt_processed",
        "accepted": outcome.accepted,
        "reason": outcome.reason.value,
        "valor": float(outcome.value) if outcome.value is not None else None,
        "confidence": outcome.confidence,
        "txid": outcome.txid,
        "session_id": session.session_id if session else None,
        "valor_total": float(session.valor_total) if session else 0.0,
        "itens": len(session.items) if session else 0,
    }


def finalize_text(outcome: FinalizeOutcome) -> str:
    """Mensagem de retorno para o fechamento da compra.

    Falha no reporte de conversão não aparece para o cliente.
    """
    total = format_brl(outcome.session.valor_total)
    return f"Compra finalizada! Total: R$ {total}. Obrigado pela preferência!"


def finalize_payload(outcome: FinalizeOutcome) -> dict[str, Any]:
    session = outcome.session
    return {
        "event": "purchase_finalized",
        "session_id": session.session_id,
        "status": session.status.value,
        "valor_total": float(session.valor_total),
        "itens": len(session.items),
        "reported": outcome.reported,
        "already_reported": outcome.already_reported,
    }
