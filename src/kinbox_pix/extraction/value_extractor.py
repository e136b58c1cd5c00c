"""Extração do valor pago a partir do texto do comprovante.

Cascata em ordem de precisão, cada camada uma função pura testável:
1. Valor ancorado em rótulo ("Total", "Valor pago", ...) → confiança 0.95
2. Maior ocorrência de "R$ <valor>" no texto → confiança 0.7
3. Nada encontrado → value=None, confiança 0

Na camada 2 o maior valor vence: comprovantes trazem taxas e subtotais
menores ao lado do valor efetivamente pago.
"""

from __future__ import annotations

import re
from decimal import Decimal
from re import Pattern

from kinbox_pix.domain.models import ValueExtraction
from kinbox_pix.utils.money import parse_brl_amount

LABELED_CONFIDENCE = 0.95
UNLABELED_CONFIDENCE = 0.7

# 1.234,56 | 1234,56 | 10,00
_BRL_AMOUNT = r"(?:\d{1,3}(?:\.\d{3})+|\d+),\d{2}(?!\d)"

_PATTERNS: dict[str, Pattern[str]] = {
    # "valor pago" antes de "valor" e "pagamento" antes de "pago"
    "labeled": re.compile(
        r"\b(?:valor\s+pago|valor|total|pagamento|pago)\b\s*[:\-]?\s*(?:R\$\s*)?"
        rf"({_BRL_AMOUNT})",
        re.IGNORECASE,
    ),
    "currency": re.compile(rf"R\$\s*({_BRL_AMOUNT})", re.IGNORECASE),
}

NOT_FOUND = ValueExtraction(value=None, confidence=0.0, all_candidates=())


def match_labeled_value(text: str) -> ValueExtraction | None:
    """Primeiro valor precedido de rótulo; None se não houver."""
    for match in _PATTERNS["labeled"].finditer(text):
        value = parse_brl_amount(match.group(1))
        if value is not None:
            return ValueExtraction(
                value=value,
                confidence=LABELED_CONFIDENCE,
                all_candidates=(value,),
            )
    return None


def match_currency_values(text: str) -> ValueExtraction | None:
    """Maior valor entre todas as ocorrências de R$; None se não houver."""
    candidates: list[Decimal] = []
    for match in _PATTERNS["currency"].finditer(text):
        value = parse_brl_amount(match.group(1))
        if value is not None:
            candidates.append(value)

    if not candidates:
        return None
    return ValueExtraction(
        value=max(candidates),
        confidence=UNLABELED_CONFIDENCE,
        all_candidates=tuple(candidates),
    )


def extract_value(text: str | None) -> ValueExtraction:
    """Aplica a cascata e retorna o valor mais provável.

    Exemplos:
        >>> extract_value("Total: R$ 1.234,56").value
        Decimal('1234.56')
    """
    if not text:
        return NOT_FOUND

    for tier in (match_labeled_value, match_currency_values):
        result = tier(text)
        if result is not None:
            return result
    return NOT_FOUND
