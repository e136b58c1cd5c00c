"""Helpers de valores monetários em reais (formato brasileiro)."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round2(value: Decimal) -> Decimal:
    """Arredonda para 2 casas (ROUND_HALF_UP)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_values(values: Iterable[Decimal]) -> Decimal:
    """Soma e arredonda para 2 casas; soma vazia é 0.00."""
    return round2(sum(values, ZERO))


def parse_brl_amount(raw: str | None) -> Decimal | None:
    """Converte '1.234,56' (ou 'R$ 1.234,56') em Decimal('1234.56').

    Remove espaços e o marcador R$, descarta os pontos de milhar e troca a
    última vírgula por ponto. Retorna None se o resultado não for numérico
    ou não for finito.
    """
    if not raw:
        return None

    cleaned = "".join(raw.split()).replace("R$", "").replace("r$", "")
    cleaned = cleaned.replace(".", "")
    head, sep, tail = cleaned.rpartition(",")
    if sep:
        cleaned = f"{head}.{tail}"

    try:
        value = Decimal(cleaned)
        if not value.is_finite():
            return None
        return round2(value)
    except InvalidOperation:
        return None


def format_brl(value: Decimal) -> str:
    """Formata Decimal como '1.234,56' (sem o prefixo R$)."""
    quantized = round2(value)
    sign = "-" if quantized < 0 else ""
    integer, _, cents = f"{abs(quantized):.2f}".partition(".")
    groups: list[str] = []
    while len(integer) > 3:
        groups.insert(0, integer[-3:])
        integer = integer[:-3]
    groups.insert(0, integer)
    return f"{sign}{'.'.join(groups)},{cents}"
