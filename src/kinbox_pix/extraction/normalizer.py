"""Normalização do texto bruto vindo do OCR/PDF.

Responsabilidade:
- Deixar o texto seguro para os regex de valor e txid
- Não alterar semântica: sem lower-case (txid diferencia maiúsculas)
- Nunca falhar: entrada vazia ou None resulta em ""
"""

from __future__ import annotations

import re
import unicodedata
from re import Pattern

_PATTERNS: dict[str, Pattern[str]] = {
    # Zero-width e controles (exceto \n e \t, tratados a seguir)
    "invisible": re.compile(r"[\u200b-\u200f\u2060\ufeff\x00-\x08\x0b-\x1f\x7f]"),
    "horizontal_ws": re.compile(r"[ \t\f\v]+"),
    # OCR costuma separar o cifrão: "R $ 10,00"
    "split_currency": re.compile(r"\bR\s+\$", re.IGNORECASE),
}


def normalize_text(raw: str | None) -> str:
    """Limpa o texto para varredura por regex.

    Exemplos:
        >>> normalize_text("Valor:\\u00a0R $  10,00\\r\\n\\r\\n")
        'Valor: R$ 10,00'
    """
    if not raw:
        return ""

    text = unicodedata.normalize("NFKC", raw)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _PATTERNS["invisible"].sub("", text)
    text = _PATTERNS["split_currency"].sub("R$", text)

    lines = (_PATTERNS["horizontal_ws"].sub(" ", line).strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)
