"""Extração do identificador da transação (txid / end-to-end id do Pix).

O txid é metadado de auditoria do item; não participa do total.
"""

from __future__ import annotations

import re
from re import Pattern

MIN_TXID_LENGTH = 10

_TXID_PATTERN: Pattern[str] = re.compile(
    r"\b(?:txid|end\s*to\s*end\s*id|endtoendid|e2e\s*id|e2eid|e2e|id\s+da\s+transa[cç][aã]o)"
    r"(?![A-Za-z0-9])"
    r"\s*[:\-#]?\s*"
    rf"([A-Za-z0-9.\-]{{{MIN_TXID_LENGTH},}})",
    re.IGNORECASE,
)


def extract_txid(text: str | None) -> str | None:
    """Retorna o primeiro token após um rótulo de txid/E2E, ou None.

    Exemplos:
        >>> extract_txid("E2E: E12345678202501011200abcde")
        'E12345678202501011200abcde'
    """
    if not text:
        return None

    for match in _TXID_PATTERN.finditer(text):
        token = match.group(1).rstrip(".-")
        if len(token) >= MIN_TXID_LENGTH:
            return token
    return None
