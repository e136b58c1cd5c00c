"""Heurísticas de leitura de comprovantes (funções puras sobre texto)."""

from kinbox_pix.extraction.normalizer import normalize_text
from kinbox_pix.extraction.txid_extractor import extract_txid
from kinbox_pix.extraction.value_extractor import (
    extract_value,
    match_currency_values,
    match_labeled_value,
)

__all__ = [
    "normalize_text",
    "extract_value",
    "match_labeled_value",
    "match_currency_values",
    "extract_txid",
]
