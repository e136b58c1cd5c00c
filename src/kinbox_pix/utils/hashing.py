"""Normalização e hash de identificadores do cliente (exigência Meta CAPI).

Telefone e e-mail nunca saem do serviço em claro: telefone vira apenas
dígitos, e-mail é aparado e minúsculo, e ambos são enviados como SHA-256 hex.
"""

from __future__ import annotations

import hashlib
import re

_NON_DIGITS = re.compile(r"\D")


def sha256_hex(value: str) -> str:
    """SHA-256 hex de um valor já normalizado."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def normalize_phone(phone: str | None) -> str:
    """Mantém apenas os dígitos do telefone."""
    return _NON_DIGITS.sub("", phone or "")


def normalize_email(email: str | None) -> str:
    """Apara espaços e converte para minúsculas."""
    return (email or "").strip().lower()


def build_user_data(phone: str | None = None, email: str | None = None) -> dict[str, list[str]]:
    """Monta user_data com identificadores hasheados (chaves ph / em).

    Identificadores vazios após normalização são omitidos.
    """
    user_data: dict[str, list[str]] = {}
    digits = normalize_phone(phone)
    if digits:
        user_data["ph"] = [sha256_hex(digits)]
    mail = normalize_email(email)
    if mail:
        user_data["em"] = [sha256_hex(mail)]
    return user_data
