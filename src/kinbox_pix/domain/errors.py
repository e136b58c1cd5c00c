"""Erros de domínio compartilhados entre Application e API."""

from __future__ import annotations


class InputValidationError(Exception):
    """Entrada obrigatória ausente ou inválida (sem efeitos colaterais)."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"{field} obrigatório")
        self.field = field


class SessionClosedError(Exception):
    """Tentativa de adicionar comprovante a uma sessão já finalizada."""

    pass


class InvalidItemValueError(Exception):
    """Valor ausente ou não positivo passado ao ledger."""

    pass
