"""Modelos de entrada das rotas /kinbox/*.

Todos os campos são opcionais no schema: a obrigatoriedade é validada pelo
orquestrador, que devolve 400 {"ok": false, "error"} em vez do 422 padrão.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _KinboxRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    customer_platform_id: str | None = Field(default=None, alias="customerPlatformId")
    phone: str | None = None
    email: str | None = None


class ParseRequest(_KinboxRequest):
    """Corpo de POST /kinbox/parse."""

    attachment_url: str | None = None


class FinalizeRequest(_KinboxRequest):
    """Corpo de POST /kinbox/finalizar."""
