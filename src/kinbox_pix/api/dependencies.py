"""Dependências injetadas nas rotas."""

from __future__ import annotations

from fastapi import Request

from kinbox_pix.adapters.meta.conversions import MetaConversionsClient
from kinbox_pix.application.orchestrator import PurchaseOrchestrator
from kinbox_pix.config.settings import Settings


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""

    return request.app.state.settings


def get_orchestrator(request: Request) -> PurchaseOrchestrator:
    """Retorna o orquestrador de compras."""

    return request.app.state.orchestrator


def get_conversion_reporter(request: Request) -> MetaConversionsClient:
    """Retorna o reporter da Conversions API usado pelo orquestrador."""
    return request.app.state.orchestrator.reporter
