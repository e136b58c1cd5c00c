"""Configurações centralizadas do kinbox_pix.

Este módulo exporta:
- Settings: classe de configuração via variáveis de ambiente
- get_settings: função cacheada para obter instância única
- Constantes da Graph API Meta (META_API_VERSION, META_API_BASE_URL)

Uso típico:
    from kinbox_pix.config import get_settings
"""

from kinbox_pix.config.settings import (
    META_API_BASE_URL,
    META_API_VERSION,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "META_API_VERSION",
    "META_API_BASE_URL",
]
