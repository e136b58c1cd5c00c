"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars (ou arquivo .env local).
Nunca hardcode tokens da Meta ou do Kinbox.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# -----------------------------------------------------------------------------
# Constantes da Conversions API (Meta)
# Referência: https://developers.facebook.com/docs/marketing-api/conversions-api
# -----------------------------------------------------------------------------
META_API_VERSION: str = "v19.0"
META_API_BASE_URL: str = "https://graph.facebook.com"


class Settings(BaseSettings):
    """Configurações lidas do ambiente.

    Os nomes FB_PIXEL_ID, FB_CAPI_TOKEN e FB_TEST_EVENT_CODE continuam aceitos
    para compatibilidade com os deploys existentes.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Aplicação
    service_name: str = "kinbox_pix"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    currency: str = "BRL"

    # Meta Conversions API
    meta_pixel_id: str | None = Field(
        default=None, validation_alias=AliasChoices("meta_pixel_id", "FB_PIXEL_ID")
    )
    meta_capi_token: str | None = Field(
        default=None, validation_alias=AliasChoices("meta_capi_token", "FB_CAPI_TOKEN")
    )
    meta_test_event_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("meta_test_event_code", "FB_TEST_EVENT_CODE"),
    )
    meta_api_version: str = META_API_VERSION
    meta_api_base_url: str = META_API_BASE_URL
    meta_action_source: str = "customer_chat"
    meta_event_id_prefix: str = "kinbox"

    @property
    def meta_events_endpoint(self) -> str:
        """URL do endpoint de eventos do pixel (sem access_token)."""
        return f"{self.meta_api_base_url}/{self.meta_api_version}/{self.meta_pixel_id}/events"

    # Chamadas outbound (timeouts explícitos, sem retry automático por padrão)
    attachment_fetch_timeout_seconds: float = 30.0
    conversion_report_timeout_seconds: float = 20.0
    notification_timeout_seconds: float = 20.0
    http_max_retries: int = 0
    http_retry_backoff_seconds: float = 2.0

    # Anexos
    attachment_max_mb: int = 25  # Mesmo limite do body do serviço antigo

    # Notificação de volta ao chat (Kinbox)
    notification_webhook_url: str | None = None
    notification_webhook_token: str | None = None

    # OCR / PDF
    ocr_language: str = "por"
    pdf_max_pages: int = 4
    pdf_min_text_chars: int = 40  # Abaixo disso o PDF é tratado como escaneado

    # Ledger de compras (0 = sessões nunca expiram)
    ledger_session_ttl_seconds: int = 0

    # Observabilidade
    correlation_id_header: str = "X-Correlation-ID"

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        """Retorna True se ambiente é staging."""
        return self.environment.lower() in ("staging", "stage")

    @property
    def is_development(self) -> bool:
        """Retorna True se ambiente é desenvolvimento."""
        return self.environment.lower() in ("development", "dev", "local")

    def validate_meta_config(self) -> list[str]:
        """Valida credenciais da Conversions API.

        Em staging/prod o pixel e o token são obrigatórios; em dev a ausência
        apenas faz o finalize devolver erro recuperável.
        """
        errors: list[str] = []
        if self.is_staging or self.is_production:
            if not self.meta_pixel_id:
                errors.append("FB_PIXEL_ID obrigatório em staging/production")
            if not self.meta_capi_token:
                errors.append("FB_CAPI_TOKEN obrigatório em staging/production")
        if self.conversion_report_timeout_seconds <= 0:
            errors.append("CONVERSION_REPORT_TIMEOUT_SECONDS deve ser > 0")
        return errors

    def validate_ledger_config(self) -> list[str]:
        """Valida parâmetros do ledger em memória."""
        errors: list[str] = []
        if self.ledger_session_ttl_seconds < 0:
            errors.append("LEDGER_SESSION_TTL_SECONDS deve ser >= 0")
        if self.attachment_max_mb <= 0:
            errors.append("ATTACHMENT_MAX_MB deve ser > 0")
        if self.http_max_retries < 0:
            errors.append("HTTP_MAX_RETRIES deve ser >= 0")
        return errors

    def validate_notification_config(self) -> list[str]:
        """Valida webhook de notificação."""
        errors: list[str] = []
        url = self.notification_webhook_url
        if url and (self.is_staging or self.is_production) and url.startswith("http://"):
            errors.append("NOTIFICATION_WEBHOOK_URL deve usar https em staging/production")
        if self.notification_webhook_token and not url:
            errors.append("NOTIFICATION_WEBHOOK_TOKEN configurado sem NOTIFICATION_WEBHOOK_URL")
        return errors


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings."""
    return Settings()
