"""Cliente HTTP centralizado com timeout, retry opcional e logging.

Usado por todas as chamadas outbound do serviço:
- Download do anexo do comprovante
- Envio do Purchase para a Conversions API
- Notificação de volta ao chat

Regras:
- Sempre usar timeout explícito
- Nunca logar access_token nem payloads com dados do cliente
- Retry só para 429/5xx/timeout e apenas se max_retries > 0
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from kinbox_pix.observability.logging import get_logger

if TYPE_CHECKING:
    from kinbox_pix.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

_ACCESS_TOKEN_PATTERN = re.compile(r"access_token=[^&]+")


def sanitize_url(url: str) -> str:
    """Remove tokens da URL para logging seguro."""
    if "access_token=" in url:
        return _ACCESS_TOKEN_PATTERN.sub("access_token=***", url)
    return url


@dataclass
class HttpClientConfig:
    """Configuração do cliente HTTP."""

    timeout_seconds: float = 30.0
    max_retries: int = 0
    backoff_base_seconds: float = 2.0
    backoff_max_seconds: float = 30.0
    default_headers: dict[str, str] = field(default_factory=dict)
    verify_ssl: bool = True
    follow_redirects: bool = True


class HttpError(Exception):
    """Erro de requisição HTTP sem expor informações sensíveis."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        is_retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.is_retryable = is_retryable


def _is_retryable_status(status_code: int) -> bool:
    """Determina se status HTTP permite retry (429 ou 5xx)."""
    return status_code == 429 or 500 <= status_code < 600


def _calculate_backoff(
    attempt: int,
    base_seconds: float,
    max_seconds: float,
) -> float:
    """Calcula tempo de espera com backoff exponencial."""
    backoff = (2**attempt) * base_seconds
    return min(backoff, max_seconds)


def _handle_transient_exception(
    exc: Exception,
    method: str,
    url: str,
    attempt: int,
) -> HttpError:
    """Converte timeout/erro de conexão em HttpError retentável."""
    if isinstance(exc, httpx.TimeoutException):
        logger.warning(
            "Timeout em requisição HTTP",
            extra={"method": method, "url": sanitize_url(url), "attempt": attempt + 1},
        )
        return HttpError("Timeout", is_retryable=True)

    if isinstance(exc, httpx.TransportError):
        logger.warning(
            "Erro de transporte HTTP",
            extra={
                "method": method,
                "url": sanitize_url(url),
                "attempt": attempt + 1,
                "error": type(exc).__name__,
            },
        )
        return HttpError("Erro de conexão", is_retryable=True)

    logger.error(
        "Erro inesperado em requisição HTTP",
        extra={"method": method, "url": sanitize_url(url), "error_type": type(exc).__name__},
    )
    raise HttpError(f"Erro inesperado: {type(exc).__name__}") from exc


class HttpClient:
    """Cliente HTTP assíncrono com timeout e retry opcional.

    Uso típico:
        async with HttpClient(config) as client:
            response = await client.post(url, json=payload)
    """

    def __init__(self, config: HttpClientConfig | None = None) -> None:
        self._config = config or HttpClientConfig()
        self._client: httpx.AsyncClient | None = None

    @property
    def config(self) -> HttpClientConfig:
        return self._config

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente httpx (lazy loading)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers=self._config.default_headers,
                verify=self._config.verify_ssl,
                follow_redirects=self._config.follow_redirects,
            )
        return self._client

    async def close(self) -> None:
        """Fecha o cliente e libera recursos."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Executa requisição com retry para falhas transitórias.

        Raises:
            HttpError: status não retentável ou tentativas esgotadas
        """
        client = await self._get_client()
        last_error: HttpError | None = None
        cfg = self._config

        for attempt in range(cfg.max_retries + 1):
            logger.debug(
                "Executando requisição HTTP",
                extra={
                    "method": method,
                    "url": sanitize_url(url),
                    "attempt": attempt + 1,
                    "max_retries": cfg.max_retries,
                },
            )

            try:
                response = await client.request(method, url, **kwargs)
                result = self._process_response(response, method, url)
                if result is not None:
                    return result
                last_error = HttpError(
                    f"HTTP {response.status_code}",
                    status_code=response.status_code,
                    is_retryable=True,
                )

            except HttpError:
                raise
            except Exception as exc:
                last_error = _handle_transient_exception(exc, method, url, attempt)

            await self._wait_backoff_if_needed(attempt)

        if cfg.max_retries:
            logger.error(
                "Esgotou tentativas de retry",
                extra={
                    "method": method,
                    "url": sanitize_url(url),
                    "total_attempts": cfg.max_retries + 1,
                },
            )
        raise last_error or HttpError("Falha após todas as tentativas")

    def _process_response(
        self,
        response: httpx.Response,
        method: str,
        url: str,
    ) -> httpx.Response | None:
        """Retorna a resposta se sucesso, None se retentável; levanta caso contrário."""
        if response.is_success:
            logger.debug(
                "Requisição HTTP bem-sucedida",
                extra={
                    "method": method,
                    "url": sanitize_url(url),
                    "status_code": response.status_code,
                },
            )
            return response

        if not _is_retryable_status(response.status_code):
            logger.warning(
                "Requisição HTTP falhou (não retryable)",
                extra={
                    "method": method,
                    "url": sanitize_url(url),
                    "status_code": response.status_code,
                },
            )
            raise HttpError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                is_retryable=False,
            )
        return None

    async def _wait_backoff_if_needed(self, attempt: int) -> None:
        """Aguarda backoff se ainda há retries disponíveis."""
        cfg = self._config
        if attempt < cfg.max_retries:
            backoff = _calculate_backoff(
                attempt,
                cfg.backoff_base_seconds,
                cfg.backoff_max_seconds,
            )
            logger.info(
                "Aguardando backoff antes de retry",
                extra={"backoff_seconds": backoff, "next_attempt": attempt + 2},
            )
            await asyncio.sleep(backoff)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Executa GET."""
        return await self._request("GET", url, **kwargs)

    async def post(
        self,
        url: str,
        json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Executa POST com corpo JSON."""
        return await self._request("POST", url, json=json, **kwargs)


def create_http_client(
    settings: Settings | None = None,
    timeout_seconds: float | None = None,
    headers: dict[str, str] | None = None,
) -> HttpClient:
    """Factory para criar cliente HTTP configurado.

    Args:
        settings: Configurações da aplicação. Se None, usa get_settings()
        timeout_seconds: Timeout específico da chamada (download, CAPI, ...)
        headers: Headers adicionais ao User-Agent padrão
    """
    if settings is None:
        from kinbox_pix.config.settings import get_settings

        settings = get_settings()

    default_headers = {"User-Agent": f"{settings.service_name}/{settings.version}"}
    default_headers.update(headers or {})

    config = HttpClientConfig(
        timeout_seconds=float(timeout_seconds or settings.attachment_fetch_timeout_seconds),
        max_retries=settings.http_max_retries,
        backoff_base_seconds=float(settings.http_retry_backoff_seconds),
        default_headers=default_headers,
    )

    logger.info(
        "Cliente HTTP criado",
        extra={
            "timeout_seconds": config.timeout_seconds,
            "max_retries": config.max_retries,
        },
    )

    return HttpClient(config)
