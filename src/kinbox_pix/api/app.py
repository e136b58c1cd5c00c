"""Fábrica da aplicação FastAPI."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from kinbox_pix.api.routes import router
from kinbox_pix.application.factory import AppServices, build_services
from kinbox_pix.config.settings import Settings, get_settings
from kinbox_pix.domain.errors import InputValidationError
from kinbox_pix.observability.logging import configure_logging, get_logger
from kinbox_pix.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    services: AppServices | None = getattr(app.state, "services", None)
    if services is not None:
        await services.aclose()
        logger.info("http_clients_closed", extra={"count": len(services.http_clients)})


async def _input_validation_handler(request: Request, exc: InputValidationError) -> JSONResponse:
    logger.info(
        "request_rejected",
        extra={"path": request.url.path, "field": exc.field},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"ok": False, "error": str(exc)},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Cria a aplicação FastAPI."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name, settings.log_format)

    validation_errors: list[str] = []
    validation_errors.extend(settings.validate_meta_config())
    validation_errors.extend(settings.validate_ledger_config())
    validation_errors.extend(settings.validate_notification_config())

    if validation_errors:
        error_msg = "; ".join(validation_errors)
        raise ValueError(f"Configuração inválida: {error_msg}")

    app = FastAPI(title=settings.service_name, version=settings.version, lifespan=_lifespan)
    app.add_middleware(CorrelationIdMiddleware, header_name=settings.correlation_id_header)
    app.add_exception_handler(InputValidationError, _input_validation_handler)
    app.include_router(router)

    services = build_services(settings)
    app.state.settings = settings
    app.state.services = services
    app.state.orchestrator = services.orchestrator

    return app


# Instância padrão para uvicorn
app = create_app()
