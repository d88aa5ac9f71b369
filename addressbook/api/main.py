"""Assembly of the Addressbook FastAPI application.

Starlette wraps middleware in reverse registration order. ``create_app``
therefore adds them innermost first, so a request passes through security
headers, then correlation ID binding, then access logging.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from addressbook.api.middleware.error_handler import register_exception_handlers
from addressbook.api.middleware.request_context import RequestContextMiddleware
from addressbook.api.middleware.request_logging import RequestLoggingMiddleware
from addressbook.api.middleware.security_headers import SecurityHeadersMiddleware
from addressbook.api.routers.addresses import router as addresses_router
from addressbook.api.routers.system import router as system_router
from addressbook.api.utils.responses import ORJSONResponse
from addressbook.core.config import Settings, get_settings
from addressbook.core.logging import setup_logging
from addressbook.core.observability import instrument_app, setup_tracing
from addressbook.infrastructure.database.session import (
    check_database_connection,
    close_database,
)
from addressbook.infrastructure.distance_matrix import create_http_client


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Open shared resources before serving and release them afterwards.

    Raises:
        RuntimeError: The database did not answer at startup.
    """
    connected, reason = await check_database_connection()
    if not connected:
        logger.error("Database unreachable at startup: {}", reason)
        raise RuntimeError(f"Database connection failed: {reason}")

    settings = getattr(app_instance.state, "settings", None) or get_settings()
    http_client = create_http_client(settings.distance_matrix_config)
    app_instance.state.http_client = http_client
    logger.info("{} {} started", app_instance.title, app_instance.version)

    try:
        yield
    finally:
        await http_client.aclose()
        await close_database()
        logger.info("{} stopped", app_instance.title)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application for ``settings``, or for ``get_settings()``."""
    settings = settings or get_settings()

    setup_logging(settings)
    setup_tracing(settings)

    # No debug=: Starlette's traceback page would bypass generic_exception_handler
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    application.state.settings = settings
    register_exception_handlers(application)

    application.add_middleware(RequestLoggingMiddleware, log_config=settings.log_config)
    application.add_middleware(RequestContextMiddleware)
    application.add_middleware(SecurityHeadersMiddleware)

    for router in (system_router, addresses_router):
        application.include_router(router)

    instrument_app(application, settings)
    return application


app = create_app()
