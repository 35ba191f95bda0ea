"""ACC admin service - FastAPI application."""

import logging

import structlog
from fastapi import FastAPI, Request

from acc_admin import __version__
from acc_admin.admin import router as admin_router
from acc_admin.config import get_settings
from acc_admin.core.errors import AppError, ErrorKind, error_response
from acc_admin.core.lifespan import lifespan
from acc_admin.core.middleware import setup_middleware
from acc_admin.core.sentry import init_sentry
from acc_admin.routers import health, metrics

settings = get_settings()

# Configure structured logging
logging.basicConfig(format="%(message)s", level=settings.log_level.upper())
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

init_sentry(settings)

app = FastAPI(
    title="ACC Admin",
    description="Account creation admin service: job queue, bans and lookup caches",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.docs_enabled else None,
)

setup_middleware(app, settings)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render typed domain errors as structured JSON."""
    if exc.kind == ErrorKind.UNSUPPORTED_OPERATION:
        logger.error("unsupported_operation", detail=exc.message)
    else:
        logger.info("request_rejected", error_kind=exc.kind.value, detail=exc.message)
    return error_response(exc)


app.include_router(health.router, tags=["Health"])
app.include_router(metrics.router)  # Metrics endpoint (excluded from OpenAPI)
app.include_router(admin_router)


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "ACC Admin",
        "version": __version__,
        "health": "/health",
    }
