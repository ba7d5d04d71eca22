from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ai_safety.safe_query import SafeQueryPipeline
from ai_safety.stages.content_filter import ContentFilter
from utils.config_loader import ConfigLoader
from utils.error_reporter import ErrorReporter

from .errors import register_exception_handlers
from .logging_config import RequestResponseLoggerMiddleware, setup_logging
from .middleware.admin_auth import ADMIN_HEADER, AdminAuthMiddleware
from .middleware.request_id import RequestIDMiddleware
from .routes.admin import router as admin_router
from .routes.content import router as content_router
from .routes.health import router as health_router
from .routes.query import router as query_router
from .settings import Settings

log = logging.getLogger("api.app")


def _get_docs_urls(settings: Settings) -> tuple[str | None, str | None, str | None]:
    """
    Return the URL paths for the OpenAPI schema and interactive documentation.

    Docs are only exposed in development with OpenAPI exposure enabled.
    """
    if settings.is_dev and settings.expose_openapi_in_dev:
        return "/openapi.json", "/docs", "/redoc"
    return None, None, None


def _configure_cors(fastapi_app: FastAPI, settings: Settings) -> None:
    """Configure strict CORS using the allowed origins from settings."""
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", ADMIN_HEADER, "X-Request-ID", "X-Trace-Id"],
        expose_headers=["X-Trace-Id"],
        allow_credentials=False,
        max_age=600,
    )


def _make_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI) -> AsyncIterator[None]:
        """Load the safety configuration and build the shared pipeline."""
        loader = ConfigLoader(settings.config_file, autoload=False)
        await loader.load_config_async()
        # Invalid thresholds abort startup with ConfigurationError
        safety_config = loader.to_safety_config()

        reporter = ErrorReporter(environment=settings.environment)
        fastapi_app.state.settings = settings
        fastapi_app.state.safety_config = safety_config
        fastapi_app.state.pipeline = SafeQueryPipeline(safety_config, error_reporter=reporter)
        fastapi_app.state.content_filter = ContentFilter(safety_config.content_filter)

        log.info(
            "SafeQuery pipeline ready",
            extra={"config": safety_config.to_dict(), "sentry": reporter.enabled},
        )
        yield
        log.info("Shutting down SafeQuery API")

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application with:
    - Strict CORS
    - Request ID and admin auth middleware
    - Structured logging and request/response logging
    - Unified error handlers
    - Conditional OpenAPI/docs exposure in dev
    """
    settings = settings or Settings()  # reads env with SAFEQUERY_ prefix

    # Initialize logging once per process
    setup_logging(settings)
    log.info(
        "Starting SafeQuery API",
        extra={"env": settings.environment, "port": settings.port},
    )

    openapi_url, docs_url, redoc_url = _get_docs_urls(settings)

    fastapi_app = FastAPI(
        title="SafeQuery API",
        version="0.1.0",
        openapi_url=openapi_url,
        docs_url=docs_url,
        redoc_url=redoc_url,
        lifespan=_make_lifespan(settings),
    )

    register_exception_handlers(fastapi_app)
    _configure_cors(fastapi_app, settings)

    # RequestID is added last so it is outermost and stamps every response
    fastapi_app.add_middleware(AdminAuthMiddleware, settings=settings)
    fastapi_app.add_middleware(RequestResponseLoggerMiddleware)
    fastapi_app.add_middleware(RequestIDMiddleware)

    fastapi_app.include_router(health_router)
    fastapi_app.include_router(query_router)
    fastapi_app.include_router(content_router)
    fastapi_app.include_router(admin_router)

    return fastapi_app
