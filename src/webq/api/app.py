"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from webq.api.middleware import (
    AuthenticationMiddleware,
    ErrorHandlingMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
)
from webq.api.routers import health_router, v1_router
from webq.config.settings import LockBackend, Settings, get_settings
from webq.config.validation import validate_or_raise
from webq.core.logging import setup_logging
from webq.erasure.coordinator import (
    ErasureCoordinator,
    build_erasure_coordinator,
    initialize_erasure_coordinator,
)
from webq.storage import create_object_store

logger = structlog.get_logger("webq.api")


def create_app(
    settings: Settings | None = None,
    *,
    coordinator: ErasureCoordinator | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (useful for testing)
        coordinator: Pre-built coordinator; built during startup when omitted
        session_factory: Pre-built session factory; created during startup when omitted

    Returns:
        Configured FastAPI application

    Example:
        # Production
        uvicorn webq.api.app:create_app --factory

        # Testing
        app = create_app(settings=test_settings, coordinator=coordinator,
                         session_factory=session_factory)
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="WebQ Erasure API",
        description="Tenant and anonymous-session data erasure",
        version="0.1.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=_lifespan,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.erasure_coordinator = coordinator

    _configure_middleware(app, settings)
    _configure_routers(app)

    return app


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Wire database, object storage and the coordinator for the app lifetime."""
    settings: Settings = app.state.settings

    setup_logging()
    validate_or_raise(settings)
    logger.info("api_starting", environment=settings.ENVIRONMENT)

    from webq.core.redis import close_redis, get_redis_client
    from webq.db.config import close_db, get_session_factory, init_db

    owns_db = app.state.session_factory is None
    if owns_db:
        await init_db()
        app.state.session_factory = get_session_factory()
        logger.info("database_initialized")

    uses_redis = settings.erasure.lock_backend == LockBackend.REDIS
    if app.state.erasure_coordinator is None:
        redis_client = await get_redis_client() if uses_redis else None
        app.state.erasure_coordinator = build_erasure_coordinator(
            settings,
            app.state.session_factory,
            create_object_store(settings),
            redis_client=redis_client,
        )
    initialize_erasure_coordinator(app.state.erasure_coordinator)

    yield

    logger.info("api_stopping")
    if uses_redis:
        await close_redis()
    if owns_db:
        await close_db()


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure middleware stack.

    Middleware order (outermost to innermost execution):
    1. ProxyHeadersMiddleware - Client address from trusted proxies (if configured)
    2. RequestLoggingMiddleware - Logs all requests
    3. ErrorHandlingMiddleware - Converts exceptions to HTTP responses
    4. CORSMiddleware - Handles CORS (if configured)
    5. AuthenticationMiddleware - Validates Bearer token on operator paths
    6. RequestContextMiddleware - Sets ContextVar for request context

    Starlette runs the last-added middleware first, so they are added in
    reverse order.
    """
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(AuthenticationMiddleware)

    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    if settings.FORWARDED_ALLOW_IPS:
        app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.FORWARDED_ALLOW_IPS)


def _configure_routers(app: FastAPI) -> None:
    app.include_router(health_router)
    app.include_router(v1_router)
