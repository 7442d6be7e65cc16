"""Health check endpoints."""

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Request
from sqlalchemy import text

from webq.api.schemas.health import (
    ComponentHealth,
    HealthDetailResponse,
    HealthResponse,
    HealthStatus,
)
from webq.config.settings import LockBackend
from webq.core.redis import ping_redis

router = APIRouter(tags=["health"])

APP_VERSION = "0.1.0"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns basic liveness status. No authentication required.",
)
async def health_check() -> HealthResponse:
    """Liveness check; 200 whenever the process is serving requests."""
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        version=APP_VERSION,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/health/ready",
    response_model=HealthDetailResponse,
    summary="Full readiness check",
    description="Checks database and, when used for locking, Redis.",
)
async def health_ready(request: Request) -> HealthDetailResponse:
    """Readiness check for load balancers and orchestrators."""
    settings = request.app.state.settings
    db_health = await _check_database(request)

    redis_health = None
    if settings.erasure.lock_backend == LockBackend.REDIS:
        redis_health = await _check_redis()

    return HealthDetailResponse(
        status=_aggregate_health([db_health, redis_health]),
        version=APP_VERSION,
        timestamp=datetime.now(UTC),
        database=db_health,
        redis=redis_health,
        details={"lock_backend": settings.erasure.lock_backend.value},
    )


async def _check_database(request: Request) -> ComponentHealth:
    start = time.perf_counter()
    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Database connection successful",
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )
    except Exception as e:
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Database connection failed: {str(e)[:100]}",
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )


async def _check_redis() -> ComponentHealth:
    start = time.perf_counter()
    try:
        await ping_redis()
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Redis ping successful",
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )
    except Exception as e:
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Redis check failed: {str(e)[:100]}",
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )


def _aggregate_health(components: list[ComponentHealth | None]) -> HealthStatus:
    """UNHEALTHY if any component is, then DEGRADED, else HEALTHY."""
    statuses = [c.status for c in components if c is not None]

    if any(s == HealthStatus.UNHEALTHY for s in statuses):
        return HealthStatus.UNHEALTHY
    if any(s == HealthStatus.DEGRADED for s in statuses):
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
