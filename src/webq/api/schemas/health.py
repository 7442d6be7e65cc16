"""Health check response schemas."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: HealthStatus
    message: str
    latency_ms: float | None = None


class HealthResponse(BaseModel):
    status: HealthStatus
    version: str
    timestamp: datetime


class HealthDetailResponse(HealthResponse):
    database: ComponentHealth | None = None
    redis: ComponentHealth | None = None
    details: dict[str, Any] | None = None
