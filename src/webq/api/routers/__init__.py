"""API routers: unversioned health checks and versioned erasure endpoints."""

from .health import router as health_router
from .v1 import erasure_router
from .v1 import router as v1_router

__all__ = ["erasure_router", "health_router", "v1_router"]
