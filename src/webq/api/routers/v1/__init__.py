"""API v1 routers."""

from fastapi import APIRouter

from .erasure import router as erasure_router

# Create v1 router that includes all v1 endpoints
router = APIRouter(prefix="/v1")

router.include_router(erasure_router)

__all__ = ["router", "erasure_router"]
