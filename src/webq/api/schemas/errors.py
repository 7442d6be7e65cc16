"""Error response schemas for API."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization
    UNAUTHORIZED = "unauthorized"
    ERASURE_UNAUTHORIZED = "erasure_unauthorized"

    # Request errors
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"

    # Erasure
    CHALLENGE_LOCKED = "challenge_locked"
    ERASURE_IN_PROGRESS = "erasure_in_progress"

    # System errors
    INTERNAL_ERROR = "internal_error"
    SERVICE_UNAVAILABLE = "service_unavailable"


class APIError(BaseModel):
    """Standardized API error response format.

    All API errors return this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(
        default=None, description="Additional error context"
    )
    request_id: str = Field(..., description="Request ID for tracing (UUIDv7)")
    timestamp: datetime = Field(..., description="When the error occurred")

    model_config = {"json_schema_extra": {"example": {
        "error_code": "challenge_locked",
        "message": "Too many failed attempts; retry in 287s",
        "details": {"locked": True, "remaining_seconds": 287},
        "request_id": "019478f2-1234-7000-8000-abcdef123456",
        "timestamp": "2026-01-30T12:00:00Z",
    }}}
