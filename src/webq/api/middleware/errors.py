"""Error handling middleware for mapping exceptions to HTTP responses."""

from datetime import UTC, datetime
from typing import Callable
from uuid import UUID

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from webq.api.schemas.errors import APIError, ErrorCode
from webq.core.exceptions import ContextNotSetError
from webq.erasure.types import (
    ChallengeLockedError,
    ErasureAlreadyInProgressError,
    ErasureRequestNotFoundError,
    ErasureUnauthorizedError,
)

logger = structlog.get_logger()


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns standardized error responses.

    Maps domain exceptions to appropriate HTTP status codes and formats
    all errors using the APIError schema.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Process request and handle any exceptions."""
        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc)

    def _handle_exception(self, request: Request, exc: Exception) -> JSONResponse:
        """Convert exception to JSON error response."""
        request_id = self._get_request_id(request)
        status_code, error_code, message, details = self._map_exception(exc, request)

        if status_code >= 500:
            logger.error(
                "unhandled_exception",
                error_type=type(exc).__name__,
                error_message=str(exc),
                path=request.url.path,
                exc_info=exc,
            )

        error = APIError(
            error_code=error_code,
            message=message,
            details=details,
            request_id=request_id,
            timestamp=datetime.now(UTC),
        )

        headers = {"X-Request-ID": request_id}
        if isinstance(exc, ChallengeLockedError):
            headers["Retry-After"] = str(exc.remaining_seconds)

        return JSONResponse(
            status_code=status_code,
            content=error.model_dump(mode="json"),
            headers=headers,
        )

    def _get_request_id(self, request: Request) -> str:
        """Extract request ID from state or generate placeholder."""
        if hasattr(request.state, "request_id"):
            rid = request.state.request_id
            return str(rid) if isinstance(rid, UUID) else rid
        return "unknown"

    def _map_exception(
        self, exc: Exception, request: Request
    ) -> tuple[int, str, str, dict | None]:
        """Map exception to (status_code, error_code, message, details)."""
        # Deliberately vague: never reveal why a proof was rejected
        if isinstance(exc, ErasureUnauthorizedError):
            return (
                401,
                ErrorCode.ERASURE_UNAUTHORIZED.value,
                "Invalid or expired verification",
                None,
            )

        if isinstance(exc, ChallengeLockedError):
            return (
                429,
                ErrorCode.CHALLENGE_LOCKED.value,
                str(exc),
                {"locked": True, "remaining_seconds": exc.remaining_seconds},
            )

        if isinstance(exc, ErasureAlreadyInProgressError):
            return (
                409,
                ErrorCode.ERASURE_IN_PROGRESS.value,
                "An erasure for this target is already in progress",
                None,
            )

        if isinstance(exc, ErasureRequestNotFoundError):
            return (
                404,
                ErrorCode.NOT_FOUND.value,
                str(exc),
                {"request_id": str(exc.request_id)},
            )

        if isinstance(exc, ValidationError):
            return (
                422,
                ErrorCode.VALIDATION_ERROR.value,
                "Request validation failed",
                {"errors": exc.errors(include_url=False, include_context=False)},
            )

        if isinstance(exc, ContextNotSetError):
            return (
                500,
                ErrorCode.INTERNAL_ERROR.value,
                "Internal server error: context not initialized",
                None,
            )

        return (
            500,
            ErrorCode.INTERNAL_ERROR.value,
            "Internal server error",
            {"type": type(exc).__name__} if self._is_debug(request) else None,
        )

    def _is_debug(self, request: Request) -> bool:
        settings = getattr(request.app.state, "settings", None)
        return bool(settings and settings.DEBUG)
