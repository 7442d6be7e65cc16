"""Authentication middleware for operator API key validation."""

import re
import secrets
from datetime import UTC, datetime
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from webq.api.schemas.errors import APIError, ErrorCode
from webq.core.context import ActorType

# Endpoints reserved for internal operator tooling. Everything else is
# public and authorized by erasure proofs instead of credentials.
OPERATOR_PATHS = (
    re.compile(r"^/v1/erasure/accounts/[^/]+/codes$"),
    re.compile(r"^/v1/erasure/requests(/.*)?$"),
)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Middleware that validates Bearer token authentication on operator paths.

    Sets:
        request.state.actor_type: OPERATOR when a valid key was presented
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Process request and validate authentication."""
        if not self._requires_operator(request.url.path):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return self._unauthorized_response(request, "Missing Authorization header")

        match = re.match(r"^Bearer\s+(.+)$", auth_header, re.IGNORECASE)
        if not match:
            return self._unauthorized_response(request, "Invalid Authorization header format")

        if not self._validate_token(match.group(1), request):
            return self._unauthorized_response(request, "Invalid API key")

        request.state.actor_type = ActorType.OPERATOR
        return await call_next(request)

    def _requires_operator(self, path: str) -> bool:
        return any(pattern.match(path) for pattern in OPERATOR_PATHS)

    def _validate_token(self, token: str, request: Request) -> bool:
        """Validate API token against the configured secret.

        Without a configured key, any non-empty token is accepted in DEBUG
        mode only.
        """
        settings = request.app.state.settings
        if settings.API_SECRET_KEY is None:
            return bool(token) and settings.DEBUG
        return secrets.compare_digest(token, settings.API_SECRET_KEY.get_secret_value())

    def _unauthorized_response(self, request: Request, message: str) -> JSONResponse:
        """Create a 401 unauthorized response."""
        error = APIError(
            error_code=ErrorCode.UNAUTHORIZED.value,
            message=message,
            details=None,
            request_id=str(getattr(request.state, "request_id", "unknown")),
            timestamp=datetime.now(UTC),
        )

        return JSONResponse(
            status_code=401,
            content=error.model_dump(mode="json"),
            headers={"WWW-Authenticate": "Bearer"},
        )
