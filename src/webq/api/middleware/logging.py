"""Request logging middleware."""

import time
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from webq.api.middleware.context import get_client_ip
from webq.core.logging import log_request_end

logger = structlog.get_logger("webq.api.requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs every HTTP request with its status and duration.

    Uses structured logging rather than AuditLogger so no database work
    happens in the middleware layer; erasure audit events are written by
    the coordinator.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        log_request_end(
            logger,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id=str(getattr(request.state, "request_id", "unknown")),
            client_ip=get_client_ip(request),
        )
        return response
