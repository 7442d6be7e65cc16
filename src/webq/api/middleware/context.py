"""Request context middleware for propagating context through the request lifecycle."""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from uuid_utils.compat import uuid7

from webq.core.context import ActorType, create_context, request_context

# Paths that don't require request context
SKIP_CONTEXT_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
}


def get_client_ip(request: Request) -> str | None:
    """Address of the connected peer.

    Forwarded headers are not read here. Behind a trusted proxy the
    peer is rewritten from X-Forwarded-For by ProxyHeadersMiddleware,
    see ``FORWARDED_ALLOW_IPS``.
    """
    if request.client:
        return request.client.host

    return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware that sets up RequestContext for each request.

    Sets:
        request.state.request_id: The generated request ID (UUIDv7)
        X-Request-ID / X-Correlation-ID response headers
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Process request within a RequestContext."""
        request_id = uuid7()
        request.state.request_id = request_id

        if request.url.path in SKIP_CONTEXT_PATHS or request.url.path.startswith(
            ("/docs", "/redoc")
        ):
            response = await call_next(request)
            response.headers["X-Request-ID"] = str(request_id)
            return response

        ctx = create_context(
            actor_type=getattr(request.state, "actor_type", ActorType.ANONYMOUS),
            client_ip=get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            request_id=request_id,
        )

        with request_context(ctx):
            response = await call_next(request)

        response.headers["X-Request-ID"] = str(request_id)
        response.headers["X-Correlation-ID"] = str(ctx.correlation_id)
        return response
