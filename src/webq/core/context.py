"""Request context for async-safe correlation of erasure operations.

This module provides request context propagation using Python's contextvars
so that log entries and audit events emitted deep inside the erasure
pipeline can be tied back to the HTTP request that started it.

Usage:
    from webq.core.context import create_context, request_context

    with request_context(create_context(client_ip="203.0.113.7")):
        current = get_current_context()
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_utils.compat import uuid7

from webq.core.exceptions import ContextNotSetError


class ActorType(str, Enum):
    """Type of actor performing the operation."""

    ANONYMOUS = "anonymous"  # Visitor without an account (consent sessions)
    CLIENT = "client"  # Signed-in client erasing their own account
    OPERATOR = "operator"  # Internal tooling authenticated with the API key
    SYSTEM = "system"  # Background re-drive of an erasure request


class RequestContext(BaseModel):
    """Context for a single request/operation."""

    request_id: UUID = Field(default_factory=uuid7)
    correlation_id: UUID = Field(default_factory=uuid7)
    actor_type: ActorType = ActorType.ANONYMOUS
    client_ip: str | None = None
    user_agent: str | None = None
    initiated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}

    def to_audit_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for audit logging."""
        return {
            "request_id": str(self.request_id),
            "correlation_id": str(self.correlation_id),
            "actor_type": self.actor_type.value,
            "initiated_at": self.initiated_at.isoformat(),
        }


# =============================================================================
# Context Variable Management
# =============================================================================

_request_context: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)


def get_current_context() -> RequestContext:
    """Get the current request context.

    Raises:
        ContextNotSetError: If no context is set in the current execution context
    """
    ctx = _request_context.get()
    if ctx is None:
        raise ContextNotSetError(
            "No request context is set. Use request_context() context manager."
        )
    return ctx


def get_current_context_or_none() -> RequestContext | None:
    """Get the current request context, or None if not set."""
    return _request_context.get()


def set_context(ctx: RequestContext) -> Token[RequestContext | None]:
    """Set the request context and return a token for restoration."""
    return _request_context.set(ctx)


def reset_context(token: Token[RequestContext | None]) -> None:
    """Reset the context to its previous value using a token."""
    _request_context.reset(token)


@contextmanager
def request_context(ctx: RequestContext):
    """Context manager for setting request context.

    Works for both sync and async code because contextvars are
    propagated to tasks created inside the block.

    Args:
        ctx: The context to set for the duration of the block

    Yields:
        The context that was set
    """
    token = set_context(ctx)
    try:
        yield ctx
    finally:
        reset_context(token)


def create_context(
    *,
    actor_type: ActorType = ActorType.ANONYMOUS,
    client_ip: str | None = None,
    user_agent: str | None = None,
    request_id: UUID | None = None,
    correlation_id: UUID | None = None,
) -> RequestContext:
    """Factory function to create a RequestContext with defaults.

    Args:
        actor_type: Type of actor (default: ANONYMOUS)
        client_ip: Client address as seen by the API
        user_agent: Client user agent string
        request_id: Optional request ID (auto-generated if not provided)
        correlation_id: Optional correlation ID (auto-generated if not provided)

    Returns:
        A new RequestContext instance
    """
    return RequestContext(
        request_id=request_id or uuid7(),
        correlation_id=correlation_id or uuid7(),
        actor_type=actor_type,
        client_ip=client_ip,
        user_agent=user_agent,
    )


def current_correlation_id() -> UUID:
    """Correlation ID of the current request, or a fresh one outside a request."""
    ctx = get_current_context_or_none()
    return ctx.correlation_id if ctx is not None else uuid7()
