"""Core services and utilities for WebQ."""

from .audit import AuditLogger
from .context import (
    ActorType,
    RequestContext,
    create_context,
    current_correlation_id,
    get_current_context,
    get_current_context_or_none,
    request_context,
    reset_context,
    set_context,
)
from .exceptions import ContextNotSetError

__all__ = [
    # Audit
    "AuditLogger",
    # Context
    "ActorType",
    "RequestContext",
    "create_context",
    "current_correlation_id",
    "get_current_context",
    "get_current_context_or_none",
    "request_context",
    "reset_context",
    "set_context",
    # Exceptions
    "ContextNotSetError",
]
