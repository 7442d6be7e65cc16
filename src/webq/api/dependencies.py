"""FastAPI dependencies for API endpoints."""

import hashlib

from fastapi import Request

from webq.api.middleware.context import get_client_ip
from webq.config.settings import Settings
from webq.erasure.coordinator import ErasureCoordinator, get_erasure_coordinator

__all__ = [
    "get_app_settings",
    "get_coordinator",
    "get_requester_fingerprint",
]


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_coordinator(request: Request) -> ErasureCoordinator:
    """Coordinator installed on the app, falling back to the global one."""
    coordinator = getattr(request.app.state, "erasure_coordinator", None)
    return coordinator or get_erasure_coordinator()


def get_requester_fingerprint(request: Request) -> str:
    """Server-derived fingerprint of an anonymous requester.

    Keyed on the connected peer address only. Request headers are under
    the requester's control, so none of them take part; forwarded client
    addresses are honored only when ProxyHeadersMiddleware has rewritten
    the peer for a trusted proxy.
    """
    raw = get_client_ip(request) or "unknown"
    return hashlib.sha256(raw.encode()).hexdigest()
