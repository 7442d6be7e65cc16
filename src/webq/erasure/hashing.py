"""Keyed hashing of secrets that are compared but never stored."""

import hashlib
import hmac

from pydantic import SecretStr


def keyed_hash(secret_key: SecretStr, *parts: str) -> str:
    """HMAC-SHA256 hex digest of ``parts`` joined with ``:``."""
    message = ":".join(parts).encode()
    return hmac.new(secret_key.get_secret_value().encode(), message, hashlib.sha256).hexdigest()


def hashes_match(expected: str | None, candidate: str) -> bool:
    """Constant-time comparison of two digests."""
    if expected is None:
        return False
    return hmac.compare_digest(expected, candidate)
