"""Shared utilities."""

from .exceptions import ConfigurationError, ObjectStorageError, WebqError

__all__ = ["ConfigurationError", "ObjectStorageError", "WebqError"]
