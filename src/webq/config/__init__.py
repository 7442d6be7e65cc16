"""Configuration for WebQ."""

from .settings import ErasureConfig, LockBackend, Settings, StorageBackend, get_settings

__all__ = ["ErasureConfig", "LockBackend", "Settings", "StorageBackend", "get_settings"]
