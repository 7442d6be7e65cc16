"""Object storage backends."""

from webq.config.settings import Settings, StorageBackend

from .base import ObjectStore, parse_object_ref
from .memory import InMemoryObjectStore
from .s3 import S3ObjectStore


def create_object_store(settings: Settings) -> ObjectStore:
    """Build the object store selected by ``STORAGE_BACKEND``."""
    if settings.STORAGE_BACKEND == StorageBackend.MEMORY:
        return InMemoryObjectStore()
    return S3ObjectStore(settings)


__all__ = [
    "InMemoryObjectStore",
    "ObjectStore",
    "S3ObjectStore",
    "create_object_store",
    "parse_object_ref",
]
