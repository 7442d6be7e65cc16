"""Object storage abstraction used by the erasure executor."""

import re
from typing import Protocol, runtime_checkable


@runtime_checkable
class ObjectStore(Protocol):
    """Binary object storage addressed by logical bucket and key."""

    async def delete(self, bucket: str, key: str) -> bool:
        """Delete an object.

        Returns:
            True if the object existed and was deleted, False if it was
            already absent.

        Raises:
            ObjectStorageError: For any failure other than a missing object
        """
        ...


# https://<project>.example.co/storage/v1/object/public/<bucket>/<key>
_STORAGE_URL = re.compile(r"/storage/v1/object/(?:public|sign)/([^/]+)/([^?#]+)")


def parse_object_ref(value: str | None, buckets: tuple[str, ...]) -> tuple[str, str] | None:
    """Derive ``(bucket, key)`` from a stored file reference.

    Accepts public or signed storage URLs as well as bare ``bucket/key``
    paths. References to buckets outside ``buckets`` are ignored.

    Args:
        value: Column value holding the reference
        buckets: Buckets the referencing column may point into

    Returns:
        Bucket and key, or None when the value does not reference one of
        the allowed buckets
    """
    if not value:
        return None

    match = _STORAGE_URL.search(value)
    if match:
        bucket, key = match.group(1), match.group(2)
    elif "://" not in value and "/" in value:
        bucket, _, key = value.lstrip("/").partition("/")
    else:
        return None

    if bucket not in buckets or not key:
        return None
    return bucket, key
