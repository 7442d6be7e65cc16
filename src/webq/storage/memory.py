"""In-process object store for development and tests."""

from webq.utils.exceptions import ObjectStorageError


class InMemoryObjectStore:
    """Dict-backed object store.

    ``fail_keys`` lets callers simulate backend errors for specific objects.
    """

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_keys: set[tuple[str, str]] = set()

    def put(self, bucket: str, key: str, data: bytes = b"") -> None:
        self.objects[(bucket, key)] = data

    def exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self.objects

    async def delete(self, bucket: str, key: str) -> bool:
        if (bucket, key) in self.fail_keys:
            raise ObjectStorageError("simulated storage failure", bucket=bucket, key=key)
        return self.objects.pop((bucket, key), None) is not None
