"""Custom exceptions for WebQ."""


class WebqError(Exception):
    """Base exception for all WebQ errors."""

    pass


class ConfigurationError(WebqError):
    """Error in configuration or settings."""

    pass


class ObjectStorageError(WebqError):
    """Object storage request failed for a reason other than a missing object.

    Attributes:
        bucket: Logical bucket the request targeted
        key: Object key within the bucket
    """

    def __init__(self, message: str, bucket: str, key: str):
        super().__init__(message)
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        return f"ObjectStorageError({self.bucket}/{self.key}): {self.args[0]}"
