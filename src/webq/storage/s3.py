"""S3-compatible object store backed by aioboto3."""

import aioboto3
import structlog
from botocore.config import Config
from botocore.exceptions import ClientError

from webq.config.settings import Settings
from webq.utils.exceptions import ObjectStorageError

logger = structlog.get_logger()

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class S3ObjectStore:
    """Deletes objects from S3 (or an S3-compatible endpoint).

    Logical bucket names from the portal are mapped to physical buckets
    through ``Settings.bucket_name``.
    """

    def __init__(self, settings: Settings, session: aioboto3.Session | None = None):
        self._settings = settings
        self._session = session or aioboto3.Session(
            aws_access_key_id=settings.S3_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY.get_secret_value() or None,
            region_name=settings.S3_REGION,
        )
        self._config = Config(
            region_name=settings.S3_REGION,
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "adaptive"},
        )

    async def delete(self, bucket: str, key: str) -> bool:
        """Delete ``key`` from ``bucket``; False when it was already gone."""
        physical = self._settings.bucket_name(bucket)
        try:
            async with self._session.client(
                "s3", config=self._config, endpoint_url=self._settings.S3_ENDPOINT_URL
            ) as s3_client:
                try:
                    await s3_client.head_object(Bucket=physical, Key=key)
                except ClientError as e:
                    if e.response["Error"]["Code"] in _NOT_FOUND_CODES:
                        logger.debug("object_already_absent", bucket=bucket, key=key)
                        return False
                    raise

                await s3_client.delete_object(Bucket=physical, Key=key)
                logger.info("object_deleted", bucket=bucket, key=key)
                return True
        except ClientError as e:
            raise ObjectStorageError(str(e), bucket=bucket, key=key) from e
