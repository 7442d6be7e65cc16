"""Unit tests for object storage backends and reference parsing."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from webq.config.settings import Settings, StorageBackend
from webq.storage import create_object_store
from webq.storage.base import parse_object_ref
from webq.storage.memory import InMemoryObjectStore
from webq.storage.s3 import S3ObjectStore
from webq.utils.exceptions import ObjectStorageError

ALLOWED = ("project-files", "brand-files")


class TestParseObjectRef:
    """Tests for deriving bucket and key from stored references."""

    def test_public_url(self):
        value = "https://abc.example.co/storage/v1/object/public/project-files/p1/spec.pdf"

        assert parse_object_ref(value, ALLOWED) == ("project-files", "p1/spec.pdf")

    def test_signed_url_drops_query(self):
        value = "https://abc.example.co/storage/v1/object/sign/brand-files/a/logo.png?token=xyz"

        assert parse_object_ref(value, ALLOWED) == ("brand-files", "a/logo.png")

    def test_bare_path(self):
        assert parse_object_ref("brand-files/a/logo.png", ALLOWED) == ("brand-files", "a/logo.png")

    def test_leading_slash(self):
        assert parse_object_ref("/brand-files/a/logo.png", ALLOWED) == ("brand-files", "a/logo.png")

    def test_bucket_not_allowed(self):
        value = "https://abc.example.co/storage/v1/object/public/design-files/o/v1.png"

        assert parse_object_ref(value, ALLOWED) is None

    def test_external_url_ignored(self):
        assert parse_object_ref("https://cdn.example.com/brand-files/logo.png", ALLOWED) is None

    @pytest.mark.parametrize("value", [None, "", "logo.png", "brand-files/"])
    def test_not_a_reference(self, value):
        assert parse_object_ref(value, ALLOWED) is None


@pytest.mark.asyncio
class TestInMemoryObjectStore:
    async def test_delete_existing(self):
        store = InMemoryObjectStore()
        store.put("brand-files", "a/logo.png")

        assert await store.delete("brand-files", "a/logo.png") is True
        assert not store.exists("brand-files", "a/logo.png")

    async def test_delete_absent(self):
        assert await InMemoryObjectStore().delete("brand-files", "missing") is False

    async def test_simulated_failure(self):
        store = InMemoryObjectStore()
        store.put("brand-files", "a/logo.png")
        store.fail_keys.add(("brand-files", "a/logo.png"))

        with pytest.raises(ObjectStorageError) as exc_info:
            await store.delete("brand-files", "a/logo.png")

        assert exc_info.value.bucket == "brand-files"
        assert store.exists("brand-files", "a/logo.png")


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestS3ObjectStore:
    """Tests for the aioboto3-backed store with a mocked session."""

    @pytest.fixture
    def s3_settings(self) -> Settings:
        return Settings(S3_BUCKET_PREFIX="webq-prod-", S3_ENDPOINT_URL="https://s3.example.test")

    @pytest.fixture
    def s3_client(self):
        client = MagicMock()
        client.head_object = AsyncMock(return_value={"ContentLength": 10})
        client.delete_object = AsyncMock(return_value={})
        return client

    @pytest.fixture
    def session(self, s3_client):
        client_cm = MagicMock()
        client_cm.__aenter__ = AsyncMock(return_value=s3_client)
        client_cm.__aexit__ = AsyncMock(return_value=False)
        session = MagicMock()
        session.client.return_value = client_cm
        return session

    @pytest.fixture
    def store(self, s3_settings, session) -> S3ObjectStore:
        return S3ObjectStore(s3_settings, session=session)

    @pytest.mark.asyncio
    async def test_delete_existing(self, store, s3_client, session):
        assert await store.delete("project-files", "p1/spec.pdf") is True

        s3_client.delete_object.assert_awaited_once_with(
            Bucket="webq-prod-project-files", Key="p1/spec.pdf"
        )
        assert session.client.call_args.kwargs["endpoint_url"] == "https://s3.example.test"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    async def test_missing_object_is_absent(self, store, s3_client, code):
        s3_client.head_object = AsyncMock(side_effect=_client_error(code, "HeadObject"))

        assert await store.delete("project-files", "p1/gone.pdf") is False
        s3_client.delete_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_access_denied_raises(self, store, s3_client):
        s3_client.head_object = AsyncMock(side_effect=_client_error("AccessDenied", "HeadObject"))

        with pytest.raises(ObjectStorageError) as exc_info:
            await store.delete("project-files", "p1/spec.pdf")

        assert exc_info.value.key == "p1/spec.pdf"

    @pytest.mark.asyncio
    async def test_delete_failure_raises(self, store, s3_client):
        s3_client.delete_object = AsyncMock(side_effect=_client_error("SlowDown", "DeleteObject"))

        with pytest.raises(ObjectStorageError):
            await store.delete("project-files", "p1/spec.pdf")


class TestCreateObjectStore:
    def test_memory_backend(self):
        store = create_object_store(Settings(STORAGE_BACKEND=StorageBackend.MEMORY))

        assert isinstance(store, InMemoryObjectStore)

    def test_s3_backend(self):
        store = create_object_store(Settings(STORAGE_BACKEND=StorageBackend.S3))

        assert isinstance(store, S3ObjectStore)
