"""
Unit tests for the Appwrite storage adapter, using httpx.MockTransport.
"""
import httpx
import pytest

from pagewatch.adapters.storage import AppwriteStorageClient
from pagewatch.config import Config
from pagewatch.errors import ConfigurationError, UploadError


def make_client(handler) -> AppwriteStorageClient:
    return AppwriteStorageClient(
        endpoint="https://cloud.appwrite.example/v1/",
        project_id="project-1",
        api_key="secret-key",
        transport=httpx.MockTransport(handler),
    )


class TestCreateFile:
    @pytest.mark.asyncio
    async def test_uploads_multipart_with_credentials(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["project"] = request.headers.get("X-Appwrite-Project")
            seen["key"] = request.headers.get("X-Appwrite-Key")
            seen["content_type"] = request.headers.get("Content-Type")
            seen["body"] = request.content
            return httpx.Response(201, json={"$id": "file-abc", "sizeOriginal": 9})

        stored = await make_client(handler).create_file(
            "bucket-1", "file-abc", "screenshot-2026-10-19T08-30-15.123Z.png", b"png-bytes", "image/png"
        )

        assert stored.id == "file-abc"
        assert stored.bucket_id == "bucket-1"
        assert stored.size == 9
        assert seen["method"] == "POST"
        assert seen["url"] == "https://cloud.appwrite.example/v1/storage/buckets/bucket-1/files"
        assert seen["project"] == "project-1"
        assert seen["key"] == "secret-key"
        assert seen["content_type"].startswith("multipart/form-data")
        assert b'name="fileId"' in seen["body"]
        assert b"screenshot-2026-10-19T08-30-15.123Z.png" in seen["body"]
        assert b"png-bytes" in seen["body"]

    @pytest.mark.asyncio
    async def test_auth_failure(self):
        def handler(request):
            return httpx.Response(401, json={"message": "Invalid API key", "code": 401})

        with pytest.raises(UploadError) as exc_info:
            await make_client(handler).create_file("b", "f", "x.png", b"x", "image/png")

        assert exc_info.value.status_code == 401
        assert "Invalid API key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UploadError) as exc_info:
            await make_client(handler).create_file("b", "f", "x.png", b"x", "image/png")

        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_response_without_id(self):
        def handler(request):
            return httpx.Response(201, json={"name": "x.png"})

        with pytest.raises(UploadError):
            await make_client(handler).create_file("b", "f", "x.png", b"x", "image/png")


class TestFromConfig:
    def test_requires_all_storage_settings(self, monkeypatch):
        for name in ("APPWRITE_ENDPOINT", "APPWRITE_PROJECT_ID", "APPWRITE_API_KEY", "APPWRITE_BUCKET_ID"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("APPWRITE_ENDPOINT", "https://cloud.appwrite.example/v1")

        with pytest.raises(ConfigurationError) as exc_info:
            AppwriteStorageClient.from_config(Config())

        assert exc_info.value.missing == ["APPWRITE_PROJECT_ID", "APPWRITE_API_KEY", "APPWRITE_BUCKET_ID"]
