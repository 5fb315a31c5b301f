"""
Unit tests for Evidence Capture and the evidence artifact model.
"""
from datetime import datetime, timezone

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from fakes import FakePage, FakeStorage
from pagewatch.errors import CaptureError, UploadError
from pagewatch.layers.evidence import EvidenceCapture
from pagewatch.models.monitoring import EvidenceArtifact, EvidenceKind


class TestEvidenceArtifact:
    def test_filename_derives_from_timestamp(self):
        captured_at = datetime(2026, 10, 19, 8, 30, 15, 123000, tzinfo=timezone.utc)

        artifact = EvidenceArtifact.create(b"png", now=captured_at)

        assert artifact.filename == "screenshot-2026-10-19T08-30-15.123Z.png"
        assert artifact.mime_type == "image/png"
        assert artifact.kind == EvidenceKind.SUCCESS

    def test_error_kind_prefix(self):
        artifact = EvidenceArtifact.create(b"png", kind=EvidenceKind.ERROR)
        assert artifact.filename.startswith("error-screenshot-")

    def test_ids_are_unique(self):
        ids = {EvidenceArtifact.create(b"png").artifact_id for _ in range(50)}
        assert len(ids) == 50


class TestCapture:
    @pytest.mark.asyncio
    async def test_requests_full_page_png(self):
        page = FakePage(screenshot=[b"image-bytes"])
        evidence = EvidenceCapture(FakeStorage(), bucket_id="evidence", screenshot_timeout_ms=15000)

        payload = await evidence.capture(page)

        assert payload == b"image-bytes"
        assert page.screenshot_calls == [{"full_page": True, "type": "png", "timeout": 15000}]

    @pytest.mark.asyncio
    async def test_screenshot_timeout_is_capture_error(self):
        page = FakePage(screenshot=[PlaywrightTimeoutError("Timeout 30000ms exceeded.")])
        evidence = EvidenceCapture(FakeStorage(), bucket_id="evidence")

        with pytest.raises(CaptureError) as exc_info:
            await evidence.capture(page)
        assert exc_info.value.retryable is True


class TestPersist:
    @pytest.mark.asyncio
    async def test_hands_artifact_to_storage(self):
        storage = FakeStorage(["file-123"])
        evidence = EvidenceCapture(storage, bucket_id="evidence")
        artifact = evidence.build_artifact(b"image-bytes")

        stored_id = await evidence.persist(artifact)

        assert stored_id == "file-123"
        assert storage.calls == [{
            "bucket_id": "evidence",
            "file_id": artifact.artifact_id,
            "filename": artifact.filename,
            "payload": b"image-bytes",
            "mime_type": "image/png",
        }]

    @pytest.mark.asyncio
    async def test_upload_error_propagates(self):
        evidence = EvidenceCapture(FakeStorage([UploadError("401 unauthorized", status_code=401)]),
                                   bucket_id="evidence")

        with pytest.raises(UploadError) as exc_info:
            await evidence.persist(evidence.build_artifact(b"x"))
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_other_storage_errors_become_upload_errors(self):
        evidence = EvidenceCapture(FakeStorage([ConnectionResetError("reset by peer")]),
                                   bucket_id="evidence")

        with pytest.raises(UploadError) as exc_info:
            await evidence.persist(evidence.build_artifact(b"x"))
        assert "ConnectionResetError" in str(exc_info.value)


class TestErrorEvidence:
    @pytest.mark.asyncio
    async def test_returns_storage_id(self):
        storage = FakeStorage(["error-file-1"])
        evidence = EvidenceCapture(storage, bucket_id="evidence")

        stored_id = await evidence.capture_error_evidence(FakePage())

        assert stored_id == "error-file-1"
        assert storage.calls[0]["filename"].startswith("error-screenshot-")

    @pytest.mark.asyncio
    async def test_upload_failure_is_swallowed(self):
        storage = FakeStorage([UploadError("storage down")])
        evidence = EvidenceCapture(storage, bucket_id="evidence")

        assert await evidence.capture_error_evidence(FakePage()) is None
        assert len(storage.calls) == 1

    @pytest.mark.asyncio
    async def test_capture_failure_is_swallowed(self):
        storage = FakeStorage()
        evidence = EvidenceCapture(storage, bucket_id="evidence")
        page = FakePage(screenshot=[PlaywrightTimeoutError("Target closed")])

        assert await evidence.capture_error_evidence(page) is None
        assert storage.calls == []

    @pytest.mark.asyncio
    async def test_no_page(self):
        evidence = EvidenceCapture(FakeStorage(), bucket_id="evidence")
        assert await evidence.capture_error_evidence(None) is None
