"""
Evidence Capture for the product page monitor.
Takes full-page screenshots and hands them to the storage collaborator.
"""
import time
from typing import Optional, Protocol

from playwright.async_api import Error as PlaywrightError, Page

from pagewatch.adapters.storage import StoredFile
from pagewatch.errors import CaptureError, MonitoringError, UploadError, describe_error
from pagewatch.models.monitoring import EvidenceArtifact, EvidenceKind
from pagewatch.utils.logger import LayerLogger


class FileStorage(Protocol):
    """The one storage capability the monitor consumes."""

    async def create_file(
        self,
        bucket_id: str,
        file_id: str,
        filename: str,
        payload: bytes,
        mime_type: str,
    ) -> StoredFile:
        ...


class EvidenceCapture:
    """
    Screenshot capture and persistence.

    The artifact bytes live only until the upload returns; afterwards only
    the storage-assigned id is kept.
    """

    def __init__(self, storage: FileStorage, bucket_id: str, screenshot_timeout_ms: int = 30000):
        self.storage = storage
        self.bucket_id = bucket_id
        self.screenshot_timeout_ms = screenshot_timeout_ms
        self.logger = LayerLogger("evidence")

    async def capture(self, page: Page) -> bytes:
        """
        Take a full-document PNG screenshot.

        Raises:
            CaptureError: the browser could not render the screenshot in time
        """
        started = time.perf_counter()
        try:
            payload = await page.screenshot(
                full_page=True,
                type="png",
                timeout=self.screenshot_timeout_ms,
            )
        except PlaywrightError as e:
            raise CaptureError(f"Screenshot failed: {str(e)}") from e

        self.logger.log_timing(
            "capture_screenshot",
            (time.perf_counter() - started) * 1000,
            size=len(payload),
        )
        return payload

    def build_artifact(self, payload: bytes, kind: EvidenceKind = EvidenceKind.SUCCESS) -> EvidenceArtifact:
        return EvidenceArtifact.create(payload, kind=kind)

    async def persist(self, artifact: EvidenceArtifact) -> str:
        """
        Upload an artifact and return the storage id.

        Raises:
            UploadError: any transport or auth failure from the storage service
        """
        try:
            stored = await self.storage.create_file(
                self.bucket_id,
                artifact.artifact_id,
                artifact.filename,
                artifact.payload,
                artifact.mime_type,
            )
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"Storage upload failed: {describe_error(e)}") from e

        self.logger.log_action(
            "persist_artifact",
            "completed",
            kind=artifact.kind.value,
            filename=artifact.filename,
            artifact_id=stored.id,
        )
        return stored.id

    async def capture_error_evidence(self, page: Optional[Page]) -> Optional[str]:
        """
        Best-effort screenshot of the page that just failed.

        Any failure here is logged and swallowed so the original error is
        the one reported.
        """
        if page is None:
            return None
        try:
            payload = await self.capture(page)
            artifact = self.build_artifact(payload, kind=EvidenceKind.ERROR)
            return await self.persist(artifact)
        except MonitoringError as e:
            self.logger.log_error(
                f"Error screenshot not saved: {describe_error(e)}",
                error_type="error_evidence_failed",
            )
            return None
