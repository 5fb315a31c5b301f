"""
Storage adapter for the product page monitor.
Uploads evidence artifacts to an Appwrite-compatible bucket API.
"""
from dataclasses import dataclass
from typing import Optional

import httpx

from pagewatch.config import Config
from pagewatch.errors import UploadError
from pagewatch.utils.logger import LayerLogger


@dataclass(frozen=True)
class StoredFile:
    """Identifier assigned by the storage service."""
    id: str
    bucket_id: str
    size: Optional[int] = None


class AppwriteStorageClient:
    """
    Minimal client for the Appwrite Storage `createFile` endpoint.

    Only the one call the monitor needs is implemented.
    """

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.api_key = api_key
        self.timeout = timeout
        self.logger = LayerLogger("storage_client")
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        cfg: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AppwriteStorageClient":
        cfg.require_storage()
        return cls(
            endpoint=cfg.APPWRITE_ENDPOINT,
            project_id=cfg.APPWRITE_PROJECT_ID,
            api_key=cfg.APPWRITE_API_KEY,
            timeout=cfg.UPLOAD_TIMEOUT,
            transport=transport,
        )

    def _get_headers(self) -> dict:
        return {
            "X-Appwrite-Project": self.project_id,
            "X-Appwrite-Key": self.api_key,
            "Accept": "application/json",
        }

    async def create_file(
        self,
        bucket_id: str,
        file_id: str,
        filename: str,
        payload: bytes,
        mime_type: str,
    ) -> StoredFile:
        """
        Upload one file into a bucket.

        Raises:
            UploadError: transport failure, auth failure or any non-2xx reply
        """
        url = f"{self.endpoint}/storage/buckets/{bucket_id}/files"
        self.logger.log_action(
            "create_file",
            "started",
            bucket_id=bucket_id,
            file_id=file_id,
            filename=filename,
            size=len(payload),
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url,
                    headers=self._get_headers(),
                    data={"fileId": file_id},
                    files={"file": (filename, payload, mime_type)},
                )
        except httpx.HTTPError as e:
            self.logger.log_error(
                f"Storage request failed: {str(e)}",
                error_type="transport_error",
                bucket_id=bucket_id,
            )
            raise UploadError(f"Storage request failed: {str(e)}") from e

        if response.status_code >= 400:
            detail = self._error_detail(response)
            self.logger.log_error(
                f"Storage rejected upload: {detail}",
                error_type="http_error",
                status_code=response.status_code,
                bucket_id=bucket_id,
            )
            raise UploadError(
                f"Storage rejected upload with status {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UploadError("Storage returned a non-JSON response") from e

        stored_id = data.get("$id") or data.get("id")
        if not stored_id:
            raise UploadError("Storage response did not include a file id")

        self.logger.log_action(
            "create_file",
            "completed",
            bucket_id=bucket_id,
            file_id=stored_id,
        )
        return StoredFile(id=stored_id, bucket_id=bucket_id, size=data.get("sizeOriginal"))

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return response.text[:200]
