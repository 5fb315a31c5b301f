"""
Monitoring data model for the product page monitor.
These models are the contract between the pipeline layers and the
invocation boundary.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Value key under which the call-to-action state is recorded
CTA_STATE_FIELD = "call_to_action"


class RunStatus(str, Enum):
    """Final status of one monitoring run."""
    SUCCESS = "success"
    FAILURE = "failure"


class AvailabilitySource(str, Enum):
    """Where the availability signal was read from."""
    STRUCTURED_DATA = "structured_data"
    CALL_TO_ACTION = "call_to_action"


class EvidenceKind(str, Enum):
    """Which path of the pipeline produced a screenshot."""
    SUCCESS = "screenshot"
    ERROR = "error-screenshot"


class MonitoringTarget(BaseModel):
    """
    The page to monitor and how to read it.

    Created once per invocation and never mutated. Mapping fields are
    stored as read-only views.
    """
    model_config = ConfigDict(frozen=True, validate_default=True)

    url: str
    fields: Mapping[str, str] = Field(default_factory=dict)
    field_attribute: str = "content"
    cta_selector: Optional[str] = None
    cookies: Mapping[str, str] = Field(default_factory=dict)
    headers: Mapping[str, str] = Field(default_factory=dict)
    user_agent: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Target URL must be http(s): {value}")
        return value

    @field_validator("fields")
    @classmethod
    def _reject_blank_selectors(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        blank = [name for name, selector in value.items() if not selector or not selector.strip()]
        if blank:
            raise ValueError(f"Empty selector for field(s): {', '.join(blank)}")
        return MappingProxyType(dict(value))

    @field_validator("cookies", "headers")
    @classmethod
    def _read_only(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))


class ExtractedFields(BaseModel):
    """
    Raw field values read from the page plus the derived availability flag.

    Values are exactly what the document carried; no normalization.
    """
    values: Dict[str, str] = Field(default_factory=dict)
    is_available: bool = False
    availability_source: AvailabilitySource = AvailabilitySource.STRUCTURED_DATA

    @property
    def availability(self) -> Optional[str]:
        return self.values.get("availability")

    @property
    def price(self) -> Optional[str]:
        return self.values.get("price")

    @property
    def availability_status(self) -> Optional[str]:
        """Raw availability value, or the call-to-action state when that was the signal."""
        if self.availability_source == AvailabilitySource.CALL_TO_ACTION:
            return self.values.get(CTA_STATE_FIELD)
        return self.availability


class EvidenceArtifact(BaseModel):
    """A screenshot waiting to be handed to the storage collaborator."""
    payload: bytes
    artifact_id: str
    mime_type: str = "image/png"
    filename: str
    kind: EvidenceKind = EvidenceKind.SUCCESS

    @classmethod
    def create(
        cls,
        payload: bytes,
        kind: EvidenceKind = EvidenceKind.SUCCESS,
        now: Optional[datetime] = None,
    ) -> "EvidenceArtifact":
        """Build an artifact with a fresh id and a timestamped filename."""
        captured_at = now or datetime.now(timezone.utc)
        timestamp = captured_at.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        # Colons are not safe in every storage backend's filenames
        safe_timestamp = timestamp.replace(":", "-")
        return cls(
            payload=payload,
            artifact_id=uuid.uuid4().hex,
            filename=f"{kind.value}-{safe_timestamp}.png",
            kind=kind,
        )


class MonitoringReport(BaseModel):
    """
    Final output of a monitoring run.

    This is the only entity that crosses the system boundary.
    """
    status: RunStatus
    status_code: int
    execution_time_ms: float
    fields: Optional[ExtractedFields] = None
    screenshot_id: Optional[str] = None
    error_screenshot_id: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    stack: Optional[str] = None
    attempts: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCESS

    def to_body(self) -> Dict[str, Any]:
        """Render the JSON body returned to the caller."""
        body: Dict[str, Any] = {"executionTimeMs": self.execution_time_ms}

        if self.succeeded and self.fields is not None:
            body["isAvailable"] = self.fields.is_available
            body["availabilityStatus"] = self.fields.availability_status
            body["availability"] = self.fields.availability
            if self.fields.price is not None:
                body["price"] = self.fields.price
            if self.screenshot_id:
                body["screenshotId"] = self.screenshot_id
                body["screenshotFileId"] = self.screenshot_id
            return body

        body["error"] = self.error or "Unknown error"
        if self.error_type:
            body["errorType"] = self.error_type
        if self.error_screenshot_id:
            body["errorScreenshotId"] = self.error_screenshot_id
        if self.attempts is not None:
            body["attempts"] = self.attempts
        if self.stack:
            body["stack"] = self.stack
        return body
