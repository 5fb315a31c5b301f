"""Models package initialization."""
from pagewatch.models.monitoring import (
    AvailabilitySource,
    EvidenceArtifact,
    EvidenceKind,
    ExtractedFields,
    MonitoringReport,
    MonitoringTarget,
    RunStatus,
)

__all__ = [
    "AvailabilitySource",
    "EvidenceArtifact",
    "EvidenceKind",
    "ExtractedFields",
    "MonitoringReport",
    "MonitoringTarget",
    "RunStatus",
]
