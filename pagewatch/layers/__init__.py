"""Layers package initialization."""
from pagewatch.layers.navigation import (
    NavigationController,
    NavigationPolicy,
    PageLoadResult,
    RequestFilterPolicy,
)
from pagewatch.layers.extraction import ExtractionEngine, classify_availability
from pagewatch.layers.evidence import EvidenceCapture
from pagewatch.layers.retry import AttemptOutcome, RetryCoordinator, RetryPolicy, with_retry
from pagewatch.layers.reporting import ResultReporter

__all__ = [
    "NavigationController",
    "NavigationPolicy",
    "PageLoadResult",
    "RequestFilterPolicy",
    "ExtractionEngine",
    "classify_availability",
    "EvidenceCapture",
    "AttemptOutcome",
    "RetryCoordinator",
    "RetryPolicy",
    "with_retry",
    "ResultReporter",
]
