"""
Monitoring pipeline for the product page monitor.

Session -> Navigation -> Extraction -> Evidence -> Report, with each
fallible step wrapped in its own retry budget and a single error-evidence
hook run before a failure leaves the page.
"""
import time
from enum import Enum
from typing import Optional, Tuple

from playwright.async_api import Page

from pagewatch.adapters.browser import BrowserSessionManager, LaunchConfig
from pagewatch.errors import describe_error
from pagewatch.layers.evidence import EvidenceCapture
from pagewatch.layers.extraction import ExtractionEngine
from pagewatch.layers.navigation import NavigationController, NavigationPolicy
from pagewatch.layers.reporting import ResultReporter
from pagewatch.layers.retry import RetryCoordinator
from pagewatch.models.monitoring import (
    EvidenceKind,
    ExtractedFields,
    MonitoringReport,
    MonitoringTarget,
)
from pagewatch.utils.logger import LayerLogger


class RunState(str, Enum):
    """Where a monitoring run currently is."""
    IDLE = "idle"
    SESSION_ACQUIRED = "session_acquired"
    NAVIGATED = "navigated"
    EXTRACTED = "extracted"
    EVIDENCE_CAPTURED = "evidence_captured"
    REPORTED = "reported"


class MonitoringPipeline:
    """
    Runs one monitoring pass against a single target.

    Instances hold collaborators only; nothing carries over between runs.
    """

    def __init__(
        self,
        sessions: BrowserSessionManager,
        navigator: NavigationController,
        extractor: ExtractionEngine,
        evidence: EvidenceCapture,
        reporter: ResultReporter,
        retry: RetryCoordinator,
        launch_config: Optional[LaunchConfig] = None,
        navigation_policy: Optional[NavigationPolicy] = None,
    ):
        self.sessions = sessions
        self.navigator = navigator
        self.extractor = extractor
        self.evidence = evidence
        self.reporter = reporter
        self.retry = retry
        self.launch_config = launch_config or LaunchConfig()
        self.navigation_policy = navigation_policy or NavigationPolicy()
        self.logger = LayerLogger("pipeline")
        self.state = RunState.IDLE

    async def run(self, target: MonitoringTarget) -> MonitoringReport:
        """Execute the pipeline. Always returns a report; never raises."""
        started = time.perf_counter()
        self.state = RunState.IDLE
        self.logger.log_action("monitoring_run", "started", url=target.url)

        error_artifact_id: Optional[str] = None
        try:
            async with self.sessions.session(self.launch_config, target) as session:
                self._transition(RunState.SESSION_ACQUIRED)
                page: Optional[Page] = None
                try:
                    page = await session.new_page()
                    fields, artifact_id = await self._execute(page, target)
                except Exception:
                    error_artifact_id = await self.evidence.capture_error_evidence(page)
                    raise
                finally:
                    await self.sessions.close_page(page)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.logger.log_error(
                describe_error(e),
                error_type=type(e).__name__,
                state=self.state.value,
                url=target.url,
            )
            report = self.reporter.build_failure(e, error_artifact_id, elapsed_ms)
            self._transition(RunState.REPORTED)
            return report

        elapsed_ms = (time.perf_counter() - started) * 1000
        report = self.reporter.build_success(fields, artifact_id, elapsed_ms)
        self._transition(RunState.REPORTED)
        return report

    async def _execute(self, page: Page, target: MonitoringTarget) -> Tuple[ExtractedFields, str]:
        await self.navigator.prepare(page, target, self.navigation_policy)

        await self.retry.run(
            lambda: self.navigator.navigate(page, target, self.navigation_policy),
            name="navigate",
        )
        self._transition(RunState.NAVIGATED)

        extracted = await self.retry.run(
            lambda: self.extractor.extract(page, target),
            name="extract",
        )
        self._transition(RunState.EXTRACTED)

        captured = await self.retry.run(
            lambda: self.evidence.capture(page),
            name="capture",
        )
        artifact = self.evidence.build_artifact(captured.value, kind=EvidenceKind.SUCCESS)
        stored = await self.retry.run(
            lambda: self.evidence.persist(artifact),
            name="persist",
        )
        self._transition(RunState.EVIDENCE_CAPTURED)
        return extracted.value, stored.value

    def _transition(self, state: RunState) -> None:
        self.logger.log_decision(
            decision="state_transition",
            reason=f"{self.state.value} -> {state.value}",
            state=state.value,
        )
        self.state = state
