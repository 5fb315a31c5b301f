"""
Result Reporter for the product page monitor.
Assembles the success/failure payload returned to the caller.
"""
import traceback
from typing import Optional

from pagewatch.errors import MonitoringError, describe_error
from pagewatch.models.monitoring import ExtractedFields, MonitoringReport, RunStatus
from pagewatch.utils.logger import LayerLogger


class ResultReporter:
    """Builds MonitoringReport objects. Failure reports never raise."""

    def __init__(self, include_stack: bool = False):
        self.include_stack = include_stack
        self.logger = LayerLogger("reporter")

    def build_success(
        self,
        fields: ExtractedFields,
        artifact_id: Optional[str],
        elapsed_ms: float,
    ) -> MonitoringReport:
        report = MonitoringReport(
            status=RunStatus.SUCCESS,
            status_code=200,
            execution_time_ms=round(elapsed_ms, 2),
            fields=fields,
            screenshot_id=artifact_id,
        )
        self.logger.log_action(
            "report",
            "success",
            is_available=fields.is_available,
            availability=fields.availability,
            price=fields.price,
            screenshot_id=artifact_id,
            execution_time_ms=report.execution_time_ms,
        )
        return report

    def build_failure(
        self,
        error: BaseException,
        artifact_id: Optional[str] = None,
        elapsed_ms: float = 0.0,
    ) -> MonitoringReport:
        try:
            report = MonitoringReport(
                status=RunStatus.FAILURE,
                status_code=500,
                execution_time_ms=round(elapsed_ms, 2),
                error=describe_error(error),
                error_type=type(error).__name__,
                error_screenshot_id=artifact_id,
                attempts=error.attempts if isinstance(error, MonitoringError) else None,
                stack=self._format_stack(error) if self.include_stack else None,
            )
        except Exception as e:
            # Keep only what cannot fail: the error's own message
            self.logger.log_error(
                f"Failure report degraded: {type(e).__name__}",
                error_type="report_error",
            )
            return self.minimal_failure(error, elapsed_ms)

        self.logger.log_action(
            "report",
            "failure",
            error=report.error,
            error_screenshot_id=artifact_id,
            attempts=report.attempts,
            execution_time_ms=report.execution_time_ms,
        )
        return report

    @staticmethod
    def minimal_failure(error: BaseException, elapsed_ms: float = 0.0) -> MonitoringReport:
        try:
            message = str(error)
        except Exception:
            message = "Unknown error"
        return MonitoringReport(
            status=RunStatus.FAILURE,
            status_code=500,
            execution_time_ms=float(elapsed_ms) if isinstance(elapsed_ms, (int, float)) else 0.0,
            error=message or "Unknown error",
        )

    @staticmethod
    def _format_stack(error: BaseException) -> str:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))
