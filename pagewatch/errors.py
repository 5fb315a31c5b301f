"""
Error taxonomy for the product page monitor.

Every error raised by the pipeline derives from MonitoringError. The
`retryable` flag tells the Retry Coordinator whether another attempt may
succeed; `attempts` is filled in once a retry loop gives up.
"""
from typing import Dict, List, Optional


class MonitoringError(Exception):
    """Base class for all monitoring failures."""

    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.attempts: Optional[int] = None


class ConfigurationError(MonitoringError):
    """Required settings are missing or unusable. Fatal, never retried."""

    def __init__(
        self,
        missing: Optional[List[str]] = None,
        invalid: Optional[Dict[str, str]] = None,
    ):
        self.missing = list(missing or [])
        self.invalid = dict(invalid or {})
        problems = []
        if self.missing:
            problems.append(f"Missing required configuration: {', '.join(self.missing)}")
        if self.invalid:
            details = "; ".join(f"{name} {reason}" for name, reason in self.invalid.items())
            problems.append(f"Invalid configuration: {details}")
        super().__init__(". ".join(problems) or "Invalid configuration")


class LaunchError(MonitoringError):
    """The headless browser could not be started."""


class NavigationError(MonitoringError):
    """The browser reported a transport failure or a navigation timeout."""

    retryable = True


class UnexpectedStatusError(NavigationError):
    """Navigation completed with an HTTP status other than 200."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Unexpected status code: {status_code} for {url}")


class MissingFieldError(MonitoringError):
    """A required selector matched nothing, or the element lacks the attribute."""

    retryable = True

    def __init__(self, field: str, selector: str, reason: str = "no matching element"):
        self.field = field
        self.selector = selector
        super().__init__(f"Required field '{field}' not found ({reason}): {selector}")


class SelectorTimeoutError(MonitoringError):
    """Waiting for a selector to appear exceeded its budget."""

    retryable = True

    def __init__(self, field: str, selector: str, timeout_ms: int):
        self.field = field
        self.selector = selector
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Timed out after {timeout_ms}ms waiting for field '{field}': {selector}"
        )


class CaptureError(MonitoringError):
    """The full-page screenshot could not be taken."""

    retryable = True


class UploadError(MonitoringError):
    """The storage collaborator rejected or failed to receive an artifact."""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def describe_error(error: BaseException) -> str:
    """Render an error as '<Type>: <message>' for reports and logs."""
    message = str(error) or repr(error)
    return f"{type(error).__name__}: {message}"
