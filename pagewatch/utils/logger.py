"""
Structured logging utility for the product page monitor.

Every entry carries the id of the monitoring run that produced it, and
entries written while a run is active also carry the target URL.
"""
import logging
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

from pagewatch.config import config

run_id_var: ContextVar[str] = ContextVar("run_id", default="")


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def get_run_id() -> str:
    """Current run id; entries logged outside a run get a fresh one."""
    run_id = run_id_var.get()
    if not run_id:
        run_id = new_run_id()
        run_id_var.set(run_id)
    return run_id


def start_run(url: str, run_id: Optional[str] = None) -> str:
    """Begin a run scope: later entries in this context carry run_id and url."""
    run_id = run_id or new_run_id()
    run_id_var.set(run_id)
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(url=url)
    return run_id


def end_run() -> None:
    structlog.contextvars.clear_contextvars()
    run_id_var.set("")


def add_run_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Processor stamping the run id on every entry."""
    event_dict["run_id"] = get_run_id()
    return event_dict


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None):
    """Configure structlog; defaults come from LOG_LEVEL and LOG_FORMAT."""
    level = (level or config.LOG_LEVEL).upper()
    log_format = log_format or config.LOG_FORMAT

    processors = [
        structlog.contextvars.merge_contextvars,
        add_run_id,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


class LayerLogger:
    """
    Logger bound to one pipeline stage.

    Event names are shared across stages so a run can be followed by
    filtering on run_id alone.
    """

    def __init__(self, layer_name: str):
        self.layer_name = layer_name
        self.logger = get_logger(layer_name).bind(layer=layer_name)

    def log_decision(self, decision: str, reason: str, url: Optional[str] = None, **extra):
        """A branch the stage took, and why."""
        if url is not None:
            extra["url"] = url
        self.logger.info("decision_made", decision=decision, reason=reason, **extra)

    def log_action(self, action: str, status: str = "started", **extra):
        self.logger.info(f"action_{status}", action=action, **extra)

    def log_timing(self, action: str, duration_ms: float, **extra):
        """How long a pipeline step took, in milliseconds."""
        self.logger.info(
            "step_timed",
            action=action,
            duration_ms=round(duration_ms, 2),
            **extra
        )

    def log_retry(
        self,
        operation: str,
        attempt: int,
        max_attempts: int,
        error: str,
        delay_seconds: float,
        **extra
    ):
        """A failed attempt that will be retried after delay_seconds."""
        self.logger.warning(
            "retry_scheduled",
            operation=operation,
            attempt=attempt,
            max_attempts=max_attempts,
            error=error,
            delay_seconds=delay_seconds,
            **extra
        )

    def log_error(self, error: str, error_type: str = "unknown", **extra):
        self.logger.error("error_occurred", error=error, error_type=error_type, **extra)


# Initialize logging on module import
configure_logging()
