"""
Retry Coordinator for the product page monitor.
Wraps one fallible step in a bounded-attempt, delayed-retry policy.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pagewatch.config import Config
from pagewatch.errors import MonitoringError, describe_error
from pagewatch.utils.logger import LayerLogger

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and delay for one wrapped step."""
    max_attempts: int = 3
    delay_seconds: float = 2.0
    backoff_multiplier: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0")

    @classmethod
    def from_config(cls, cfg: Config) -> "RetryPolicy":
        return cls(
            max_attempts=cfg.RETRY_MAX_ATTEMPTS,
            delay_seconds=cfg.RETRY_DELAY_SECONDS,
            backoff_multiplier=cfg.RETRY_BACKOFF_MULTIPLIER,
        )

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after the given 1-based attempt failed."""
        return self.delay_seconds * (self.backoff_multiplier ** (attempt - 1))


@dataclass
class AttemptOutcome(Generic[T]):
    """Result of one attempt: a value on success, the error otherwise."""
    attempt: int
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, MonitoringError) and error.retryable


class RetryCoordinator:
    """
    Runs an operation until it succeeds or the attempt budget is spent.

    Non-retryable errors propagate on first sight. On exhaustion the last
    error is re-raised unchanged, with `attempts` set for observability.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.logger = LayerLogger("retry_coordinator")
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str = "operation",
    ) -> AttemptOutcome[T]:
        max_attempts = self.policy.max_attempts
        last: Optional[AttemptOutcome[T]] = None

        for attempt in range(1, max_attempts + 1):
            try:
                value = await operation()
            except Exception as e:
                last = AttemptOutcome(attempt=attempt, error=e)
                if not is_retryable(e):
                    self._tag_attempts(e, attempt)
                    self.logger.log_error(
                        describe_error(e),
                        error_type="non_retryable",
                        operation=name,
                        attempt=attempt,
                    )
                    raise

                if attempt >= max_attempts:
                    break

                delay = self.policy.delay_after(attempt)
                self.logger.log_retry(
                    operation=name,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=describe_error(e),
                    delay_seconds=delay,
                )
                await self._sleep(delay)
                continue

            if attempt > 1:
                self.logger.log_action(name, "recovered", attempts=attempt)
            return AttemptOutcome(attempt=attempt, value=value)

        error = last.error
        self._tag_attempts(error, last.attempt)
        self.logger.log_error(
            describe_error(error),
            error_type="retries_exhausted",
            operation=name,
            attempts=last.attempt,
        )
        raise error

    @staticmethod
    def _tag_attempts(error: BaseException, attempts: int) -> None:
        if isinstance(error, MonitoringError):
            error.attempts = attempts


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 2.0,
    name: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AttemptOutcome[T]:
    """Shorthand for a fixed-delay RetryCoordinator run."""
    coordinator = RetryCoordinator(
        RetryPolicy(max_attempts=max_attempts, delay_seconds=delay),
        sleep=sleep,
    )
    return await coordinator.run(operation, name=name)
