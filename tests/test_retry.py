"""
Unit tests for the Retry Coordinator.

Covers: recovery after k failures, exhaustion after exactly max_attempts,
fixed delay between attempts, backoff, and immediate propagation of
non-retryable errors.
"""
import pytest

from fakes import SleepRecorder
from pagewatch.errors import ConfigurationError, LaunchError, NavigationError, UploadError
from pagewatch.layers.retry import AttemptOutcome, RetryCoordinator, RetryPolicy, with_retry


class FlakyOperation:
    """Fails `failures` times with `error_factory()`, then returns `value`."""

    def __init__(self, failures: int, value="ok", error_factory=lambda: NavigationError("boom")):
        self.failures = failures
        self.value = value
        self.error_factory = error_factory
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return self.value


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.delay_seconds == 2.0
        assert policy.backoff_multiplier == 1.0

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            RetryPolicy(delay_seconds=-1)

    def test_fixed_delay_without_backoff(self):
        policy = RetryPolicy(delay_seconds=1.5)
        assert [policy.delay_after(n) for n in (1, 2, 3)] == [1.5, 1.5, 1.5]

    def test_exponential_backoff(self):
        policy = RetryPolicy(delay_seconds=1.0, backoff_multiplier=2.0)
        assert [policy.delay_after(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]


class TestRetryCoordinator:
    @pytest.mark.asyncio
    async def test_first_attempt_success(self):
        sleep = SleepRecorder()
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=3, delay_seconds=1.0), sleep=sleep)

        outcome = await coordinator.run(FlakyOperation(0, value=42), name="op")

        assert isinstance(outcome, AttemptOutcome)
        assert outcome.succeeded
        assert outcome.value == 42
        assert outcome.attempt == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failures", [1, 2])
    async def test_recovers_after_k_failures(self, failures):
        sleep = SleepRecorder()
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=3, delay_seconds=1.0), sleep=sleep)
        operation = FlakyOperation(failures, value="done")

        outcome = await coordinator.run(operation, name="op")

        assert outcome.value == "done"
        assert outcome.attempt == failures + 1
        assert operation.calls == failures + 1
        assert sleep.delays == [1.0] * failures

    @pytest.mark.asyncio
    async def test_exhaustion_propagates_last_error(self):
        sleep = SleepRecorder()
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=3, delay_seconds=2.0), sleep=sleep)
        errors = []

        def make_error():
            error = UploadError(f"upload failed #{len(errors) + 1}")
            errors.append(error)
            return error

        operation = FlakyOperation(10, error_factory=make_error)

        with pytest.raises(UploadError) as exc_info:
            await coordinator.run(operation, name="persist")

        assert operation.calls == 3
        assert exc_info.value is errors[-1]
        assert str(exc_info.value) == "upload failed #3"
        assert exc_info.value.attempts == 3
        assert sleep.delays == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_not_retried(self):
        sleep = SleepRecorder()
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=5), sleep=sleep)
        operation = FlakyOperation(10, error_factory=lambda: LaunchError("no chromium"))

        with pytest.raises(LaunchError) as exc_info:
            await coordinator.run(operation)

        assert operation.calls == 1
        assert exc_info.value.attempts == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_configuration_error_is_fatal(self):
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=3), sleep=SleepRecorder())
        operation = FlakyOperation(10, error_factory=lambda: ConfigurationError(["APPWRITE_API_KEY"]))

        with pytest.raises(ConfigurationError):
            await coordinator.run(operation)
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_propagate_immediately(self):
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=3), sleep=SleepRecorder())
        operation = FlakyOperation(10, error_factory=lambda: KeyError("bug"))

        with pytest.raises(KeyError):
            await coordinator.run(operation)
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_budgets_are_independent_per_call(self):
        sleep = SleepRecorder()
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=3, delay_seconds=1.0), sleep=sleep)

        first = await coordinator.run(FlakyOperation(2), name="navigate")
        second = await coordinator.run(FlakyOperation(2), name="extract")

        assert first.attempt == 3
        assert second.attempt == 3

    @pytest.mark.asyncio
    async def test_backoff_delays_are_applied(self):
        sleep = SleepRecorder()
        coordinator = RetryCoordinator(
            RetryPolicy(max_attempts=4, delay_seconds=0.5, backoff_multiplier=2.0),
            sleep=sleep,
        )

        with pytest.raises(NavigationError):
            await coordinator.run(FlakyOperation(10))

        assert sleep.delays == [0.5, 1.0, 2.0]


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_shorthand_uses_fixed_delay(self):
        sleep = SleepRecorder()
        operation = FlakyOperation(1, value="v")

        outcome = await with_retry(operation, max_attempts=3, delay=1.0, sleep=sleep)

        assert outcome.value == "v"
        assert outcome.attempt == 2
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_shorthand_exhausts(self):
        sleep = SleepRecorder()
        operation = FlakyOperation(10)

        with pytest.raises(NavigationError) as exc_info:
            await with_retry(operation, max_attempts=2, delay=3.0, sleep=sleep)

        assert operation.calls == 2
        assert exc_info.value.attempts == 2
        assert sleep.delays == [3.0]
