"""
Tests for the retry engine.
"""
import pytest
from unittest.mock import AsyncMock, Mock, patch

from backend.src.recovery import (
    ErrorCategory,
    RetryOptions,
    StructuredError,
    create_api_error,
    create_network_error,
    create_validation_error,
    recoverable,
    with_retry,
    with_retry_sync,
)


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FailingOperation:
    """Fails ``failures`` times with errors from ``make_error`` and then returns ``result``."""

    def __init__(self, failures, make_error, result="ok"):
        self.failures = failures
        self.make_error = make_error
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.make_error()
        return self.result


@pytest.mark.asyncio
async def test_success_first_try_does_not_sleep():
    sleep = FakeSleep()
    operation = FailingOperation(0, lambda: None, result=42)

    assert await with_retry(operation, sleep=sleep) == 42
    assert operation.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_fail_twice_then_succeed():
    """Two failures then success returns the value after delays 1s and 2s."""
    sleep = FakeSleep()
    on_retry = Mock()
    operation = FailingOperation(2, lambda: create_network_error("flaky"), result="done")
    options = RetryOptions(max_attempts=3, on_retry=on_retry)

    assert await with_retry(operation, options, sleep=sleep) == "done"
    assert operation.calls == 3
    assert sleep.delays == [1.0, 2.0]
    assert [c.args[0] for c in on_retry.call_args_list] == [1, 2]


@pytest.mark.asyncio
async def test_always_failing_operation_runs_max_attempts():
    sleep = FakeSleep()
    operation = FailingOperation(100, lambda: create_network_error("down"))

    with pytest.raises(StructuredError) as exc_info:
        await with_retry(operation, RetryOptions(max_attempts=4), sleep=sleep)

    assert operation.calls == 4
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert exc_info.value.category is ErrorCategory.NETWORK


@pytest.mark.asyncio
async def test_delays_are_capped():
    """Delay sequence for 1s initial, factor 2, cap 5s."""
    sleep = FakeSleep()
    operation = FailingOperation(100, lambda: create_network_error("down"))
    options = RetryOptions(max_attempts=6, initial_delay=1.0, backoff_factor=2.0, max_delay=5.0)

    with pytest.raises(StructuredError):
        await with_retry(operation, options, sleep=sleep)

    assert sleep.delays == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_non_retryable_error_fails_immediately():
    sleep = FakeSleep()
    on_retry = Mock()
    operation = FailingOperation(100, lambda: create_validation_error("bad input"))

    with pytest.raises(StructuredError) as exc_info:
        await with_retry(operation, RetryOptions(max_attempts=5, on_retry=on_retry), sleep=sleep)

    assert operation.calls == 1
    assert sleep.delays == []
    on_retry.assert_not_called()
    assert exc_info.value.category is ErrorCategory.VALIDATION


@pytest.mark.asyncio
async def test_client_status_is_not_retried():
    sleep = FakeSleep()
    operation = FailingOperation(100, lambda: create_api_error("not found", status_code=404))

    with pytest.raises(StructuredError):
        await with_retry(operation, RetryOptions(max_attempts=5), sleep=sleep)

    assert operation.calls == 1


@pytest.mark.asyncio
async def test_allow_list_restricts_categories():
    """A retryable category outside the allow-list is not retried."""
    sleep = FakeSleep()
    operation = FailingOperation(100, lambda: create_network_error("down"))
    options = RetryOptions.of(max_attempts=5, retryable_categories=["api", ErrorCategory.TIMEOUT])

    with pytest.raises(StructuredError):
        await with_retry(operation, options, sleep=sleep)

    assert operation.calls == 1
    assert options.retryable_categories == frozenset({ErrorCategory.API, ErrorCategory.TIMEOUT})


@pytest.mark.asyncio
async def test_allow_list_does_not_override_retryable_flag():
    sleep = FakeSleep()
    operation = FailingOperation(100, lambda: create_validation_error("bad"))
    options = RetryOptions.of(max_attempts=5, retryable_categories=["validation"])

    with pytest.raises(StructuredError):
        await with_retry(operation, options, sleep=sleep)

    assert operation.calls == 1


@pytest.mark.asyncio
async def test_foreign_errors_are_wrapped_and_chained():
    sleep = FakeSleep()
    original = ConnectionResetError("reset")

    async def operation():
        raise original

    with pytest.raises(StructuredError) as exc_info:
        await with_retry(operation, RetryOptions(max_attempts=2), sleep=sleep)

    assert exc_info.value.__cause__ is original
    assert exc_info.value.category is ErrorCategory.NETWORK
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_unknown_errors_are_not_retried():
    sleep = FakeSleep()
    operation = FailingOperation(100, lambda: RuntimeError("mystery"))

    with pytest.raises(StructuredError) as exc_info:
        await with_retry(operation, RetryOptions(max_attempts=3), sleep=sleep)

    assert operation.calls == 1
    assert exc_info.value.category is ErrorCategory.UNKNOWN


@pytest.mark.asyncio
async def test_on_retry_receives_structured_error():
    sleep = FakeSleep()
    received = []
    operation = FailingOperation(1, lambda: TimeoutError("slow"))
    options = RetryOptions(on_retry=lambda attempt, error: received.append((attempt, error)))

    await with_retry(operation, options, sleep=sleep)

    assert len(received) == 1
    attempt, error = received[0]
    assert attempt == 1
    assert isinstance(error, StructuredError)
    assert error.category is ErrorCategory.TIMEOUT


@pytest.mark.asyncio
async def test_plain_callables_are_supported():
    sleep = FakeSleep()
    assert await with_retry(lambda: "sync value", sleep=sleep) == "sync value"


@pytest.mark.asyncio
async def test_default_sleep_is_asyncio_sleep():
    operation = FailingOperation(1, lambda: create_network_error("flaky"))

    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        result = await with_retry(operation, RetryOptions(initial_delay=0.5))

    assert result == "ok"
    mock_sleep.assert_awaited_once_with(0.5)


def test_sync_variant_has_same_schedule():
    delays = []
    calls = []

    def operation():
        calls.append(1)
        if len(calls) < 3:
            raise create_network_error("flaky")
        return "done"

    assert with_retry_sync(operation, RetryOptions(max_attempts=3), sleep=delays.append) == "done"
    assert delays == [1.0, 2.0]


def test_sync_variant_raises_after_budget():
    delays = []

    def operation():
        raise create_network_error("down")

    with pytest.raises(StructuredError):
        with_retry_sync(operation, RetryOptions(max_attempts=2), sleep=delays.append)

    assert delays == [1.0]


class TestRetryOptions:
    """Test option validation."""

    @pytest.mark.parametrize("kwargs", [
        {"max_attempts": 0},
        {"initial_delay": -1},
        {"max_delay": -0.5},
        {"backoff_factor": 0.5},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            RetryOptions(**kwargs)

    def test_defaults(self):
        options = RetryOptions()
        assert options.max_attempts == 3
        assert options.initial_delay == 1.0
        assert options.max_delay == 30.0
        assert options.backoff_factor == 2.0
        assert options.retryable_categories is None
        assert options.allows(ErrorCategory.UNKNOWN)

    def test_delay_for_is_one_indexed(self):
        options = RetryOptions(initial_delay=0.5, backoff_factor=3.0, max_delay=10.0)
        assert [options.delay_for(n) for n in (1, 2, 3, 4)] == [0.5, 1.5, 4.5, 10.0]


class TestRecoverableDecorator:
    """Test the @recoverable decorator."""

    @pytest.mark.asyncio
    async def test_retries_decorated_function(self):
        sleep = FakeSleep()
        calls = []

        @recoverable(max_attempts=3, initial_delay=0.25, sleep=sleep)
        async def fetch(value):
            calls.append(value)
            if len(calls) < 2:
                raise create_network_error("flaky")
            return value * 2

        assert await fetch(21) == 42
        assert calls == [21, 21]
        assert sleep.delays == [0.25]

    @pytest.mark.asyncio
    async def test_accepts_options_instance(self):
        sleep = FakeSleep()

        @recoverable(RetryOptions(max_attempts=2), sleep=sleep)
        async def always_fails():
            raise create_network_error("down")

        with pytest.raises(StructuredError):
            await always_fails()
        assert sleep.delays == [1.0]

    def test_preserves_metadata(self):
        @recoverable()
        async def documented():
            """Docstring."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Docstring."

    def test_rejects_sync_functions(self):
        with pytest.raises(TypeError):
            @recoverable()
            def not_async():
                pass

    def test_rejects_options_and_kwargs_together(self):
        with pytest.raises(TypeError):
            recoverable(RetryOptions(), max_attempts=2)
