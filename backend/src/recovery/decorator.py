"""Retry engine: exponential backoff around fallible operations.
"""
import asyncio
import functools
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, cast

from ..structured_logger import create_logger
from .classification import default_classifier
from .classification.classifier import ErrorClassifier
from .exceptions import StructuredError
from .types import Operation, RetryOptions, T

logger = create_logger("retry")

F = TypeVar('F', bound=Callable[..., Awaitable[Any]])

DEFAULT_OPTIONS = RetryOptions()


def _should_retry(error: StructuredError, attempt: int, options: RetryOptions) -> bool:
    if not (error.retryable and options.allows(error.category)):
        return False
    return attempt < options.max_attempts


def _handle_failure(
    raw: Exception,
    attempt: int,
    options: RetryOptions,
    classifier: ErrorClassifier,
) -> tuple[StructuredError, float]:
    """Classify a failed attempt and return the delay before the next one.

    Raises the structured error when no further attempt should be made.
    """
    error = classifier.to_structured(raw)
    context = {
        "attempt": attempt,
        "max_attempts": options.max_attempts,
        "category": error.category.value,
    }

    if not _should_retry(error, attempt, options):
        logger.error("Max retries reached or non-retryable error", raw, context)
        if error is raw:
            raise error
        raise error from raw

    delay = options.delay_for(attempt)
    logger.warn(
        f"Retry attempt {attempt + 1}/{options.max_attempts} after {delay}s",
        {**context, "error": error.message},
    )
    if options.on_retry is not None:
        options.on_retry(attempt, error)
    return error, delay


async def with_retry(
    operation: Operation[T],
    options: RetryOptions | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
    classifier: ErrorClassifier | None = None,
) -> T:
    """Run ``operation`` until it succeeds or retrying stops.

    Each failure is wrapped as a StructuredError. The operation is retried
    while the error is retryable, allowed by
    ``options.retryable_categories`` and the attempt budget remains.
    Otherwise the StructuredError is raised. Between attempts the engine
    sleeps for ``min(initial_delay * backoff_factor ** (attempt - 1), max_delay)``.
    """
    options = options or DEFAULT_OPTIONS
    # Resolved per call so tests can patch asyncio.sleep
    sleep = sleep or asyncio.sleep
    classifier = classifier or default_classifier
    attempt = 1

    while True:
        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
            return cast(T, result)
        except Exception as raw:
            _, delay = _handle_failure(raw, attempt, options, classifier)

        await sleep(delay)
        attempt += 1


def with_retry_sync(
    operation: Callable[[], T],
    options: RetryOptions | None = None,
    *,
    sleep: Callable[[float], Any] = time.sleep,
    classifier: ErrorClassifier | None = None,
) -> T:
    """Blocking counterpart of :func:`with_retry` with identical semantics."""
    options = options or DEFAULT_OPTIONS
    classifier = classifier or default_classifier
    attempt = 1

    while True:
        try:
            return operation()
        except Exception as raw:
            _, delay = _handle_failure(raw, attempt, options, classifier)

        sleep(delay)
        attempt += 1


def recoverable(
    options: RetryOptions | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
    **option_kwargs: Any,
) -> Callable[[F], F]:
    """Decorator that runs an async function through :func:`with_retry`.

    Options can be given as a RetryOptions instance or as keyword
    arguments, e.g. ``@recoverable(max_attempts=5, initial_delay=0.5)``.
    """
    if options is None:
        options = RetryOptions.of(**option_kwargs) if option_kwargs else DEFAULT_OPTIONS
    elif option_kwargs:
        raise TypeError("pass either a RetryOptions instance or keyword options, not both")

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"@recoverable requires an async function, got {func!r}")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await with_retry(
                lambda: func(*args, **kwargs),
                options,
                sleep=sleep,
            )

        return cast(F, wrapper)

    return decorator
