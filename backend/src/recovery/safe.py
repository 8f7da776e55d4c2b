"""
Helpers that run an operation and fall back to a default on failure.

Intended for best-effort side work (notifications, cleanup) whose failure
must not interrupt the caller. The failure is logged and passed to the
optional ``on_error`` callback.
"""
import inspect
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from ..structured_logger import create_logger

T = TypeVar('T')

logger = create_logger("safe")


async def safe_execute(
    operation: Callable[[], Union[T, Awaitable[T]]],
    fallback: Optional[T] = None,
    on_error: Optional[Callable[[Exception], Any]] = None,
) -> Optional[T]:
    try:
        result = operation()
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        logger.error("Safe execution failed", e)
        if on_error:
            on_error(e)
        return fallback


def safe_execute_sync(
    operation: Callable[[], T],
    fallback: Optional[T] = None,
    on_error: Optional[Callable[[Exception], Any]] = None,
) -> Optional[T]:
    try:
        return operation()
    except Exception as e:
        logger.error("Safe execution failed", e)
        if on_error:
            on_error(e)
        return fallback
