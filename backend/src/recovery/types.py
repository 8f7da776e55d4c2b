"""
Shared type definitions for the recovery system.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Optional, TypeVar, Union

from .strategies import ExponentialBackoffStrategy
from .taxonomy import ErrorCategory, ErrorSeverity, to_category

# Type variables
T = TypeVar('T')
F = TypeVar('F', bound=Callable[..., Any])

# A zero-argument operation, either plain or returning an awaitable
Operation = Callable[[], Union[T, Awaitable[T]]]

# Observer called before each backoff sleep with (attempt, error)
RetryCallback = Callable[[int, Any], None]


@dataclass(frozen=True)
class RetryOptions:
    """Configuration for one retry call site.

    Delays are in seconds. ``retryable_categories`` restricts retries to the
    listed categories on top of each error's own retryability.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    retryable_categories: Optional[FrozenSet[ErrorCategory]] = None
    on_retry: Optional[RetryCallback] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")
        if self.retryable_categories is not None:
            object.__setattr__(
                self,
                "retryable_categories",
                frozenset(to_category(c) for c in self.retryable_categories),
            )

    @classmethod
    def of(
        cls,
        retryable_categories: Iterable[Union[ErrorCategory, str]] | None = None,
        **kwargs: Any,
    ) -> "RetryOptions":
        """Build options accepting any iterable of categories or their names."""
        if retryable_categories is not None:
            retryable_categories = frozenset(to_category(c) for c in retryable_categories)
        return cls(retryable_categories=retryable_categories, **kwargs)

    @property
    def strategy(self) -> ExponentialBackoffStrategy:
        return ExponentialBackoffStrategy(
            initial_delay=self.initial_delay,
            backoff_factor=self.backoff_factor,
            max_delay=self.max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-indexed)."""
        return self.strategy.calculate_delay(attempt - 1)

    def allows(self, category: ErrorCategory) -> bool:
        return self.retryable_categories is None or category in self.retryable_categories


__all__ = [
    "ErrorCategory",
    "ErrorSeverity",
    "F",
    "Operation",
    "RetryCallback",
    "RetryOptions",
    "T",
]
