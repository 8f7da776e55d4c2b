"""
Exponential backoff retry strategy.
"""
from .base import BaseStrategy


class ExponentialBackoffStrategy(BaseStrategy):
    """
    Exponential backoff strategy.

    Delay increases exponentially with each attempt:
    delay = min(initial_delay * (backoff_factor ** attempt), max_delay)

    There is no jitter, so a given configuration always yields the same
    schedule.
    """

    def __init__(
        self,
        initial_delay: float = 1.0,
        backoff_factor: float = 2.0,
        max_delay: float = 30.0,
    ):
        super().__init__(max_delay)
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor

    def calculate_delay(self, attempt: int) -> float:
        """Calculate exponentially increasing delay, capped at max_delay."""
        if attempt < 0:
            raise ValueError(f"attempt must be >= 0, got {attempt}")
        return min(self.initial_delay * (self.backoff_factor ** attempt), self.max_delay)

    @property
    def name(self) -> str:
        return f"ExponentialBackoff(initial={self.initial_delay}, factor={self.backoff_factor})"
