"""
Base class for backoff strategies.
"""
from abc import ABC, abstractmethod
from typing import List


class BaseStrategy(ABC):
    """Base class for backoff strategies."""

    def __init__(self, max_delay: float = 30.0):
        self.max_delay = max_delay

    @abstractmethod
    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay before the next retry attempt.

        Args:
            attempt: Number of failed attempts so far, minus one (0-indexed)

        Returns:
            Delay in seconds
        """

    def delays(self, count: int) -> List[float]:
        """The first ``count`` delays of the schedule."""
        return [self.calculate_delay(attempt) for attempt in range(count)]

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name for logging."""
