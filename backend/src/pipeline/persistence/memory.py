"""In-memory report sink."""
import asyncio
from typing import Optional

from ..types import PipelineReport
from .base import BaseReportSink


class MemoryReportSink(BaseReportSink):
    """Keeps reports in a list.

    Useful for testing and for callers that inspect the report in-process.
    """

    def __init__(self):
        self.reports: list[PipelineReport] = []
        self._lock = asyncio.Lock()

    async def save(self, report: PipelineReport) -> None:
        async with self._lock:
            self.reports.append(report)

    async def load(self, run_id: str) -> Optional[PipelineReport]:
        async with self._lock:
            return next((r for r in self.reports if r.run_id == run_id), None)

    @property
    def latest(self) -> Optional[PipelineReport]:
        return self.reports[-1] if self.reports else None

    async def clear(self) -> None:
        """Drop all stored reports. Useful for testing."""
        async with self._lock:
            self.reports.clear()
