"""
Report sink contract and the composite sink.
"""
import logging
from abc import ABC, abstractmethod
from typing import Iterable, Protocol, runtime_checkable

from ..exceptions import ReportSinkError
from ..types import PipelineReport


logger = logging.getLogger(__name__)


@runtime_checkable
class ReportSink(Protocol):
    """Anything that can store a finished pipeline report."""

    async def save(self, report: PipelineReport) -> None:
        ...


class BaseReportSink(ABC):
    """Base class for report sink implementations."""

    @abstractmethod
    async def save(self, report: PipelineReport) -> None:
        """Persist one report."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        pass


class CompositeReportSink(BaseReportSink):
    """
    Fans a report out to several sinks.

    Every sink is attempted even when an earlier one fails; the collected
    failures are raised together as a ``ReportSinkError``.
    """

    def __init__(self, sinks: Iterable[ReportSink]):
        self.sinks = list(sinks)

    async def save(self, report: PipelineReport) -> None:
        errors = []
        for sink in self.sinks:
            try:
                await sink.save(report)
            except Exception as e:
                logger.error(f"Report sink {type(sink).__name__} failed for run {report.run_id}: {e}")
                errors.append(e)

        if errors:
            raise ReportSinkError(
                f"{len(errors)} of {len(self.sinks)} report sinks failed",
                errors=errors,
            )

    async def close(self) -> None:
        for sink in self.sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                await close()
