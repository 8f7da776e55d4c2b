"""
Sequential, fail-fast stage orchestrator.

Stages run strictly in the order given. A disabled stage is skipped without
running its handler. The first failing stage aborts the run, and every
stage after it is recorded as skipped. A report is always built and handed
to the report sink before a failure is re-raised to the caller.
"""
import inspect
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from ..structured_logger import StructuredLogger, create_logger
from .exceptions import PipelineStateError
from .persistence.base import ReportSink
from .state_machine import StateMachine, pipeline_machine, stage_machine
from .types import PipelineReport, PipelineState, Stage, StageResult, StageStatus


def _elapsed_ms(start: float, end: float) -> int:
    return max(0, int(round((end - start) * 1000)))


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class PipelineOrchestrator:
    """Runs an ordered list of stages once and reports on the run."""

    def __init__(
        self,
        report_sink: Optional[ReportSink] = None,
        config_snapshot: Optional[dict[str, Any]] = None,
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.report_sink = report_sink
        self.config_snapshot = dict(config_snapshot or {})
        self.logger = logger or create_logger("orchestrator")
        self.clock = clock
        self.now = now
        self.results: list[StageResult] = []
        self.report: Optional[PipelineReport] = None
        self.stage_states: dict[str, StateMachine[StageStatus]] = {}
        self._machine = pipeline_machine()

    @property
    def state(self) -> PipelineState:
        return self._machine.state

    async def run(self, stages: Sequence[Stage]) -> PipelineReport:
        """Run ``stages`` in order; re-raises the first stage failure."""
        if self.state is not PipelineState.IDLE:
            raise PipelineStateError(f"Orchestrator already used (state={self.state.value})")

        names = [stage.name for stage in stages]
        if len(set(names)) != len(names):
            raise PipelineStateError(f"Duplicate stage names: {names}")

        self.stage_states = {stage.name: stage_machine(stage.name) for stage in stages}
        self._machine.transition(PipelineState.RUNNING)
        self.logger.info("Starting pipeline execution", {"stages": names})

        started = self.clock()
        failure: Optional[Exception] = None

        for index, stage in enumerate(stages):
            if not stage.enabled:
                self.logger.info(f"{stage.name} disabled, skipping")
                self._record(stage.name, StageStatus.SKIPPED, 0)
                continue

            failure = await self._run_stage(stage)
            if failure is not None:
                for remaining in stages[index + 1:]:
                    self._record(remaining.name, StageStatus.SKIPPED, 0)
                self.logger.warn(
                    "Pipeline aborted",
                    {"failed_stage": stage.name, "skipped": [s.name for s in stages[index + 1:]]},
                )
                break

        outcome = PipelineState.ABORTED if failure is not None else PipelineState.COMPLETED
        self._machine.transition(outcome)

        self.report = PipelineReport(
            timestamp=self.now(),
            total_duration_ms=_elapsed_ms(started, self.clock()),
            stages=list(self.results),
            config_snapshot=self.config_snapshot,
            outcome=outcome,
        )
        await self._persist(self.report, failure)

        if failure is not None:
            raise failure
        self.logger.info("Pipeline completed successfully", {"duration_ms": self.report.total_duration_ms})
        return self.report

    async def _run_stage(self, stage: Stage) -> Optional[Exception]:
        machine = self.stage_states[stage.name]
        machine.transition(StageStatus.RUNNING)
        self.logger.info(f"Stage: {stage.name.upper()}")
        start = self.clock()

        try:
            result = stage.handler()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            message = _error_message(e)
            self._record(stage.name, StageStatus.FAILED, _elapsed_ms(start, self.clock()), message)
            self.logger.error(f"{stage.name} failed", e, {"stage": stage.name})
            return e

        duration = _elapsed_ms(start, self.clock())
        self._record(stage.name, StageStatus.SUCCESS, duration)
        self.logger.info(f"{stage.name} completed successfully", {"duration_ms": duration})
        return None

    def _record(self, name: str, status: StageStatus, duration_ms: int, error: Optional[str] = None) -> None:
        self.stage_states[name].transition(status)
        self.results.append(StageResult(stage_name=name, status=status, duration_ms=duration_ms, error=error))

    async def _persist(self, report: PipelineReport, failure: Optional[Exception]) -> None:
        if self.report_sink is None:
            return
        try:
            await self.report_sink.save(report)
        except Exception as e:
            self.logger.error("Failed to persist pipeline report", e, {"run_id": report.run_id})
            # A stage failure takes precedence over a reporting failure
            if failure is None:
                raise
