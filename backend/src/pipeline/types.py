"""
Shared type definitions for the pipeline orchestrator.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# A zero-argument stage handler; may be a coroutine function
StageHandler = Callable[[], Union[Awaitable[None], None]]


class StageStatus(Enum):
    """States of a single stage."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class PipelineState(Enum):
    """States of a whole pipeline run."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Stage:
    """One named unit of work in the pipeline."""
    name: str
    handler: StageHandler
    enabled: bool = True


@dataclass(frozen=True)
class StageResult:
    """Outcome of a finished or skipped stage."""
    stage_name: str
    status: StageStatus
    duration_ms: int
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "stage_name": self.stage_name,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'StageResult':
        return cls(
            stage_name=data["stage_name"],
            status=StageStatus(data["status"]),
            duration_ms=int(data["duration_ms"]),
            error=data.get("error"),
        )


@dataclass
class PipelineReport:
    """Timed, per-stage record of one orchestrator run."""
    timestamp: datetime
    total_duration_ms: int
    stages: list[StageResult]
    config_snapshot: dict[str, Any] = field(default_factory=dict)
    outcome: PipelineState = PipelineState.COMPLETED
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def failed_stage(self) -> Optional[StageResult]:
        return next((s for s in self.stages if s.status is StageStatus.FAILED), None)

    @property
    def skipped_stages(self) -> list[StageResult]:
        return [s for s in self.stages if s.status is StageStatus.SKIPPED]

    def status_of(self, stage_name: str) -> Optional[StageStatus]:
        for result in self.stages:
            if result.stage_name == stage_name:
                return result.status
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "run_id": self.run_id,
            "timestamp": self.timestamp.isoformat(),
            "total_duration_ms": self.total_duration_ms,
            "outcome": self.outcome.value,
            "stages": [s.to_dict() for s in self.stages],
            "config": self.config_snapshot,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'PipelineReport':
        """Create from dictionary."""
        return cls(
            run_id=data["run_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            total_duration_ms=int(data["total_duration_ms"]),
            outcome=PipelineState(data["outcome"]),
            stages=[StageResult.from_dict(s) for s in data.get("stages", [])],
            config_snapshot=data.get("config") or {},
        )
