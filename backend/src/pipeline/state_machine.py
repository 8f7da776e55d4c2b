"""
Transition tables for stages and pipeline runs.

Stage:    PENDING -> RUNNING -> {SUCCESS, FAILED}
          PENDING -> SKIPPED
Pipeline: IDLE -> RUNNING -> {COMPLETED, ABORTED}
"""
from typing import Generic, Mapping, TypeVar

from .exceptions import InvalidTransitionError
from .types import PipelineState, StageStatus

S = TypeVar('S', StageStatus, PipelineState)

STAGE_TRANSITIONS: Mapping[StageStatus, frozenset[StageStatus]] = {
    StageStatus.PENDING: frozenset({StageStatus.RUNNING, StageStatus.SKIPPED}),
    StageStatus.RUNNING: frozenset({StageStatus.SUCCESS, StageStatus.FAILED}),
    StageStatus.SUCCESS: frozenset(),
    StageStatus.FAILED: frozenset(),
    StageStatus.SKIPPED: frozenset(),
}

PIPELINE_TRANSITIONS: Mapping[PipelineState, frozenset[PipelineState]] = {
    PipelineState.IDLE: frozenset({PipelineState.RUNNING}),
    PipelineState.RUNNING: frozenset({PipelineState.COMPLETED, PipelineState.ABORTED}),
    PipelineState.COMPLETED: frozenset(),
    PipelineState.ABORTED: frozenset(),
}


def can_transition(table: Mapping[S, frozenset[S]], current: S, target: S) -> bool:
    return target in table[current]


def is_terminal(table: Mapping[S, frozenset[S]], state: S) -> bool:
    return not table[state]


class StateMachine(Generic[S]):
    """Tracks one state and enforces its transition table."""

    def __init__(self, subject: str, table: Mapping[S, frozenset[S]], initial: S):
        self.subject = subject
        self.table = table
        self.state = initial
        self.history: list[S] = [initial]

    def transition(self, target: S) -> S:
        if not can_transition(self.table, self.state, target):
            raise InvalidTransitionError(self.subject, self.state, target)
        self.state = target
        self.history.append(target)
        return target

    @property
    def terminal(self) -> bool:
        return is_terminal(self.table, self.state)


def stage_machine(name: str) -> StateMachine[StageStatus]:
    return StateMachine(f"stage '{name}'", STAGE_TRANSITIONS, StageStatus.PENDING)


def pipeline_machine() -> StateMachine[PipelineState]:
    return StateMachine("pipeline", PIPELINE_TRANSITIONS, PipelineState.IDLE)
