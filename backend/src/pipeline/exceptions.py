"""
Exceptions for the pipeline orchestrator.
"""
from typing import Optional, Sequence


class PipelineError(Exception):
    """Base exception for pipeline orchestration."""


class PipelineStateError(PipelineError):
    """Raised when an orchestrator is used outside its lifecycle."""


class InvalidTransitionError(PipelineError):
    """Raised on a state change the transition table does not allow."""

    def __init__(self, subject: str, current, target):
        super().__init__(f"Invalid transition for {subject}: {current.value} -> {target.value}")
        self.subject = subject
        self.current = current
        self.target = target


class CommandFailedError(PipelineError):
    """Raised when an external stage command exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, output: Optional[str] = None):
        joined = " ".join(command)
        message = f"Command '{joined}' exited with status {returncode}"
        if output:
            message = f"{message}: {output}"
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.output = output


class ReportSinkError(PipelineError):
    """Raised when one or more report sinks fail to store a report."""

    def __init__(self, message: str, errors: Sequence[BaseException] = ()):
        super().__init__(message)
        self.errors = list(errors)
