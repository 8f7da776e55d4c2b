"""
Last-resort handling for failures that escape every local handler.

A FailureSupervisor is created once at program start and passed to the
code that needs it. Installing it wires the process hooks:
``sys.excepthook``, ``threading.excepthook``, ``warnings.showwarning`` and,
via :meth:`FailureSupervisor.attach_loop`, the asyncio loop exception
handler that receives exceptions from tasks nobody awaited.

Every escaped failure is classified and logged at fatal level. The
process is terminated only when the failure's severity is critical.
Warnings are logged at warn level and never terminate.
"""
import asyncio
import os
import sys
import threading
import warnings
from typing import Any, Callable, Optional

from ..structured_logger import StructuredLogger, create_logger
from .classification import default_classifier
from .classification.classifier import ErrorClassifier
from .exceptions import SupervisorAlreadyInstalledError
from .taxonomy import ErrorSeverity

EXIT_STATUS = 1

ORIGIN_UNCAUGHT = "uncaught_exception"
ORIGIN_THREAD = "thread_exception"
ORIGIN_UNAWAITED = "unhandled_rejection"
ORIGIN_STARTUP = "startup_failure"


class FailureSupervisor:
    """Process-wide safety net with injectable logger and exit function."""

    _active: Optional["FailureSupervisor"] = None
    _install_lock = threading.Lock()

    def __init__(
        self,
        logger: StructuredLogger | None = None,
        exit_func: Callable[[int], Any] = os._exit,
        classifier: ErrorClassifier | None = None,
    ):
        self.logger = logger or create_logger("supervisor")
        self.exit_func = exit_func
        self.classifier = classifier or default_classifier
        self._installed = False
        self._previous_excepthook: Callable[..., Any] | None = None
        self._previous_threading_hook: Callable[..., Any] | None = None
        self._previous_showwarning: Callable[..., Any] | None = None
        self._loops: list[tuple[asyncio.AbstractEventLoop, Any]] = []

    @classmethod
    def active(cls) -> Optional["FailureSupervisor"]:
        return cls._active

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> bool:
        """Install the process hooks.

        Returns False when this supervisor is already installed. Raises
        SupervisorAlreadyInstalledError if a different supervisor is.
        """
        with self._install_lock:
            active = FailureSupervisor._active
            if active is self:
                self.logger.debug("Failure supervisor already installed")
                return False
            if active is not None:
                raise SupervisorAlreadyInstalledError(
                    "A failure supervisor is already installed in this process", active
                )

            self._previous_excepthook = sys.excepthook
            self._previous_threading_hook = threading.excepthook
            self._previous_showwarning = warnings.showwarning

            sys.excepthook = self._excepthook
            threading.excepthook = self._threading_excepthook
            warnings.showwarning = self.handle_warning

            FailureSupervisor._active = self
            self._installed = True

        self.logger.info("Global error handlers configured")
        return True

    def uninstall(self) -> None:
        """Restore the hooks that were in place before :meth:`install`."""
        with self._install_lock:
            if FailureSupervisor._active is not self:
                return
            sys.excepthook = self._previous_excepthook or sys.__excepthook__
            if self._previous_threading_hook is not None:
                threading.excepthook = self._previous_threading_hook
            if self._previous_showwarning is not None:
                warnings.showwarning = self._previous_showwarning
            for loop, previous_handler in self._loops:
                if not loop.is_closed():
                    loop.set_exception_handler(previous_handler)
            self._loops.clear()
            FailureSupervisor._active = None
            self._installed = False

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route the loop's unhandled task exceptions through the supervisor."""
        if any(attached is loop for attached, _ in self._loops):
            return
        self._loops.append((loop, loop.get_exception_handler()))
        loop.set_exception_handler(self.handle_async_exception)

    def handle_exception(self, error: BaseException, origin: str = ORIGIN_UNCAUGHT) -> bool:
        """Classify, log and possibly terminate. Returns True if exit was requested."""
        structured = self.classifier.to_structured(error)
        context = {
            "origin": origin,
            "category": structured.category.value,
            "severity": structured.severity.value,
        }
        self.logger.fatal(_TITLES.get(origin, "Unhandled failure"), error, context)

        if structured.severity is not ErrorSeverity.CRITICAL:
            return False

        self.logger.flush()
        self.exit_func(EXIT_STATUS)
        return True

    def handle_async_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        error = context.get("exception")
        if error is None:
            self.logger.warn("Event loop error", {"message": context.get("message", "")})
            return
        self.handle_exception(error, ORIGIN_UNAWAITED)

    def handle_warning(self, message, category, filename, lineno, file=None, line=None) -> None:
        self.logger.warn(
            "Process warning",
            {
                "message": str(message),
                "category": getattr(category, "__name__", str(category)),
                "filename": filename,
                "lineno": lineno,
            },
        )

    def _excepthook(self, exc_type, exc_value, exc_traceback) -> None:
        if issubclass(exc_type, KeyboardInterrupt) and self._previous_excepthook is not None:
            self._previous_excepthook(exc_type, exc_value, exc_traceback)
            return
        self.handle_exception(exc_value, ORIGIN_UNCAUGHT)

    def _threading_excepthook(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_type is SystemExit or args.exc_value is None:
            return
        self.handle_exception(args.exc_value, ORIGIN_THREAD)


_TITLES = {
    ORIGIN_UNCAUGHT: "Uncaught Exception",
    ORIGIN_THREAD: "Uncaught Exception in thread",
    ORIGIN_UNAWAITED: "Unhandled exception in unawaited task",
    ORIGIN_STARTUP: "Pipeline could not start",
}
