"""
Structured logging for the pipeline.

Wraps stdlib ``logging`` loggers in the five-method sink used across the
pipeline core: ``debug``/``info``/``warn`` take a message and optional
context, ``error``/``fatal`` additionally take the exception being reported.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

ROOT_LOGGER_NAME = "seo_pipeline"

# Plain module loggers (logging.getLogger(__name__)) live under the package name
MODULE_LOGGER_NAMESPACE = __name__.split(".")[0]


def _level_name(record: logging.LogRecord) -> str:
    if record.levelno >= logging.CRITICAL:
        return "fatal"
    if record.levelno >= logging.ERROR:
        return "error"
    if record.levelno >= logging.WARNING:
        return "warn"
    if record.levelno >= logging.INFO:
        return "info"
    return "debug"


class ContextFormatter(logging.Formatter):
    """Human readable formatter that appends ``(key=value ...)`` context."""

    def __init__(self):
        super().__init__(fmt="[%(asctime)s] %(levelname)-8s [%(name)s] %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        output = super().format(record)
        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(
                f"{key}={value if isinstance(value, str) else json.dumps(value, default=str)}"
                for key, value in context.items()
            )
            # Traceback text is appended after the first line by the base class
            first, sep, rest = output.partition("\n")
            output = f"{first} ({pairs}){sep}{rest}"
        return output


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": _level_name(record),
            "module": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry["error"] = {
                "type": type(error).__name__,
                "message": str(error),
                "stack": self.formatException(record.exc_info),
            }
            code = getattr(error, "code", None)
            if code is not None:
                entry["error"]["code"] = str(code)
        return json.dumps(entry, default=str)


class StructuredLogger:
    """Logging sink with optional bound context.

    Messages are delegated to a stdlib logger; context travels on the
    record as ``record.context`` so formatters can render it.
    """

    def __init__(self, logger: logging.Logger, context: dict[str, Any] | None = None):
        self._logger = logger
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def set_level(self, level: str) -> None:
        self._logger.setLevel(LOG_LEVELS[level.lower()])

    def set_context(self, context: dict[str, Any]) -> None:
        self._context.update(context)

    def child(self, name: str, context: dict[str, Any] | None = None) -> "StructuredLogger":
        merged = {**self._context, **(context or {})}
        return StructuredLogger(self._logger.getChild(name), merged)

    def debug(self, message: str, context: dict[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, message, None, context)

    def info(self, message: str, context: dict[str, Any] | None = None) -> None:
        self._log(logging.INFO, message, None, context)

    def warn(self, message: str, context: dict[str, Any] | None = None) -> None:
        self._log(logging.WARNING, message, None, context)

    def error(
        self,
        message: str,
        error: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self._log(logging.ERROR, message, error, context)

    def fatal(
        self,
        message: str,
        error: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self._log(logging.CRITICAL, message, error, context)

    def flush(self) -> None:
        """Flush every handler that would receive records from this logger."""
        logger: logging.Logger | None = self._logger
        while logger is not None:
            for handler in logger.handlers:
                handler.flush()
            if not logger.propagate:
                break
            logger = logger.parent

    def _log(
        self,
        level: int,
        message: str,
        error: BaseException | None,
        context: dict[str, Any] | None,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        merged = {**self._context, **(context or {})}
        exc_info = (type(error), error, error.__traceback__) if error is not None else None
        self._logger.log(level, message, exc_info=exc_info, extra={"context": merged})


def create_logger(name: str, context: dict[str, Any] | None = None) -> StructuredLogger:
    """Create a structured logger below the pipeline's root logger."""
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return StructuredLogger(logging.getLogger(name), context)


def configure_logging(level: str = "info", fmt: str = "pretty", stream=None) -> logging.Handler:
    """Install one handler on the pipeline root logger and the module loggers.

    Calling this again replaces the previously installed handler.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if fmt == "json" else ContextFormatter())
    handler._seo_pipeline_handler = True  # type: ignore[attr-defined]

    for name in dict.fromkeys((ROOT_LOGGER_NAME, MODULE_LOGGER_NAMESPACE)):
        root = logging.getLogger(name)
        for existing in list(root.handlers):
            if getattr(existing, "_seo_pipeline_handler", False):
                root.removeHandler(existing)
        root.addHandler(handler)
        root.setLevel(LOG_LEVELS.get(level.lower(), logging.INFO))
    return handler
