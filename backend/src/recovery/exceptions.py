"""
Exceptions for the recovery system.
"""
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .taxonomy import (
    ErrorCategory,
    ErrorSeverity,
    is_retryable_default,
    severity_for,
    to_category,
)


class StructuredError(Exception):
    """An error enriched with category, severity, retryability and metadata.

    Severity and retryability are derived from the category and status code
    unless given explicitly; explicit values always win. Instances are
    read-only once constructed.
    """

    _FIELDS = frozenset({
        "message", "category", "severity", "code", "status_code", "retryable", "metadata",
    })

    def __init__(
        self,
        message: str,
        category: ErrorCategory | str = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity | str | None = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message)
        category = to_category(category)
        if severity is None:
            severity = severity_for(category, status_code)
        elif not isinstance(severity, ErrorSeverity):
            severity = ErrorSeverity(str(severity).lower())
        if retryable is None:
            retryable = is_retryable_default(category, status_code)

        set_field = super().__setattr__
        set_field("message", message)
        set_field("category", category)
        set_field("severity", severity)
        set_field("code", code)
        set_field("status_code", status_code)
        set_field("retryable", bool(retryable))
        set_field("metadata", MappingProxyType(dict(metadata or {})))

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self._FIELDS:
            raise AttributeError(f"StructuredError.{name} is read-only")
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if name in self._FIELDS:
            raise AttributeError(f"StructuredError.{name} is read-only")
        super().__delattr__(name)

    def __reduce__(self):
        return (
            _rebuild_structured_error,
            (type(self), self.message, self.category.value, self.severity.value,
             self.code, self.status_code, self.retryable, dict(self.metadata)),
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, category={self.category.value}, "
            f"severity={self.severity.value}, retryable={self.retryable})"
        )

    @classmethod
    def from_exception(cls, error: BaseException) -> "StructuredError":
        """Wrap an arbitrary exception, classifying it heuristically.

        A StructuredError is returned unchanged.
        """
        from .classification.classifier import to_structured_error
        return to_structured_error(error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "metadata": dict(self.metadata),
        }


def _rebuild_structured_error(cls, message, category, severity, code, status_code, retryable, metadata):
    return cls(
        message,
        category=category,
        severity=severity,
        code=code,
        status_code=status_code,
        retryable=retryable,
        metadata=metadata,
    )


class SupervisorAlreadyInstalledError(RuntimeError):
    """Raised when a second failure supervisor is installed in one process."""

    def __init__(self, message: str, active: Any = None):
        super().__init__(message)
        self.active = active
