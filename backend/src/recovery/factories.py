"""
Factories for structured errors of a known category.

Each factory fixes the category; severity and retryability follow the
taxonomy defaults unless the caller overrides them. Factories never inspect
the message to guess a category.
"""
from typing import Any, Optional

from .exceptions import StructuredError
from .taxonomy import ErrorCategory, ErrorSeverity, severity_for

RATE_LIMIT_CODE = "RATE_LIMIT_EXCEEDED"

# Factory defaults follow the error-handling table, which rates network,
# rate-limit and database failures above the bare classifier rule.
FACTORY_SEVERITY: dict[ErrorCategory, ErrorSeverity] = {
    ErrorCategory.NETWORK: ErrorSeverity.MEDIUM,
    ErrorCategory.TIMEOUT: ErrorSeverity.MEDIUM,
    ErrorCategory.RATE_LIMIT: ErrorSeverity.MEDIUM,
    ErrorCategory.DATABASE: ErrorSeverity.HIGH,
}


def factory_severity(category: ErrorCategory, status_code: Optional[int] = None) -> ErrorSeverity:
    """Default severity used by the factories below."""
    derived = severity_for(category, status_code)
    default = FACTORY_SEVERITY.get(category)
    if default is None or derived in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
        return derived
    return default


def _build(
    category: ErrorCategory,
    message: str,
    *,
    status_code: Optional[int] = None,
    severity: ErrorSeverity | str | None = None,
    retryable: Optional[bool] = None,
    code: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> StructuredError:
    if severity is None:
        severity = factory_severity(category, status_code)
    return StructuredError(
        message,
        category=category,
        severity=severity,
        code=code,
        status_code=status_code,
        retryable=retryable,
        metadata=metadata,
    )


def create_network_error(message: str, **overrides: Any) -> StructuredError:
    return _build(ErrorCategory.NETWORK, message, **overrides)


def create_api_error(message: str, status_code: Optional[int] = None, **overrides: Any) -> StructuredError:
    """API error; a 4xx status other than 429 makes it non-retryable."""
    return _build(ErrorCategory.API, message, status_code=status_code, **overrides)


def create_database_error(message: str, **overrides: Any) -> StructuredError:
    return _build(ErrorCategory.DATABASE, message, **overrides)


def create_validation_error(message: str, **overrides: Any) -> StructuredError:
    return _build(ErrorCategory.VALIDATION, message, **overrides)


def create_authentication_error(message: str, **overrides: Any) -> StructuredError:
    return _build(ErrorCategory.AUTHENTICATION, message, **overrides)


def create_rate_limit_error(
    message: str,
    retry_after: Optional[float] = None,
    **overrides: Any,
) -> StructuredError:
    """Rate-limit error carrying the provider's ``retry_after`` hint."""
    metadata = dict(overrides.pop("metadata", None) or {})
    if retry_after is not None:
        metadata.setdefault("retry_after", retry_after)
    overrides.setdefault("code", RATE_LIMIT_CODE)
    return _build(ErrorCategory.RATE_LIMIT, message, metadata=metadata, **overrides)


def create_timeout_error(message: str, **overrides: Any) -> StructuredError:
    return _build(ErrorCategory.TIMEOUT, message, **overrides)


def create_internal_error(message: str, **overrides: Any) -> StructuredError:
    return _build(ErrorCategory.INTERNAL, message, **overrides)
