"""
Error taxonomy: categories, severities and the default rules tying them
together.

These rules are pure functions of ``(category, status_code)`` so every
combination can be checked by table-driven tests.
"""
from enum import Enum


class ErrorCategory(Enum):
    """Categories for classifying errors."""

    NETWORK = "network"
    API = "api"
    DATABASE = "database"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


CRITICAL_CATEGORIES = frozenset({ErrorCategory.INTERNAL, ErrorCategory.AUTHENTICATION})

MEDIUM_CATEGORIES = frozenset({ErrorCategory.API, ErrorCategory.DATABASE, ErrorCategory.TIMEOUT})

RETRYABLE_CATEGORIES = frozenset({
    ErrorCategory.NETWORK,
    ErrorCategory.API,
    ErrorCategory.DATABASE,
    ErrorCategory.RATE_LIMIT,
    ErrorCategory.TIMEOUT,
})

HTTP_TOO_MANY_REQUESTS = 429


def severity_for(category: ErrorCategory, status_code: int | None = None) -> ErrorSeverity:
    """Default severity for a category, optionally raised by a 5xx status."""
    if category in CRITICAL_CATEGORIES:
        return ErrorSeverity.CRITICAL
    if status_code is not None and status_code >= 500:
        return ErrorSeverity.HIGH
    if category in MEDIUM_CATEGORIES:
        return ErrorSeverity.MEDIUM
    return ErrorSeverity.LOW


def is_client_error(status_code: int | None) -> bool:
    """True for 4xx statuses other than 429."""
    return (
        status_code is not None
        and 400 <= status_code < 500
        and status_code != HTTP_TOO_MANY_REQUESTS
    )


def is_retryable_default(category: ErrorCategory, status_code: int | None = None) -> bool:
    """Default retryability; client errors are never retried."""
    if is_client_error(status_code):
        return False
    return category in RETRYABLE_CATEGORIES


def to_category(value: "ErrorCategory | str") -> ErrorCategory:
    """Accept either an ErrorCategory or its string value."""
    if isinstance(value, ErrorCategory):
        return value
    return ErrorCategory(str(value).lower())
