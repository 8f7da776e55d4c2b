"""Error classification system for recovery."""
from ..taxonomy import (
    ErrorCategory,
    ErrorSeverity,
    is_retryable_default,
    severity_for,
)
from .categories import ErrorPattern, ErrorSignature
from .classifier import (
    ErrorClassifier,
    classify,
    default_classifier,
    extract_status_code,
    to_structured_error,
)
from .patterns import DEFAULT_PATTERNS

__all__ = [
    "DEFAULT_PATTERNS",
    "ErrorCategory",
    "ErrorClassifier",
    "ErrorPattern",
    "ErrorSeverity",
    "ErrorSignature",
    "classify",
    "default_classifier",
    "extract_status_code",
    "is_retryable_default",
    "severity_for",
    "to_structured_error",
]
