"""Predefined error patterns for classification.

Order matters: the classifier returns the category of the first matching
pattern.
"""
from .categories import ErrorCategory, ErrorPattern

NETWORK_PATTERN = ErrorPattern(
    category=ErrorCategory.NETWORK,
    names=("network", "econnrefused", "etimedout"),
    exception_types=(ConnectionError,),
)

TIMEOUT_PATTERN = ErrorPattern(
    category=ErrorCategory.TIMEOUT,
    names=("timeout",),
    indicators=("timeout",),
    exception_types=(TimeoutError,),
)

RATE_LIMIT_PATTERN = ErrorPattern(
    category=ErrorCategory.RATE_LIMIT,
    indicators=("rate limit", "429", "too many requests"),
)

API_PATTERN = ErrorPattern(
    category=ErrorCategory.API,
    names=("api",),
    indicators=("api key", "api error"),
)

AUTHENTICATION_PATTERN = ErrorPattern(
    category=ErrorCategory.AUTHENTICATION,
    names=("auth", "unauthorized"),
    indicators=("401", "authentication"),
)

DATABASE_PATTERN = ErrorPattern(
    category=ErrorCategory.DATABASE,
    names=("database", "sql"),
    indicators=("database", "connection"),
)

VALIDATION_PATTERN = ErrorPattern(
    category=ErrorCategory.VALIDATION,
    names=("validation", "invalid"),
    indicators=("validation", "invalid"),
)

DEFAULT_PATTERNS: tuple[ErrorPattern, ...] = (
    NETWORK_PATTERN,
    TIMEOUT_PATTERN,
    RATE_LIMIT_PATTERN,
    API_PATTERN,
    AUTHENTICATION_PATTERN,
    DATABASE_PATTERN,
    VALIDATION_PATTERN,
)


def get_patterns_for_category(category: ErrorCategory) -> list[ErrorPattern]:
    """Get all default patterns for a specific category."""
    return [p for p in DEFAULT_PATTERNS if p.category == category]
