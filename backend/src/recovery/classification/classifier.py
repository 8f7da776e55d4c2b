"""Main error classifier implementation."""
import logging
from typing import Any, Iterable

from ..exceptions import StructuredError
from ..taxonomy import ErrorCategory
from .categories import ErrorPattern, ErrorSignature
from .patterns import DEFAULT_PATTERNS

logger = logging.getLogger(__name__)


class ErrorClassifier:
    """Maps arbitrary exceptions to an ErrorCategory.

    Patterns are checked in order and the first match wins. A
    StructuredError always keeps the category it was created with.
    """

    def __init__(
        self,
        patterns: Iterable[ErrorPattern] | None = None,
        extra_patterns: Iterable[ErrorPattern] | None = None,
    ):
        """Initialize classifier with patterns.

        Args:
            patterns: Replacement pattern table (defaults to DEFAULT_PATTERNS)
            extra_patterns: Patterns checked after the main table

        """
        self.patterns: list[ErrorPattern] = list(DEFAULT_PATTERNS if patterns is None else patterns)
        if extra_patterns:
            self.patterns.extend(extra_patterns)

    def classify(self, error: BaseException) -> ErrorCategory:
        if isinstance(error, StructuredError):
            return error.category

        signature = ErrorSignature.of(error)
        for pattern in self.patterns:
            if pattern.matches(error, signature):
                return pattern.category
        return ErrorCategory.UNKNOWN

    def add_pattern(self, pattern: ErrorPattern) -> None:
        """Append a pattern after the existing ones."""
        self.patterns.append(pattern)

    def to_structured(self, error: BaseException) -> StructuredError:
        """Wrap ``error`` as a StructuredError, chaining the original."""
        if isinstance(error, StructuredError):
            return error

        category = self.classify(error)
        status_code = extract_status_code(error)
        metadata: dict[str, Any] = {"error_type": type(error).__name__}
        code = getattr(error, "code", None)

        structured = StructuredError(
            str(error) or type(error).__name__,
            category=category,
            code=code if isinstance(code, str) else None,
            status_code=status_code,
            metadata=metadata,
        )
        structured.__cause__ = error
        logger.debug(
            f"Classified error '{type(error).__name__}' as {category.value} "
            f"(severity={structured.severity.value}, retryable={structured.retryable})"
        )
        return structured


def extract_status_code(error: BaseException) -> int | None:
    """Best-effort HTTP status code from common client exception shapes."""
    for attribute in ("status_code", "status"):
        value = getattr(error, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    if response is not None:
        for attribute in ("status_code", "status"):
            value = getattr(response, attribute, None)
            if isinstance(value, int) and not isinstance(value, bool):
                return value
    return None


default_classifier = ErrorClassifier()


def classify(error: BaseException) -> ErrorCategory:
    """Classify ``error`` with the default pattern table."""
    return default_classifier.classify(error)


def to_structured_error(error: BaseException) -> StructuredError:
    """Wrap ``error`` using the default classifier."""
    return default_classifier.to_structured(error)
