"""Error pattern definitions used by the heuristic classifier."""
import errno
from dataclasses import dataclass, field

from ..taxonomy import ErrorCategory, ErrorSeverity


@dataclass(frozen=True)
class ErrorSignature:
    """Lower-cased text extracted from an exception for matching."""

    name: str
    message: str
    code: str = ""

    @classmethod
    def of(cls, error: BaseException) -> "ErrorSignature":
        code = getattr(error, "code", None)
        if not isinstance(code, str):
            code = ""
        error_number = getattr(error, "errno", None)
        if isinstance(error_number, int):
            code = code or errno.errorcode.get(error_number, "")
        return cls(
            name=type(error).__name__.lower(),
            message=str(error).lower(),
            code=code.lower(),
        )


@dataclass(frozen=True)
class ErrorPattern:
    """Pattern definition for matching errors.

    ``names`` are matched against the exception type name and error code,
    ``indicators`` against the message.
    """

    category: ErrorCategory
    names: tuple[str, ...] = ()
    indicators: tuple[str, ...] = ()
    exception_types: tuple[type, ...] = field(default=())

    def matches(self, error: BaseException, signature: ErrorSignature | None = None) -> bool:
        if self.exception_types and isinstance(error, self.exception_types):
            return True
        signature = signature or ErrorSignature.of(error)
        if any(name in signature.name or (signature.code and name in signature.code) for name in self.names):
            return True
        return any(indicator in signature.message for indicator in self.indicators)


__all__ = ["ErrorCategory", "ErrorPattern", "ErrorSeverity", "ErrorSignature"]
