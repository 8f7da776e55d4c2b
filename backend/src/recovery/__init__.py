"""
Recovery system: error taxonomy, classification, retries with exponential
backoff and the process-wide failure supervisor.
"""
from .classification import (
    ErrorClassifier,
    ErrorPattern,
    classify,
    is_retryable_default,
    severity_for,
    to_structured_error,
)
from .decorator import recoverable, with_retry, with_retry_sync
from .exceptions import StructuredError, SupervisorAlreadyInstalledError
from .factories import (
    create_api_error,
    create_authentication_error,
    create_database_error,
    create_internal_error,
    create_network_error,
    create_rate_limit_error,
    create_timeout_error,
    create_validation_error,
)
from .safe import safe_execute, safe_execute_sync
from .supervisor import FailureSupervisor
from .taxonomy import ErrorCategory, ErrorSeverity
from .types import RetryOptions


__all__ = [
    # Taxonomy
    'ErrorCategory',
    'ErrorSeverity',
    'StructuredError',

    # Classification
    'ErrorClassifier',
    'ErrorPattern',
    'classify',
    'is_retryable_default',
    'severity_for',
    'to_structured_error',

    # Factories
    'create_api_error',
    'create_authentication_error',
    'create_database_error',
    'create_internal_error',
    'create_network_error',
    'create_rate_limit_error',
    'create_timeout_error',
    'create_validation_error',

    # Retry engine
    'RetryOptions',
    'recoverable',
    'with_retry',
    'with_retry_sync',

    # Safety nets
    'FailureSupervisor',
    'SupervisorAlreadyInstalledError',
    'safe_execute',
    'safe_execute_sync',
]
