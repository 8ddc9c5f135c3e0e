"""
Core primitives shared by the execution layer: typed errors, the Ok/Err
result envelope, structlog logging and pydantic settings.
"""

from rebound.core.errors import (
    AttemptTimeout,
    ConfigIssue,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ExecutionCancelled,
    OperationInvocationFailure,
    ReboundError,
    categorize_error,
)
from rebound.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from rebound.core.result import Err, Ok, Result

__all__ = [
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "ReboundError",
    "ConfigIssue",
    "ConfigurationError",
    "OperationInvocationFailure",
    "AttemptTimeout",
    "ExecutionCancelled",
    "categorize_error",
    # Result
    "Ok",
    "Err",
    "Result",
    # Logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
