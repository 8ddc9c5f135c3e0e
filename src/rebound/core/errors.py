"""
Structured error types for rebound.

Provides a small hierarchy of typed errors carrying the metadata the retry
engine and its callers need: a category for routing, a retryable flag, a
structured context naming the policy and attempt, and the chained cause.

Manifesto:
    - **Typed over generic:** Every failure the engine records is a
      ReboundError subclass, so callers can branch on type instead of
      parsing messages
    - **Batch-reported configuration:** ConfigurationError lists every
      missing or invalid field at once
    - **Expected outcomes are not exceptions:** running out of attempts is an
      Outcome, never a raised error
    - **Error chaining:** The exception raised by the wrapped operation is
      preserved as ``cause`` and ``__cause__``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                       ReboundError                           │
        │        (category, retryable, context, cause)                 │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ConfigurationError        OperationInvocationFailure        │
        │  (CONFIG, build time)      (OPERATION, retryable)            │
        │        │                          │                          │
        │  issues: ConfigIssue[]     AttemptTimeout                    │
        │                            (TIMEOUT, retryable)              │
        │                                                              │
        │  ExecutionCancelled                                          │
        │  (CANCELLED, terminal)                                       │
        └─────────────────────────────────────────────────────────────┘

Examples:
    Wrapping an operation failure:

    >>> try:
    ...     raise ConnectionError("reset by peer")
    ... except ConnectionError as e:
    ...     failure = OperationInvocationFailure.from_exception(e, attempt=2)
    >>> failure.retryable
    True
    >>> failure.context.attempt
    2

    Batch-reported configuration problems:

    >>> err = ConfigurationError([
    ...     ConfigIssue("operation", "missing"),
    ...     ConfigIssue("max_attempts", "invalid", "must be >= 1, got 0"),
    ... ])
    >>> err.fields
    ('operation', 'max_attempts')

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context, rebound

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing.

    Attributes:
        CONFIG: Invalid or incomplete policy configuration
        OPERATION: The wrapped operation raised
        TIMEOUT: An attempt exceeded its deadline
        CANCELLED: Execution was aborted by the caller
        INTERNAL: Bugs, unexpected state (the ReboundError default)
    """

    CONFIG = "CONFIG"
    OPERATION = "OPERATION"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields that are set end up in ``to_dict()``, so the same context
    type serves build-time and execution-time errors.

    Attributes:
        policy: Name of the policy being built or executed
        attempt: 1-based attempt index the error belongs to
        max_attempts: Attempt budget of the policy
        metadata: Additional key-value pairs
    """

    policy: str | None = None
    attempt: int | None = None
    max_attempts: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("policy", "attempt", "max_attempts"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ReboundError(Exception):
    """
    Base exception for all rebound errors.

    Subclasses set ``default_category`` and ``default_retryable`` so instances
    get sensible defaults without repeating them at every raise site.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ReboundError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ReboundError("boom").with_context(policy="fetch", attempt=3)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


@dataclass(frozen=True)
class ConfigIssue:
    """One missing or invalid policy field."""

    field: str
    problem: str  # "missing" | "invalid"
    detail: str = ""

    def __str__(self) -> str:
        text = f"{self.field}: {self.problem}"
        if self.detail:
            text += f" ({self.detail})"
        return text


class ConfigurationError(ReboundError):
    """
    Policy configuration is incomplete or invalid.

    Raised by ``PolicyBuilder.build()`` with every problem found, never by the
    engine. Never retryable - the configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False

    def __init__(self, issues: Iterable[ConfigIssue], *, policy: str | None = None):
        self.issues: tuple[ConfigIssue, ...] = tuple(issues)
        listed = "; ".join(str(issue) for issue in self.issues) or "no details"
        super().__init__(
            f"Invalid policy configuration: {listed}",
            context=ErrorContext(policy=policy),
        )

    @property
    def fields(self) -> tuple[str, ...]:
        """Names of the offending fields, in the order they were checked."""
        return tuple(issue.field for issue in self.issues)

    @property
    def missing(self) -> tuple[str, ...]:
        return tuple(issue.field for issue in self.issues if issue.problem == "missing")

    @property
    def invalid(self) -> tuple[str, ...]:
        return tuple(issue.field for issue in self.issues if issue.problem == "invalid")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["issues"] = [
            {"field": i.field, "problem": i.problem, "detail": i.detail} for i in self.issues
        ]
        return result


# =============================================================================
# PER-ATTEMPT FAILURES (recorded in history, never raised by execute)
# =============================================================================


class OperationInvocationFailure(ReboundError):
    """The wrapped operation raised instead of returning a value."""

    default_category = ErrorCategory.OPERATION
    default_retryable = True

    @classmethod
    def from_exception(
        cls,
        error: BaseException,
        *,
        attempt: int | None = None,
        policy: str | None = None,
    ) -> OperationInvocationFailure:
        return cls(
            f"Operation raised {type(error).__name__}: {error}",
            category=categorize_error(error),
            context=ErrorContext(policy=policy, attempt=attempt),
            cause=error,
        )


class AttemptTimeout(OperationInvocationFailure):
    """
    A single attempt did not finish in time.

    Either the per-attempt timeout elapsed, or the caller cancelled the
    execution while the attempt was in flight (``cancelled=True``). The
    abandoned worker thread may still be running.
    """

    default_category = ErrorCategory.TIMEOUT
    default_retryable = True

    def __init__(
        self,
        timeout: float | None,
        elapsed: float,
        *,
        cancelled: bool = False,
        attempt: int | None = None,
        policy: str | None = None,
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.cancelled = cancelled
        if cancelled:
            msg = f"Attempt aborted by cancellation after {elapsed:.2f}s"
        else:
            msg = f"Attempt timed out after {timeout}s (ran for {elapsed:.2f}s)"
        super().__init__(
            msg,
            retryable=not cancelled,
            context=ErrorContext(policy=policy, attempt=attempt),
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["timeout"] = self.timeout
        result["elapsed"] = round(self.elapsed, 6)
        result["cancelled"] = self.cancelled
        return result


# =============================================================================
# CANCELLATION
# =============================================================================


class ExecutionCancelled(ReboundError):
    """Execution was aborted by an external cancellation signal. Terminal."""

    default_category = ErrorCategory.CANCELLED
    default_retryable = False

    def __init__(self, reason: str | None = None, *, attempts_made: int | None = None):
        self.reason = reason
        self.attempts_made = attempts_made
        msg = "Execution cancelled"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: BaseException) -> ErrorCategory:
    """Category an operation failure is recorded under.

    A ``TimeoutError`` raised by the operation itself (a socket or client
    deadline) counts as TIMEOUT, like an expired per-attempt timeout.
    """
    if isinstance(error, ReboundError):
        return error.category
    if isinstance(error, TimeoutError):
        return ErrorCategory.TIMEOUT
    return ErrorCategory.OPERATION


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ReboundError",
    "ConfigIssue",
    "ConfigurationError",
    "OperationInvocationFailure",
    "AttemptTimeout",
    "ExecutionCancelled",
    "categorize_error",
]
