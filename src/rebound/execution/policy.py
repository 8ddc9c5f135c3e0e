"""Policy configuration: the immutable PolicyConfig and its PolicyBuilder.

A policy fully determines one execution: what to call, when to stop, how
long to wait in between and how many attempts are allowed. ``PolicyConfig``
is a frozen value that can be shared freely between threads and reused for
any number of executions. ``PolicyBuilder`` assembles one through chained
calls; every call returns a new builder, so partially configured builders
can be reused as templates.

Manifesto:
    The naive pattern - one mutable object with chained setters and an
    ``execute()`` at the end - lets callers run a half-configured policy.
    Here nothing runs until ``build()`` has validated every field at once:

    - **Atomic validation:** ``build()`` reports every missing and invalid
      field in one ``ConfigurationError``
    - **Explicit defaults:** an unset bailout predicate becomes ``never()``
      (stop only on exhaustion) and an unset backoff becomes ``NoBackoff()``
      (retry immediately); both are documented, neither is hidden
    - **No temporal coupling:** the engine only accepts a ``PolicyConfig``

Examples:
    >>> from rebound.execution.policy import PolicyBuilder
    >>> from rebound.execution.backoff import ExponentialBackoff
    >>> from rebound.execution import bailout
    >>>
    >>> config = (
    ...     PolicyBuilder()
    ...     .named("fetch-quote")
    ...     .start_with(None)
    ...     .with_operation(fetch_quote)
    ...     .with_bailout_when(bailout.satisfies(lambda r: r is not None))
    ...     .with_backoff(ExponentialBackoff(base_delay=0.2, max_delay=5.0))
    ...     .at_most(5)
    ...     .with_per_attempt_timeout(2.0)
    ...     .build()
    ... )

    Reporting every problem at once:

    >>> PolicyBuilder().at_most(0).build()
    Traceback (most recent call last):
    ...
    rebound.core.errors.ConfigurationError: Invalid policy configuration:
    operation: missing; max_attempts: invalid (must be >= 1, got 0)

Tags:
    policy, builder, configuration, immutability, rebound

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import dataclasses
import numbers
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from rebound.core.errors import ConfigIssue, ConfigurationError
from rebound.core.logging import get_logger
from rebound.execution import bailout as bailouts
from rebound.execution.backoff import BackoffFn, ExponentialBackoff, NoBackoff, is_backoff

if TYPE_CHECKING:
    from rebound.core.settings import ReboundSettings
    from rebound.execution.models import Attempt

T = TypeVar("T")

logger = get_logger(__name__)

RetryListener = Callable[["Attempt[Any]", float], None]


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING: Any = _Missing()


def _collect_issues(
    *,
    operation: Any,
    max_attempts: Any,
    bailout_predicate: Any,
    backoff: Any,
    per_attempt_timeout: Any,
    on_retry: Any,
    name: Any,
) -> list[ConfigIssue]:
    issues: list[ConfigIssue] = []

    if operation is MISSING or operation is None:
        issues.append(ConfigIssue("operation", "missing"))
    elif not callable(operation):
        issues.append(ConfigIssue("operation", "invalid", f"not callable: {operation!r}"))

    if max_attempts is MISSING or max_attempts is None:
        issues.append(ConfigIssue("max_attempts", "missing"))
    elif isinstance(max_attempts, bool) or not isinstance(max_attempts, int):
        issues.append(ConfigIssue("max_attempts", "invalid", f"must be an integer, got {max_attempts!r}"))
    elif max_attempts < 1:
        issues.append(ConfigIssue("max_attempts", "invalid", f"must be >= 1, got {max_attempts}"))

    if bailout_predicate is not MISSING and not callable(bailout_predicate):
        issues.append(ConfigIssue("bailout_predicate", "invalid", f"not callable: {bailout_predicate!r}"))

    if backoff is not MISSING and not is_backoff(backoff):
        issues.append(ConfigIssue("backoff", "invalid", f"not callable: {backoff!r}"))

    if per_attempt_timeout is not None:
        if isinstance(per_attempt_timeout, bool) or not isinstance(per_attempt_timeout, numbers.Real):
            issues.append(
                ConfigIssue("per_attempt_timeout", "invalid", f"must be a number, got {per_attempt_timeout!r}")
            )
        elif per_attempt_timeout <= 0:
            issues.append(
                ConfigIssue("per_attempt_timeout", "invalid", f"must be > 0, got {per_attempt_timeout}")
            )

    if on_retry is not None and not callable(on_retry):
        issues.append(ConfigIssue("on_retry", "invalid", f"not callable: {on_retry!r}"))

    if not isinstance(name, str) or not name:
        issues.append(ConfigIssue("name", "invalid", "must be a non-empty string"))

    return issues


@dataclass(frozen=True)
class PolicyConfig(Generic[T]):
    """Immutable bundle of everything one execution needs.

    Attributes:
        operation: Zero-argument callable invoked once per attempt
        max_attempts: Attempt budget, at least 1
        initial_value: Value reported when no attempt produced one
        bailout_predicate: Stop condition evaluated on each successful result
        backoff: ``attempt -> seconds`` wait after a non-final attempt
        per_attempt_timeout: Seconds an attempt may run (None = unbounded)
        treat_invocation_error_as_bailout: Stop with OPERATION_FAILED on the
            first attempt that raises instead of retrying
        bailout_means_success: Report a satisfied predicate as SUCCEEDED
            instead of the outcome-neutral BAILED_OUT
        on_retry: Listener called with the finished attempt and the upcoming
            delay before each backoff wait
        name: Label used in log events and errors
    """

    operation: Callable[[], T]
    max_attempts: int
    initial_value: T | None = None
    bailout_predicate: Callable[[T], bool] = field(default_factory=bailouts.never)
    backoff: BackoffFn = field(default_factory=NoBackoff)
    per_attempt_timeout: float | None = None
    treat_invocation_error_as_bailout: bool = False
    bailout_means_success: bool = False
    on_retry: RetryListener | None = None
    name: str = "policy"

    def __post_init__(self) -> None:
        issues = _collect_issues(
            operation=self.operation,
            max_attempts=self.max_attempts,
            bailout_predicate=self.bailout_predicate,
            backoff=self.backoff,
            per_attempt_timeout=self.per_attempt_timeout,
            on_retry=self.on_retry,
            name=self.name,
        )
        if issues:
            raise ConfigurationError(issues, policy=self.name if isinstance(self.name, str) else None)


@dataclass(frozen=True)
class PolicyBuilder(Generic[T]):
    """Persistent builder for :class:`PolicyConfig`.

    Each ``with_*`` call returns a new builder; the receiver is unchanged.
    """

    _initial_value: Any = None
    _operation: Any = MISSING
    _bailout_predicate: Any = MISSING
    _backoff: Any = MISSING
    _max_attempts: Any = MISSING
    _per_attempt_timeout: Any = None
    _treat_invocation_error_as_bailout: bool = False
    _bailout_means_success: bool = False
    _on_retry: Any = None
    _name: str = "policy"

    @classmethod
    def from_settings(cls, settings: ReboundSettings | None = None) -> PolicyBuilder[Any]:
        """Start from the attempt budget, backoff and timeout in settings."""
        from rebound.core.settings import get_settings

        settings = settings or get_settings()
        return cls(
            _max_attempts=settings.default_max_attempts,
            _backoff=ExponentialBackoff(
                base_delay=settings.default_base_delay,
                multiplier=settings.default_multiplier,
                max_delay=settings.default_max_delay,
                jitter=settings.default_jitter,
            ),
            _per_attempt_timeout=settings.default_attempt_timeout,
        )

    def _with(self, **changes: Any) -> PolicyBuilder[T]:
        return dataclasses.replace(self, **changes)

    def start_with(self, value: T) -> PolicyBuilder[T]:
        """Value reported as ``final_value`` if no attempt produces one."""
        return self._with(_initial_value=value)

    def with_operation(self, operation: Callable[[], T]) -> PolicyBuilder[T]:
        return self._with(_operation=operation)

    def with_bailout_when(self, predicate: Callable[[T], bool]) -> PolicyBuilder[T]:
        return self._with(_bailout_predicate=predicate)

    def with_backoff(self, backoff: BackoffFn) -> PolicyBuilder[T]:
        return self._with(_backoff=backoff)

    def at_most(self, max_attempts: int) -> PolicyBuilder[T]:
        return self._with(_max_attempts=max_attempts)

    def with_per_attempt_timeout(self, seconds: float | None) -> PolicyBuilder[T]:
        return self._with(_per_attempt_timeout=seconds)

    def treat_invocation_error_as_bailout(self, enabled: bool = True) -> PolicyBuilder[T]:
        return self._with(_treat_invocation_error_as_bailout=enabled)

    def bailout_means_success(self, enabled: bool = True) -> PolicyBuilder[T]:
        return self._with(_bailout_means_success=enabled)

    def on_retry(self, listener: RetryListener | None) -> PolicyBuilder[T]:
        return self._with(_on_retry=listener)

    def named(self, name: str) -> PolicyBuilder[T]:
        return self._with(_name=name)

    def build(self) -> PolicyConfig[T]:
        """Validate and freeze the configuration.

        Defaults: bailout predicate ``never()``, backoff ``NoBackoff()``,
        initial value ``None``, no per-attempt timeout.

        Raises:
            ConfigurationError: Listing every missing or invalid field
        """
        issues = _collect_issues(
            operation=self._operation,
            max_attempts=self._max_attempts,
            bailout_predicate=self._bailout_predicate,
            backoff=self._backoff,
            per_attempt_timeout=self._per_attempt_timeout,
            on_retry=self._on_retry,
            name=self._name,
        )
        if issues:
            logger.debug("policy.invalid", policy=self._name, fields=[i.field for i in issues])
            raise ConfigurationError(issues, policy=self._name if isinstance(self._name, str) else None)

        config: PolicyConfig[T] = PolicyConfig(
            operation=self._operation,
            max_attempts=self._max_attempts,
            initial_value=self._initial_value,
            bailout_predicate=(
                bailouts.never() if self._bailout_predicate is MISSING else self._bailout_predicate
            ),
            backoff=NoBackoff() if self._backoff is MISSING else self._backoff,
            per_attempt_timeout=self._per_attempt_timeout,
            treat_invocation_error_as_bailout=self._treat_invocation_error_as_bailout,
            bailout_means_success=self._bailout_means_success,
            on_retry=self._on_retry,
            name=self._name,
        )
        logger.debug(
            "policy.built",
            policy=config.name,
            max_attempts=config.max_attempts,
            per_attempt_timeout=config.per_attempt_timeout,
        )
        return config


__all__ = ["PolicyConfig", "PolicyBuilder", "RetryListener", "MISSING"]
