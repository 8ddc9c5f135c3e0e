"""The retry execution engine.

``ExecutionEngine.execute(config, token)`` drives the attempt loop described
by a :class:`~rebound.execution.policy.PolicyConfig` and returns an
:class:`~rebound.execution.models.ExecutionResult`. The engine never raises
for per-attempt failures or for running out of attempts; both are reported
through the result.

Manifesto:
    Retrying is easy to write and hard to get right. Hand-rolled loops tend
    to sleep after the last attempt, swallow the reason they stopped, retry
    forever when a default is forgotten, and cannot be interrupted. The engine
    owns those details once:

    - **Bounded:** never more than ``max_attempts`` invocations
    - **Observable:** every attempt is recorded, with its error or value
    - **Interruptible:** backoff waits and in-flight attempts stop promptly
      when the cancellation token fires
    - **Stateless:** all state lives in one call, so a config and an engine
      can be shared by any number of concurrent executions

Architecture:
    ::

        execute(config, token)
          │
          ├─ for attempt in 1..max_attempts
          │     ├─ token cancelled? ──────────────────────► CANCELLED
          │     ├─ run_bounded(operation, timeout, token)
          │     │     ├─ value ─► predicate(value)? ──────► BAILED_OUT / SUCCEEDED
          │     │     ├─ raised ─► error-as-bailout? ─────► OPERATION_FAILED
          │     │     └─ aborted by cancel ───────────────► CANCELLED
          │     ├─ last attempt? ─────────────────────────► EXHAUSTED
          │     └─ delay = backoff(attempt); on_retry(...)
          │        token.wait(delay) cancelled? ──────────► CANCELLED
          ▼
        ExecutionResult(final_value, attempts_made, outcome, history)

Examples:
    >>> from rebound.execution import ExecutionEngine, PolicyBuilder, bailout
    >>> calls = iter(["retry", "retry", "ok"])
    >>> config = (
    ...     PolicyBuilder()
    ...     .with_operation(lambda: next(calls))
    ...     .with_bailout_when(bailout.equals("ok"))
    ...     .at_most(5)
    ...     .build()
    ... )
    >>> result = ExecutionEngine().execute(config)
    >>> result.outcome, result.attempts_made, result.final_value
    (<Outcome.BAILED_OUT: 'bailed_out'>, 3, 'ok')

    Decorator form:

    >>> @retrying(max_attempts=3, backoff=ConstantBackoff(0.5))
    ... def fetch(url):
    ...     return http_get(url)
    >>> fetch("https://example.com").outcome
    <Outcome.EXHAUSTED: 'exhausted'>

Guardrails:
    - Exceptions raised by the bailout predicate, the backoff strategy or the
      ``on_retry`` listener are bugs in the policy and propagate
    - ``KeyboardInterrupt`` and ``SystemExit`` raised by the operation
      propagate; only ``Exception`` subclasses are recorded as failures
    - A zero-second backoff retries immediately; nothing is clamped

Tags:
    retry, backoff, execution, cancellation, timeout, rebound

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import dataclasses
import functools
import inspect
import time
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from rebound.core.errors import AttemptTimeout, OperationInvocationFailure
from rebound.core.logging import LogContext, get_logger
from rebound.core.result import Err, Ok
from rebound.execution.backoff import BackoffFn
from rebound.execution.cancellation import CancellationToken
from rebound.execution.models import Attempt, ExecutionResult, Outcome
from rebound.execution.policy import PolicyBuilder, PolicyConfig
from rebound.execution.timeout import run_bounded, run_bounded_async

T = TypeVar("T")

logger = get_logger(__name__)


class _Run(Generic[T]):
    """Mutable state of a single execution. Never shared between calls."""

    def __init__(self, config: PolicyConfig[T], clock: Callable[[], float]):
        self.config = config
        self.clock = clock
        self.started = clock()
        self.current: Any = config.initial_value
        self.history: list[Attempt[T]] = []

    def record_success(self, index: int, value: T, started: float) -> Outcome | None:
        self.current = value
        verdict = bool(self.config.bailout_predicate(value))
        self.history.append(
            Attempt(index=index, result=Ok(value), elapsed=self.clock() - started, bailout=verdict)
        )
        if not verdict:
            return None

        logger.info("execution.bailout", attempt=index, max_attempts=self.config.max_attempts)
        return Outcome.SUCCEEDED if self.config.bailout_means_success else Outcome.BAILED_OUT

    def record_failure(
        self, index: int, error: Exception, started: float
    ) -> Outcome | None:
        if isinstance(error, AttemptTimeout):
            failure = error.with_context(policy=self.config.name, attempt=index)
        else:
            failure = OperationInvocationFailure.from_exception(
                error, attempt=index, policy=self.config.name
            )
        self.history.append(
            Attempt(index=index, result=Err(failure), elapsed=self.clock() - started)
        )
        logger.warning(
            "execution.attempt_failed",
            attempt=index,
            max_attempts=self.config.max_attempts,
            error=str(failure),
            error_type=type(error).__name__,
            category=failure.category.value,
        )

        if isinstance(error, AttemptTimeout) and error.cancelled:
            return Outcome.CANCELLED
        if self.config.treat_invocation_error_as_bailout:
            return Outcome.OPERATION_FAILED
        return None

    def next_delay(self, index: int) -> float:
        delay = self.config.backoff(index)
        logger.debug(
            "execution.retry_scheduled",
            attempt=index,
            next_attempt=index + 1,
            delay=delay,
        )
        if self.config.on_retry is not None:
            self.config.on_retry(self.history[-1], delay)
        return delay

    def finish(self, outcome: Outcome, cancel_reason: str | None = None) -> ExecutionResult[T]:
        result: ExecutionResult[T] = ExecutionResult(
            final_value=self.current,
            attempts_made=len(self.history),
            outcome=outcome,
            history=tuple(self.history),
            elapsed=self.clock() - self.started,
            policy_name=self.config.name,
            cancel_reason=cancel_reason if outcome is Outcome.CANCELLED else None,
        )
        if outcome is Outcome.EXHAUSTED:
            logger.warning("execution.exhausted", attempts_made=result.attempts_made)
        elif outcome is Outcome.CANCELLED:
            logger.info("execution.cancelled", attempts_made=result.attempts_made, reason=cancel_reason)
        logger.info(
            "execution.finished",
            outcome=outcome.value,
            attempts_made=result.attempts_made,
            elapsed=round(result.elapsed, 6),
        )
        return result


class ExecutionEngine:
    """Runs policies. Holds no per-execution state, so one engine serves all.

    Args:
        clock: Monotonic clock used to time attempts and executions
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic):
        self._clock = clock

    def execute(
        self,
        config: PolicyConfig[T],
        cancellation_token: CancellationToken | None = None,
    ) -> ExecutionResult[T]:
        """Run ``config`` until it bails out, exhausts or is cancelled.

        Args:
            config: Validated policy
            cancellation_token: Optional token; cancelling it interrupts the
                backoff wait and stops waiting for an in-flight attempt

        Returns:
            ExecutionResult describing every attempt and why the loop stopped
        """
        run: _Run[T] = _Run(config, self._clock)
        waiter = cancellation_token or CancellationToken()

        with LogContext(policy=config.name):
            logger.debug("execution.start", max_attempts=config.max_attempts)

            for index in range(1, config.max_attempts + 1):
                if waiter.cancelled:
                    return run.finish(Outcome.CANCELLED, waiter.reason)

                started = self._clock()
                try:
                    value = run_bounded(
                        config.operation,
                        timeout=config.per_attempt_timeout,
                        token=cancellation_token,
                        clock=self._clock,
                    )
                except Exception as e:
                    stop = run.record_failure(index, e, started)
                else:
                    stop = run.record_success(index, value, started)

                if stop is not None:
                    return run.finish(stop, waiter.reason)
                if index == config.max_attempts:
                    break

                if waiter.wait(run.next_delay(index)):
                    return run.finish(Outcome.CANCELLED, waiter.reason)

            return run.finish(Outcome.EXHAUSTED)

    async def execute_async(
        self,
        config: PolicyConfig[T],
        cancellation_token: CancellationToken | None = None,
    ) -> ExecutionResult[T]:
        """Async variant of :meth:`execute`.

        The operation may be a coroutine function or a plain callable. With a
        per-attempt timeout or a token, a plain callable runs in a worker
        thread so the deadline holds. Waits never block the event loop.
        """
        run: _Run[T] = _Run(config, self._clock)
        waiter = cancellation_token or CancellationToken()

        async with LogContext(policy=config.name):
            logger.debug("execution.start", max_attempts=config.max_attempts, mode="async")

            for index in range(1, config.max_attempts + 1):
                if waiter.cancelled:
                    return run.finish(Outcome.CANCELLED, waiter.reason)

                started = self._clock()
                try:
                    value = await run_bounded_async(
                        config.operation,
                        timeout=config.per_attempt_timeout,
                        token=cancellation_token,
                        clock=self._clock,
                    )
                except Exception as e:
                    stop = run.record_failure(index, e, started)
                else:
                    stop = run.record_success(index, value, started)

                if stop is not None:
                    return run.finish(stop, waiter.reason)
                if index == config.max_attempts:
                    break

                if await waiter.wait_async(run.next_delay(index)):
                    return run.finish(Outcome.CANCELLED, waiter.reason)

            return run.finish(Outcome.EXHAUSTED)


_default_engine = ExecutionEngine()


def execute(
    config: PolicyConfig[T],
    cancellation_token: CancellationToken | None = None,
) -> ExecutionResult[T]:
    """Run ``config`` on the shared default engine."""
    return _default_engine.execute(config, cancellation_token)


async def execute_async(
    config: PolicyConfig[T],
    cancellation_token: CancellationToken | None = None,
) -> ExecutionResult[T]:
    """Run ``config`` on the shared default engine, asynchronously."""
    return await _default_engine.execute_async(config, cancellation_token)


def retrying(
    *,
    max_attempts: int,
    backoff: BackoffFn | None = None,
    bailout_when: Callable[[Any], bool] | None = None,
    per_attempt_timeout: float | None = None,
    initial_value: Any = None,
    treat_invocation_error_as_bailout: bool = False,
    bailout_means_success: bool = False,
    name: str | None = None,
    engine: ExecutionEngine | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator factory: each call of the wrapped function runs as a policy.

    The decorated function returns the ``ExecutionResult`` instead of the raw
    value. The policy is validated when the decorator is applied, so a bad
    configuration fails at import time rather than on first call.

    Raises:
        ConfigurationError: If the arguments do not form a valid policy
    """
    runner = engine or _default_engine

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        builder: PolicyBuilder[Any] = (
            PolicyBuilder()
            .named(name or func.__qualname__)
            .start_with(initial_value)
            .with_operation(func)
            .at_most(max_attempts)
            .with_per_attempt_timeout(per_attempt_timeout)
            .treat_invocation_error_as_bailout(treat_invocation_error_as_bailout)
            .bailout_means_success(bailout_means_success)
        )
        if backoff is not None:
            builder = builder.with_backoff(backoff)
        if bailout_when is not None:
            builder = builder.with_bailout_when(bailout_when)
        template = builder.build()

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> ExecutionResult[Any]:
                config = dataclasses.replace(template, operation=functools.partial(func, *args, **kwargs))
                return await runner.execute_async(config)
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> ExecutionResult[Any]:
            config = dataclasses.replace(template, operation=functools.partial(func, *args, **kwargs))
            return runner.execute(config)
        return sync_wrapper

    return decorator


__all__ = ["ExecutionEngine", "execute", "execute_async", "retrying"]
