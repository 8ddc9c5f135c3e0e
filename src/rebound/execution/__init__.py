"""
Retry execution: policies, backoff, bailout, cancellation and the engine.

Quick start::

    from rebound.execution import ExecutionEngine, PolicyBuilder, bailout
    from rebound.execution import ExponentialBackoff

    config = (
        PolicyBuilder()
        .with_operation(fetch_status)
        .with_bailout_when(bailout.is_in("ok", "forbidden"))
        .with_backoff(ExponentialBackoff(base_delay=0.5, max_delay=10.0))
        .at_most(5)
        .build()
    )
    result = ExecutionEngine().execute(config)

Module map::

    backoff.py        BackoffStrategy + NoBackoff / Constant / Linear / Exponential
    bailout.py        stop-condition predicates and combinators
    cancellation.py   CancellationToken (threading.Event backed)
    timeout.py        bounded invocation of one attempt (sync + async)
    models.py         Outcome, Attempt, ExecutionResult
    policy.py         PolicyConfig (frozen) + PolicyBuilder
    engine.py         ExecutionEngine, execute(), retrying()
"""

from rebound.execution import bailout
from rebound.execution.backoff import (
    BackoffFn,
    BackoffStrategy,
    ConstantBackoff,
    ExponentialBackoff,
    LinearBackoff,
    NoBackoff,
)
from rebound.execution.cancellation import CancellationToken, current_attempt_token
from rebound.execution.engine import ExecutionEngine, execute, execute_async, retrying
from rebound.execution.models import Attempt, ExecutionResult, Outcome
from rebound.execution.policy import PolicyBuilder, PolicyConfig
from rebound.execution.timeout import run_bounded, run_bounded_async

__all__ = [
    "bailout",
    # Backoff
    "BackoffFn",
    "BackoffStrategy",
    "NoBackoff",
    "ConstantBackoff",
    "LinearBackoff",
    "ExponentialBackoff",
    # Cancellation / timeout
    "CancellationToken",
    "current_attempt_token",
    "run_bounded",
    "run_bounded_async",
    # Records
    "Outcome",
    "Attempt",
    "ExecutionResult",
    # Policy
    "PolicyConfig",
    "PolicyBuilder",
    # Engine
    "ExecutionEngine",
    "execute",
    "execute_async",
    "retrying",
]
