"""
Rebound - retry/backoff execution engine.

Repeatedly invokes an unreliable operation until a bailout condition is met,
the attempt budget is exhausted, or the caller cancels, and reports what
happened as a structured result.

- rebound.core: errors, Ok/Err results, logging, settings
- rebound.execution: policies, backoff, bailout predicates, the engine
"""

__version__ = "0.1.0"

from rebound.core.errors import (
    AttemptTimeout,
    ConfigurationError,
    ExecutionCancelled,
    OperationInvocationFailure,
    ReboundError,
)
from rebound.execution import (
    Attempt,
    CancellationToken,
    ConstantBackoff,
    ExecutionEngine,
    ExecutionResult,
    ExponentialBackoff,
    LinearBackoff,
    NoBackoff,
    Outcome,
    PolicyBuilder,
    PolicyConfig,
    bailout,
    current_attempt_token,
    execute,
    execute_async,
    retrying,
)

__all__ = [
    "__version__",
    "ReboundError",
    "ConfigurationError",
    "OperationInvocationFailure",
    "AttemptTimeout",
    "ExecutionCancelled",
    "Attempt",
    "CancellationToken",
    "ConstantBackoff",
    "ExecutionEngine",
    "ExecutionResult",
    "ExponentialBackoff",
    "LinearBackoff",
    "NoBackoff",
    "Outcome",
    "PolicyBuilder",
    "PolicyConfig",
    "bailout",
    "current_attempt_token",
    "execute",
    "execute_async",
    "retrying",
]
