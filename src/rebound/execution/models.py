"""Execution records: Outcome, Attempt and ExecutionResult.

All three are immutable. An ``ExecutionResult`` is created once per call to
``ExecutionEngine.execute`` and handed to the caller; the attempts inside it
are the only way per-attempt failures reach the caller.

Invariants:
    - ``attempts_made == len(history)``
    - ``attempts_made <= max_attempts`` of the policy that produced it
    - ``final_value`` is the value of the last successful attempt, or the
      policy's initial value when no attempt produced one
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from rebound.core.errors import AttemptTimeout, ExecutionCancelled
from rebound.core.result import Err, Ok, Result

T = TypeVar("T")


class Outcome(str, Enum):
    """Why an execution stopped."""

    SUCCEEDED = "succeeded"  # bailout satisfied, policy treats bailout as success
    BAILED_OUT = "bailed_out"  # bailout satisfied, caller interprets
    EXHAUSTED = "exhausted"  # attempt budget used up
    OPERATION_FAILED = "operation_failed"  # invocation error treated as bailout
    CANCELLED = "cancelled"  # external cancellation


@dataclass(frozen=True, slots=True)
class Attempt(Generic[T]):
    """One invocation of the operation and what came of it.

    Attributes:
        index: 1-based attempt number
        result: ``Ok(value)`` or ``Err(OperationInvocationFailure)``
        elapsed: Wall time spent in the attempt, in seconds
        bailout: Verdict of the bailout predicate; None when the attempt
            failed and the predicate was not consulted
    """

    index: int
    result: Result[T]
    elapsed: float
    bailout: bool | None = None

    @property
    def succeeded(self) -> bool:
        return isinstance(self.result, Ok)

    @property
    def value(self) -> T | None:
        return self.result.value if isinstance(self.result, Ok) else None

    @property
    def error(self) -> Exception | None:
        return self.result.error if isinstance(self.result, Err) else None

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, AttemptTimeout)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "index": self.index,
            "elapsed": round(self.elapsed, 6),
            "bailout": self.bailout,
        }
        data.update(self.result.to_dict())
        return data


@dataclass(frozen=True, slots=True)
class ExecutionResult(Generic[T]):
    """Structured report of one execution.

    Attributes:
        final_value: Value returned by the last successful attempt; the
            policy's ``initial_value`` when no attempt succeeded. Failed
            attempts never change it, so after a success followed by
            failures it still holds that earlier success's value.
        attempts_made: Number of attempts actually started
        outcome: Why the loop stopped
        history: Every attempt, in order
        elapsed: Total wall time including backoff waits, in seconds
        policy_name: Name of the policy that was executed
        cancel_reason: Reason given to the cancellation token, if cancelled
    """

    final_value: T
    attempts_made: int
    outcome: Outcome
    history: tuple[Attempt[T], ...]
    elapsed: float = 0.0
    policy_name: str = "policy"
    cancel_reason: str | None = None

    @property
    def last_attempt(self) -> Attempt[T] | None:
        return self.history[-1] if self.history else None

    @property
    def last_error(self) -> Exception | None:
        """Error of the final attempt, if that attempt failed."""
        last = self.last_attempt
        return last.error if last is not None else None

    @property
    def failures(self) -> tuple[Attempt[T], ...]:
        return tuple(a for a in self.history if not a.succeeded)

    @property
    def is_cancelled(self) -> bool:
        return self.outcome is Outcome.CANCELLED

    def raise_if_cancelled(self) -> ExecutionResult[T]:
        """Turn a cancelled outcome into a hard failure.

        Raises:
            ExecutionCancelled: If the execution was cancelled
        """
        if self.outcome is Outcome.CANCELLED:
            raise ExecutionCancelled(self.cancel_reason, attempts_made=self.attempts_made)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy": self.policy_name,
            "outcome": self.outcome.value,
            "attempts_made": self.attempts_made,
            "final_value": self.final_value,
            "elapsed": round(self.elapsed, 6),
            "cancel_reason": self.cancel_reason,
            "history": [a.to_dict() for a in self.history],
        }


__all__ = ["Outcome", "Attempt", "ExecutionResult"]
