"""
Result envelope for attempt outcomes.

Every attempt the engine makes ends in exactly one of two states: the
operation returned a value, or it failed. ``Ok[T]`` and ``Err[T]`` make that
explicit, so an ``Attempt`` never needs a "value or None plus error or None"
pair whose consistency has to be checked by hand.

Examples:
    >>> from rebound.core.result import Ok, Err
    >>> Ok(10).unwrap()
    10
    >>> Err(ValueError("oops")).unwrap_or(0)
    0
    >>> match attempt.result:
    ...     case Ok(value):
    ...         print(value)
    ...     case Err(error):
    ...         print("failed", error)
    42

Tags:
    result-pattern, error-handling, immutable, rebound

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Return the contained value."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """Failed result containing an exception."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the contained error.

        Raises:
            Exception: The wrapped error, always
        """
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def to_dict(self) -> dict[str, Any]:
        to_dict = getattr(self.error, "to_dict", None)
        if callable(to_dict):
            return {"ok": False, "error": to_dict()}
        return {
            "ok": False,
            "error": {"error_type": type(self.error).__name__, "message": str(self.error)},
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


__all__ = ["Ok", "Err", "Result"]
