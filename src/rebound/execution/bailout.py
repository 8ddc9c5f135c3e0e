"""Bailout predicates: when further attempts are pointless.

A predicate looks at the value the latest successful attempt returned and
answers whether the loop should stop. It must not call the operation or keep
state of its own.

Example:
    >>> from rebound.execution import bailout
    >>> done = bailout.any_of(bailout.equals("ok"), bailout.is_in("forbidden", "gone"))
    >>> done("retry"), done("ok"), done("gone")
    (False, True, True)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")

BailoutPredicate = Callable[[T], bool]


def never() -> BailoutPredicate[Any]:
    """Never bail out; the loop only ends by exhaustion (the builder default)."""

    def _never(value: Any) -> bool:
        return False

    return _never


def always() -> BailoutPredicate[Any]:
    """Bail out after the first successful attempt."""

    def _always(value: Any) -> bool:
        return True

    return _always


def equals(expected: Any) -> BailoutPredicate[Any]:
    def _equals(value: Any) -> bool:
        return value == expected

    return _equals


def is_in(*values: Any) -> BailoutPredicate[Any]:
    """Bail out when the value is one of ``values``."""
    choices = tuple(values)

    def _is_in(value: Any) -> bool:
        return value in choices

    return _is_in


def satisfies(fn: Callable[[T], Any]) -> BailoutPredicate[T]:
    """Wrap a truthy-returning callable so it always yields a real bool."""

    def _satisfies(value: T) -> bool:
        return bool(fn(value))

    return _satisfies


def any_of(*predicates: BailoutPredicate[T]) -> BailoutPredicate[T]:
    def _any_of(value: T) -> bool:
        return any(p(value) for p in predicates)

    return _any_of


def all_of(*predicates: BailoutPredicate[T]) -> BailoutPredicate[T]:
    def _all_of(value: T) -> bool:
        return all(p(value) for p in predicates)

    return _all_of


def negate(predicate: BailoutPredicate[T]) -> BailoutPredicate[T]:
    def _negate(value: T) -> bool:
        return not predicate(value)

    return _negate


__all__ = [
    "BailoutPredicate",
    "never",
    "always",
    "equals",
    "is_in",
    "satisfies",
    "any_of",
    "all_of",
    "negate",
]
