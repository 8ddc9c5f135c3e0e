"""Backoff strategies: how long to wait before the next attempt.

A strategy is a pure function of the 1-based index of the attempt that just
finished. ``delay_for(1)`` is the wait between attempt 1 and attempt 2.

Example:
    >>> from rebound.execution.backoff import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(base_delay=0.5, multiplier=2.0, max_delay=5.0)
    >>> [strategy(n) for n in range(1, 6)]
    [0.5, 1.0, 2.0, 4.0, 5.0]

Any plain callable ``int -> float`` can be used where a strategy is expected;
the classes here are the ready-made shapes.
"""

from __future__ import annotations

import math
import random
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

BackoffFn = Callable[[int], float]


def _check_attempt(attempt: int) -> None:
    if attempt < 1:
        raise ValueError(f"attempt index must be >= 1, got {attempt}")


class BackoffStrategy(ABC):
    """Abstract base for backoff strategies."""

    @abstractmethod
    def delay_for(self, attempt: int) -> float:
        """Calculate the wait after the given attempt.

        Args:
            attempt: 1-based index of the attempt that just finished

        Returns:
            Delay in seconds, never negative
        """
        ...

    def __call__(self, attempt: int) -> float:
        _check_attempt(attempt)
        return self.delay_for(attempt)


@dataclass(frozen=True)
class NoBackoff(BackoffStrategy):
    """Retry immediately."""

    def delay_for(self, attempt: int) -> float:
        return 0.0


@dataclass(frozen=True)
class ConstantBackoff(BackoffStrategy):
    """Constant delay between attempts."""

    delay: float = 1.0

    def __post_init__(self) -> None:
        if self.delay < 0:
            raise ValueError(f"delay must be non-negative, got {self.delay}")

    def delay_for(self, attempt: int) -> float:
        return self.delay


@dataclass(frozen=True)
class LinearBackoff(BackoffStrategy):
    """Linear backoff strategy.

    Delay = base_delay + increment * (attempt - 1), optionally capped.
    """

    base_delay: float = 1.0
    increment: float = 1.0
    max_delay: float | None = None

    def __post_init__(self) -> None:
        if self.base_delay < 0 or self.increment < 0:
            raise ValueError("base_delay and increment must be non-negative")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError(f"max_delay must be non-negative, got {self.max_delay}")

    def delay_for(self, attempt: int) -> float:
        delay = self.base_delay + self.increment * (attempt - 1)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


@dataclass(frozen=True)
class ExponentialBackoff(BackoffStrategy):
    """Exponential backoff with optional cap and jitter.

    Delay = min(base_delay * multiplier ** (attempt - 1), max_delay), then
    scaled by a factor drawn uniformly from ``[1 - jitter, 1 + jitter]``.
    Growth that overflows a float saturates at ``max_delay``, or at
    ``math.inf`` (wait until cancelled) when uncapped.

    Attributes:
        base_delay: Delay after the first attempt, in seconds
        multiplier: Growth factor per attempt
        max_delay: Cap applied before jitter (None = uncapped)
        jitter: Relative jitter range, 0.0 (deterministic) to 1.0
        rng: Randomness source used for jitter; pass a seeded
            ``random.Random`` for reproducible delays
    """

    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float | None = None
    jitter: float = 0.0
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be non-negative, got {self.base_delay}")
        if self.multiplier < 1.0:
            raise ValueError(f"multiplier must be >= 1.0, got {self.multiplier}")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError(f"max_delay must be non-negative, got {self.max_delay}")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError(f"jitter must be within [0.0, 1.0], got {self.jitter}")

    def delay_for(self, attempt: int) -> float:
        if self.base_delay == 0:
            delay = 0.0
        else:
            try:
                delay = self.base_delay * (self.multiplier ** (attempt - 1))
            except OverflowError:
                delay = math.inf
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)

        if self.jitter:
            delay *= self.rng.uniform(1.0 - self.jitter, 1.0 + self.jitter)
            delay = max(0.0, delay)

        return delay


def is_backoff(candidate: object) -> bool:
    """True if ``candidate`` can be used as a backoff strategy."""
    return isinstance(candidate, BackoffStrategy) or callable(candidate)


__all__ = [
    "BackoffFn",
    "BackoffStrategy",
    "NoBackoff",
    "ConstantBackoff",
    "LinearBackoff",
    "ExponentialBackoff",
    "is_backoff",
]
