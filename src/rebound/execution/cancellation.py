"""Cooperative cancellation for retry executions.

A ``CancellationToken`` is the caller's handle for aborting an execution
from another thread: it interrupts the backoff wait promptly and stops
waiting on an in-flight attempt.

Example:
    >>> token = CancellationToken()
    >>> threading.Timer(2.0, token.cancel, args=("shutdown",)).start()
    >>> result = engine.execute(config, token)
    >>> result.outcome
    <Outcome.CANCELLED: 'cancelled'>

The token is backed by a ``threading.Event``; waiting on it is the same
``event.wait(timeout)`` a worker loop uses for its poll interval, so a
cancellation wakes the waiter immediately instead of after the full delay.

Each bounded attempt also gets its own token, reachable from inside the
operation through ``current_attempt_token()``. It is cancelled when the
attempt times out or the execution is cancelled; threads cannot be killed,
so this is how an operation learns that nobody is waiting for it any more.
"""

from __future__ import annotations

import asyncio
import contextvars
import math
import threading
from collections.abc import Callable

from rebound.core.errors import ExecutionCancelled

_attempt_token: contextvars.ContextVar[CancellationToken | None] = contextvars.ContextVar(
    "rebound_attempt_token", default=None
)


class CancellationToken:
    """Thread-safe, one-shot cancellation signal."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []
        self._links: list[Callable[[], None]] = []

    @classmethod
    def linked(cls, *tokens: CancellationToken) -> CancellationToken:
        """Create a token that is cancelled as soon as any of ``tokens`` is.

        The child holds a callback on every parent until it is cancelled or
        :meth:`detach` is called, so short-lived children of a long-lived
        token should be detached (or used as a context manager).
        """
        child = cls()
        links = [
            parent.register(lambda parent=parent: child.cancel(parent.reason))
            for parent in tokens
        ]
        with child._lock:
            child._links.extend(links)
        if child.cancelled:
            child.detach()
        return child

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Signal cancellation. Only the first call has an effect."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            callback()
        self.detach()

    def detach(self) -> None:
        """Drop the callbacks this token holds on the tokens it was linked to."""
        with self._lock:
            links, self._links = self._links, []
        for unregister in links:
            unregister()

    def cancel_after(self, seconds: float, reason: str | None = None) -> threading.Timer:
        """Cancel automatically after ``seconds``; returns the started timer."""
        timer = threading.Timer(seconds, self.cancel, args=(reason or f"deadline of {seconds}s",))
        timer.daemon = True
        timer.start()
        return timer

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation (immediately if already cancelled).

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)
        callback()
        return lambda: None

    def _unregister(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    def wait(self, seconds: float | None = None) -> bool:
        """Block for up to ``seconds`` (``math.inf`` or None waits until cancelled).

        Returns:
            True if the token was cancelled before the time ran out.
        """
        if seconds is not None and math.isinf(seconds):
            seconds = None
        if seconds is not None and seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    async def wait_async(self, seconds: float | None = None) -> bool:
        """Async counterpart of :meth:`wait`; does not block the event loop."""
        if self._event.is_set():
            return True
        if seconds is not None and math.isinf(seconds):
            seconds = None
        if seconds is not None and seconds <= 0:
            return False

        loop = asyncio.get_running_loop()
        woken = asyncio.Event()
        unregister = self.register(lambda: loop.call_soon_threadsafe(woken.set))
        try:
            await asyncio.wait_for(woken.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return self._event.is_set()
        finally:
            unregister()

    def raise_if_cancelled(self) -> None:
        """
        Raises:
            ExecutionCancelled: If the token has been cancelled
        """
        if self._event.is_set():
            raise ExecutionCancelled(self._reason)

    def __enter__(self) -> CancellationToken:
        return self

    def __exit__(self, *args: object) -> None:
        self.detach()

    def __repr__(self) -> str:
        state = f"cancelled, reason={self._reason!r}" if self.cancelled else "active"
        return f"CancellationToken({state})"


def current_attempt_token() -> CancellationToken:
    """Token of the attempt the calling code runs in.

    The engine cancels it when the attempt times out or the execution is
    cancelled, so a long-running operation can stop early::

        def sync_catalog():
            token = current_attempt_token()
            for page in pages():
                token.raise_if_cancelled()
                store(page)

    Outside a bounded attempt (no timeout and no cancellation token) this
    returns a fresh token that is never cancelled.
    """
    token = _attempt_token.get()
    return token if token is not None else CancellationToken()


__all__ = ["CancellationToken", "current_attempt_token"]
