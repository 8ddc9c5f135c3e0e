"""Bounded invocation of a single attempt.

Runs one call of the wrapped operation so that the engine can stop waiting
for it when the per-attempt timeout elapses or the caller cancels.

Architecture:
    ::

        Sync (run_bounded):
        ┌────────────────────────────────────────────────────────────┐
        │ no timeout, no token   → call inline on the caller thread   │
        │ otherwise              → single-worker ThreadPoolExecutor   │
        │   wait on an Event set by future-done OR token-cancel       │
        │   (bounded by the timeout); on expiry cancel the attempt    │
        │   token, give the worker a short grace, then abandon it     │
        └────────────────────────────────────────────────────────────┘

        Async (run_bounded_async):
        ┌────────────────────────────────────────────────────────────┐
        │ coroutine operations   → task on the running loop           │
        │ plain callables        → asyncio.to_thread (loop stays free)│
        │ asyncio.wait({attempt task, cancel waiter}, timeout=...)    │
        │ on expiry the attempt task and attempt token are cancelled  │
        └────────────────────────────────────────────────────────────┘

Guardrails:
    - Python threads cannot be killed. A bounded attempt runs with its own
      ``CancellationToken`` (see ``current_attempt_token()``) which is
      cancelled on expiry; an operation that checks it stops within the
      grace period, so it never overlaps the next attempt. An operation that
      ignores it keeps running in its worker thread until it returns, and
      may overlap later attempts.
    - The operation runs in a copy of the caller's context, so structlog
      context bound by the engine (``policy``) reaches its log events.
    - Exceptions raised by the operation propagate unchanged; wrapping them
      into ``OperationInvocationFailure`` is the engine's job.

Examples:
    >>> run_bounded(slow_call, timeout=2.0)
    Traceback (most recent call last):
    ...
    rebound.core.errors.AttemptTimeout: Attempt timed out after 2.0s (ran for 2.00s)

Tags:
    timeout, deadline, cancellation, rebound

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextvars
import inspect
import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

from rebound.core.errors import AttemptTimeout
from rebound.execution.cancellation import CancellationToken, _attempt_token

T = TypeVar("T")

# Seconds an expired sync attempt gets to notice its cancelled token.
ABANDON_GRACE = 0.1


def _expiry_reason(token: CancellationToken | None, timeout: float | None) -> str | None:
    if token is not None and token.cancelled:
        return token.reason
    return f"attempt timed out after {timeout}s"


def run_bounded(
    func: Callable[[], T],
    *,
    timeout: float | None = None,
    token: CancellationToken | None = None,
    clock: Callable[[], float] = time.monotonic,
    grace: float = ABANDON_GRACE,
) -> T:
    """Call ``func`` and wait at most ``timeout`` seconds for it.

    Args:
        func: Zero-argument callable to invoke
        timeout: Maximum wait in seconds (None = unbounded)
        token: Cancellation token; cancelling it stops the wait immediately
        clock: Monotonic clock used for the elapsed time in errors
        grace: Seconds to wait for ``func`` to return after its attempt
            token was cancelled

    Returns:
        Whatever ``func`` returned

    Raises:
        AttemptTimeout: If the deadline passed or the token was cancelled
            before ``func`` finished
        Exception: Anything ``func`` raised
    """
    if timeout is None and token is None:
        return func()

    if timeout is not None and timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    start = clock()
    attempt_token = CancellationToken()
    context = contextvars.copy_context()
    context.run(_attempt_token.set, attempt_token)

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=1, thread_name_prefix="rebound-attempt"
    )
    try:
        future = executor.submit(context.run, func)
        finished = threading.Event()
        future.add_done_callback(lambda _: finished.set())
        unregister = token.register(finished.set) if token is not None else None
        try:
            finished.wait(timeout)
        finally:
            if unregister is not None:
                unregister()

        if future.done():
            return future.result()

        elapsed = clock() - start
        cancelled = token is not None and token.cancelled
        future.cancel()
        attempt_token.cancel(_expiry_reason(token, timeout))
        concurrent.futures.wait([future], timeout=grace)
        raise AttemptTimeout(timeout, elapsed, cancelled=cancelled)
    finally:
        executor.shutdown(wait=False)


def _is_async_callable(func: Callable[..., Any]) -> bool:
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
        getattr(func, "__call__", None)
    )


async def _call_in_thread(func: Callable[[], Any]) -> Any:
    result = await asyncio.to_thread(func)
    if inspect.isawaitable(result):
        result = await result
    return result


async def run_bounded_async(
    func: Callable[[], Any],
    *,
    timeout: float | None = None,
    token: CancellationToken | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """Async counterpart of :func:`run_bounded`.

    ``func`` may be a coroutine function or a plain callable. When a timeout
    or token is given, a plain callable runs in a worker thread so that the
    deadline holds and the event loop is not blocked; otherwise it is called
    inline and its result is awaited if it is awaitable.
    """
    if timeout is not None and timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    if timeout is None and token is None:
        outcome = func()
        if inspect.isawaitable(outcome):
            return await outcome
        return outcome

    start = clock()
    attempt_token = CancellationToken()
    binding = _attempt_token.set(attempt_token)
    try:
        # The task copies the current context, attempt token included.
        task = asyncio.ensure_future(func() if _is_async_callable(func) else _call_in_thread(func))
    finally:
        _attempt_token.reset(binding)

    waiters: set[asyncio.Future[Any]] = {task}
    cancel_waiter: asyncio.Future[Any] | None = None
    unregister: Callable[[], None] | None = None
    if token is not None:
        loop = asyncio.get_running_loop()
        cancelled = asyncio.Event()
        unregister = token.register(lambda: loop.call_soon_threadsafe(cancelled.set))
        cancel_waiter = asyncio.ensure_future(cancelled.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except BaseException:
        task.cancel()
        attempt_token.cancel("attempt abandoned")
        raise
    finally:
        if unregister is not None:
            unregister()
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if task in done:
        return task.result()

    elapsed = clock() - start
    task.cancel()
    attempt_token.cancel(_expiry_reason(token, timeout))
    raise AttemptTimeout(
        timeout,
        elapsed,
        cancelled=token is not None and token.cancelled,
    )


__all__ = ["ABANDON_GRACE", "run_bounded", "run_bounded_async"]
