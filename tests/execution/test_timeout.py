"""Tests for bounded attempt invocation."""

import asyncio
import threading
import time

import pytest

from rebound.core.errors import AttemptTimeout
from rebound.execution.cancellation import CancellationToken, current_attempt_token
from rebound.execution.timeout import run_bounded, run_bounded_async
from tests._support import FaultInjectedError, StallingOperation


@pytest.fixture
def stalling():
    op = StallingOperation(value="late", max_wait=2.0)
    yield op
    op.release()


class TestRunBounded:
    """Tests for the sync path."""

    def test_unbounded_call_runs_inline(self):
        """Without timeout or token the operation runs on the caller thread."""
        caller = threading.get_ident()
        assert run_bounded(threading.get_ident) == caller

    def test_success_within_timeout(self):
        assert run_bounded(lambda: 42, timeout=5.0) == 42

    def test_exception_propagation(self):
        def failing():
            raise FaultInjectedError("fetch")

        with pytest.raises(FaultInjectedError):
            run_bounded(failing, timeout=5.0)

    def test_timeout_raises_attempt_timeout(self, stalling):
        start = time.monotonic()
        with pytest.raises(AttemptTimeout) as exc_info:
            run_bounded(stalling, timeout=0.05)

        assert time.monotonic() - start < 1.5
        assert exc_info.value.timeout == 0.05
        assert exc_info.value.cancelled is False
        assert exc_info.value.retryable is True
        assert exc_info.value.elapsed >= 0.04

    def test_cancel_interrupts_in_flight_attempt(self, stalling):
        token = CancellationToken()

        def cancel_when_started():
            stalling.started.wait(2.0)
            token.cancel("operator abort")

        threading.Thread(target=cancel_when_started, daemon=True).start()
        with pytest.raises(AttemptTimeout) as exc_info:
            run_bounded(stalling, token=token)

        assert exc_info.value.cancelled is True
        assert exc_info.value.retryable is False
        assert "cancellation" in str(exc_info.value)

    def test_token_alone_still_returns_value(self):
        assert run_bounded(lambda: "done", token=CancellationToken()) == "done"

    def test_expired_attempt_token_is_cancelled(self):
        seen = []

        def cooperative():
            token = current_attempt_token()
            seen.append(token)
            token.wait(2.0)

        start = time.monotonic()
        with pytest.raises(AttemptTimeout):
            run_bounded(cooperative, timeout=0.05)

        assert time.monotonic() - start < 1.0
        assert seen[0].cancelled is True
        assert "timed out" in seen[0].reason

    def test_cancel_reason_reaches_attempt_token(self):
        token = CancellationToken()
        seen = []

        def cooperative():
            seen.append(current_attempt_token())
            token.cancel("shutdown")
            seen[0].wait(2.0)

        with pytest.raises(AttemptTimeout):
            run_bounded(cooperative, token=token)

        assert seen[0].reason == "shutdown"

    def test_attempt_token_outside_an_attempt(self):
        assert current_attempt_token().cancelled is False
        assert run_bounded(lambda: current_attempt_token().cancelled) is False

    @pytest.mark.parametrize("bad", [0, -1.0])
    def test_non_positive_timeout_rejected(self, bad):
        with pytest.raises(ValueError, match="positive"):
            run_bounded(lambda: None, timeout=bad)


class TestRunBoundedAsync:
    """Tests for the async path."""

    @pytest.mark.asyncio
    async def test_plain_callable(self):
        assert await run_bounded_async(lambda: 7, timeout=1.0) == 7

    @pytest.mark.asyncio
    async def test_coroutine_function(self):
        async def fetch():
            await asyncio.sleep(0)
            return "ok"

        assert await run_bounded_async(fetch) == "ok"
        assert await run_bounded_async(fetch, timeout=1.0) == "ok"

    @pytest.mark.asyncio
    async def test_exception_propagation(self):
        async def failing():
            raise FaultInjectedError("async fetch")

        with pytest.raises(FaultInjectedError):
            await run_bounded_async(failing, timeout=1.0)

    @pytest.mark.asyncio
    async def test_timeout_cancels_task(self):
        cancelled = []

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        with pytest.raises(AttemptTimeout) as exc_info:
            await run_bounded_async(slow, timeout=0.05)

        for _ in range(3):
            await asyncio.sleep(0)
        assert cancelled == [True]
        assert exc_info.value.cancelled is False

    @pytest.mark.asyncio
    async def test_token_cancel_aborts_attempt(self):
        token = CancellationToken()

        async def slow():
            await asyncio.sleep(10)

        asyncio.get_running_loop().call_later(0.05, token.cancel, "stop")
        with pytest.raises(AttemptTimeout) as exc_info:
            await run_bounded_async(slow, token=token)

        assert exc_info.value.cancelled is True

    @pytest.mark.asyncio
    async def test_blocking_plain_callable_times_out(self):
        release = threading.Event()

        start = time.monotonic()
        try:
            with pytest.raises(AttemptTimeout):
                await run_bounded_async(lambda: release.wait(0.5) or "late", timeout=0.05)
        finally:
            release.set()

        assert time.monotonic() - start < 0.4

    @pytest.mark.asyncio
    async def test_plain_callable_runs_off_the_loop_thread(self):
        caller = threading.get_ident()
        assert await run_bounded_async(threading.get_ident, timeout=1.0) != caller
        assert await run_bounded_async(threading.get_ident) == caller

    @pytest.mark.asyncio
    async def test_callable_returning_coroutine_is_awaited(self):
        async def fetch():
            return "ok"

        assert await run_bounded_async(lambda: fetch(), timeout=1.0) == "ok"

    @pytest.mark.asyncio
    async def test_expired_attempt_token_is_cancelled(self):
        seen = []

        async def slow():
            seen.append(current_attempt_token())
            await asyncio.sleep(10)

        with pytest.raises(AttemptTimeout):
            await run_bounded_async(slow, timeout=0.05)

        assert seen[0].cancelled is True
