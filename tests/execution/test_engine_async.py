"""Tests for ExecutionEngine.execute_async."""

import asyncio
import threading
import time

import pytest

from rebound.execution import bailout
from rebound.execution.backoff import ConstantBackoff
from rebound.execution.cancellation import CancellationToken
from rebound.execution.engine import ExecutionEngine, execute_async
from rebound.execution.models import Outcome
from rebound.execution.policy import PolicyBuilder
from tests._support import AsyncScriptedOperation, FaultInjectedError, ScriptedOperation


def _builder(operation, max_attempts):
    return PolicyBuilder().named("async-policy").with_operation(operation).at_most(max_attempts)


class TestExecuteAsync:
    """Tests for the async attempt loop."""

    @pytest.mark.asyncio
    async def test_bails_out_with_coroutine_operation(self, recording_backoff):
        op = AsyncScriptedOperation("retry", FaultInjectedError(), "ok")
        config = (
            _builder(op, 5)
            .with_bailout_when(bailout.equals("ok"))
            .with_backoff(recording_backoff)
            .build()
        )

        result = await ExecutionEngine().execute_async(config)

        assert result.outcome is Outcome.BAILED_OUT
        assert result.attempts_made == 3
        assert result.final_value == "ok"
        assert recording_backoff.calls == [1, 2]
        assert result.history[1].succeeded is False

    @pytest.mark.asyncio
    async def test_plain_callable_operation(self):
        config = _builder(ScriptedOperation("x"), 2).start_with("init").build()

        result = await execute_async(config)

        assert result.outcome is Outcome.EXHAUSTED
        assert result.attempts_made == 2
        assert result.final_value == "x"

    @pytest.mark.asyncio
    async def test_blocking_plain_callable_honours_timeout(self):
        release = threading.Event()
        config = (
            _builder(lambda: release.wait(0.5) and "late", 1)
            .with_per_attempt_timeout(0.05)
            .build()
        )

        start = time.monotonic()
        try:
            result = await ExecutionEngine().execute_async(config)
        finally:
            release.set()

        assert time.monotonic() - start < 0.4
        assert result.outcome is Outcome.EXHAUSTED
        assert result.history[0].timed_out is True

    @pytest.mark.asyncio
    async def test_blocking_plain_callable_leaves_loop_free(self):
        release = threading.Event()
        ticks = []

        async def ticker():
            for _ in range(3):
                ticks.append(time.monotonic())
                await asyncio.sleep(0.01)

        config = _builder(lambda: release.wait(0.3), 1).with_per_attempt_timeout(1.0).build()
        try:
            _, result = await asyncio.gather(ticker(), ExecutionEngine().execute_async(config))
        finally:
            release.set()

        assert len(ticks) == 3
        assert ticks[-1] - ticks[0] < 0.25
        assert result.history[0].value is False

    @pytest.mark.asyncio
    async def test_error_as_bailout(self):
        op = AsyncScriptedOperation(FaultInjectedError(), "ok")
        config = _builder(op, 3).treat_invocation_error_as_bailout().build()

        result = await ExecutionEngine().execute_async(config)

        assert result.outcome is Outcome.OPERATION_FAILED
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_timeout_recorded_and_retried(self):
        calls = []

        async def sometimes_slow():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(10)
            return "ok"

        config = (
            _builder(sometimes_slow, 3)
            .with_per_attempt_timeout(0.05)
            .with_bailout_when(bailout.equals("ok"))
            .build()
        )

        result = await ExecutionEngine().execute_async(config)

        assert result.outcome is Outcome.BAILED_OUT
        assert result.attempts_made == 2
        assert result.history[0].timed_out is True

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_does_not_wait(self):
        token = CancellationToken()
        config = (
            _builder(AsyncScriptedOperation("retry"), 5)
            .with_backoff(ConstantBackoff(30.0))
            .on_retry(lambda attempt, delay: token.cancel("stop"))
            .build()
        )

        start = time.monotonic()
        result = await ExecutionEngine().execute_async(config, token)

        assert time.monotonic() - start < 5.0
        assert result.outcome is Outcome.CANCELLED
        assert result.attempts_made == 1
        assert result.cancel_reason == "stop"

    @pytest.mark.asyncio
    async def test_cancel_while_attempt_in_flight(self):
        token = CancellationToken()

        async def slow():
            await asyncio.sleep(10)

        asyncio.get_running_loop().call_later(0.05, token.cancel, "abort")
        result = await ExecutionEngine().execute_async(_builder(slow, 3).build(), token)

        assert result.outcome is Outcome.CANCELLED
        assert result.attempts_made == 1
        assert result.history[0].error.cancelled is True

    @pytest.mark.asyncio
    async def test_concurrent_executions_share_config(self):
        config = _builder(AsyncScriptedOperation("retry"), 3).build()
        engine = ExecutionEngine()

        results = await asyncio.gather(*(engine.execute_async(config) for _ in range(10)))

        assert all(r.attempts_made == 3 for r in results)
        assert all(r.outcome is Outcome.EXHAUSTED for r in results)
