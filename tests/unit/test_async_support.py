"""
Tests for the async bridge.

Tests cover:
  - Stream adaptation (Loading → Success* → Error) and stream operators
  - run_resulting_async and cancellation propagation
  - with_concurrent_result: supervisor semantics, first failure by completion
    time, structured join, cancellation, context and blocking children
"""

from __future__ import annotations

import asyncio
import contextvars
import threading

import pytest
from structlog.testing import capture_logs

from apiresult import LOADING, Error, NotFinishedError, Result, ResultScope, Success
from apiresult.async_support import (
    as_result_stream,
    flow_of,
    map_result_stream,
    on_each_success,
    result_stream,
    run_resulting_async,
    values_or_null,
    values_or_throw,
    with_concurrent_result,
)
from apiresult.config import get_settings


class Boom(Exception):
    pass


class Fatal(BaseException):
    pass


request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="none")


async def collect(stream):
    return [item async for item in stream]


async def numbers(*items, fail_with: BaseException | None = None):
    for item in items:
        await asyncio.sleep(0)
        yield item
    if fail_with is not None:
        raise fail_with


# ═══════════════════════════════════════════════════════════════
# 1. Streams
# ═══════════════════════════════════════════════════════════════


class TestAsResultStream:
    @pytest.mark.asyncio
    async def test_emits_loading_then_successes(self):
        emitted = await collect(as_result_stream(numbers(1, 2)))
        assert emitted == [LOADING, Success(1), Success(2)]

    @pytest.mark.asyncio
    async def test_empty_upstream_emits_only_loading(self):
        assert await collect(as_result_stream(numbers())) == [LOADING]

    @pytest.mark.asyncio
    async def test_upstream_failure_becomes_last_emission(self):
        ex = Boom("upstream")
        emitted = await collect(as_result_stream(numbers(1, fail_with=ex)))
        assert emitted == [LOADING, Success(1), Error(ex)]

    @pytest.mark.asyncio
    async def test_upstream_cancellation_propagates(self):
        with pytest.raises(asyncio.CancelledError):
            await collect(as_result_stream(numbers(1, fail_with=asyncio.CancelledError())))

    @pytest.mark.asyncio
    async def test_early_exit_closes_upstream(self):
        closed = []

        async def upstream():
            try:
                for n in range(100):
                    yield n
            finally:
                closed.append(True)

        stream = as_result_stream(upstream())
        async for result in stream:
            if result.is_success():
                break
        await stream.aclose()
        assert closed == [True]


class TestResultStreamFactories:
    @pytest.mark.asyncio
    async def test_result_stream_success(self):
        async def fetch(user_id: int) -> str:
            return f"user-{user_id}"

        assert await collect(result_stream(fetch, 7)) == [LOADING, Success("user-7")]

    @pytest.mark.asyncio
    async def test_result_stream_failure(self):
        ex = Boom()

        async def fetch() -> str:
            raise ex

        assert await collect(result_stream(fetch)) == [LOADING, Error(ex)]

    @pytest.mark.asyncio
    async def test_flow_of_emits_returned_result(self):
        async def load() -> Result[int]:
            return LOADING

        assert await collect(flow_of(load)) == [LOADING, LOADING]


class TestStreamOperators:
    @pytest.mark.asyncio
    async def test_map_result_stream_with_async_transform(self):
        async def double(x: int) -> int:
            await asyncio.sleep(0)
            return x * 2

        emitted = await collect(map_result_stream(as_result_stream(numbers(1, 2)), double))
        assert emitted == [LOADING, Success(2), Success(4)]

    @pytest.mark.asyncio
    async def test_map_result_stream_with_sync_transform(self):
        emitted = await collect(map_result_stream(as_result_stream(numbers(3)), str))
        assert emitted == [LOADING, Success("3")]

    @pytest.mark.asyncio
    async def test_on_each_success(self):
        seen = []
        emitted = await collect(on_each_success(as_result_stream(numbers(1, 2)), seen.append))
        assert seen == [1, 2]
        assert emitted == [LOADING, Success(1), Success(2)]

    @pytest.mark.asyncio
    async def test_values_or_null(self):
        ex = Boom()
        emitted = await collect(values_or_null(as_result_stream(numbers(1, fail_with=ex))))
        assert emitted == [None, 1, None]

    @pytest.mark.asyncio
    async def test_values_or_throw_raises_on_loading(self):
        with pytest.raises(NotFinishedError):
            await collect(values_or_throw(as_result_stream(numbers(1))))

    @pytest.mark.asyncio
    async def test_values_or_throw_raises_wrapped_exception(self):
        async def finished():
            yield Success(1)
            yield Error(Boom("late"))

        received = []
        with pytest.raises(Boom, match="late"):
            async for value in values_or_throw(finished()):
                received.append(value)
        assert received == [1]


# ═══════════════════════════════════════════════════════════════
# 2. run_resulting_async
# ═══════════════════════════════════════════════════════════════


class TestRunResultingAsync:
    @pytest.mark.asyncio
    async def test_wraps_outcome(self):
        async def parse(raw: str) -> int:
            return int(raw)

        assert await run_resulting_async(parse, "5") == Success(5)
        assert (await run_resulting_async(parse, "x")).is_error()

    @pytest.mark.asyncio
    async def test_external_cancellation_propagates(self):
        async def slow() -> None:
            await asyncio.sleep(10)

        task = asyncio.create_task(run_resulting_async(slow))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert task.cancelled()


# ═══════════════════════════════════════════════════════════════
# 3. with_concurrent_result
# ═══════════════════════════════════════════════════════════════


class TestConcurrentResult:
    @pytest.mark.asyncio
    async def test_success_with_awaited_children(self):
        async def fetch(x: int) -> int:
            await asyncio.sleep(0.001)
            return x

        async def block(scope: ResultScope) -> int:
            left = scope.spawn(fetch(1))
            right = scope.spawn(fetch(2))
            return await left + await right

        assert await with_concurrent_result(block) == Success(3)

    @pytest.mark.asyncio
    async def test_first_failure_by_completion_time(self):
        """
        GIVEN two children failing after 10ms (slow) and 5ms (fast)
        WHEN neither is awaited by the block
        THEN the result holds the fast failure and both children have finished.
        """
        finished = []

        async def child(delay: float, exception: Exception) -> None:
            await asyncio.sleep(delay)
            finished.append(exception)
            raise exception

        slow, fast = Boom("slow"), Boom("fast")

        async def block(scope: ResultScope) -> str:
            scope.spawn(child(0.01, slow))
            scope.spawn(child(0.005, fast))
            return "done"

        result = await with_concurrent_result(block)
        assert result == Error(fast)
        assert finished == [fast, slow]

    @pytest.mark.asyncio
    async def test_failing_child_does_not_cancel_siblings(self):
        completed = []

        async def failing() -> None:
            raise Boom()

        async def steady() -> None:
            await asyncio.sleep(0.005)
            completed.append("steady")

        async def block(scope: ResultScope) -> None:
            scope.spawn(failing())
            scope.spawn(steady())

        result = await with_concurrent_result(block)
        assert isinstance(result.exception_or_null(), Boom)
        assert completed == ["steady"]

    @pytest.mark.asyncio
    async def test_block_failure_cancels_running_children(self):
        cancelled = []

        async def sleeper() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        async def block(scope: ResultScope) -> None:
            scope.spawn(sleeper())
            await asyncio.sleep(0)
            raise Boom("block")

        result = await with_concurrent_result(block)
        assert result.message == "block"
        assert cancelled == [True]

    @pytest.mark.asyncio
    async def test_block_awaiting_failed_child(self):
        ex = Boom("child")

        async def failing() -> int:
            raise ex

        async def block(scope: ResultScope) -> int:
            return await scope.spawn(failing())

        assert await with_concurrent_result(block) == Error(ex)

    @pytest.mark.asyncio
    async def test_children_spawned_by_children_are_joined(self):
        order = []

        async def grandchild() -> None:
            await asyncio.sleep(0.005)
            order.append("grandchild")

        async def child(scope: ResultScope) -> None:
            scope.spawn(grandchild())
            order.append("child")

        async def block(scope: ResultScope) -> str:
            scope.spawn(child(scope))
            return "ok"

        assert await with_concurrent_result(block) == Success("ok")
        assert order == ["child", "grandchild"]

    @pytest.mark.asyncio
    async def test_child_cancelled_on_its_own_is_not_a_failure(self):
        async def block(scope: ResultScope) -> str:
            task = scope.spawn(asyncio.sleep(10))
            await asyncio.sleep(0)
            task.cancel()
            return "ok"

        assert await with_concurrent_result(block) == Success("ok")

    @pytest.mark.asyncio
    async def test_external_cancellation_cancels_children(self):
        child_cancelled = asyncio.Event()

        async def child() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                child_cancelled.set()
                raise

        async def block(scope: ResultScope) -> str:
            scope.spawn(child())
            return "value"

        task = asyncio.create_task(with_concurrent_result(block))
        await asyncio.sleep(0.005)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert child_cancelled.is_set()

    @pytest.mark.asyncio
    async def test_unrecoverable_child_fault_propagates(self):
        async def child() -> None:
            raise Fatal()

        async def block(scope: ResultScope) -> int:
            scope.spawn(child())
            return 1

        with pytest.raises(Fatal):
            await with_concurrent_result(block)

    @pytest.mark.asyncio
    async def test_scope_tracks_active_children_and_first_error(self):
        ex = Boom("first")
        observed = {}

        async def failing() -> None:
            raise ex

        async def block(scope: ResultScope) -> None:
            gate = asyncio.Event()
            scope.spawn(gate.wait())
            failed = scope.spawn(failing())
            observed["before"] = (scope.active, scope.first_error)
            await asyncio.wait([failed])
            observed["after"] = (scope.active, scope.first_error)
            gate.set()

        result = await with_concurrent_result(block)

        assert observed["before"] == (2, None)
        assert observed["after"] == (1, ex)
        assert result == Error(ex)

    @pytest.mark.asyncio
    async def test_spawn_after_completion_is_rejected(self):
        scopes = []

        async def block(scope: ResultScope) -> None:
            scopes.append(scope)

        await with_concurrent_result(block)
        with pytest.raises(RuntimeError, match="already completed"):
            scopes[0].spawn(asyncio.sleep(0))

    @pytest.mark.asyncio
    async def test_runs_in_given_context(self):
        async def read() -> str:
            return request_id.get()

        async def block(scope: ResultScope) -> tuple[str, str]:
            child = scope.spawn(read())
            return request_id.get(), await child

        ctx = contextvars.copy_context()
        ctx.run(request_id.set, "req-7")

        assert await with_concurrent_result(block, context=ctx) == Success(("req-7", "req-7"))
        assert request_id.get() == "none"

    @pytest.mark.asyncio
    async def test_spawn_blocking_runs_off_loop_with_context(self):
        loop_thread = threading.get_ident()

        def blocking_read() -> tuple[str, bool]:
            return request_id.get(), threading.get_ident() != loop_thread

        async def block(scope: ResultScope) -> tuple[str, bool]:
            request_id.set("req-9")
            return await scope.spawn_blocking(blocking_read)

        result = await with_concurrent_result(block, context=contextvars.copy_context())
        assert result == Success(("req-9", True))

    @pytest.mark.asyncio
    async def test_spawn_blocking_failure_is_captured(self):
        def broken() -> None:
            raise Boom("in thread")

        async def block(scope: ResultScope) -> None:
            scope.spawn_blocking(broken)

        result = await with_concurrent_result(block)
        assert result.message == "in thread"


class TestConcurrentResultLogging:
    @pytest.mark.asyncio
    async def test_child_failures_are_logged(self):
        async def failing(message: str) -> None:
            raise Boom(message)

        async def block(scope: ResultScope) -> None:
            scope.spawn(failing("a"), name="first-child")

        with capture_logs() as logs:
            await with_concurrent_result(block)

        failures = [entry for entry in logs if entry["event"] == "concurrent_result.child_failed"]
        assert len(failures) == 1
        assert failures[0]["task"] == "first-child"
        assert failures[0]["first"] is True
        assert failures[0]["log_level"] == "warning"

    @pytest.mark.asyncio
    async def test_child_failure_logging_can_be_disabled(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("APIRESULT_LOG_CHILD_FAILURES", "false")
        get_settings.cache_clear()

        async def failing() -> None:
            raise Boom()

        async def block(scope: ResultScope) -> None:
            scope.spawn(failing())

        with capture_logs() as logs:
            result = await with_concurrent_result(block)

        assert result.is_error()
        assert not [entry for entry in logs if entry["event"] == "concurrent_result.child_failed"]
