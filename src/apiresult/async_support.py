"""
Async bridge — asyncio coroutines and async iterables expressed as Results.

Stream adaptation follows one emission pattern:

    subscribe ──→ Loading ──→ Success(v1) ──→ Success(v2) ──→ ... ──→ end
                                   │
                                   └── upstream raises ──→ Error(e) ──→ end

Cancellation is never turned into an emission; it propagates out of the
stream like any other asyncio cancellation.

with_concurrent_result runs a block that may spawn child tasks into a
ResultScope and folds everything into one Result:

    result = await with_concurrent_result(load_dashboard)

    async def load_dashboard(scope: ResultScope) -> Dashboard:
        profile = scope.spawn(fetch_profile(user_id))
        orders = scope.spawn(fetch_orders(user_id))
        scope.spawn_blocking(warm_cache, user_id)
        return Dashboard(await profile, await orders)

The scope is a supervisor: a failing child never cancels its siblings. The
first failure by completion time (block or child) becomes the Error; later
failures are logged and dropped. The builder returns only after every child
has finished.
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import threading
from concurrent.futures import Executor
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Coroutine,
    TypeVar,
)

import structlog

from apiresult.config import get_settings
from apiresult.exceptions import CANCELLATION_ERRORS, is_cancellation
from apiresult.result import LOADING, Error, Result, Success

T = TypeVar("T")
R = TypeVar("R")

log = structlog.get_logger()


# ──────────────────────── Async factories ────────────────────────


async def run_resulting_async(call: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> Result[T]:
    """
    Await call(*args, **kwargs) and wrap the outcome, like Result.of_callable.

        result = await run_resulting_async(client.get, "/users/42")
    """
    return await Result.of_async(call, *args, **kwargs)


# ──────────────────────── Stream adaptation ────────────────────────


async def as_result_stream(source: AsyncIterable[T]) -> AsyncIterator[Result[T]]:
    """
    Adapt an async iterable to the Loading → Success* → (Error) pattern.

    Only exceptions raised by the upstream are captured; the stream ends
    right after the Error it produces.
    """
    yield LOADING
    iterator = aiter(source)
    try:
        while True:
            try:
                value = await anext(iterator)
            except StopAsyncIteration:
                return
            except CANCELLATION_ERRORS:
                raise
            except Exception as e:
                yield Error(e)
                return
            yield Success(value)
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


async def result_stream(
    call: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any,
) -> AsyncIterator[Result[T]]:
    """Emit Loading, then the awaited outcome of call wrapped as a Result."""
    yield LOADING
    yield await Result.of_async(call, *args, **kwargs)


async def flow_of(
    result_call: Callable[..., Awaitable[Result[T]]],
    *args: Any,
    **kwargs: Any,
) -> AsyncIterator[Result[T]]:
    """Emit Loading, then the Result that result_call produces."""
    yield LOADING
    yield await result_call(*args, **kwargs)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def map_result_stream(
    stream: AsyncIterable[Result[T]],
    transform: Callable[[T], R | Awaitable[R]],
) -> AsyncIterator[Result[R]]:
    """Map every Success in a stream of results; transform may be sync or async."""
    async for result in stream:
        match result:
            case Success(value):
                yield Success(await _resolve(transform(value)))
            case _:
                yield result  # type: ignore[misc]


async def on_each_success(
    stream: AsyncIterable[Result[T]],
    block: Callable[[T], Any],
) -> AsyncIterator[Result[T]]:
    """Run block (sync or async) for every Success, re-emitting every result unchanged."""
    async for result in stream:
        match result:
            case Success(value):
                await _resolve(block(value))
        yield result


async def values_or_throw(stream: AsyncIterable[Result[T]]) -> AsyncIterator[T]:
    """
    Unwrap every result of a stream.

    Raises the wrapped exception at the first Error and NotFinishedError at
    the first Loading, so skip Loading upstream when it is expected.
    """
    async for result in stream:
        yield result.unwrap_or_throw()


async def values_or_null(stream: AsyncIterable[Result[T]]) -> AsyncIterator[T | None]:
    """Emit each success value, None for Error and Loading."""
    async for result in stream:
        yield result.or_null()


# ──────────────────────── Concurrent builder ────────────────────────


class ResultScope:
    """
    Supervisor scope handed to the block of with_concurrent_result.

    Children are independent failure domains: an exception in one child is
    recorded, never propagated to its siblings. Only the first failure by
    completion order is kept; the slot is lock-guarded because that order is
    a race.
    """

    __slots__ = (
        "_tasks",
        "_first_error",
        "_fatal",
        "_lock",
        "_closed",
        "_context",
        "_spawned",
        "_log_failures",
    )

    def __init__(self, context: contextvars.Context | None = None) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._first_error: Exception | None = None
        self._fatal: BaseException | None = None
        self._lock = threading.Lock()
        self._closed = False
        self._context = context
        self._spawned = 0
        self._log_failures = get_settings().log_child_failures

    @property
    def first_error(self) -> Exception | None:
        """The first failure captured so far, if any."""
        return self._first_error

    @property
    def active(self) -> int:
        """Number of children that have not finished yet."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, T], *, name: str | None = None) -> asyncio.Task[T]:
        """
        Start a child task in this scope.

        The returned task may be awaited inside the block; awaiting a failed
        child raises its exception there as usual.

        Raises:
            RuntimeError: If the scope has already completed
        """
        if self._closed:
            coro.close()
            raise RuntimeError("Cannot spawn into a ResultScope that has already completed")
        task = asyncio.get_running_loop().create_task(coro, name=name, context=self._context)
        self._tasks.add(task)
        self._spawned += 1
        task.add_done_callback(self._on_child_done)
        return task

    def spawn_blocking(
        self,
        fn: Callable[..., T],
        *args: Any,
        executor: Executor | None = None,
        name: str | None = None,
    ) -> asyncio.Task[T]:
        """
        Run a synchronous function on an executor as a child of this scope.

        executor=None uses the event loop's default thread pool. Cancelling
        the child stops the scope from waiting on it; a thread that already
        started runs to completion.
        """

        async def run_blocking() -> T:
            loop = asyncio.get_running_loop()
            call = functools.partial(contextvars.copy_context().run, fn, *args)
            return await loop.run_in_executor(executor, call)

        return self.spawn(run_blocking(), name=name)

    def _record(self, exception: Exception) -> bool:
        with self._lock:
            if self._first_error is not None:
                return False
            self._first_error = exception
            return True

    def _on_child_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exception = task.exception()
        if exception is None or is_cancellation(exception):
            return
        if not isinstance(exception, Exception):
            with self._lock:
                if self._fatal is None:
                    self._fatal = exception
            return
        first = self._record(exception)
        if self._log_failures:
            log.warning(
                "concurrent_result.child_failed",
                task=task.get_name(),
                error=repr(exception),
                first=first,
            )

    async def _join(self) -> None:
        """Wait for every child, including children spawned while waiting."""
        try:
            while self._tasks:
                await asyncio.wait(tuple(self._tasks))
        except asyncio.CancelledError:
            await self._cancel_children()
            raise

    async def _cancel_children(self) -> None:
        while self._tasks:
            pending = tuple(self._tasks)
            for task in pending:
                task.cancel()
            await asyncio.wait(pending)

    async def _run(self, block: Callable[[ResultScope], Awaitable[T]]) -> Result[T]:
        try:
            try:
                value = await block(self)
            except Exception as e:
                if is_cancellation(e):
                    await self._cancel_children()
                    raise
                self._record(e)
                await self._cancel_children()
                return self._outcome(None)
            except BaseException:
                await self._cancel_children()
                raise
            await self._join()
            return self._outcome(value)
        finally:
            self._closed = True

    def _outcome(self, value: Any) -> Result[Any]:
        if self._fatal is not None:
            raise self._fatal
        if self._first_error is not None:
            log.debug("concurrent_result.failed", children=self._spawned, error=repr(self._first_error))
            return Error(self._first_error)
        log.debug("concurrent_result.succeeded", children=self._spawned)
        return Success(value)


async def with_concurrent_result(
    block: Callable[[ResultScope], Awaitable[T]],
    *,
    context: contextvars.Context | None = None,
) -> Result[T]:
    """
    Run block in a supervisor scope and wrap the outcome.

    - Returns only after block and every child it (transitively) spawned finished.
    - Error(first failure by completion time) if block or any child raised an
      Exception; a failing child does not cancel its siblings, a failing block
      cancels the children still running.
    - External cancellation cancels and joins the children, then propagates.
    - Success(block's return value) otherwise.

    context, when given, is the contextvars.Context the block and its children
    run in.
    """
    scope = ResultScope(context)
    if context is None:
        return await scope._run(block)
    return await asyncio.get_running_loop().create_task(scope._run(block), context=context)
