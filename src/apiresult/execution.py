"""
Execution contexts — separate WHAT a chain computes from HOW it is run.

A chain of combinators describes the computation and returns a Result. An
ExecutionContext wraps running it: timing, logging, anything that must happen
around the chain without being part of it.

    def place_order(cmd: PlaceOrder) -> Result[Order]:
        return (
            Result.success(cmd)
            .then(validate)
            .then(reserve_stock)
            .chain(charge_card)
        )

    # Run a computation inside a context
    result = LoggingExecutionContext(operation="PlaceOrder").execute(lambda: place_order(cmd))

    # Or decorate the function
    @with_context(LoggingExecutionContext(operation="PlaceOrder"))
    def handle(cmd: PlaceOrder) -> Result[Order]:
        return place_order(cmd)

Contexts never turn cancellation into a Result: it propagates to the caller.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, Protocol, TypeVar, runtime_checkable

import structlog

from apiresult.exceptions import CANCELLATION_ERRORS
from apiresult.result import Error, Result

T = TypeVar("T")

log = structlog.get_logger()


def state_of(result: Result[Any]) -> str:
    """SUCCESS, ERROR or LOADING."""
    if result.is_success():
        return "SUCCESS"
    if result.is_error():
        return "ERROR"
    return "LOADING"


# ──────────────────────── Protocol ────────────────────────


@runtime_checkable
class ExecutionContext(Protocol):
    """
    Anything with execute(computation) -> Result is an execution context.

    Structural typing: no inheritance needed.
    """

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        """Run a Result-returning computation within this context."""
        ...


# ──────────────────────── NoOp ────────────────────────


class NoOpExecutionContext:
    """
    Passthrough context — runs the computation as is.

    Handy in unit tests of code that takes a context as a dependency.
    """

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        return computation()


# ──────────────────────── Logging ────────────────────────


class LoggingExecutionContext:
    """
    Logs start, finish, duration and final state of a computation.

    Wraps another context. If the computation raises an Exception it is
    logged and returned as Error; cancellation is re-raised.

        ctx = LoggingExecutionContext(operation="SyncInventory", log_level=logging.DEBUG)
    """

    def __init__(
        self,
        inner: ExecutionContext | None = None,
        operation: str = "unknown",
        log_level: int = logging.INFO,
    ) -> None:
        self._inner = inner or NoOpExecutionContext()
        self._operation = operation
        self._log_level = log_level

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        log.log(self._log_level, "execution.started", operation=self._operation)
        start = time.monotonic()

        try:
            result = self._inner.execute(computation)
        except CANCELLATION_ERRORS:
            raise
        except Exception as e:
            log.error(
                "execution.failed",
                operation=self._operation,
                elapsed_ms=_elapsed_ms(start),
                error=repr(e),
            )
            return Error(e)

        log.log(
            self._log_level,
            "execution.completed",
            operation=self._operation,
            elapsed_ms=_elapsed_ms(start),
            state=state_of(result),
        )
        return result


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 3)


# ──────────────────────── Composable ────────────────────────


class ComposableExecutionContext:
    """
    Stack several contexts into one. The first one is the outermost:

        composed = ComposableExecutionContext(
            LoggingExecutionContext(operation="PlaceOrder"),
            audit_context,
        )
        # logging wraps audit wraps the computation
    """

    def __init__(self, *contexts: ExecutionContext) -> None:
        if not contexts:
            raise ValueError("At least one execution context is required")
        self._contexts = list(contexts)

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        wrapped = computation
        for ctx in reversed(self._contexts):
            wrapped = functools.partial(ctx.execute, wrapped)
        return wrapped()


# ──────────────────────── Decorator ────────────────────────


def with_context(ctx: ExecutionContext) -> Callable:
    """
    Run every call of the decorated Result-returning function inside ctx.

        @with_context(LoggingExecutionContext(operation="LoadUser"))
        def load_user(user_id: int) -> Result[User]:
            return Result.of_callable(repo.find, user_id)

    Equivalent to:
        def load_user(user_id):
            return ctx.execute(lambda: Result.of_callable(repo.find, user_id))
    """

    def decorator(fn: Callable[..., Result[T]]) -> Callable[..., Result[T]]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Result[T]:
            return ctx.execute(lambda: fn(*args, **kwargs))

        return wrapper

    return decorator
