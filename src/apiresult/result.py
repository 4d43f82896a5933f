"""
Result — the three-state wrapper at the core of the library.

A Result[T] is exactly one of:

  - Success(value: T)        — a finished computation, value may be None
  - Error(exception)         — a finished computation that raised a recoverable Exception
  - Loading                  — a computation still in flight (singleton, no payload)

Every operator runs eagerly, right where it is called. Error and Loading
short-circuit before any user function is invoked, so a chain reads as the
success path only:

    ┌───────────┐   then    ┌───────────┐   chain   ┌──────────┐   fold
    │ get user  │──Success──│  pay      │──Success──│ persist  │──Success──→ value
    └─────┬─────┘           └─────┬─────┘           └─────┬────┘
          │ Error / Loading       │ Error / Loading       │ Error / Loading
          └───────────────────────┴───────────────────────┴──────────────→ on_error / on_loading

Two families of operators invoke user code:

  - map, flat_map, chain, recover, map_error, fold, on_*  — exceptions raised by
    the user function propagate to the caller untouched
  - try_map, try_chain, try_recover, try_recover_if, require_is — the user function
    runs through of_callable, so its exceptions become Error

Cancellation (asyncio.CancelledError and concurrent.futures.CancelledError) is
never wrapped by either family. BaseExceptions that are not Exceptions
(KeyboardInterrupt, SystemExit) are never caught.
"""

from __future__ import annotations

import functools
import traceback
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Generic,
    Iterable,
    Iterator,
    ParamSpec,
    TypeAlias,
    TypeVar,
)

from apiresult.exceptions import (
    CANCELLATION_ERRORS,
    ConditionNotSatisfiedError,
    NotFinishedError,
    is_cancellation,
)

if TYPE_CHECKING:
    from apiresult.execution import ExecutionContext

T = TypeVar("T")
U = TypeVar("U")
A = TypeVar("A")
B = TypeVar("B")
R = TypeVar("R")
P = ParamSpec("P")

ErrorTypes: TypeAlias = type[Exception] | tuple[type[Exception], ...]
ExceptionFactory: TypeAlias = Callable[[], Exception]


class Result(Generic[T]):
    """
    Closed union of Success, Error and Loading.

    Construct through the factories, never by subclassing:

        >>> Result.success(42).map(lambda x: x * 2).unwrap_or_throw()
        84
        >>> Result.of_callable(int, "oops").is_error()
        True
        >>> Result.loading().or_(0)
        0

    Destructure into (value, exception), exactly one of which is set for a
    finished result and neither for Loading:

        >>> value, error = Result.success("ok")
        >>> (value, error)
        ('ok', None)
    """

    __slots__ = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.__module__ != __name__:
            raise TypeError(
                f"Result is a closed union of Success, Error and Loading; "
                f"cannot subclass it as {cls.__qualname__}"
            )

    # ──────────────────────── Introspection ────────────────────────

    def is_success(self) -> bool:
        """Check if this Result is a Success."""
        return isinstance(self, Success)

    def is_error(self) -> bool:
        """Check if this Result is an Error."""
        return isinstance(self, Error)

    def is_loading(self) -> bool:
        """Check if this Result is Loading."""
        return self is LOADING

    def unwrap_or_throw(self) -> T:
        """
        Extract the success value.

        Raises the wrapped exception for Error and NotFinishedError for Loading.
        Prefer fold(), or_() or match/case when a failure is expected.
        """
        match self:
            case Success(value):
                return value
            case Error(exception):
                raise exception
        raise NotFinishedError()

    def or_null(self) -> T | None:
        """The success value, or None for Error and Loading."""
        match self:
            case Success(value):
                return value
        return None

    def exception_or_null(self) -> Exception | None:
        """The wrapped exception, or None for Success and Loading."""
        match self:
            case Error(exception):
                return exception
        return None

    @property
    def message(self) -> str | None:
        """str() of the wrapped exception, if any."""
        exception = self.exception_or_null()
        return None if exception is None else str(exception)

    @property
    def cause(self) -> BaseException | None:
        """The explicit cause (`raise ... from cause`) of the wrapped exception, if any."""
        exception = self.exception_or_null()
        return None if exception is None else exception.__cause__

    @property
    def stack_trace(self) -> str | None:
        """Formatted traceback of the wrapped exception, including its chain."""
        exception = self.exception_or_null()
        if exception is None:
            return None
        return "".join(traceback.format_exception(exception))

    # ──────────────────────── Transformations ────────────────────────

    def map(self, transform: Callable[[T], U]) -> Result[U]:
        """
        Transform the success value. Error and Loading pass through.

        The transform runs unguarded: if it raises, the exception reaches the
        caller. Use try_map to capture it as an Error instead.

            Result.success(5).map(lambda x: x * 2)   # → Success(10)
        """
        match self:
            case Success(value):
                return Success(transform(value))
        return self  # type: ignore[return-value]

    def try_map(self, transform: Callable[[T], U]) -> Result[U]:
        """
        Like map, but exceptions raised by the transform become an Error.

            Result.success("x").try_map(int)   # → Error(ValueError(...))
        """
        match self:
            case Success(value):
                return Result.of_callable(transform, value)
        return self  # type: ignore[return-value]

    def flat_map(self, another: Callable[[T], Result[U]]) -> Result[U]:
        """
        Continue with the Result returned by another. Short-circuits on Error and Loading.

        This is the operator that connects railway segments:

            def validate(x: int) -> Result[int]:
                if x > 0:
                    return Result.success(x)
                return Result.error(ValueError("must be positive"))

            Result.success(5).flat_map(validate)    # → Success(5)
            Result.success(-1).flat_map(validate)   # → Error(ValueError(...))
        """
        match self:
            case Success(value):
                return another(value)
        return self  # type: ignore[return-value]

    def then(self, another: Callable[[T], Result[U]]) -> Result[U]:
        """Alias for flat_map."""
        return self.flat_map(another)

    def chain(self, another: Callable[[T], Result[Any]]) -> Result[T]:
        """
        Require another Result to succeed before continuing with this one.

        The success value of another is discarded and the original value kept.
        If another produces Error or Loading, that state is propagated.

            Result.success(user).chain(verify_device)   # → Success(user) or verify_device's Error
        """
        match self:
            case Success(value):
                outcome = another(value)
                return self if outcome.is_success() else outcome
        return self

    def try_chain(self, block: Callable[[T], Any]) -> Result[T]:
        """chain for a plain function: its return value is ignored, its exceptions become Error."""
        match self:
            case Success(value):
                outcome = Result.of_callable(block, value)
                return self if outcome.is_success() else outcome
        return self

    def unwrap(self: Result[Result[U]]) -> Result[U]:
        """Flatten Result[Result[U]] into Result[U]."""
        match self:
            case Success(Result() as inner):
                return inner
            case Success(value):
                raise TypeError(f"unwrap() needs a Success holding a Result, got {value!r}")
        return self  # type: ignore[return-value]

    def unit(self) -> Result[None]:
        """Discard the success value."""
        return self.map(lambda _: None)

    # ──────────────────────── Error & Loading Transformations ────────────────────────

    def map_error(
        self,
        transform: Callable[[Exception], Exception],
        error_type: ErrorTypes = Exception,
    ) -> Result[T]:
        """
        Replace the wrapped exception. Success and Loading pass through.

        With error_type, only exceptions of that type are transformed:

            result.map_error(lambda e: RepositoryError(str(e)), error_type=OSError)
        """
        match self:
            case Error(exception) if isinstance(exception, error_type):
                return Error(transform(exception))
        return self

    def map_error_to_cause(self) -> Result[T]:
        """Replace the wrapped exception with its cause, when the cause is an Exception."""
        match self:
            case Error(exception) if isinstance(exception.__cause__, Exception):
                return Error(exception.__cause__)
        return self

    def map_loading(self, block: Callable[[], T]) -> Result[T]:
        """Turn Loading into Success(block()). The only way out of Loading besides errors."""
        if self.is_loading():
            return Success(block())
        return self

    def map_either(
        self,
        on_success: Callable[[T], U],
        on_error: Callable[[Exception], Exception],
    ) -> Result[U]:
        """map and map_error in one call. Loading passes through."""
        return self.map(on_success).map_error(on_error)

    def map_or_default(self, transform: Callable[[T], R], default: Callable[[Exception], R]) -> R:
        """map the success value, or compute a plain default from the error (NotFinishedError for Loading)."""
        return self.map(transform).or_else(default)

    def null_on_error(self) -> Result[T | None]:
        """Turn Error into Success(None)."""
        if self.is_error():
            return Success(None)
        return self

    # ──────────────────────── Recovery ────────────────────────

    def recover(
        self,
        another: Callable[[Exception], Result[T]],
        error_type: ErrorTypes = Exception,
    ) -> Result[T]:
        """
        Replace an Error with the Result produced by another.

        With error_type, other errors are left untouched. Loading is not affected.

            result.recover(lambda e: Result.success(cached_user), error_type=ConnectionError)
        """
        match self:
            case Error(exception) if isinstance(exception, error_type):
                return another(exception)
        return self

    def try_recover(
        self,
        block: Callable[[Exception], T],
        error_type: ErrorTypes = Exception,
    ) -> Result[T]:
        """Recover with a plain value; exceptions raised by block become the new Error."""
        match self:
            case Error(exception) if isinstance(exception, error_type):
                return Result.of_callable(block, exception)
        return self

    def recover_if(
        self,
        condition: Callable[[Exception], bool],
        block: Callable[[Exception], Result[T]],
    ) -> Result[T]:
        """Recover only when condition holds for the wrapped exception."""
        match self:
            case Error(exception) if condition(exception):
                return block(exception)
        return self

    def try_recover_if(
        self,
        condition: Callable[[Exception], bool],
        block: Callable[[Exception], T],
    ) -> Result[T]:
        """recover_if with a plain value, exceptions from block captured."""
        match self:
            case Error(exception) if condition(exception):
                return Result.of_callable(block, exception)
        return self

    # ──────────────────────── Validation ────────────────────────

    def error_if(
        self,
        predicate: Callable[[T], bool],
        exception: ExceptionFactory | None = None,
    ) -> Result[T]:
        """
        Make this an Error when predicate holds for the success value.

        The exception factory is invoked only when the Error is produced.
        Defaults to ConditionNotSatisfiedError.
        """
        match self:
            case Success(value) if predicate(value):
                return Error(exception() if exception is not None else ConditionNotSatisfiedError())
        return self

    def error_unless(
        self,
        predicate: Callable[[T], bool],
        exception: ExceptionFactory | None = None,
    ) -> Result[T]:
        """Make this an Error when predicate does NOT hold for the success value."""
        return self.error_if(lambda value: not predicate(value), exception)

    def error_on_loading(self, exception: ExceptionFactory | None = None) -> Result[T]:
        """Make Loading an Error (NotFinishedError by default)."""
        if self.is_loading():
            return Error(exception() if exception is not None else NotFinishedError())
        return self

    def error_on_null(self, exception: ExceptionFactory | None = None) -> Result[T]:
        """Make Success(None) an Error; other successes are known to be non-null afterwards."""
        match self:
            case Success(None):
                return Error(
                    exception() if exception is not None else ConditionNotSatisfiedError("Value was null")
                )
        return self

    def require_not_null(self) -> Result[T]:
        """Alias for error_on_null with the default exception."""
        return self.error_on_null()

    def ensure(self, predicate: Callable[[T], bool], message: str | None = None) -> Result[T]:
        """
        Validate the success value, failing with ConditionNotSatisfiedError(message).

            Result.success(order).ensure(lambda o: o.total > 0, "Order total must be positive")
        """
        return self.error_unless(predicate, lambda: ConditionNotSatisfiedError(message))

    def require(self, predicate: Callable[[T], bool] | None = None, message: str | None = None) -> T:
        """
        Throwing counterpart of ensure: validate, then unwrap_or_throw().

        Raises ConditionNotSatisfiedError when the predicate fails, the wrapped
        exception for Error and NotFinishedError for Loading.
        """
        checked = self if predicate is None else self.ensure(predicate, message)
        return checked.unwrap_or_throw()

    def require_is(
        self,
        expected_type: type[R] | tuple[type, ...],
        exception: Callable[[T], Exception] | None = None,
    ) -> Result[R]:
        """Narrow the success value to expected_type, or make it an Error."""

        def check(value: T) -> R:
            if isinstance(value, expected_type):
                return value  # type: ignore[return-value]
            if exception is not None:
                raise exception(value)
            expected = getattr(expected_type, "__name__", repr(expected_type))
            raise ConditionNotSatisfiedError(
                f"Result value is of type {type(value).__name__} but expected {expected}"
            )

        return self.try_map(check)

    def rethrow(self, error_type: ErrorTypes) -> Result[T]:
        """
        Raise the wrapped exception if it is an instance of error_type.

        The returned Result is guaranteed not to hold an exception of that type.
        """
        match self:
            case Error(exception) if isinstance(exception, error_type):
                raise exception
        return self

    # ──────────────────────── Terminal Operations ────────────────────────

    def fold(
        self,
        on_success: Callable[[T], R],
        on_error: Callable[[Exception], R],
        on_loading: Callable[[], R] | None = None,
    ) -> R:
        """
        Collapse the Result into a plain value.

        Without on_loading, Loading is handed to on_error as NotFinishedError.

            message = result.fold(
                on_success=lambda user: f"Hello {user.name}",
                on_error=lambda e: f"Error: {e}",
            )
        """
        match self:
            case Success(value):
                return on_success(value)
            case Error(exception):
                return on_error(exception)
        if on_loading is not None:
            return on_loading()
        return on_error(NotFinishedError())

    def or_(self, default: R) -> T | R:
        """The success value, or default for Error and Loading."""
        match self:
            case Success(value):
                return value
        return default

    def or_else(self, block: Callable[[Exception], R]) -> T | R:
        """The success value, or block(exception). Loading passes NotFinishedError."""
        match self:
            case Success(value):
                return value
            case Error(exception):
                return block(exception)
        return block(NotFinishedError())

    # ──────────────────────── Side Effects ────────────────────────

    def on_success(self, block: Callable[[T], Any]) -> Result[T]:
        """
        Execute a side effect on the success value without altering the Result.

            result.on_success(lambda user: log.info("user.loaded", user_id=user.id))
        """
        match self:
            case Success(value):
                block(value)
        return self

    def on_error(self, block: Callable[[Exception], Any], error_type: ErrorTypes = Exception) -> Result[T]:
        """Execute a side effect on the wrapped exception, optionally only for error_type."""
        match self:
            case Error(exception) if isinstance(exception, error_type):
                block(exception)
        return self

    def on_loading(self, block: Callable[[], Any]) -> Result[T]:
        """Execute a side effect while Loading."""
        if self.is_loading():
            block()
        return self

    # ──────────────────────── Execution Context ────────────────────────

    def within(self, execution_context: ExecutionContext) -> Result[T]:
        """
        Hand this Result to an execution context.

            result = (
                Result.success(cmd)
                .then(validate)
                .then(persist)
                .within(LoggingExecutionContext(operation="CreateOrder"))
            )
        """
        return execution_context.execute(lambda: self)

    # ──────────────────────── Static Factories ────────────────────────

    @staticmethod
    def success(value: T) -> Result[T]:
        """Create a Success wrapping the given value."""
        return Success(value)

    @staticmethod
    def error(exception: Exception) -> Result[Any]:
        """Create an Error wrapping the given exception."""
        return Error(exception)

    @staticmethod
    def loading() -> Result[Any]:
        """The Loading singleton."""
        return LOADING

    @staticmethod
    def empty() -> Result[None]:
        """Success(None) — a starting point for chains that begin without a value."""
        return Success(None)

    @staticmethod
    def of(value: Any) -> Result[Any]:
        """
        Classify a value: an Exception becomes Error, anything else Success.

        Loading passes through, so of() never produces Success(Loading). Other
        Results are wrapped like any value; unwrap() flattens them. A
        cancellation is re-raised.

            >>> Result.of(ValueError("bad")).is_error()
            True
            >>> Result.of(Result.loading()).is_loading()
            True
        """
        match value:
            case Loading():
                return value
            case _ if is_cancellation(value):
                raise value
            case Exception():
                return Error(value)
        return Success(value)

    @staticmethod
    def of_callable(call: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
        """
        Run a computation that may raise and wrap the outcome.

        Only Exceptions are captured. Cancellation and other BaseExceptions
        propagate unchanged.

        Before:
            try:
                user = repo.find(user_id)
            except LookupError as e:
                ...

        After:
            Result.of_callable(repo.find, user_id).recover(...)
        """
        try:
            return Success(call(*args, **kwargs))
        except CANCELLATION_ERRORS:
            raise
        except Exception as e:
            return Error(e)

    @staticmethod
    async def of_async(call: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> Result[T]:
        """Async of_callable: await call(*args, **kwargs), capturing Exceptions."""
        try:
            return Success(await call(*args, **kwargs))
        except CANCELLATION_ERRORS:
            raise
        except Exception as e:
            return Error(e)

    @staticmethod
    def combine(ra: Result[A], rb: Result[B], combiner: Callable[[A, B], R]) -> Result[R]:
        """
        Combine two Results. Both must succeed; the first non-success wins.

            order = Result.combine(customer_result, items_result, Order)
        """
        return ra.flat_map(lambda a: rb.map(lambda b: combiner(a, b)))

    @staticmethod
    def all_of(results: Iterable[Result[T]]) -> Result[list[T]]:
        """
        Collect Results into a Result of list, preserving order.

        The first Error encountered is returned as-is; a Loading element
        counts as a failure and yields Error(NotFinishedError()).
        """
        values: list[T] = []
        for result in results:
            match result:
                case Success(value):
                    values.append(value)
                case Error():
                    return result  # type: ignore[return-value]
                case _:
                    return Error(NotFinishedError())
        return Success(values)

    # ──────────────────────── Async Support ────────────────────────

    async def map_async(self, transform: Callable[[T], Awaitable[U]]) -> Result[U]:
        """
        Async map. Like map, exceptions from the transform propagate.

            result = await Result.success(user_id).map_async(fetch_profile)
        """
        match self:
            case Success(value):
                return Success(await transform(value))
        return self  # type: ignore[return-value]

    async def try_map_async(self, transform: Callable[[T], Awaitable[U]]) -> Result[U]:
        """Async try_map: exceptions from the transform become Error, cancellation propagates."""
        match self:
            case Success(value):
                return await Result.of_async(transform, value)
        return self  # type: ignore[return-value]

    async def flat_map_async(self, another: Callable[[T], Awaitable[Result[U]]]) -> Result[U]:
        """
        Async flat_map — chain an async Result-returning function.

            result = await Result.success(order).flat_map_async(persist_order)
        """
        match self:
            case Success(value):
                return await another(value)
        return self  # type: ignore[return-value]

    # ──────────────────────── Dunder methods ────────────────────────

    def __bool__(self) -> bool:
        """Allow truthiness check: `if result: ...` succeeds only on Success."""
        return self.is_success()

    def __iter__(self) -> Iterator[Any]:
        """Two-component destructuring: `value, exception = result`."""
        yield self.or_null()
        yield self.exception_or_null()


@dataclass(frozen=True, slots=True)
class Success(Result[T]):
    """The success track — wraps a value of type T, None included."""

    value: T

    def __repr__(self) -> str:
        return f"Success({self.value!r})"


@dataclass(frozen=True, slots=True)
class Error(Result[Any]):
    """The error track — wraps a recoverable Exception, never a cancellation."""

    exception: Exception

    def __post_init__(self) -> None:
        if not isinstance(self.exception, Exception):
            raise TypeError(f"Error must wrap an Exception, got {self.exception!r}")
        if is_cancellation(self.exception):
            raise TypeError("Error must not wrap a cancellation signal")

    def __repr__(self) -> str:
        return f"Error({self.exception!r})"


class Loading(Result[Any]):
    """The in-flight state. A singleton without payload: Loading() is LOADING."""

    __slots__ = ()

    _instance: Loading | None = None

    def __new__(cls) -> Loading:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __reduce__(self) -> tuple[type[Loading], tuple[()]]:
        return (Loading, ())

    def __repr__(self) -> str:
        return "Loading"


LOADING = Loading()


# ──────────────────────── Module-level helpers ────────────────────────


def as_result(value: Any) -> Result[Any]:
    """Alias for Result.of."""
    return Result.of(value)


def run_resulting(call: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
    """Alias for Result.of_callable."""
    return Result.of_callable(call, *args, **kwargs)


def resulting(fn: Callable[P, T]) -> Callable[P, Result[T]]:
    """
    Decorator: calls to fn return a Result instead of raising.

        @resulting
        def parse_port(raw: str) -> int:
            return int(raw)

        parse_port("80")    # → Success(80)
        parse_port("http")  # → Error(ValueError(...))
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T]:
        return Result.of_callable(fn, *args, **kwargs)

    return wrapper
