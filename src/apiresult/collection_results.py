"""
Collection combinators — the scalar operators lifted over many results.

Two shapes are covered:

  1. An iterable of results (a list, a generator, anything iterable once):

         merge([r1, r2, r3])        # → Success([v1, v2, v3]) or the first failure
         accumulate([r1, r2, r3])   # → ([successful values], [exceptions])

  2. A single result holding a collection:

         error_if_empty(repo.find_all())
         map_values(repo.find_all(), User.display_name)

Aggregation is first-failure-wins: merge reports only the earliest failure in
iteration order and ignores the elements after it. Use accumulate when every
error matters.

Loading elements are never silently dropped from an aggregate: merge and
accumulate treat them as NotFinishedError failures.
"""

from __future__ import annotations

import itertools
from typing import Any, Callable, Iterable, Iterator, TypeVar

from apiresult.exceptions import ConditionNotSatisfiedError, NotFinishedError
from apiresult.result import Error, Result, Success

T = TypeVar("T")
R = TypeVar("R")


# ──────────────────────── Iterables of Results ────────────────────────


def merge(results: Iterable[Result[T]]) -> Result[list[T]]:
    """
    Merge all successes into one list, or return the first failure.

        merge([Result.success(1), Result.success(2)])   # → Success([1, 2])
        merge([Result.success(1), Result.error(e)])     # → Error(e)
    """
    return Result.all_of(results)


def merge_all(*results: Result[T]) -> Result[list[T]]:
    """Varargs form of merge."""
    return merge(results)


def values(results: Iterable[Result[T]]) -> list[T]:
    """Success values only, in order. Errors and Loading are dropped."""
    return [result.value for result in results if isinstance(result, Success)]


def filter_successes(results: Iterable[Result[T]]) -> list[Success[T]]:
    """Success entries only, in order."""
    return [result for result in results if isinstance(result, Success)]


def filter_errors(results: Iterable[Result[T]]) -> list[Error]:
    """Error entries only, in order."""
    return [result for result in results if isinstance(result, Error)]


def filter_not_null(results: Iterable[Result[T | None]]) -> list[Result[T]]:
    """Drop Success(None) entries; Errors and Loading are kept."""
    return [result for result in results if not (isinstance(result, Success) and result.value is None)]


def map_results(results: Iterable[Result[T]], transform: Callable[[T], R]) -> list[Result[R]]:
    """Apply Result.map to every element."""
    return [result.map(transform) for result in results]


def map_errors(
    results: Iterable[Result[T]],
    transform: Callable[[Exception], Exception],
) -> list[Result[T]]:
    """Apply Result.map_error to every element."""
    return [result.map_error(transform) for result in results]


def first_success(results: Iterable[Result[T]]) -> Result[T]:
    """
    The first Success in order, or Error(LookupError) when there is none.

    Iteration stops at the first Success, so a generator is consumed only
    up to that point.
    """
    for result in results:
        if isinstance(result, Success):
            return result
    return Error(LookupError("No Success found among results"))


def first_success_or_null(results: Iterable[Result[T]]) -> T | None:
    """The value of the first Success, or None."""
    return first_success(results).or_null()


def first_success_or_throw(results: Iterable[Result[T]]) -> T:
    """The value of the first Success; raises LookupError when there is none."""
    return first_success(results).unwrap_or_throw()


def accumulate(results: Iterable[Result[T]]) -> tuple[list[T], list[Exception]]:
    """
    Partition into (values, exceptions), keeping arrival order in each.

    Loading entries are reported as NotFinishedError.

        ok, failed = accumulate(fetch(url) for url in urls)
    """
    successes: list[T] = []
    exceptions: list[Exception] = []
    for result in results:
        match result:
            case Success(value):
                successes.append(value)
            case Error(exception):
                exceptions.append(exception)
            case _:
                exceptions.append(NotFinishedError())
    return successes, exceptions


# ──────────────────────── Results holding a collection ────────────────────────


def _is_iterator(payload: Iterable[Any]) -> bool:
    return iter(payload) is payload


def map_values(result: Result[Iterable[T]], transform: Callable[[T], R]) -> Result[Iterable[R]]:
    """
    Transform every element of the collection held by a Success.

    Iterator payloads stay lazy; any other iterable is materialized into a list.
    """

    def apply(payload: Iterable[T]) -> Iterable[R]:
        mapped = map(transform, payload)
        return mapped if _is_iterator(payload) else list(mapped)

    return result.map(apply)


def filter_values(result: Result[Iterable[T]], predicate: Callable[[T], bool]) -> Result[Iterable[T]]:
    """Filter the collection held by a Success. Laziness follows map_values."""

    def apply(payload: Iterable[T]) -> Iterable[T]:
        kept = filter(predicate, payload)
        return kept if _is_iterator(payload) else list(kept)

    return result.map(apply)


def _peek_empty(result: Result[Iterable[T]]) -> tuple[Result[Iterable[T]], bool]:
    """Check a Success payload for emptiness without losing elements of an iterator."""
    match result:
        case Success(payload) if _is_iterator(payload):
            try:
                head = next(payload)  # type: ignore[call-overload]
            except StopIteration:
                return Success(iter(())), True
            return Success(itertools.chain((head,), payload)), False
        case Success(payload):
            return result, not any(True for _ in payload)
    return result, False


def on_empty(result: Result[Iterable[T]], block: Callable[[], Any]) -> Result[Iterable[T]]:
    """Run block when a Success holds an empty collection."""
    checked, empty = _peek_empty(result)
    if empty:
        block()
    return checked


def error_if_empty(
    result: Result[Iterable[T]],
    exception: Callable[[], Exception] | None = None,
) -> Result[Iterable[T]]:
    """Make a Success holding an empty collection an Error."""
    checked, empty = _peek_empty(result)
    if not empty:
        return checked
    return Error(exception() if exception is not None else ConditionNotSatisfiedError("Collection was empty"))


def or_empty(result: Result[Iterable[T]], default_factory: Callable[[], Iterable[T]] = list) -> Iterable[T]:
    """The held collection, or a fresh empty one for Error and Loading."""
    match result:
        case Success(payload):
            return payload
    return default_factory()


def iter_successes(results: Iterable[Result[T]]) -> Iterator[T]:
    """Lazy counterpart of values for unbounded iterables."""
    return (result.value for result in results if isinstance(result, Success))
