"""
Exception taxonomy — the small set of errors the library itself produces.

Two library-defined kinds are synthesized by operators when no caller-supplied
exception factory is given:

  - NotFinishedError           — a Loading result was treated as terminal
  - ConditionNotSatisfiedError — a predicate-gating operator rejected the value

Both subclass ValueError: they describe a value in the wrong state, not a
broken program.

Cancellation is the one signal no operator may ever wrap. Python has two
cancellation types (asyncio's and concurrent.futures'), so every catching
operator checks against CANCELLATION_ERRORS before building an Error.
"""

from __future__ import annotations

import asyncio
import concurrent.futures

CANCELLATION_ERRORS: tuple[type[BaseException], ...] = (
    asyncio.CancelledError,
    concurrent.futures.CancelledError,
)


class NotFinishedError(ValueError):
    """
    Raised when a value is requested from a result that is still Loading.

    >>> str(NotFinishedError())
    'Result is still in Loading state'
    """

    default_message = "Result is still in Loading state"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.default_message if message is None else message)


class ConditionNotSatisfiedError(ValueError):
    """Synthesized by error_if / error_unless / error_on_null / ensure / require."""

    default_message = "Result condition was not satisfied"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.default_message if message is None else message)


def is_cancellation(exception: BaseException) -> bool:
    """Whether the exception is a cancellation signal that must propagate."""
    return isinstance(exception, CANCELLATION_ERRORS)
