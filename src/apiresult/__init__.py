"""
apiresult — three-state results (Success / Error / Loading) for Python.

Operations that may fail or still be in flight are expressed as values and
composed without try/except in the calling code.

    from apiresult import Result

    def parse_quantity(raw: str) -> Result[int]:
        return Result.of_callable(int, raw).ensure(lambda q: q > 0, "Quantity must be positive")

    result = (
        parse_quantity("3")
        .map(lambda qty: qty * unit_price)
        .recover(lambda e: Result.success(0), error_type=ValueError)
    )
"""

from apiresult.result import (
    LOADING,
    Error,
    Loading,
    Result,
    Success,
    as_result,
    resulting,
    run_resulting,
)
from apiresult.exceptions import (
    CANCELLATION_ERRORS,
    ConditionNotSatisfiedError,
    NotFinishedError,
)
from apiresult.async_support import (
    ResultScope,
    as_result_stream,
    flow_of,
    result_stream,
    run_resulting_async,
    with_concurrent_result,
)
from apiresult.execution import (
    ComposableExecutionContext,
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
    with_context,
)
from apiresult.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Error",
    "Loading",
    "LOADING",
    "as_result",
    "resulting",
    "run_resulting",
    "CANCELLATION_ERRORS",
    "ConditionNotSatisfiedError",
    "NotFinishedError",
    "ResultScope",
    "as_result_stream",
    "flow_of",
    "result_stream",
    "run_resulting_async",
    "with_concurrent_result",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ComposableExecutionContext",
    "with_context",
    "ResultAssertions",
]

__version__ = "1.0.0"
