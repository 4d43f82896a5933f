"""
Test assertions for Result values.

Assert methods with failure messages that show which state was found:

    from apiresult import ResultAssertions

    def test_load_user():
        result = load_user(42)
        user = ResultAssertions.assert_success(result)
        assert user.name == "Alice"

    def test_missing_user():
        result = load_user(-1)
        ResultAssertions.assert_error(result, LookupError)
        ResultAssertions.assert_error_message_contains(result, "not found")
"""

from __future__ import annotations

from typing import Any, TypeVar

from apiresult.result import Error, Result, Success

T = TypeVar("T")
E = TypeVar("E", bound=Exception)


def _describe(result: Result[Any]) -> str:
    match result:
        case Success(value):
            return f"Success({value!r})"
        case Error(exception):
            return f"Error({type(exception).__name__}: {str(exception)!r})"
    return "Loading"


class ResultAssertions:
    """Expressive test assertions for Result values."""

    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        """
        Assert the Result is a Success and return the value.

            value = ResultAssertions.assert_success(result)
        """
        context = f" — {message}" if message else ""
        assert result.is_success(), f"Expected Success but got {_describe(result)}{context}"
        return result.unwrap_or_throw()

    @staticmethod
    def assert_error(
        result: Result[Any],
        expected_type: type[E] = Exception,  # type: ignore[assignment]
        message: str = "",
    ) -> E:
        """
        Assert the Result is an Error, optionally of a given exception type, and return the exception.

            error = ResultAssertions.assert_error(result, LookupError)
        """
        context = f" — {message}" if message else ""
        assert result.is_error(), f"Expected Error but got {_describe(result)}{context}"
        exception = result.exception_or_null()
        assert isinstance(exception, expected_type), (
            f"Expected {expected_type.__name__} but got {_describe(result)}{context}"
        )
        return exception

    @staticmethod
    def assert_loading(result: Result[Any], message: str = "") -> None:
        """Assert the Result is Loading."""
        context = f" — {message}" if message else ""
        assert result.is_loading(), f"Expected Loading but got {_describe(result)}{context}"

    @staticmethod
    def assert_error_message_contains(result: Result[Any], substring: str) -> None:
        """Assert the Result is an Error whose message contains substring (case-insensitive)."""
        assert result.is_error(), f"Expected Error but got {_describe(result)}"
        error_message = result.message or ""
        assert substring.lower() in error_message.lower(), (
            f"Expected error message to contain {substring!r} but message was: {error_message!r}"
        )

    @staticmethod
    def assert_success_value(result: Result[T], expected_value: Any) -> None:
        """Assert the Result is a Success with the specific value."""
        value = ResultAssertions.assert_success(result)
        assert value == expected_value, f"Expected success value {expected_value!r} but got {value!r}"
