"""
Test assertions for Result values.

    def test_bad_prefix():
        result = decoder.decode(RawCertificateText("XX1:..."), clock)
        error = ResultAssertions.assert_failure(result, ErrorCode.INVALID_SCHEME)

    def test_missing_catalog():
        ResultAssertions.assert_failure_detail(result, "catalog", "test-type")

Assertion messages name the failure as "CODE: message" so a red test
shows which stage broke without a debugger.
"""

from __future__ import annotations

from typing import Any, TypeVar

from railway.failure import ErrorCode, FailureDescription
from railway.result import Result

T = TypeVar("T")


def _suffix(message: str) -> str:
    return f" ({message})" if message else ""


class ResultAssertions:
    """Expressive test assertions for Result values."""

    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        """Assert the success track and hand back its value."""
        if result.is_failure():
            raise AssertionError(
                f"Expected Success but got Failure({result.error()}){_suffix(message)}"
            )
        return result.value()

    @staticmethod
    def assert_failure(
        result: Result[T],
        expected_code: ErrorCode | None = None,
        message: str = "",
    ) -> FailureDescription:
        """Assert the failure track, optionally with `expected_code`; return the description."""
        if result.is_success():
            raise AssertionError(
                f"Expected Failure but got Success({result.value()!r}){_suffix(message)}"
            )
        error = result.error()
        if expected_code is not None and error.code is not expected_code:
            raise AssertionError(
                f"Expected error code {expected_code.value} but got {error}{_suffix(message)}"
            )
        return error

    @staticmethod
    def assert_failure_message_contains(result: Result[T], substring: str) -> None:
        """Case-insensitive substring check on the failure message."""
        error = ResultAssertions.assert_failure(result)
        if substring.lower() not in error.message.lower():
            raise AssertionError(
                f"Expected failure message to contain {substring!r}, got {error.message!r}"
            )

    @staticmethod
    def assert_failure_detail(result: Result[T], key: str, expected: Any) -> None:
        """Assert the failure carries `details[key] == expected`."""
        details = dict(ResultAssertions.assert_failure(result).details)
        if key not in details:
            raise AssertionError(f"Expected failure detail {key!r}, details were {details!r}")
        if details[key] != expected:
            raise AssertionError(f"Expected detail {key}={expected!r} but got {details[key]!r}")

    @staticmethod
    def assert_success_value(result: Result[T], expected_value: Any) -> None:
        value = ResultAssertions.assert_success(result)
        if value != expected_value:
            raise AssertionError(f"Expected success value {expected_value!r}, got {value!r}")
