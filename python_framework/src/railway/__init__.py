"""
Railway-Oriented Programming (ROP) helpers.

Explicit, composable error handling — pipeline stages return Result
instead of raising:

    from railway import Result, ErrorCode

    def strip_scheme(text: str) -> Result[str]:
        if not text.startswith("HC1:"):
            return Result.failure(ErrorCode.INVALID_SCHEME, "Missing HC1: prefix")
        return Result.success(text[4:])
"""

from railway.assertions import ResultAssertions
from railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
)
from railway.failure import (
    CAPTURE_ERRORS,
    DECODE_ERRORS,
    RETRYABLE_ERRORS,
    ErrorCode,
    FailureDescription,
)
from railway.result import Failure, Result, Success
from railway.result_failures import ResultFailures

__all__ = [
    "CAPTURE_ERRORS",
    "DECODE_ERRORS",
    "RETRYABLE_ERRORS",
    "ErrorCode",
    "ExecutionContext",
    "Failure",
    "FailureDescription",
    "LoggingExecutionContext",
    "NoOpExecutionContext",
    "Result",
    "ResultAssertions",
    "ResultFailures",
    "Success",
]

__version__ = "1.1.0"
