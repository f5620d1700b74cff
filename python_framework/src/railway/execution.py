"""
Execution contexts — separate WHAT (pure logic) from HOW (side effects).

A pipeline describes what happens and returns Result[T]; a context decides
how it runs (timing, logging). Contexts are async because the pass build
suspends on network I/O:

    ctx = LoggingExecutionContext(operation="BuildPass")
    result = await ctx.execute(lambda: build_pass(raw, color))
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar, runtime_checkable

from railway.failure import ErrorCode
from railway.result import Result

T = TypeVar("T")
logger = logging.getLogger("railway.execution")

type Computation[T] = Callable[[], Awaitable[Result[T]]]


@runtime_checkable
class ExecutionContext(Protocol):
    """Anything with an async `execute(computation)` is a context."""

    async def execute(self, computation: Computation[T]) -> Result[T]: ...


class NoOpExecutionContext:
    """Runs the computation as-is."""

    async def execute(self, computation: Computation[T]) -> Result[T]:
        return await computation()


class LoggingExecutionContext:
    """
    Logs duration and outcome (SUCCESS or FAILURE with its code).

    An exception escaping the computation becomes a TECHNICAL_ERROR
    failure; cancellation propagates untouched.
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

    async def execute(self, computation: Computation[T]) -> Result[T]:
        logger.log(self._log_level, "[%s] Starting", self._operation)
        start = time.monotonic()
        try:
            result = await self._inner.execute(computation)
        except Exception as e:
            logger.error(
                "[%s] Raised after %.3fs: %s", self._operation, time.monotonic() - start, e
            )
            return Result.failure(ErrorCode.TECHNICAL_ERROR, f"{self._operation} raised: {e}", e)

        outcome = "SUCCESS" if result.is_success() else f"FAILURE ({result.error().code.value})"
        logger.log(
            self._log_level,
            "[%s] %s after %.3fs",
            self._operation,
            outcome,
            time.monotonic() - start,
        )
        return result
