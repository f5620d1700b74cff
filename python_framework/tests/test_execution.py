"""Tests for ExecutionContext implementations."""

import asyncio
import logging

import pytest

from railway import (
    ErrorCode,
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
    Result,
)


async def _succeed(value):
    return Result.success(value)


async def _fail(code, message):
    return Result.failure(code, message)


class TestNoOpExecutionContext:
    async def test_passthrough(self):
        ctx = NoOpExecutionContext()
        result = await ctx.execute(lambda: _succeed(42))
        assert result.value() == 42

    async def test_passthrough_failure(self):
        ctx = NoOpExecutionContext()
        result = await ctx.execute(lambda: _fail(ErrorCode.FETCH_ERROR, "gone"))
        assert result.is_failure()

    def test_satisfies_protocol(self):
        assert isinstance(NoOpExecutionContext(), ExecutionContext)
        assert isinstance(LoggingExecutionContext(), ExecutionContext)


class TestLoggingExecutionContext:
    async def test_logs_success(self, caplog):
        ctx = LoggingExecutionContext(operation="BuildPass")
        with caplog.at_level(logging.INFO, logger="railway.execution"):
            result = await ctx.execute(lambda: _succeed("ok"))
        assert result.value() == "ok"
        assert "BuildPass" in caplog.text
        assert "SUCCESS" in caplog.text

    async def test_logs_failure(self, caplog):
        ctx = LoggingExecutionContext(operation="BuildPass")
        with caplog.at_level(logging.INFO, logger="railway.execution"):
            result = await ctx.execute(lambda: _fail(ErrorCode.FETCH_ERROR, "missing"))
        assert result.is_failure()
        assert "FAILURE (FETCH_ERROR)" in caplog.text

    async def test_catches_exception(self, caplog):
        async def failing():
            raise RuntimeError("exploded")

        ctx = LoggingExecutionContext(operation="Boom")
        with caplog.at_level(logging.ERROR, logger="railway.execution"):
            result = await ctx.execute(failing)
        assert result.is_failure()
        assert result.error().code == ErrorCode.TECHNICAL_ERROR
        assert "exploded" in result.error().message
        assert "Boom" in caplog.text

    async def test_cancellation_propagates(self):
        async def cancelled():
            raise asyncio.CancelledError

        ctx = LoggingExecutionContext(operation="Cancelled")
        with pytest.raises(asyncio.CancelledError):
            await ctx.execute(cancelled)

    async def test_wraps_inner_context(self):
        order: list[str] = []

        class TrackingContext:
            async def execute(self, computation):
                order.append("inner")
                return await computation()

        ctx = LoggingExecutionContext(inner=TrackingContext(), operation="Wrapped")
        result = await ctx.execute(lambda: _succeed(99))
        assert result.value() == 99
        assert order == ["inner"]

