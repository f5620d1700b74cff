"""
Result monad — the core of Railway-Oriented Programming.

A Result[T] is either Success(value: T) or Failure(error: FailureDescription).
Stages return Result instead of raising; `.flat_map()` connects them and
short-circuits on the first failure:

    ┌────────┐ flat_map ┌──────────┐ flat_map ┌─────────┐ flat_map ┌──────────┐
    │ scheme │─────────▶│  base45  │─────────▶│ inflate │─────────▶│  COSE    │──▶ Result[T]
    └───┬────┘          └────┬─────┘          └────┬────┘          └────┬─────┘
        │ Failure            │ Failure             │ Failure            │ Failure
        └────────────────────┴─────────────────────┴────────────────────┴──────▶ Result[T]

Network stages chain with `.flat_map_async()`; independent lookups fan out
with `Result.gather()`. asyncio cancellation is never turned into a Failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from railway.failure import ErrorCode, FailureDescription

T = TypeVar("T")
U = TypeVar("U")


class Result(Generic[T]):
    """
    Railway-Oriented Programming Result monad.

        >>> Result.success(2).map(lambda dose: f"{dose}/2").value()
        '2/2'

        >>> Result.failure(ErrorCode.INVALID_SCHEME, "no prefix").map(str.upper).is_failure()
        True
    """

    # ──────────────────────── Construction ────────────────────────

    @staticmethod
    def success(value: T) -> Result[T]:
        return Success(value)

    @staticmethod
    def failure(
        code: ErrorCode,
        message: str,
        exception: BaseException | None = None,
        **details: Any,
    ) -> Result[T]:
        """
        Create a failed Result; extra keyword arguments land in `details`.

            Result.failure(ErrorCode.FETCH_ERROR, "HTTP 404", catalog="test-type")
        """
        return Failure(FailureDescription.create(code, message, exception, **details))

    @staticmethod
    def from_computation(
        computation: Callable[[], T],
        error_code: ErrorCode,
        error_message: str,
    ) -> Result[T]:
        """
        Run a stage that signals problems by raising, and capture the exception.

            Result.from_computation(lambda: base45.b45decode(body),
                                    ErrorCode.INVALID_ENCODING, "Not base45")
        """
        try:
            return Success(computation())
        except Exception as e:
            return Result.failure(error_code, f"{error_message}: {e}", e)

    # ──────────────────────── Inspection ────────────────────────

    def is_success(self) -> bool:
        return isinstance(self, Success)

    def is_failure(self) -> bool:
        return isinstance(self, Failure)

    def value(self) -> T:
        """The success value. Raises ValueError on the failure track."""
        match self:
            case Success(v):
                return v
            case Failure(err):
                raise ValueError(f"Cannot get value from a Failure: {err}")
        raise TypeError("unreachable")  # pragma: no cover

    def error(self) -> FailureDescription:
        """The failure description. Raises ValueError on the success track."""
        match self:
            case Failure(err):
                return err
            case Success(v):
                raise ValueError(f"Cannot get error from a Success: {v!r}")
        raise TypeError("unreachable")  # pragma: no cover

    # ──────────────────────── Chaining ────────────────────────

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        """Transform the success value. Failures pass through untouched."""
        match self:
            case Success(v):
                return Success(mapper(v))
            case Failure(err):
                return Failure(err)
        raise TypeError("unreachable")  # pragma: no cover

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        """
        Chain a Result-returning stage.

            strip_scheme(raw).flat_map(decode_base45).flat_map(inflate)
        """
        match self:
            case Success(v):
                return mapper(v)
            case Failure(err):
                return Failure(err)
        raise TypeError("unreachable")  # pragma: no cover

    async def flat_map_async(self, mapper: Callable[[T], Awaitable[Result[U]]]) -> Result[U]:
        """
        Chain an async Result-returning stage.

            archive = await document.flat_map_async(assembler.assemble)

        An exception escaping the stage becomes TECHNICAL_ERROR.
        """
        match self:
            case Success(v):
                try:
                    return await mapper(v)
                except Exception as e:
                    return Result.failure(
                        ErrorCode.TECHNICAL_ERROR, f"Async stage failed: {e}", e
                    )
            case Failure(err):
                return Failure(err)
        raise TypeError("unreachable")  # pragma: no cover

    def peek(self, action: Callable[[T], Any]) -> Result[T]:
        """Side effect (logging) on the success value."""
        if isinstance(self, Success):
            action(self._value)
        return self

    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]:
        """Side effect (logging) on the failure description."""
        if isinstance(self, Failure):
            action(self._error)
        return self

    # ──────────────────────── Collections ────────────────────────

    @staticmethod
    def all_of(results: Iterable[Result[T]]) -> Result[list[T]]:
        """Values in input order, or the first failure in that order."""
        values: list[T] = []
        for r in results:
            if isinstance(r, Failure):
                return Failure(r._error)
            values.append(r.value())
        return Success(values)

    @staticmethod
    async def gather(awaitables: Iterable[Awaitable[Result[T]]]) -> Result[list[T]]:
        """
        Await Result-returning lookups concurrently and collect them.

            catalogs = await Result.gather(resolver.resolve(n) for n in names)

        Every awaitable runs to completion; the first failure in input
        order is returned.
        """
        results = await asyncio.gather(*awaitables)
        return Result.all_of(results)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        match (self, other):
            case (Success(a), Success(b)):
                return a == b
            case (Failure(a), Failure(b)):
                return a.code == b.code and a.message == b.message
            case _:
                return False


@dataclass(frozen=True, slots=True, eq=False)
class Success(Result[T]):
    """The success track. Never wraps None."""

    _value: T

    def __init__(self, value: T) -> None:
        if value is None:
            raise TypeError("Success value must not be None")
        object.__setattr__(self, "_value", value)

    def __repr__(self) -> str:
        return f"Success({self._value!r})"


Success.__match_args__ = ("_value",)


@dataclass(frozen=True, slots=True, eq=False)
class Failure(Result[T]):
    """The failure track."""

    _error: FailureDescription

    def __init__(self, error: FailureDescription) -> None:
        object.__setattr__(self, "_error", error)

    def __repr__(self) -> str:
        return f"Failure({self._error})"


Failure.__match_args__ = ("_error",)
