"""
Convenience factories for the failures this project raises most often.

    from railway.result_failures import ResultFailures

    ResultFailures.invalid_scheme("Expected prefix 'HC1:'")
    ResultFailures.fetch_error("test-type", "HTTP 404")
"""

from __future__ import annotations

from typing import Any

from railway.failure import ErrorCode
from railway.result import Result


class ResultFailures:
    """Factory methods for common failure types."""

    # ─── capture ───

    @staticmethod
    def no_input(message: str = "No certificate text or file was provided") -> Result[Any]:
        return Result.failure(ErrorCode.NO_INPUT, message)

    @staticmethod
    def no_qr_code_found(message: str = "No QR code found") -> Result[Any]:
        return Result.failure(ErrorCode.NO_QR_CODE_FOUND, message)

    @staticmethod
    def unreadable_input(message: str, exception: BaseException | None = None) -> Result[Any]:
        return Result.failure(ErrorCode.UNREADABLE_INPUT, message, exception)

    # ─── decode ───

    @staticmethod
    def invalid_scheme(message: str) -> Result[Any]:
        return Result.failure(ErrorCode.INVALID_SCHEME, message)

    @staticmethod
    def expired(message: str, **details: Any) -> Result[Any]:
        return Result.failure(ErrorCode.EXPIRED, message, **details)

    # ─── collaborators ───

    @staticmethod
    def fetch_error(
        catalog: str, message: str, exception: BaseException | None = None
    ) -> Result[Any]:
        """Value-set catalog fetch failed; `details["catalog"]` names it."""
        return Result.failure(
            ErrorCode.FETCH_ERROR,
            f"Value set '{catalog}' could not be fetched: {message}",
            exception,
            catalog=catalog,
        )

    @staticmethod
    def signature_request_failed(
        reason: str,
        message: str,
        exception: BaseException | None = None,
        **details: Any,
    ) -> Result[Any]:
        """
        Remote signer failure.

        `reason` separates transport problems ("unreachable") from refusals
        ("rejected", "empty_signature").
        """
        return Result.failure(
            ErrorCode.SIGNATURE_REQUEST_FAILED,
            message,
            exception,
            reason=reason,
            **details,
        )

    # ─── generic ───

    @staticmethod
    def validation_error(message: str) -> Result[Any]:
        return Result.failure(ErrorCode.VALIDATION_ERROR, message)

