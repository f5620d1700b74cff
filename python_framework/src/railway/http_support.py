"""
HTTP integration — ErrorCode → HTTP status mapping and response builders.

    status = HttpStatusMapper.map_error_code(ErrorCode.INVALID_SCHEMA)  # → 422

    @app.post("/passes")
    async def create_pass(...):
        ...
        if result.is_failure():
            return build_error_response(result.error())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fastapi.responses import JSONResponse

from railway.failure import ErrorCode, FailureDescription


class HttpStatusMapper:
    """Maps ErrorCode values to HTTP status codes."""

    _CODE_TO_STATUS: dict[ErrorCode, int] = {
        # Input the client can fix (4xx)
        ErrorCode.NO_INPUT: 400,
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.UNREADABLE_INPUT: 415,
        ErrorCode.NO_QR_CODE_FOUND: 422,
        ErrorCode.INVALID_SCHEME: 422,
        ErrorCode.INVALID_ENCODING: 422,
        ErrorCode.INVALID_COMPRESSION: 422,
        ErrorCode.INVALID_ENVELOPE: 422,
        ErrorCode.INVALID_SCHEMA: 422,
        ErrorCode.EXPIRED: 422,
        # Collaborators (5xx)
        ErrorCode.FETCH_ERROR: 502,
        ErrorCode.SIGNATURE_REQUEST_FAILED: 502,
        ErrorCode.CONFIGURATION_ERROR: 500,
        ErrorCode.TECHNICAL_ERROR: 500,
        ErrorCode.UNKNOWN_ERROR: 500,
    }

    @classmethod
    def map_error_code(cls, code: ErrorCode) -> int:
        return cls._CODE_TO_STATUS.get(code, 500)

    @classmethod
    def map_failure(cls, failure: FailureDescription) -> int:
        return cls.map_error_code(failure.code)


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    """
    Standardized error response body.

        {
            "error_code": "SIGNATURE_REQUEST_FAILED",
            "message": "Signer responded with HTTP 500",
            "timestamp": "2026-02-17T10:30:00+00:00",
            "details": {"reason": "rejected", "status_code": 500}
        }
    """

    error_code: str
    message: str
    timestamp: str
    details: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_failure(failure: FailureDescription) -> ErrorResponse:
        return ErrorResponse(
            error_code=failure.code.value,
            message=failure.message,
            timestamp=failure.timestamp.isoformat(),
            details={key: value for key, value in failure.details.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "timestamp": self.timestamp,
            "details": dict(self.details),
        }


def build_error_response(failure: FailureDescription) -> JSONResponse:
    """JSONResponse carrying an ErrorResponse body and the mapped status."""
    return JSONResponse(
        content=ErrorResponse.from_failure(failure).to_dict(),
        status_code=HttpStatusMapper.map_failure(failure),
    )

