"""
Failure description — structured error information for the failure track.

Every failure carries an ErrorCode from the closed taxonomy below, a human
message, the originating exception (if any), a UTC timestamp, and a
free-form `details` mapping for machine-readable sub-reasons
(e.g. which value-set catalog failed, which HTTP status the signer sent).

The taxonomy is organized by pipeline stage so callers can pick a
user-facing message from the code alone:

    capture → decode → value sets → signer
"""

from __future__ import annotations

import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Any


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Capture and decode codes are terminal for a build attempt.
    EXPIRED is an advisory unless the caller's policy promotes it.
    FETCH_ERROR and SIGNATURE_REQUEST_FAILED mean the certificate was fine
    but a collaborator was not; the caller may retry those.
    """

    # --- Capture ---
    NO_INPUT = "NO_INPUT"
    """Neither scanned text nor a file was supplied."""

    NO_QR_CODE_FOUND = "NO_QR_CODE_FOUND"
    """The image or document holds no readable QR symbol."""

    UNREADABLE_INPUT = "UNREADABLE_INPUT"
    """The file could not be opened as an image or PDF."""

    # --- Decode ---
    INVALID_SCHEME = "INVALID_SCHEME"
    """Missing or wrong `HC1:` scheme prefix."""

    INVALID_ENCODING = "INVALID_ENCODING"
    """Base45 alphabet or length violation."""

    INVALID_COMPRESSION = "INVALID_COMPRESSION"
    """Corrupt zlib stream or decompressed size above the ceiling."""

    INVALID_ENVELOPE = "INVALID_ENVELOPE"
    """The COSE_Sign1 envelope could not be parsed."""

    INVALID_SCHEMA = "INVALID_SCHEMA"
    """Required claim missing, unparsable date, or entry-kind violation."""

    EXPIRED = "EXPIRED"
    """Certificate expiry lies in the past (advisory by default)."""

    # --- Collaborators ---
    FETCH_ERROR = "FETCH_ERROR"
    """A value-set catalog could not be fetched."""

    SIGNATURE_REQUEST_FAILED = "SIGNATURE_REQUEST_FAILED"
    """The remote signer was unreachable or refused to sign."""

    # --- Generic ---
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Malformed request outside the certificate itself (e.g. unknown color)."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Unexpected infrastructure failure."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unclassified failure."""


CAPTURE_ERRORS: frozenset[ErrorCode] = frozenset(
    {ErrorCode.NO_INPUT, ErrorCode.NO_QR_CODE_FOUND, ErrorCode.UNREADABLE_INPUT}
)

DECODE_ERRORS: frozenset[ErrorCode] = frozenset(
    {
        ErrorCode.INVALID_SCHEME,
        ErrorCode.INVALID_ENCODING,
        ErrorCode.INVALID_COMPRESSION,
        ErrorCode.INVALID_ENVELOPE,
        ErrorCode.INVALID_SCHEMA,
    }
)

RETRYABLE_ERRORS: frozenset[ErrorCode] = frozenset(
    {ErrorCode.FETCH_ERROR, ErrorCode.SIGNATURE_REQUEST_FAILED}
)


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor.

    >>> desc = FailureDescription(ErrorCode.INVALID_SCHEME, "Missing HC1: prefix")
    >>> desc.code
    <ErrorCode.INVALID_SCHEME: 'INVALID_SCHEME'>
    >>> desc.is_retryable
    False
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC), compare=False)
    details: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @staticmethod
    def create(
        code: ErrorCode,
        message: str,
        exception: BaseException | None = None,
        **details: Any,
    ) -> FailureDescription:
        """Build a description, collecting keyword arguments into `details`."""
        return FailureDescription(
            code=code, message=message, exception=exception, details=dict(details)
        )

    @property
    def is_retryable(self) -> bool:
        return self.code in RETRYABLE_ERRORS

    @property
    def is_decode_error(self) -> bool:
        return self.code in DECODE_ERRORS

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            )
        )
        return f"{self.message}\n{tb}"

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
