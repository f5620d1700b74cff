"""Tests for FailureDescription and ErrorCode."""

import pytest

from railway import (
    CAPTURE_ERRORS,
    DECODE_ERRORS,
    RETRYABLE_ERRORS,
    ErrorCode,
    FailureDescription,
)


class TestErrorCode:
    def test_all_15_error_codes_exist(self):
        assert len(list(ErrorCode)) == 15

    def test_capture_error_codes(self):
        assert CAPTURE_ERRORS == {
            ErrorCode.NO_INPUT,
            ErrorCode.NO_QR_CODE_FOUND,
            ErrorCode.UNREADABLE_INPUT,
        }

    def test_decode_error_codes(self):
        assert DECODE_ERRORS == {
            ErrorCode.INVALID_SCHEME,
            ErrorCode.INVALID_ENCODING,
            ErrorCode.INVALID_COMPRESSION,
            ErrorCode.INVALID_ENVELOPE,
            ErrorCode.INVALID_SCHEMA,
        }

    def test_only_collaborator_failures_are_retryable(self):
        assert RETRYABLE_ERRORS == {ErrorCode.FETCH_ERROR, ErrorCode.SIGNATURE_REQUEST_FAILED}

    def test_groups_do_not_overlap(self):
        assert not CAPTURE_ERRORS & DECODE_ERRORS
        assert not DECODE_ERRORS & RETRYABLE_ERRORS
        assert ErrorCode.EXPIRED not in DECODE_ERRORS | RETRYABLE_ERRORS

    def test_error_code_values_are_strings(self):
        for code in ErrorCode:
            assert isinstance(code.value, str)
            assert code.value == code.name


class TestFailureDescription:
    def test_creation_with_code_and_message(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "Unknown color")
        assert desc.code == ErrorCode.VALIDATION_ERROR
        assert desc.message == "Unknown color"
        assert desc.exception is None
        assert desc.timestamp is not None
        assert desc.details == {}

    def test_creation_with_exception(self):
        ex = ValueError("bad")
        desc = FailureDescription(ErrorCode.INVALID_ENVELOPE, "not CBOR", ex)
        assert desc.exception is ex

    def test_factory_method_collects_details(self):
        desc = FailureDescription.create(
            ErrorCode.SIGNATURE_REQUEST_FAILED, "rejected", reason="rejected", status_code=500
        )
        assert desc.code == ErrorCode.SIGNATURE_REQUEST_FAILED
        assert desc.message == "rejected"
        assert desc.details == {"reason": "rejected", "status_code": 500}

    def test_immutability(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "test")
        with pytest.raises(AttributeError):
            desc.message = "changed"  # type: ignore

    def test_timestamp_is_utc(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "test")
        assert desc.timestamp.tzinfo is not None

    def test_retryable_and_decode_flags(self):
        assert FailureDescription(ErrorCode.FETCH_ERROR, "x").is_retryable
        assert not FailureDescription(ErrorCode.EXPIRED, "x").is_retryable
        assert FailureDescription(ErrorCode.INVALID_SCHEMA, "x").is_decode_error
        assert not FailureDescription(ErrorCode.NO_INPUT, "x").is_decode_error

    def test_str(self):
        desc = FailureDescription(ErrorCode.EXPIRED, "Certificate expired on 2022-06-01")
        assert str(desc) == "EXPIRED: Certificate expired on 2022-06-01"

    def test_full_stack_trace_without_exception(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "just a message")
        assert desc.full_stack_trace() == "just a message"

    def test_full_stack_trace_with_exception(self):
        try:
            raise ValueError("boom")
        except ValueError as e:
            desc = FailureDescription(ErrorCode.INVALID_COMPRESSION, "inflate failed", e)
            trace = desc.full_stack_trace()
            assert "inflate failed" in trace
            assert "ValueError" in trace
            assert "boom" in trace

    def test_equality_ignores_timestamp_and_details(self):
        a = FailureDescription.create(ErrorCode.FETCH_ERROR, "x", catalog="a")
        b = FailureDescription.create(ErrorCode.FETCH_ERROR, "x", catalog="b")
        assert a == b
