"""Tests for HTTP integration — status mapping and error responses."""

import json

import pytest

from railway import ErrorCode, FailureDescription
from railway.http_support import ErrorResponse, HttpStatusMapper, build_error_response


class TestHttpStatusMapper:
    @pytest.mark.parametrize(
        "code,expected_status",
        [
            (ErrorCode.NO_INPUT, 400),
            (ErrorCode.VALIDATION_ERROR, 400),
            (ErrorCode.UNREADABLE_INPUT, 415),
            (ErrorCode.NO_QR_CODE_FOUND, 422),
            (ErrorCode.INVALID_SCHEME, 422),
            (ErrorCode.INVALID_ENCODING, 422),
            (ErrorCode.INVALID_COMPRESSION, 422),
            (ErrorCode.INVALID_ENVELOPE, 422),
            (ErrorCode.INVALID_SCHEMA, 422),
            (ErrorCode.EXPIRED, 422),
            (ErrorCode.FETCH_ERROR, 502),
            (ErrorCode.SIGNATURE_REQUEST_FAILED, 502),
            (ErrorCode.CONFIGURATION_ERROR, 500),
            (ErrorCode.TECHNICAL_ERROR, 500),
            (ErrorCode.UNKNOWN_ERROR, 500),
        ],
    )
    def test_error_code_to_http_status(self, code, expected_status):
        assert HttpStatusMapper.map_error_code(code) == expected_status

    def test_every_code_is_mapped(self):
        for code in ErrorCode:
            assert 400 <= HttpStatusMapper.map_error_code(code) < 600

    def test_map_failure_description(self):
        failure = FailureDescription(ErrorCode.NO_QR_CODE_FOUND, "missing")
        assert HttpStatusMapper.map_failure(failure) == 422


class TestErrorResponse:
    def test_from_failure(self):
        failure = FailureDescription(ErrorCode.VALIDATION_ERROR, "bad input")
        response = ErrorResponse.from_failure(failure)
        assert response.error_code == "VALIDATION_ERROR"
        assert response.message == "bad input"
        assert response.timestamp is not None

    def test_to_dict_carries_details(self):
        failure = FailureDescription.create(
            ErrorCode.SIGNATURE_REQUEST_FAILED, "rejected", reason="rejected", status_code=500
        )
        d = ErrorResponse.from_failure(failure).to_dict()
        assert d["error_code"] == "SIGNATURE_REQUEST_FAILED"
        assert d["message"] == "rejected"
        assert d["details"] == {"reason": "rejected", "status_code": 500}
        assert "timestamp" in d


class TestBuildErrorResponse:
    def test_status_and_body(self):
        failure = FailureDescription.create(ErrorCode.FETCH_ERROR, "HTTP 404", catalog="test-type")
        response = build_error_response(failure)
        assert response.status_code == 502
        body = json.loads(response.body)
        assert body["error_code"] == "FETCH_ERROR"
        assert body["details"]["catalog"] == "test-type"

    def test_client_error(self):
        response = build_error_response(FailureDescription(ErrorCode.NO_INPUT, "nothing"))
        assert response.status_code == 400
