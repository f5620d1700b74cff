"""
Unit tests for the HTTP adapters — value-set catalogs and the remote signer.

Uses respx to mock httpx calls (never makes real HTTP requests).

Test categories per adapter:
  - Success: correct response → Result.success
  - Server error: non-2xx → Result.failure
  - Timeout/network: → Result.failure (never raises)
  - Malformed response: → Result.failure (never raises)
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx
from railway import ErrorCode, ResultAssertions

from covidpass.adapters.http_client import HttpPassSigner, HttpValueSetSource
from covidpass.domain.models import SignatureRequest, ValueSetName
from tests.dcc_fixtures import value_set_document

# ─────────────────────── Fixtures ───────────────────────

VALUE_SETS_URL = "https://valuesets.example.com/1.3.0/valuesets"
SIGNER_URL = "https://signer.example.com"
DISEASE = str(ValueSetName.DISEASE)
DISEASE_URL = f"{VALUE_SETS_URL}/{DISEASE}.json"


@pytest.fixture()
def source() -> HttpValueSetSource:
    return HttpValueSetSource(base_url=VALUE_SETS_URL, timeout=5)


@pytest.fixture()
def signer() -> HttpPassSigner:
    return HttpPassSigner(signer_url=SIGNER_URL, timeout=5)


# ═══════════════════════════════════════════════════════════════════════
# Value-set source
# ═══════════════════════════════════════════════════════════════════════


class TestValueSetFetchSuccess:
    """
    GIVEN the value-set host serves a catalog document
    WHEN fetch is called
    THEN it returns the parsed catalog.
    """

    @respx.mock
    async def test_parses_display_strings(self, source: HttpValueSetSource) -> None:
        respx.get(DISEASE_URL).mock(
            return_value=httpx.Response(200, json=value_set_document(ValueSetName.DISEASE))
        )
        catalog = ResultAssertions.assert_success(await source.fetch(DISEASE))
        assert catalog.name == DISEASE
        assert catalog.lookup("840539006") == "COVID-19"
        assert catalog.version == "2021-04-27"

    @respx.mock
    async def test_requests_catalog_file_under_base_url(self, source: HttpValueSetSource) -> None:
        route = respx.get(DISEASE_URL).mock(
            return_value=httpx.Response(200, json=value_set_document(ValueSetName.DISEASE))
        )
        await source.fetch(DISEASE)
        assert route.call_count == 1

    def test_trailing_slash_in_base_url_is_ignored(self) -> None:
        assert HttpValueSetSource(base_url=VALUE_SETS_URL + "/").url_for(DISEASE) == DISEASE_URL


class TestValueSetFetchFailures:
    """
    GIVEN the value-set host misbehaves
    WHEN fetch is called
    THEN it returns FETCH_ERROR naming the catalog, never raising.
    """

    @respx.mock
    async def test_not_found(self, source: HttpValueSetSource) -> None:
        respx.get(DISEASE_URL).mock(return_value=httpx.Response(404))
        result = await source.fetch(DISEASE)
        ResultAssertions.assert_failure(result, ErrorCode.FETCH_ERROR)
        ResultAssertions.assert_failure_detail(result, "catalog", DISEASE)

    @respx.mock
    async def test_server_error(self, source: HttpValueSetSource) -> None:
        respx.get(DISEASE_URL).mock(return_value=httpx.Response(503))
        ResultAssertions.assert_failure(await source.fetch(DISEASE), ErrorCode.FETCH_ERROR)

    @respx.mock
    async def test_timeout(self, source: HttpValueSetSource) -> None:
        respx.get(DISEASE_URL).mock(side_effect=httpx.ReadTimeout("timed out"))
        ResultAssertions.assert_failure(await source.fetch(DISEASE), ErrorCode.FETCH_ERROR)

    @respx.mock
    async def test_connection_refused(self, source: HttpValueSetSource) -> None:
        respx.get(DISEASE_URL).mock(side_effect=httpx.ConnectError("refused"))
        ResultAssertions.assert_failure(await source.fetch(DISEASE), ErrorCode.FETCH_ERROR)

    @respx.mock
    async def test_body_is_not_json(self, source: HttpValueSetSource) -> None:
        respx.get(DISEASE_URL).mock(return_value=httpx.Response(200, text="<html>oops</html>"))
        ResultAssertions.assert_failure(await source.fetch(DISEASE), ErrorCode.FETCH_ERROR)

    @respx.mock
    async def test_document_without_values(self, source: HttpValueSetSource) -> None:
        respx.get(DISEASE_URL).mock(return_value=httpx.Response(200, json={"valueSetId": DISEASE}))
        ResultAssertions.assert_failure(await source.fetch(DISEASE), ErrorCode.FETCH_ERROR)

    @respx.mock
    async def test_entry_without_display(self, source: HttpValueSetSource) -> None:
        document = {"valueSetValues": {"840539006": {"lang": "en"}}}
        respx.get(DISEASE_URL).mock(return_value=httpx.Response(200, json=document))
        ResultAssertions.assert_failure(await source.fetch(DISEASE), ErrorCode.FETCH_ERROR)


# ═══════════════════════════════════════════════════════════════════════
# Pass signer
# ═══════════════════════════════════════════════════════════════════════

SIGN_URL = f"{SIGNER_URL}/sign"
REQUEST = SignatureRequest(pass_hash="a" * 40, use_dark_variant=True)


class TestSignerSuccess:
    """
    GIVEN the signer answers 200 with signature bytes
    WHEN sign is called
    THEN it returns those bytes unchanged.
    """

    @respx.mock
    async def test_returns_signature_bytes(self, signer: HttpPassSigner) -> None:
        respx.post(SIGN_URL).mock(return_value=httpx.Response(200, content=b"\x30\x82PKCS7"))
        ResultAssertions.assert_success_value(await signer.sign(REQUEST), b"\x30\x82PKCS7")

    @respx.mock
    async def test_sends_hash_and_variant(self, signer: HttpPassSigner) -> None:
        route = respx.post(SIGN_URL).mock(return_value=httpx.Response(200, content=b"sig"))
        await signer.sign(REQUEST)

        sent = route.calls.last.request
        assert json.loads(sent.content) == {"passHash": "a" * 40, "useDarkVariant": True}
        assert sent.headers["Accept"] == "application/octet-stream"
        assert sent.headers["Content-Type"] == "application/json"

    @respx.mock
    async def test_signs_exactly_once(self, signer: HttpPassSigner) -> None:
        route = respx.post(SIGN_URL).mock(return_value=httpx.Response(200, content=b"sig"))
        await signer.sign(REQUEST)
        assert route.call_count == 1


class TestSignerFailures:
    """
    GIVEN the signer fails in some way
    WHEN sign is called
    THEN it returns SIGNATURE_REQUEST_FAILED with a reason, and never retries.
    """

    @respx.mock
    async def test_server_error_is_rejected(self, signer: HttpPassSigner) -> None:
        route = respx.post(SIGN_URL).mock(return_value=httpx.Response(500, text="boom"))
        result = await signer.sign(REQUEST)

        ResultAssertions.assert_failure(result, ErrorCode.SIGNATURE_REQUEST_FAILED)
        ResultAssertions.assert_failure_detail(result, "reason", "rejected")
        ResultAssertions.assert_failure_detail(result, "status_code", 500)
        assert route.call_count == 1

    @respx.mock
    async def test_non_200_success_status_is_rejected(self, signer: HttpPassSigner) -> None:
        respx.post(SIGN_URL).mock(return_value=httpx.Response(204))
        result = await signer.sign(REQUEST)
        ResultAssertions.assert_failure_detail(result, "status_code", 204)

    @respx.mock
    async def test_empty_body(self, signer: HttpPassSigner) -> None:
        respx.post(SIGN_URL).mock(return_value=httpx.Response(200, content=b""))
        result = await signer.sign(REQUEST)
        ResultAssertions.assert_failure_detail(result, "reason", "empty_signature")

    @respx.mock
    async def test_unreachable(self, signer: HttpPassSigner) -> None:
        route = respx.post(SIGN_URL).mock(side_effect=httpx.ConnectError("refused"))
        result = await signer.sign(REQUEST)

        ResultAssertions.assert_failure(result, ErrorCode.SIGNATURE_REQUEST_FAILED)
        ResultAssertions.assert_failure_detail(result, "reason", "unreachable")
        assert route.call_count == 1

    @respx.mock
    async def test_timeout(self, signer: HttpPassSigner) -> None:
        respx.post(SIGN_URL).mock(side_effect=httpx.ReadTimeout("timed out"))
        result = await signer.sign(REQUEST)
        ResultAssertions.assert_failure_detail(result, "reason", "unreachable")
