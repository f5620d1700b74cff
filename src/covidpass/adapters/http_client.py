"""
HTTP adapters — value-set catalogs and the remote pass signer via httpx.

Adapter layer — implements the ValueSetSource and PassSigner ports using
httpx.AsyncClient:

  1. GET  {value_sets_url}/{catalog}.json   → ValueSetCatalog
  2. POST {signer_url}/sign                 → detached signature bytes

No retries here. Both collaborators surface failures to the caller, which
owns retry policy; the signer is a trust boundary and is never re-asked
behind the caller's back. All HTTP errors are captured into Result
failures — no exceptions leak to the pipeline.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from railway import ResultFailures
from railway.result import Result

from covidpass.domain.models import SignatureRequest, ValueSetCatalog

log = structlog.get_logger()

DEFAULT_VALUE_SETS_URL = (
    "https://raw.githubusercontent.com/ehn-dcc-development/ehn-dcc-schema/release/1.3.0/valuesets"
)


def _parse_catalog(name: str, document: Any) -> ValueSetCatalog:
    """
    Parse a DCC value-set document:

        {"valueSetId": "...", "valueSetDate": "2021-04-27",
         "valueSetValues": {"840539006": {"display": "COVID-19", ...}}}
    """
    values = document["valueSetValues"]
    entries = {str(code): str(record["display"]) for code, record in values.items()}
    return ValueSetCatalog(name=name, entries=entries, version=document.get("valueSetDate"))


class HttpValueSetSource:
    """
    Fetch value-set catalogs from a public, unauthenticated JSON source.

    Implements the ValueSetSource port. One GET per call — caching is the
    ValueSetResolver's job.
    """

    def __init__(self, base_url: str = DEFAULT_VALUE_SETS_URL, timeout: float = 30) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def url_for(self, name: str) -> str:
        return f"{self._base_url}/{name}.json"

    async def fetch(self, name: str) -> Result[ValueSetCatalog]:
        """
        GET {base_url}/{name}.json and parse it.

        Returns Result.failure(FETCH_ERROR) with details["catalog"] on
        network errors, non-2xx responses, or malformed documents.
        """
        try:
            catalog = await self._do_fetch(name)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            return ResultFailures.fetch_error(name, str(e) or type(e).__name__, e)
        return Result.success(catalog)

    async def _do_fetch(self, name: str) -> ValueSetCatalog:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(self.url_for(name))
            response.raise_for_status()
            catalog = _parse_catalog(name, response.json())
            log.debug("value_set.downloaded", catalog=name, size_bytes=len(response.content))
            return catalog


class HttpPassSigner:
    """
    Request detached pass signatures from the remote signing service.

    Implements the PassSigner port:
      POST {signer_url}/sign  {"passHash": "<hex>", "useDarkVariant": bool}
      200 → raw signature bytes; anything else is a hard failure.
    """

    def __init__(self, signer_url: str, timeout: float = 30) -> None:
        self._sign_url = f"{signer_url.rstrip('/')}/sign"
        self._timeout = timeout

    async def sign(self, request: SignatureRequest) -> Result[bytes]:
        """
        Ask the signer for a signature over `request.pass_hash`.

        Failure reasons (details["reason"]):
          - "unreachable"      transport error or timeout
          - "rejected"         non-200 status (details["status_code"])
          - "empty_signature"  200 with an empty body
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._sign_url,
                    json=request.to_json(),
                    headers={"Accept": "application/octet-stream"},
                )
        except httpx.HTTPError as e:
            log.warning("signer.unreachable", url=self._sign_url, error=str(e))
            return ResultFailures.signature_request_failed(
                "unreachable", f"Signer could not be reached: {e}", e
            )

        if response.status_code != 200:
            log.warning("signer.rejected", status_code=response.status_code)
            return ResultFailures.signature_request_failed(
                "rejected",
                f"Signer responded with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        signature = response.content
        if not signature:
            log.warning("signer.empty_signature")
            return ResultFailures.signature_request_failed(
                "empty_signature", "Signer returned an empty signature"
            )

        log.info("signer.signed", signature_bytes=len(signature))
        return Result.success(signature)
