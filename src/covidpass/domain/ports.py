"""
Ports — Protocol-based interfaces for infrastructure adapters.

The pipeline depends on these contracts only; adapters satisfy them
structurally (no inheritance):

  Domain ← Ports (protocols) ← Adapters (implementations)

  Clock            → current time for the expiry check
  SymbolDecoder    → QR symbols found in one rendered image
  ValueSetSource   → one value-set catalog from the external source
  PassSigner       → detached signature over the pass hash
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from PIL.Image import Image
from railway.result import Result

from covidpass.domain.models import SignatureRequest, ValueSetCatalog


@runtime_checkable
class Clock(Protocol):
    """Port: timezone-aware "now"."""

    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class QrSymbol:
    """One decoded QR symbol and its position on the rendered page."""

    text: str
    top: int = 0
    left: int = 0


@runtime_checkable
class SymbolDecoder(Protocol):
    """
    Port: locate and decode QR symbols in an image.

    Blocking call — the extractor runs it in a worker thread.
    Returns an empty list when the image holds no QR symbol.
    """

    def decode(self, image: Image) -> list[QrSymbol]: ...


@runtime_checkable
class ValueSetSource(Protocol):
    """
    Port: fetch a single value-set catalog by name.

    No caching and no retries here — the ValueSetResolver caches,
    and the caller owns retry policy.
    Returns Result.failure(FETCH_ERROR) on any failure.
    """

    async def fetch(self, name: str) -> Result[ValueSetCatalog]: ...


@runtime_checkable
class PassSigner(Protocol):
    """
    Port: obtain a detached signature for a pass hash.

    The signer is a trust boundary: implementations must not retry
    silently. Returns the raw signature bytes, or
    Result.failure(SIGNATURE_REQUEST_FAILED) with details["reason"].
    """

    async def sign(self, request: SignatureRequest) -> Result[bytes]: ...
