"""
QR payload extractor — pasted text or an uploaded file → RawCertificateText.

Adapter layer:
  - Pillow opens raster images (every frame of multi-frame formats)
  - pypdfium2 renders PDF pages to images
  - a SymbolDecoder (pyzbar in production) finds QR symbols on each page

Selection across pages:
  pages in document order, symbols in reading order (top, then left);
  the first symbol carrying the HC1: prefix wins.

    nothing provided                       → NO_INPUT
    bytes Pillow/pdfium cannot open        → UNREADABLE_INPUT
    file or page over the size limits      → UNREADABLE_INPUT
    no QR symbol on any page               → NO_QR_CODE_FOUND
    symbols found, none with HC1:          → INVALID_SCHEME
"""

from __future__ import annotations

import asyncio
import io
from collections.abc import Generator

import pypdfium2 as pdfium
import structlog
from PIL import Image, ImageSequence, UnidentifiedImageError
from railway import ResultFailures
from railway.result import Result

from covidpass.domain.models import SCHEME_PREFIX, RawCertificateText, normalize_text
from covidpass.domain.ports import QrSymbol, SymbolDecoder

log = structlog.get_logger()

PDF_MAGIC = b"%PDF"
DEFAULT_RENDER_SCALE = 2.0
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
# An A4 page at the default scale renders to about 2 megapixels.
DEFAULT_MAX_PIXELS = 40_000_000


def _reading_order(symbols: list[QrSymbol]) -> list[QrSymbol]:
    return sorted(symbols, key=lambda symbol: (symbol.top, symbol.left))


class QrPayloadExtractor:
    """
    Obtain the HC1 text from user input.

    Text is validated synchronously; files are decoded in a worker thread
    so rendering and symbol detection never block the event loop.
    """

    def __init__(
        self,
        symbol_decoder: SymbolDecoder,
        render_scale: float = DEFAULT_RENDER_SCALE,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        max_pixels: int = DEFAULT_MAX_PIXELS,
    ) -> None:
        self._symbol_decoder = symbol_decoder
        self._render_scale = render_scale
        self._max_upload_bytes = max_upload_bytes
        self._max_pixels = max_pixels

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    # ─── text ───

    def from_text(self, text: str | None) -> Result[RawCertificateText]:
        return RawCertificateText.parse(text)

    # ─── files ───

    async def from_file(self, data: bytes | None) -> Result[RawCertificateText]:
        if not data:
            return ResultFailures.no_input("Uploaded file is empty")
        if len(data) > self._max_upload_bytes:
            log.warning(
                "extractor.too_large", size_bytes=len(data), limit_bytes=self._max_upload_bytes
            )
            return ResultFailures.unreadable_input(
                f"Uploaded file is {len(data)} bytes; the limit is {self._max_upload_bytes}"
            )
        return await asyncio.to_thread(self._scan, data)

    async def extract(
        self, text: str | None = None, data: bytes | None = None
    ) -> Result[RawCertificateText]:
        """Prefer a file when both are given; neither means no input yet."""
        if data:
            return await self.from_file(data)
        if text is not None and text.strip():
            return self.from_text(text)
        return ResultFailures.no_input()

    def _scan(self, data: bytes) -> Result[RawCertificateText]:
        kind = "pdf" if data.startswith(PDF_MAGIC) else "image"
        pages = self._pdf_pages(data) if kind == "pdf" else self._image_frames(data)
        found_symbols = 0
        try:
            for page_number, page in enumerate(pages, start=1):
                symbols = _reading_order(self._symbol_decoder.decode(page))
                found_symbols += len(symbols)
                for symbol in symbols:
                    text = normalize_text(symbol.text)
                    if text.startswith(SCHEME_PREFIX):
                        log.info("extractor.found", kind=kind, page=page_number)
                        return Result.success(RawCertificateText(text))
        except (
            pdfium.PdfiumError,
            Image.DecompressionBombError,
            UnidentifiedImageError,
            OSError,
            ValueError,
        ) as e:
            log.warning("extractor.unreadable", kind=kind, error=str(e))
            return ResultFailures.unreadable_input(f"Uploaded {kind} could not be read: {e}", e)
        finally:
            pages.close()

        if found_symbols:
            log.warning("extractor.no_certificate", kind=kind, symbols=found_symbols)
            return ResultFailures.invalid_scheme(
                f"QR code found, but none carries the {SCHEME_PREFIX!r} prefix"
            )
        log.warning("extractor.no_qr_code", kind=kind)
        return ResultFailures.no_qr_code_found()

    def _check_pixels(self, width: int, height: int) -> None:
        if width * height > self._max_pixels:
            raise Image.DecompressionBombError(
                f"{width}x{height} pixels exceeds the limit of {self._max_pixels}"
            )

    def _pdf_pages(self, data: bytes) -> Generator[Image.Image, None, None]:
        document = pdfium.PdfDocument(data)
        try:
            for index in range(len(document)):
                page = document[index]
                try:
                    width, height = page.get_size()
                    self._check_pixels(
                        round(width * self._render_scale), round(height * self._render_scale)
                    )
                    yield page.render(scale=self._render_scale).to_pil()
                finally:
                    page.close()
        finally:
            document.close()

    def _image_frames(self, data: bytes) -> Generator[Image.Image, None, None]:
        with Image.open(io.BytesIO(data)) as image:
            for frame in ImageSequence.Iterator(image):
                self._check_pixels(*frame.size)
                yield frame.convert("RGB")
