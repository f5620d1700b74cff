"""
zbar adapter — QR symbol detection via pyzbar.

Implements the SymbolDecoder port. Importing this module loads the native
zbar library; keep it out of import paths that must work without it.
"""

from __future__ import annotations

from PIL.Image import Image
from pyzbar.pyzbar import ZBarSymbol, decode

from covidpass.domain.ports import QrSymbol


class ZbarSymbolDecoder:
    """Find QR symbols in a grayscale copy of the image."""

    def decode(self, image: Image) -> list[QrSymbol]:
        found = decode(image.convert("L"), symbols=[ZBarSymbol.QRCODE])
        return [
            QrSymbol(
                text=symbol.data.decode("utf-8", errors="replace"),
                top=symbol.rect.top,
                left=symbol.rect.left,
            )
            for symbol in found
        ]
