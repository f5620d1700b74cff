"""
Pass color schemes — the user's choice, never derived from the certificate.

Each ColorSelection maps to a background RGB triple. Foreground and label
colors follow from whether the background is dark, and the same flag picks
the icon/logo variant and the signer's dark-variant switch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Backgrounds with perceived brightness below this are "dark".
DARK_LUMINANCE_THRESHOLD = 128.0


class ImageVariant(Enum):
    """Icon/logo artwork set. DARK carries light glyphs for dark backgrounds."""

    DARK = "dark"
    LIGHT = "light"


@dataclass(frozen=True, slots=True)
class Rgb:
    red: int
    green: int
    blue: int

    @property
    def luminance(self) -> float:
        """Perceived brightness (ITU-R BT.601 weights), 0–255."""
        return 0.299 * self.red + 0.587 * self.green + 0.114 * self.blue

    def css(self) -> str:
        return f"rgb({self.red}, {self.green}, {self.blue})"


@dataclass(frozen=True, slots=True)
class ColorScheme:
    """The three pass color strings plus the darkness flag."""

    label_color: str
    foreground_color: str
    background_color: str
    dark: bool

    @property
    def image_variant(self) -> ImageVariant:
        return ImageVariant.DARK if self.dark else ImageVariant.LIGHT


_WHITE = Rgb(255, 255, 255)
_BLACK = Rgb(0, 0, 0)
_LABEL_ON_DARK = Rgb(229, 231, 235)
_LABEL_ON_LIGHT = Rgb(75, 85, 99)


class ColorSelection(Enum):
    """Closed set of background colors offered to the user."""

    WHITE = "white"
    BLACK = "black"
    GREY = "grey"
    GREEN = "green"
    INDIGO = "indigo"
    BLUE = "blue"
    PURPLE = "purple"
    TEAL = "teal"

    @property
    def background(self) -> Rgb:
        return _BACKGROUNDS[self]

    @property
    def dark(self) -> bool:
        return self.background.luminance < DARK_LUMINANCE_THRESHOLD

    def scheme(self) -> ColorScheme:
        dark = self.dark
        return ColorScheme(
            label_color=(_LABEL_ON_DARK if dark else _LABEL_ON_LIGHT).css(),
            foreground_color=(_WHITE if dark else _BLACK).css(),
            background_color=self.background.css(),
            dark=dark,
        )


_BACKGROUNDS: dict[ColorSelection, Rgb] = {
    ColorSelection.WHITE: _WHITE,
    ColorSelection.BLACK: _BLACK,
    ColorSelection.GREY: Rgb(75, 85, 99),
    ColorSelection.GREEN: Rgb(5, 150, 105),
    ColorSelection.INDIGO: Rgb(79, 70, 229),
    ColorSelection.BLUE: Rgb(37, 99, 235),
    ColorSelection.PURPLE: Rgb(124, 58, 237),
    ColorSelection.TEAL: Rgb(13, 148, 136),
}
