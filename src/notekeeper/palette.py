"""Named colour palette and hex conversion for categories and subcategories."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

_HEX_RE = re.compile(r"^[0-9A-F]+$")


class PaletteColor(Enum):
    """The eight colours offered by the category editors, in display order."""

    BLUE = ("007AFF", "Blue")
    RED = ("FF0000", "Red")
    GREEN = ("00FF00", "Green")
    ORANGE = ("FFA500", "Orange")
    PURPLE = ("800080", "Purple")
    PINK = ("FFC0CB", "Pink")
    YELLOW = ("FFFF00", "Yellow")
    GRAY = ("808080", "Gray")

    def __init__(self, hex_value: str, label: str) -> None:
        self.hex_value = hex_value
        self.label = label

    @property
    def color(self) -> "Color":
        red, green, blue = _channels(self.hex_value)
        return Color(red, green, blue, palette=self)


@dataclass(frozen=True, slots=True)
class Color:
    """An sRGB colour; ``palette`` is set for the named palette entries."""

    red: float
    green: float
    blue: float
    palette: Optional[PaletteColor] = None

    @classmethod
    def custom(cls, red: float, green: float, blue: float) -> "Color":
        return cls(red, green, blue)

    @property
    def is_custom(self) -> bool:
        return self.palette is None

    @property
    def name(self) -> str:
        return self.palette.label if self.palette else "Custom"

    @property
    def rgb(self) -> Tuple[float, float, float]:
        return (self.red, self.green, self.blue)


def normalize_hex(value: str) -> str:
    """Strip whitespace and a leading ``#`` and uppercase."""
    cleaned = value.strip()
    if cleaned.startswith("#"):
        cleaned = cleaned[1:]
    return cleaned.upper()


def _channels(hex_value: str) -> Tuple[float, float, float]:
    number = int(hex_value, 16)
    if len(hex_value) == 3:
        red, green, blue = (number >> 8) * 17, (number >> 4 & 0xF) * 17, (number & 0xF) * 17
    elif len(hex_value) == 6:
        red, green, blue = number >> 16, number >> 8 & 0xFF, number & 0xFF
    else:
        # AARRGGBB; alpha is not part of the palette model
        red, green, blue = number >> 16 & 0xFF, number >> 8 & 0xFF, number & 0xFF
    return red / 255, green / 255, blue / 255


DEFAULT_PALETTE_COLOR = PaletteColor.BLUE
DEFAULT_HEX = DEFAULT_PALETTE_COLOR.hex_value
DEFAULT_COLOR = DEFAULT_PALETTE_COLOR.color


def is_valid_hex(value: str) -> bool:
    cleaned = normalize_hex(value)
    return len(cleaned) in (3, 6, 8) and bool(_HEX_RE.match(cleaned))


def color_from_hex(value: str) -> Color:
    """Resolve a hex string to a palette colour, a custom colour or the default.

    Malformed input never raises: the default blue keeps every category
    renderable.
    """
    cleaned = normalize_hex(value or "")
    for entry in PaletteColor:
        if entry.hex_value == cleaned:
            return entry.color
    if not is_valid_hex(cleaned):
        return DEFAULT_COLOR
    red, green, blue = _channels(cleaned)
    return Color.custom(red, green, blue)


def _to_byte(channel: float) -> int:
    # round away float noise from the /255 division before truncating
    value = math.floor(round(channel * 255, 6))
    return max(0, min(255, value))


def hex_from_color(color: Color) -> str:
    if color.palette is not None:
        return color.palette.hex_value
    for entry in PaletteColor:
        if entry.color.rgb == color.rgb:
            return entry.hex_value
    return "%02X%02X%02X" % (_to_byte(color.red), _to_byte(color.green), _to_byte(color.blue))


def color_name(value: str) -> str:
    cleaned = normalize_hex(value or "")
    for entry in PaletteColor:
        if entry.hex_value == cleaned:
            return entry.label
    return "Custom"


def coerce_hex(value: Optional[str], fallback: str = DEFAULT_HEX) -> str:
    """Return a six-digit uppercase hex for storage, or ``fallback``."""
    if not value or not isinstance(value, str) or not is_valid_hex(value):
        return fallback
    return hex_from_color(color_from_hex(value))


__all__ = [
    "Color",
    "DEFAULT_COLOR",
    "DEFAULT_HEX",
    "PaletteColor",
    "coerce_hex",
    "color_from_hex",
    "color_name",
    "hex_from_color",
    "is_valid_hex",
    "normalize_hex",
]
