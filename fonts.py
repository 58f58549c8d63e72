"""Font lookup, caching and text measurement for card rendering."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from PIL import ImageFont

_APP_DIR = Path(__file__).resolve().parent

# Glyph advances are measured once at this size and scaled linearly
_REF_SIZE = 100

REGULAR_CANDIDATES = [
    str(_APP_DIR / "fonts" / "Card-Regular.ttf"),
    os.path.expanduser("~/Library/Fonts/Verdana.ttf"),
    "/System/Library/Fonts/Supplemental/Verdana.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "C:\\Windows\\Fonts\\verdana.ttf",
    "C:\\Windows\\Fonts\\arial.ttf",
]
BOLD_CANDIDATES = [
    str(_APP_DIR / "fonts" / "Card-Bold.ttf"),
    os.path.expanduser("~/Library/Fonts/Verdana Bold.ttf"),
    "/System/Library/Fonts/Supplemental/Verdana Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "C:\\Windows\\Fonts\\verdanab.ttf",
    "C:\\Windows\\Fonts\\arialbd.ttf",
]


def find_font_path(candidates: Sequence[str]) -> Optional[str]:
    for path in candidates:
        if path and os.path.isfile(path):
            return path
    return None


class FontBook:
    """Load and cache fonts per (weight, size) for one renderer."""

    def __init__(self, regular_path: Optional[str] = None, bold_path: Optional[str] = None):
        self.regular_path = regular_path or find_font_path(REGULAR_CANDIDATES)
        self.bold_path = bold_path or find_font_path(BOLD_CANDIDATES) or self.regular_path
        self._fonts: Dict[Tuple[bool, int], ImageFont.ImageFont] = {}
        self._advances: Dict[Tuple[bool, str], float] = {}

    def font(self, size: float, bold: bool = False):
        px = max(1, int(round(size)))
        key = (bold, px)
        cached = self._fonts.get(key)
        if cached is not None:
            return cached
        path = self.bold_path if bold else self.regular_path
        font = None
        if path:
            try:
                font = ImageFont.truetype(path, px)
            except OSError:
                font = None
        if font is None:
            font = ImageFont.load_default(size=px)
        self._fonts[key] = font
        return font

    def advance(self, ch: str, size: float, bold: bool = False) -> float:
        """Horizontal advance of one character at a (fractional) font size."""
        key = (bold, ch)
        ref = self._advances.get(key)
        if ref is None:
            ref = float(self.font(_REF_SIZE, bold).getlength(ch))
            self._advances[key] = ref
        return ref * size / _REF_SIZE

    def line_height(self, size: float, bold: bool = False) -> float:
        """Ink height of a line; centres text drawn without an anchor."""
        font = self.font(size, bold)
        left, top, right, bottom = font.getbbox("Hg")
        return float(bottom - top)


class PillowTextMeasurer:
    """measure(text, font_size, letter_spacing) -> width, using per-glyph advances."""

    def __init__(self, fonts: FontBook, bold: bool = False):
        self.fonts = fonts
        self.bold = bold

    def __call__(self, text: str, font_size: float, letter_spacing: float = 0.0) -> float:
        if not text:
            return 0.0
        width = sum(self.fonts.advance(ch, font_size, self.bold) for ch in text)
        return width + letter_spacing * (len(text) - 1)
