"""
Unit & band calculator.

Turns physical card dimensions (inches) plus a DPI or pixel-width target into
exact pixel heights for each horizontal band of the card:

    top     title strip
    notice  legal-notice / registration strip
    body    photo, fields, signature
    bottom  footer strip

Each band is rounded on its own and the body band absorbs whatever rounding
residual is left, so the bands always add up to the card's total height.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from config import (
    BASE_ASPECT,
    CR80_SHORT_IN,
    DEFAULT_BANDS_IN,
    DESIGN_WIDTH_PX,
    LANDSCAPE_SIZE_IN,
    PORTRAIT_SIZE_IN,
    PREVIEW_WIDTH,
    WIDE_SCALE_THRESHOLD_PX,
)

logger = logging.getLogger(__name__)

BAND_NAMES = ("top", "notice", "body", "bottom")
ORIENTATIONS = ("landscape", "portrait")
VARIANTS = ("standard", "exact")


@dataclass
class CardSpec:
    """Physical description of one card render pass, built from caller options."""

    width_in: Optional[float] = None
    height_in: Optional[float] = None
    dpi: Optional[float] = None
    width_px: Optional[int] = None
    orientation: str = "landscape"
    variant: str = "standard"
    top_band_in: Optional[float] = None
    notice_band_in: Optional[float] = None
    body_band_in: Optional[float] = None
    bottom_band_in: Optional[float] = None
    fit_mode: str = "pad"
    target_aspect: Optional[float] = None
    pad_to_wallet: bool = False
    wide_scale_threshold: float = WIDE_SCALE_THRESHOLD_PX
    wide_scale: Optional[float] = None

    def __post_init__(self):
        if self.orientation not in ORIENTATIONS:
            raise ValueError(f"orientation must be one of {ORIENTATIONS}, got {self.orientation!r}")
        if self.variant not in VARIANTS:
            raise ValueError(f"variant must be one of {VARIANTS}, got {self.variant!r}")

    @property
    def layout_key(self) -> str:
        """'exact' for the tall design, otherwise the orientation."""
        return "exact" if self.variant == "exact" else self.orientation

    def physical_size(self) -> Tuple[float, float]:
        """(width_in, height_in) with orientation/variant defaults filled in."""
        if self.variant == "exact":
            w = self.width_in or CR80_SHORT_IN
            h = self.height_in or w * BASE_ASPECT
            return w, h
        default_w, default_h = PORTRAIT_SIZE_IN if self.orientation == "portrait" else LANDSCAPE_SIZE_IN
        return self.width_in or default_w, self.height_in or default_h

    @property
    def base_aspect(self) -> float:
        w, h = self.physical_size()
        return h / w

    def band_inches(self) -> Dict[str, Optional[float]]:
        """Per-band inch heights; body stays None unless given explicitly."""
        top, notice, bottom = DEFAULT_BANDS_IN[self.layout_key]
        return {
            "top": top if self.top_band_in is None else self.top_band_in,
            "notice": notice if self.notice_band_in is None else self.notice_band_in,
            "body": self.body_band_in,
            "bottom": bottom if self.bottom_band_in is None else self.bottom_band_in,
        }


@dataclass
class BandReport:
    name: str
    px: int
    inches: float


@dataclass
class BandLayout:
    width_px: int
    total_px: int
    px_per_in: float
    bands: Dict[str, int] = field(default_factory=dict)
    render_scale: float = 1.0
    degraded: bool = False

    def band_top(self, name: str) -> int:
        """Y offset of a band from the top of the card."""
        y = 0
        for n in BAND_NAMES:
            if n == name:
                return y
            y += self.bands.get(n, 0)
        raise KeyError(name)

    def band_span(self, name: str) -> Tuple[int, int]:
        """(y, height) of a band."""
        return self.band_top(name), self.bands.get(name, 0)

    def scaled(self, n: float) -> int:
        """Scale a design-pixel chrome measurement (padding, stroke) by the render scale."""
        return int(round(n * self.render_scale))


def resolve_width_px(spec: CardSpec) -> int:
    """Pixel width for a spec: explicit width, else width_in x dpi, else the preview width."""
    if spec.width_px:
        return int(spec.width_px)
    if spec.dpi:
        w_in, _ = spec.physical_size()
        return int(round(w_in * spec.dpi))
    return PREVIEW_WIDTH


def pixels_per_inch(spec: CardSpec, width_px: int) -> float:
    w_in, _ = spec.physical_size()
    if spec.dpi and width_px == int(round(w_in * spec.dpi)):
        return float(spec.dpi)
    return width_px / w_in


def render_scale(width_px: float, threshold: float = WIDE_SCALE_THRESHOLD_PX, explicit: Optional[float] = None) -> float:
    """
    One scale factor for fixed-pixel chrome, computed once per render pass.

    An explicit value wins; otherwise widths above the threshold scale
    relative to the 720px design width. Never below 1.
    """
    if explicit is not None:
        return max(1.0, float(explicit))
    auto = width_px / DESIGN_WIDTH_PX if width_px > threshold else 1.0
    return max(1.0, auto)


def derived_body_inches(spec: CardSpec) -> float:
    """Body height implied by the total height minus the other bands, clamped to >= 0."""
    _, h_in = spec.physical_size()
    inches = spec.band_inches()
    others = sum(v for k, v in inches.items() if k != "body" and v is not None)
    return max(0.0, h_in - others)


def compute_bands(
    spec: CardSpec,
    width_px: Optional[int] = None,
    total_px: Optional[int] = None,
    on_bands: Optional[Callable[[List[BandReport]], None]] = None,
) -> BandLayout:
    """
    Resolve every band's pixel height.

    Args:
        spec: Card spec (physical size, band inches)
        width_px: Render width; defaults to the card's own resolution
        total_px: Force the total height (export passes its rounded inner height)
        on_bands: Optional diagnostic callback receiving the band report

    Returns:
        BandLayout whose bands sum to total_px unless the input was degenerate.
    """
    _, h_in = spec.physical_size()
    if width_px is None:
        width_px = resolve_width_px(spec)
    ppi = pixels_per_inch(spec, width_px)
    if total_px is None:
        total_px = int(round(h_in * ppi))

    inches = spec.band_inches()
    bands: Dict[str, int] = {}
    for name in BAND_NAMES:
        if name == "body":
            continue
        bands[name] = max(0, int(round((inches[name] or 0.0) * ppi)))
    others = sum(bands.values())

    if inches["body"] is not None:
        body = max(0, int(round(inches["body"] * ppi)))
        body += total_px - (others + body)
    else:
        body = total_px - others

    degraded = False
    if body < 0:
        degraded = True
        logger.warning(
            "Band heights exceed card height (%dpx of bands vs %dpx total); body clamped to 0",
            others,
            total_px,
        )
        body = 0
    bands["body"] = body

    layout = BandLayout(
        width_px=int(width_px),
        total_px=int(total_px),
        px_per_in=ppi,
        bands={n: bands[n] for n in BAND_NAMES},
        render_scale=render_scale(width_px, spec.wide_scale_threshold, spec.wide_scale),
        degraded=degraded,
    )
    if on_bands is not None:
        on_bands(band_report(layout))
    return layout


def band_report(layout: BandLayout) -> List[BandReport]:
    return [BandReport(name=n, px=px, inches=px / layout.px_per_in) for n, px in layout.bands.items()]
