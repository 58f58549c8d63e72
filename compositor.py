"""
Photo, stamp and signature geometry.

Photo size comes from the first explicit input in priority order:

    height_in > height_px > width_in > width_px > body proportion > fallback

and always keeps the requested width/height aspect.

Stamp size is min(photo w, photo h) x position factor x user scale, capped at
the column width. Placement modes:

    overlap  absolute, straddling a photo corner
    above    absolute badge in the room above the photo; shrinks to that room
             and never overlaps or moves the photo
    below    stacked in flow under the photo; later content moves down
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from config import (
    FALLBACK_PHOTO_HEIGHT_PX,
    PHOTO_ASPECT,
    PHOTO_BODY_PROPORTION,
    STAMP_DEFAULT_FACTORS,
    STAMP_FACTOR_RANGES,
)

STAMP_MODES = ("overlap", "above", "below")
CORNERS = ("bottom-right", "bottom-left", "top-right", "top-left")


@dataclass
class PhotoSpec:
    height_in: Optional[float] = None
    height_px: Optional[float] = None
    width_in: Optional[float] = None
    width_px: Optional[float] = None
    body_proportion: float = PHOTO_BODY_PROPORTION
    aspect: float = PHOTO_ASPECT  # width / height
    offset_x: float = 0.0
    offset_y: float = 0.0


@dataclass
class PhotoSize:
    width: float
    height: float
    source: str


@dataclass
class PhotoBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2


@dataclass
class StampSpec:
    mode: str = "overlap"
    scale: float = 1.0
    factor: Optional[float] = None
    corner: str = "bottom-right"
    offset_x: float = 0.0
    offset_y: float = 0.0
    gap: float = 4.0

    def __post_init__(self):
        if self.mode not in STAMP_MODES:
            raise ValueError(f"stamp mode must be one of {STAMP_MODES}, got {self.mode!r}")
        if self.corner not in CORNERS:
            raise ValueError(f"stamp corner must be one of {CORNERS}, got {self.corner!r}")


@dataclass
class StampPlacement:
    x: float
    y: float
    size: float
    mode: str
    in_flow: bool = False
    flow_advance: float = 0.0


def photo_size(spec: PhotoSpec, body_px: Optional[float] = None, px_per_in: Optional[float] = None) -> PhotoSize:
    """Resolve the photo box size from the highest-priority input present."""
    aspect = spec.aspect if spec.aspect and spec.aspect > 0 else PHOTO_ASPECT
    if spec.height_in and px_per_in:
        height, source = spec.height_in * px_per_in, "height_in"
    elif spec.height_px:
        height, source = float(spec.height_px), "height_px"
    elif spec.width_in and px_per_in:
        height, source = spec.width_in * px_per_in / aspect, "width_in"
    elif spec.width_px:
        height, source = float(spec.width_px) / aspect, "width_px"
    elif body_px and spec.body_proportion > 0:
        height, source = body_px * spec.body_proportion, "proportion"
    else:
        height, source = float(FALLBACK_PHOTO_HEIGHT_PX), "fallback"
    return PhotoSize(width=height * aspect, height=height, source=source)


def place_photo(size: PhotoSize, x: float, y: float, spec: Optional[PhotoSpec] = None) -> PhotoBox:
    """Photo box at (x, y) plus the photo options' alignment nudges."""
    dx = spec.offset_x if spec else 0.0
    dy = spec.offset_y if spec else 0.0
    return PhotoBox(x=x + dx, y=y + dy, width=size.width, height=size.height)


def position_factor(spec: StampSpec) -> float:
    lo, hi = STAMP_FACTOR_RANGES[spec.mode]
    if spec.factor is None:
        return STAMP_DEFAULT_FACTORS[spec.mode]
    return min(hi, max(lo, spec.factor))


def stamp_size(photo_width: float, photo_height: float, spec: StampSpec, column_width: Optional[float] = None) -> float:
    size = min(photo_width, photo_height) * position_factor(spec) * max(0.0, spec.scale)
    if column_width is not None and column_width > 0:
        size = min(size, column_width)
    return size


def place_stamp(
    photo: PhotoBox,
    spec: StampSpec,
    column_width: Optional[float] = None,
    render_scale: float = 1.0,
    min_y: Optional[float] = None,
) -> StampPlacement:
    """
    Position the stamp relative to the photo box.

    Args:
        photo: Placed photo box
        spec: Stamp mode, scale, corner and nudges
        column_width: Width of the enclosing column (caps the stamp size)
        render_scale: Chrome scale; bounds the overlap outward push
        min_y: Highest y an 'above' badge may reach; the badge shrinks to fit
               between min_y and the photo top
    """
    size = stamp_size(photo.width, photo.height, spec, column_width)
    gap = spec.gap * render_scale

    if spec.mode == "overlap":
        outward = min(18 * render_scale, round(size * 0.18))
        right = spec.corner.endswith("right")
        bottom = spec.corner.startswith("bottom")
        x = photo.right - size + outward if right else photo.x - outward
        y = photo.bottom - size + outward if bottom else photo.y - outward
        placement = StampPlacement(x=x, y=y, size=size, mode=spec.mode)
    elif spec.mode == "above":
        if min_y is not None:
            size = max(0.0, min(size, photo.y - gap - min_y))
        y = photo.y - gap - size
        placement = StampPlacement(x=photo.center_x - size / 2, y=y, size=size, mode=spec.mode)
    else:
        placement = StampPlacement(
            x=photo.center_x - size / 2,
            y=photo.bottom + gap,
            size=size,
            mode=spec.mode,
            in_flow=True,
            flow_advance=size + gap,
        )

    placement.x += spec.offset_x
    placement.y += spec.offset_y
    return placement


def place_signature(
    column_x: float,
    column_width: float,
    top: float,
    bottom_limit: float,
    aspect: float = 190 / 90,
    max_height: Optional[float] = None,
    align: str = "center",
) -> Tuple[float, float, float, float]:
    """
    Fit a signature box (width / height = aspect) between top and bottom_limit.

    Returns (x, y, width, height); height is 0 when no room is left.
    """
    room = max(0.0, bottom_limit - top)
    height = room if max_height is None else min(room, max_height)
    width = height * aspect
    if width > column_width:
        width = column_width
        height = width / aspect
    if align == "right":
        x = column_x + column_width - width
    elif align == "left":
        x = column_x
    else:
        x = column_x + (column_width - width) / 2
    return x, bottom_limit - height, width, height
