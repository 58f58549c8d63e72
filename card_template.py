"""
Card template assembler.

Combines the band calculator, the text justifier and the photo/stamp
compositor into a CardLayout: a flat list of positioned elements (fills,
fitted text runs, image slots) that card_render turns into pixels.

Layout variants:
    landscape  standard CR80 front, photo column beside the details
    portrait   standard CR80 front, everything stacked and centred
    exact      tall 1.42 design with a boxed details table
    back       QR, terms and helpline (side="back", any orientation)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from autofit import FitParams, FitResult, DEFAULT_PARAMS, MeasureFn, ellipsize, fit_block, fit_line
from bands import BandLayout, BandReport, CardSpec, compute_bands
from compositor import (
    PhotoBox,
    PhotoSpec,
    StampPlacement,
    StampSpec,
    photo_size,
    place_photo,
    place_signature,
    place_stamp,
    stamp_size,
)
from config import BLUE, CARD_BACKGROUND, CARD_BORDER, RED, STAMP_ABOVE_BODY_SHARE, TEXT_DARK
from fonts import FontBook, PillowTextMeasurer

Color = Tuple[int, int, int]
WHITE: Color = (255, 255, 255)

NAME = "Name"
DESIGNATION = "Designation"
CELL = "Cell"
ID_NUMBER = "ID No"
CONTACT = "Contact No"
VALID_UPTO = "Valid Upto"
ISSUE_DATE = "Issue Date"
ZONE = "Zone"

# Rows whose values shrink to fit; the rest are cut with an ellipsis
AUTOFIT_ROWS = (NAME, DESIGNATION)
AUTOFIT_ROW_MIN_SCALE = 0.75
SHORT_LABELS = {ID_NUMBER: "ID", CONTACT: "Mob", VALID_UPTO: "Valid", ISSUE_DATE: "Issued"}


class FieldSet:
    """Ordered label -> value pairs printed on the card. Values are not validated."""

    def __init__(self, pairs: Sequence[Tuple[str, str]] = ()):
        self._pairs: List[Tuple[str, str]] = [(str(k), "" if v is None else str(v)) for k, v in pairs]

    @classmethod
    def from_values(
        cls,
        name: str = "",
        designation: str = "",
        cell: str = "",
        id_number: str = "",
        contact: str = "",
        valid_upto: str = "",
        issue_date: Optional[str] = None,
        zone: Optional[str] = None,
    ) -> "FieldSet":
        pairs = [
            (NAME, name),
            (DESIGNATION, designation),
            (CELL, cell),
            (ID_NUMBER, id_number),
            (CONTACT, contact),
            (VALID_UPTO, valid_upto),
        ]
        if issue_date:
            pairs.append((ISSUE_DATE, issue_date))
        if zone:
            pairs.append((ZONE, zone))
        return cls(pairs)

    def get(self, label: str, default: str = "") -> str:
        for k, v in self._pairs:
            if k == label:
                return v
        return default

    def items(self) -> List[Tuple[str, str]]:
        return list(self._pairs)

    def rows(self, exclude: Sequence[str] = ()) -> List[Tuple[str, str]]:
        return [(k, v) for k, v in self._pairs if k not in exclude]

    def __len__(self) -> int:
        return len(self._pairs)


@dataclass
class AssetRefs:
    """Opaque URIs resolved by the host image loader. None reserves a placeholder."""

    logo: Optional[str] = None
    photo: Optional[str] = None
    stamp: Optional[str] = None
    signature: Optional[str] = None
    qr: Optional[str] = None


@dataclass
class CardBranding:
    title: str = "CITIZEN REPORTERS COUNCIL"
    notice_lines: List[str] = field(
        default_factory=lambda: [
            "REGISTERED UNDER THE INDIAN TRUSTS ACT 1882",
            "REGISTRATION NO: 0000/2024",
        ]
    )
    jurisdiction: str = "ALL INDIA JURISDICTION"
    heading: str = "IDENTITY CARD"
    footer: str = "Report crime and corruption 24x7 to the nearest council office."
    signature_label: str = "Signature Issue Auth."
    terms_title: str = "Terms & Conditions"
    terms_lines: List[str] = field(
        default_factory=lambda: [
            "This card is the property of the council and must be returned on request.",
            "This card can be withdrawn at any time without notice.",
            "If found, please return it to the nearest police station or council office.",
        ]
    )
    website: str = ""
    helpline_numbers: List[str] = field(default_factory=list)
    top_color: Color = RED
    notice_color: Color = BLUE
    bottom_color: Color = RED
    accent_color: Color = BLUE
    highlight_color: Color = RED
    band_text_color: Color = WHITE
    text_color: Color = TEXT_DARK
    background: Color = CARD_BACKGROUND
    border: Color = CARD_BORDER


@dataclass
class Box:
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def rect(self) -> Tuple[int, int, int, int]:
        return (int(round(self.x)), int(round(self.y)), int(round(self.x + self.w)), int(round(self.y + self.h)))


@dataclass
class FillElement:
    role: str
    box: Box
    color: Color
    radius: float = 0.0
    outline: Optional[Color] = None
    outline_width: int = 0


@dataclass
class TextElement:
    role: str
    box: Box
    text: str
    font_size: float
    letter_spacing: float = 0.0
    color: Color = TEXT_DARK
    bold: bool = True
    align: str = "center"
    fit: Optional[FitResult] = None


@dataclass
class ImageElement:
    role: str
    box: Box
    ref: Optional[str]
    label: str
    shape: str = "rect"
    mode: str = "cover"


Element = Union[FillElement, TextElement, ImageElement]


@dataclass
class CardLayout:
    width: int
    height: int
    side: str
    bands: BandLayout
    elements: List[Element] = field(default_factory=list)
    photo: Optional[PhotoBox] = None
    stamp: Optional[StampPlacement] = None

    def find(self, role: str) -> Optional[Element]:
        for el in self.elements:
            if el.role == role:
                return el
        return None

    def texts(self) -> List[TextElement]:
        return [el for el in self.elements if isinstance(el, TextElement)]


class _Builder:
    """Accumulates elements for one assemble() call."""

    def __init__(self, template: "CardTemplate", bands: BandLayout):
        self.t = template
        self.bands = bands
        self.W = bands.width_px
        self.H = bands.total_px
        self.pad = max(2, bands.scaled(6))
        self.elements: List[Element] = []

    def fill(self, role: str, box: Box, color: Color, radius: float = 0.0, outline: Optional[Color] = None, outline_width: int = 0):
        if box.w <= 0 or box.h <= 0:
            return None
        el = FillElement(role, box, color, radius, outline, outline_width)
        self.elements.append(el)
        return el

    def line(
        self,
        role: str,
        text: str,
        box: Box,
        color: Color,
        bold: bool = True,
        align: str = "center",
        autofit: bool = True,
        justify: bool = False,
        min_scale: Optional[float] = None,
        size_ratio: float = 0.62,
    ) -> Optional[TextElement]:
        """
        Place one line of text in a box.

        autofit shrinks the font (and at the floor, tightens spacing) until
        the line fits; justify additionally spreads slack as letter spacing.
        Without autofit the text is cut with an ellipsis.
        """
        if not text or box.w <= 0 or box.h <= 0:
            return None
        measure = self.t.measurer(bold)
        base = box.h * size_ratio
        if autofit:
            params = self.t.fit_params
            if min_scale is not None:
                params = replace(params, min_scale=min_scale)
            if not justify:
                params = replace(params, positive_cap=0.0)
            fit = fit_line(text, box.w, measure, base, 0.0, params)
            el = TextElement(role, box, fit.text, fit.font_size, fit.letter_spacing, color, bold, align, fit)
        else:
            el = TextElement(role, box, ellipsize(text, box.w, measure, base), base, 0.0, color, bold, align)
        self.elements.append(el)
        return el

    def block(self, role: str, lines: Sequence[str], box: Box, color: Color, bold: bool = True, align: str = "center") -> List[TextElement]:
        """Lines sharing one fitted scale and spacing, stacked evenly in the box."""
        lines = [ln for ln in lines if ln]
        if not lines or box.w <= 0 or box.h <= 0:
            return []
        line_h = box.h / len(lines)
        params = replace(self.t.fit_params, positive_cap=0.0)
        fit = fit_block(lines, box.w, self.t.measurer(bold), line_h * 0.72, 0.0, params)
        out = []
        for i, text in enumerate(lines):
            el = TextElement(
                f"{role}.{i}",
                Box(box.x, box.y + i * line_h, box.w, line_h),
                text,
                fit.font_size,
                fit.letter_spacing,
                color,
                bold,
                align,
                fit.lines[i] if i < len(fit.lines) else None,
            )
            self.elements.append(el)
            out.append(el)
        return out

    def image(self, role: str, ref: Optional[str], box: Box, label: str, shape: str = "rect", mode: str = "cover"):
        if box.w <= 0 or box.h <= 0:
            return None
        el = ImageElement(role, box, ref, label, shape, mode)
        self.elements.append(el)
        return el

    def rows(self, role: str, rows: Sequence[Tuple[str, str]], box: Box, label_frac: float = 0.34, short_labels: bool = False):
        """Label : value rows. Name and designation values auto-fit, the rest ellipsize."""
        if not rows or box.h <= 0:
            return
        row_h = box.h / len(rows)
        label_w = box.w * label_frac
        colon_w = max(4.0, row_h * 0.4)
        value_x = box.x + label_w + colon_w
        value_w = box.right - value_x
        color = self.t.branding.text_color
        for i, (label, value) in enumerate(rows):
            y = box.y + i * row_h
            shown = SHORT_LABELS.get(label, label) if short_labels else label
            key = label.lower().replace(" ", "_")
            self.line(f"{role}.{key}.label", shown, Box(box.x, y, label_w, row_h), color, align="left", autofit=False, size_ratio=0.58)
            self.line(f"{role}.{key}.colon", ":", Box(box.x + label_w, y, colon_w, row_h), color, size_ratio=0.58)
            self.line(
                f"{role}.{key}.value",
                value,
                Box(value_x, y, value_w, row_h),
                color,
                align="left",
                autofit=label in AUTOFIT_ROWS,
                min_scale=AUTOFIT_ROW_MIN_SCALE,
                size_ratio=0.58,
            )


class CardTemplate:
    """
    A renderable card: spec + field values + asset references.

    Args:
        spec: Physical card description
        fields: Values printed on the front
        assets: Asset URIs (missing ones render as labelled placeholders)
        branding: Fixed texts and colours
        photo: Photo sizing inputs; portrait/exact default to a smaller body share
        stamp: Stamp placement mode and scale
        side: 'front' or 'back'
        photo_side: Landscape only: column holding the photo ('left'/'right')
        signature_under_photo: Landscape only: stack the signature in the photo column
        fonts: Font book shared with the renderer
        measure: Override text measurement (tests use synthetic metrics)
        fit_params: Justifier constants
        on_bands: Diagnostic callback receiving each band's px/inch size
    """

    def __init__(
        self,
        spec: Optional[CardSpec] = None,
        fields: Optional[FieldSet] = None,
        assets: Optional[AssetRefs] = None,
        branding: Optional[CardBranding] = None,
        photo: Optional[PhotoSpec] = None,
        stamp: Optional[StampSpec] = None,
        side: str = "front",
        photo_side: str = "left",
        signature_under_photo: bool = False,
        fonts: Optional[FontBook] = None,
        measure: Optional[MeasureFn] = None,
        fit_params: Optional[FitParams] = None,
        on_bands: Optional[Callable[[List[BandReport]], None]] = None,
    ):
        if side not in ("front", "back"):
            raise ValueError(f"side must be 'front' or 'back', got {side!r}")
        if photo_side not in ("left", "right"):
            raise ValueError(f"photo_side must be 'left' or 'right', got {photo_side!r}")
        self.spec = spec or CardSpec()
        self.fields = fields or FieldSet()
        self.assets = assets or AssetRefs()
        self.branding = branding or CardBranding()
        if photo is None:
            photo = PhotoSpec() if self.spec.layout_key == "landscape" else PhotoSpec(body_proportion=0.36)
        self.photo_spec = photo
        self.stamp_spec = stamp or StampSpec()
        self.side = side
        self.photo_side = photo_side
        self.signature_under_photo = signature_under_photo
        self.fonts = fonts
        self.fit_params = fit_params or DEFAULT_PARAMS
        self.on_bands = on_bands
        self._measure = measure
        self._measurers: Dict[bool, MeasureFn] = {}

    @property
    def base_aspect(self) -> float:
        """Native height / width of this design."""
        return self.spec.base_aspect

    def measurer(self, bold: bool = True) -> MeasureFn:
        if self._measure is not None:
            return self._measure
        m = self._measurers.get(bold)
        if m is None:
            if self.fonts is None:
                self.fonts = FontBook()
            m = PillowTextMeasurer(self.fonts, bold)
            self._measurers[bold] = m
        return m

    def band_spec(self) -> CardSpec:
        if self.side == "back":
            return replace(self.spec, notice_band_in=0.0)
        return self.spec

    def assemble(self, width_px: Optional[int] = None, height_px: Optional[int] = None) -> CardLayout:
        """Lay the card out at a pixel width (and optionally a forced height)."""
        bands = compute_bands(self.band_spec(), width_px, height_px, self.on_bands)
        b = _Builder(self, bands)
        layout = CardLayout(width=bands.width_px, height=bands.total_px, side=self.side, bands=bands)
        self._chrome(b)
        if self.side == "back":
            self._back(b)
        elif self.spec.layout_key == "landscape":
            layout.photo, layout.stamp = self._landscape_front(b)
        else:
            layout.photo, layout.stamp = self._stacked_front(b, exact=self.spec.variant == "exact")
        layout.elements = b.elements
        return layout

    def _chrome(self, b: _Builder) -> None:
        br = self.branding
        bands = b.bands
        b.fill("card", Box(0, 0, b.W, b.H), br.background, outline=br.border, outline_width=max(1, bands.scaled(1)))

        y, h = bands.band_span("top")
        b.fill("band.top", Box(0, y, b.W, h), br.top_color)
        b.line("title", br.title, Box(b.pad, y, b.W - 2 * b.pad, h), br.band_text_color, justify=True)

        y, h = bands.band_span("notice")
        b.fill("band.notice", Box(0, y, b.W, h), br.notice_color)
        b.block("notice", br.notice_lines, Box(b.pad * 2, y, b.W - 4 * b.pad, h), br.band_text_color)

        y, h = bands.band_span("bottom")
        b.fill("band.bottom", Box(0, y, b.W, h), br.bottom_color)
        if self.side == "back":
            numbers = "  |  ".join(br.helpline_numbers[:2])
            footer = f"HELP LINE NUMBER  {numbers}" if numbers else "HELP LINE NUMBER"
        else:
            footer = br.footer
        b.line("footer", footer, Box(b.pad * 2, y, b.W - 4 * b.pad, h), br.band_text_color, min_scale=0.6, size_ratio=0.55)

    def _photo_and_stamp(self, b: _Builder, col_x: float, col_w: float, top: float, body_y: float, body_h: float):
        size = photo_size(self.photo_spec, body_h, b.bands.px_per_in)
        badge_top = top
        if self.stamp_spec.mode == "above":
            # keep a strip above the photo so the badge never covers it or the content over it
            badge = min(stamp_size(size.width, size.height, self.stamp_spec, col_w), body_h * STAMP_ABOVE_BODY_SHARE)
            top += badge + self.stamp_spec.gap * b.bands.render_scale
        photo = place_photo(size, col_x + (col_w - size.width) / 2, top, self.photo_spec)
        stamp = place_stamp(photo, self.stamp_spec, col_w, b.bands.render_scale, min_y=badge_top)
        b.image("photo", self.assets.photo, Box(photo.x, photo.y, photo.width, photo.height), "PHOTO")
        b.image("stamp", self.assets.stamp, Box(stamp.x, stamp.y, stamp.size, stamp.size), "STAMP", shape="circle", mode="contain")
        # next free y below the photo group
        below = photo.bottom + (stamp.flow_advance if stamp.in_flow else 0.0)
        if stamp.mode == "overlap":
            below = max(below, stamp.y + stamp.size)
        return photo, stamp, below + b.pad

    def _signature(self, b: _Builder, x: float, w: float, top: float, bottom: float, align: str, max_height: float):
        br = self.branding
        label_h = min(max(0.0, bottom - top) * 0.3, max_height * 0.45)
        sx, sy, sw, sh = place_signature(x, w, top, bottom - label_h, max_height=max_height, align=align)
        b.image("signature", self.assets.signature, Box(sx, sy, sw, sh), "SIGN", mode="contain")
        b.line("signature.label", br.signature_label, Box(x, bottom - label_h, w, label_h), br.accent_color, align=align)

    def _landscape_front(self, b: _Builder):
        br = self.branding
        body_y, body_h = b.bands.band_span("body")
        body_bottom = body_y + body_h
        pad = b.pad
        col_w = b.W * 0.30
        if self.photo_side == "left":
            col_x, det_x = 0.0, col_w + pad
        else:
            col_x, det_x = b.W - col_w, pad
        det_w = b.W - col_w - 2 * pad

        photo, stamp, below = self._photo_and_stamp(b, col_x, col_w, body_y + 2 * pad, body_y, body_h)
        if self.signature_under_photo:
            self._signature(b, col_x + pad, col_w - 2 * pad, below, body_bottom - pad, "center", body_h * 0.3)

        header_h = body_h * 0.16
        logo_d = header_h
        b.image("logo", self.assets.logo, Box(det_x + det_w - logo_d, body_y + pad, logo_d, logo_d), "LOGO", shape="circle")
        b.line("heading", br.heading, Box(det_x, body_y + pad, det_w - logo_d - pad, header_h), br.highlight_color, align="left")
        cell_y = body_y + pad + header_h
        cell_h = body_h * 0.12
        b.line("cell", self.fields.get(CELL), Box(det_x, cell_y, det_w, cell_h), br.accent_color, align="left", min_scale=0.6)

        foot_h = 0.0 if self.signature_under_photo and not self.assets.qr else body_h * 0.26
        rows_top = cell_y + cell_h
        rows_box = Box(det_x, rows_top, det_w, max(0.0, body_bottom - pad - foot_h - rows_top))
        b.rows("field", self.fields.rows(exclude=(CELL,)), rows_box, short_labels=True)

        if foot_h:
            foot_y = body_bottom - pad - foot_h
            qr_w = 0.0
            if self.assets.qr:
                qr_w = foot_h
                b.image("qr", self.assets.qr, Box(det_x, foot_y, qr_w, foot_h), "QR", mode="contain")
            if not self.signature_under_photo:
                sig_x = det_x + qr_w + pad
                self._signature(b, sig_x, det_x + det_w - sig_x, foot_y, body_bottom - pad, "right", foot_h)
        return photo, stamp

    def _stacked_front(self, b: _Builder, exact: bool):
        br = self.branding
        body_y, body_h = b.bands.band_span("body")
        body_bottom = body_y + body_h
        pad = b.pad
        inner_x = b.W * 0.06
        inner_w = b.W - 2 * inner_x
        y = body_y + pad

        logo_d = body_h * (0.13 if exact else 0.11)
        b.image("logo", self.assets.logo, Box((b.W - logo_d) / 2, y, logo_d, logo_d), "LOGO", shape="circle")
        y += logo_d + pad
        if exact:
            line_h = body_h * 0.045
            b.line("jurisdiction", br.jurisdiction, Box(inner_x, y, inner_w, line_h), br.accent_color, min_scale=0.85)
            y += line_h
            b.line("heading", br.heading, Box(inner_x, y, inner_w, line_h), br.highlight_color, min_scale=0.85)
            y += line_h + pad

        photo, stamp, y = self._photo_and_stamp(b, 0.0, float(b.W), y, body_y, body_h)

        rows = self.fields.rows(exclude=(CELL,) if exact else (CELL, NAME, DESIGNATION))
        # relative heights: cell, (name, designation), rows, signature
        weights = [1.0] + ([] if exact else [1.1, 1.0]) + [0.85] * len(rows) + [1.8]
        unit = max(0.0, body_bottom - pad - y) / sum(weights)

        b.line("cell", self.fields.get(CELL), Box(inner_x, y, inner_w, unit), br.accent_color, min_scale=0.6)
        y += unit
        if not exact:
            b.line("name", self.fields.get(NAME), Box(inner_x, y, inner_w, unit * 1.1), br.text_color, min_scale=AUTOFIT_ROW_MIN_SCALE)
            y += unit * 1.1
            b.line("designation", self.fields.get(DESIGNATION), Box(inner_x, y, inner_w, unit), br.highlight_color, min_scale=AUTOFIT_ROW_MIN_SCALE)
            y += unit

        rows_h = unit * 0.85 * len(rows)
        if exact:
            b.fill("details", Box(inner_x, y, inner_w, rows_h), br.background, radius=b.bands.scaled(12), outline=br.border, outline_width=max(1, b.bands.scaled(1)))
            b.rows("field", rows, Box(inner_x + pad * 2, y, inner_w - pad * 4, rows_h))
        else:
            b.rows("field", rows, Box(inner_x + pad, y, inner_w - pad * 2, rows_h), label_frac=0.28, short_labels=True)
        y += rows_h

        align = "right" if exact else "center"
        self._signature(b, inner_x, inner_w, y, body_bottom - pad, align, unit * 1.8)
        return photo, stamp

    def _back(self, b: _Builder) -> None:
        br = self.branding
        body_y, body_h = b.bands.band_span("body")
        body_bottom = body_y + body_h
        pad = b.pad
        terms = [br.terms_title] + list(br.terms_lines)
        tail = [br.website] if br.website else []

        if b.W >= b.H:
            side_w = b.W * 0.22
            square = min(side_w - 2 * pad, body_h * 0.5)
            b.image("qr", self.assets.qr, Box(pad * 2, body_y + pad * 2, square, square), "QR", mode="contain")
            b.image("logo", self.assets.logo, Box(b.W - pad * 2 - square, body_y + pad * 2, square, square), "LOGO", shape="circle")
            center = Box(side_w, body_y + pad, b.W - 2 * side_w, body_h - 2 * pad)
        else:
            square = min(b.W * 0.3, body_h * 0.25)
            gap = pad * 2
            row_x = (b.W - (2 * square + gap)) / 2
            b.image("qr", self.assets.qr, Box(row_x, body_y + pad * 2, square, square), "QR", mode="contain")
            b.image("logo", self.assets.logo, Box(row_x + square + gap, body_y + pad * 2, square, square), "LOGO", shape="circle")
            top = body_y + pad * 3 + square
            center = Box(b.W * 0.06, top, b.W * 0.88, body_bottom - pad - top)

        lines = terms + tail
        line_h = center.h / max(1, len(lines))
        b.line("terms.title", br.terms_title, Box(center.x, center.y, center.w, line_h), br.text_color, size_ratio=0.7)
        b.block("terms", list(br.terms_lines) + tail, Box(center.x, center.y + line_h, center.w, center.h - line_h), br.text_color, bold=False)
