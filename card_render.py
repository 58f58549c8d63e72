"""Raster rendering of an assembled CardLayout with Pillow."""

from __future__ import annotations

from typing import Callable, Optional

from PIL import Image, ImageChops, ImageDraw, ImageFont, ImageOps

from card_template import CardLayout, CardTemplate, FillElement, ImageElement, TextElement
from config import CARD_BACKGROUND, PLACEHOLDER_FILL, TEXT_DARK
from fonts import FontBook

# uri -> decoded image, or None when the asset cannot be resolved
ImageLoader = Callable[[str], Optional[Image.Image]]


def render_layout(layout: CardLayout, loader: Optional[ImageLoader] = None, fonts: Optional[FontBook] = None) -> Image.Image:
    """Draw every element in order onto a new RGB card image."""
    fonts = fonts or FontBook()
    card = Image.new("RGB", (layout.width, max(1, layout.height)), CARD_BACKGROUND)
    draw = ImageDraw.Draw(card)
    for el in layout.elements:
        if isinstance(el, FillElement):
            _draw_fill(draw, el)
        elif isinstance(el, TextElement):
            _draw_text(draw, el, fonts)
        elif isinstance(el, ImageElement):
            _draw_image(card, draw, el, loader, fonts)
    return card


def render_template(
    template: CardTemplate,
    width_px: Optional[int] = None,
    height_px: Optional[int] = None,
    loader: Optional[ImageLoader] = None,
) -> Image.Image:
    """Assemble and draw a template (live preview path)."""
    layout = template.assemble(width_px, height_px)
    if template.fonts is None:
        template.fonts = FontBook()
    return render_layout(layout, loader, template.fonts)


def _draw_fill(draw: ImageDraw.ImageDraw, el: FillElement) -> None:
    x0, y0, x1, y1 = el.box.rect()
    if x1 <= x0 or y1 <= y0:
        return
    rect = [(x0, y0), (x1 - 1, y1 - 1)]
    if el.radius:
        draw.rounded_rectangle(rect, radius=int(el.radius), fill=el.color, outline=el.outline, width=el.outline_width or 1)
    else:
        draw.rectangle(rect, fill=el.color, outline=el.outline, width=el.outline_width or 1)


def _draw_text(draw: ImageDraw.ImageDraw, el: TextElement, fonts: FontBook) -> None:
    """Draw glyph by glyph so letter spacing matches the measured width."""
    if not el.text or el.font_size < 1:
        return
    font = fonts.font(el.font_size, el.bold)
    advances = [fonts.advance(ch, el.font_size, el.bold) for ch in el.text]
    width = sum(advances) + el.letter_spacing * (len(el.text) - 1)
    if el.align == "left":
        x = el.box.x
    elif el.align == "right":
        x = el.box.right - width
    else:
        x = el.box.x + (el.box.w - width) / 2
    cy = el.box.y + el.box.h / 2
    truetype = isinstance(font, ImageFont.FreeTypeFont)
    top = cy if truetype else cy - fonts.line_height(el.font_size, el.bold) / 2
    for ch, adv in zip(el.text, advances):
        if truetype:
            draw.text((x, cy), ch, font=font, fill=el.color, anchor="lm")
        else:
            draw.text((x, top), ch, font=font, fill=el.color)
        x += adv + el.letter_spacing


def _circle_mask(size) -> Image.Image:
    mask = Image.new("L", size, 0)
    ImageDraw.Draw(mask).ellipse([(0, 0), (size[0] - 1, size[1] - 1)], fill=255)
    return mask


def _draw_image(card: Image.Image, draw: ImageDraw.ImageDraw, el: ImageElement, loader: Optional[ImageLoader], fonts: FontBook) -> None:
    x0, y0, x1, y1 = el.box.rect()
    w, h = x1 - x0, y1 - y0
    if w <= 0 or h <= 0:
        return
    img = loader(el.ref) if (loader is not None and el.ref) else None
    if img is None:
        _draw_placeholder(draw, el, fonts)
        return

    img = img.convert("RGBA")
    if el.mode == "cover":
        fitted = ImageOps.fit(img, (w, h), Image.Resampling.LANCZOS)
    else:
        contained = ImageOps.contain(img, (w, h), Image.Resampling.LANCZOS)
        fitted = Image.new("RGBA", (w, h), (0, 0, 0, 0))
        fitted.paste(contained, ((w - contained.width) // 2, (h - contained.height) // 2))
    mask = fitted.getchannel("A")
    if el.shape == "circle":
        mask = ImageChops.multiply(mask, _circle_mask((w, h)))
    card.paste(fitted.convert("RGB"), (x0, y0), mask)


def _draw_placeholder(draw: ImageDraw.ImageDraw, el: ImageElement, fonts: FontBook) -> None:
    x0, y0, x1, y1 = el.box.rect()
    rect = [(x0, y0), (x1 - 1, y1 - 1)]
    if el.shape == "circle":
        draw.ellipse(rect, outline=PLACEHOLDER_FILL, width=max(1, (x1 - x0) // 40))
    else:
        draw.rectangle(rect, fill=PLACEHOLDER_FILL)
    size = min((y1 - y0) * 0.2, (x1 - x0) * 0.18)
    if not el.label or size < 4:
        return
    font = fonts.font(size, True)
    cx, cy = (x0 + x1) / 2, (y0 + y1) / 2
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text((cx, cy), el.label, font=font, fill=TEXT_DARK, anchor="mm")
    else:
        draw.text((x0 + 2, cy - fonts.line_height(size, True) / 2), el.label, font=font, fill=TEXT_DARK)
