from PIL import Image

from bands import CardSpec
from card_render import render_layout, render_template
from card_template import AssetRefs, CardTemplate, FieldSet
from fonts import FontBook, PillowTextMeasurer


def _template(**kwargs):
    kwargs.setdefault("fields", FieldSet.from_values(name="Ravi Kumar", id_number="CRC-1", valid_upto="2027"))
    return CardTemplate(**kwargs)


def test_render_size_matches_layout():
    template = _template()
    img = render_template(template, 360)
    layout = template.assemble(360)
    assert img.mode == "RGB"
    assert img.size == (layout.width, layout.height)


def test_top_band_uses_branding_colour():
    template = _template()
    img = render_template(template, 360)
    y, h = template.assemble(360).bands.band_span("top")
    # left edge of the band, clear of the title text
    assert img.getpixel((2, y + h // 2)) == template.branding.top_color


def test_loaded_photo_is_drawn_into_its_box():
    red = Image.new("RGB", (60, 80), (255, 0, 0))
    template = _template(assets=AssetRefs(photo="photo.png"))
    layout = template.assemble(360)
    img = render_layout(layout, loader=lambda uri: red if uri == "photo.png" else None)
    box = layout.find("photo").box
    cx, cy = int(box.x + box.w / 2), int(box.y + box.h / 3)
    assert img.getpixel((cx, cy)) == (255, 0, 0)


def test_loader_returning_none_draws_placeholder():
    template = _template(assets=AssetRefs(photo="missing.png"))
    layout = template.assemble(360)
    img = render_layout(layout, loader=lambda uri: None)
    box = layout.find("photo").box
    x0, y0 = int(box.x) + 2, int(box.y) + 2
    assert img.getpixel((x0, y0)) != template.branding.background


def test_back_and_portrait_render():
    back = render_template(_template(side="back"), 360)
    portrait = render_template(_template(spec=CardSpec(orientation="portrait")), 300)
    assert back.width == 360
    assert portrait.size == (300, round(300 * 3.375 / 2.125))


def test_measurer_scales_linearly():
    measure = PillowTextMeasurer(FontBook())
    w10 = measure("IDENTITY", 10, 0)
    w20 = measure("IDENTITY", 20, 0)
    assert w10 > 0
    assert abs(w20 - 2 * w10) < 1e-6
    assert measure("IDENTITY", 10, 2) == w10 + 2 * 7
    assert measure("", 10, 2) == 0.0


def test_line_height_grows_with_font_size():
    fonts = FontBook()
    small = fonts.line_height(12, True)
    large = fonts.line_height(48, True)
    assert small > 0
    assert large > small
