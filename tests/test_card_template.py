import pytest

from bands import CardSpec
from card_template import AssetRefs, CardTemplate, FieldSet, ImageElement, TextElement
from compositor import StampSpec


def mono(text, size, spacing):
    if not text:
        return 0.0
    return len(text) * size * 0.55 + spacing * (len(text) - 1)


def _fields(**overrides):
    values = dict(
        name="Ravi Kumar",
        designation="District Coordinator",
        cell="Anti Corruption Cell",
        id_number="CRC-000123",
        contact="+91 90000 00000",
        valid_upto="31-12-2027",
    )
    values.update(overrides)
    return FieldSet.from_values(**values)


def _template(**kwargs):
    kwargs.setdefault("fields", _fields())
    kwargs.setdefault("measure", mono)
    return CardTemplate(**kwargs)


def test_fieldset_keeps_order_and_optional_rows():
    fs = FieldSet.from_values(name="A", id_number="1", zone="North")
    labels = [k for k, _ in fs.items()]
    assert labels[:2] == ["Name", "Designation"]
    assert labels[-1] == "Zone"
    assert "Issue Date" not in labels
    assert fs.get("ID No") == "1"
    assert [k for k, _ in fs.rows(exclude=("Cell",))].count("Cell") == 0


def test_landscape_front_roles_and_band_sum():
    layout = _template().assemble(720)
    assert layout.width == 720
    assert sum(layout.bands.bands.values()) == layout.height
    for role in ("card", "band.top", "title", "band.notice", "band.bottom", "footer", "photo", "stamp", "cell", "field.name.value"):
        assert layout.find(role) is not None, role
    assert layout.photo is not None and layout.stamp is not None


def test_missing_assets_render_as_labelled_placeholders():
    layout = _template().assemble(720)
    photo = layout.find("photo")
    assert isinstance(photo, ImageElement)
    assert photo.ref is None
    assert photo.label == "PHOTO"
    assert photo.box.w == pytest.approx(layout.photo.width)
    assert layout.find("logo").label == "LOGO"


def test_asset_refs_pass_through():
    layout = _template(assets=AssetRefs(photo="p.png", logo="l.png", qr="qr:1")).assemble(720)
    assert layout.find("photo").ref == "p.png"
    assert layout.find("logo").ref == "l.png"
    assert layout.find("qr").ref == "qr:1"


def test_title_is_justified_without_overflow():
    layout = _template().assemble(720)
    title = layout.find("title")
    assert isinstance(title, TextElement)
    assert title.fit is not None
    assert title.fit.width <= title.box.w + 0.5
    assert title.letter_spacing > 0


def test_long_name_shrinks_instead_of_clipping():
    long_name = "Venkata Narasimha Raghavendra Subrahmanyam"
    layout = _template(fields=_fields(name=long_name)).assemble(720)
    value = layout.find("field.name.value")
    assert value.text == long_name
    assert value.fit.scale < 1.0
    assert value.fit.scale >= 0.75


def test_long_plain_row_is_ellipsized():
    layout = _template(fields=_fields(valid_upto="31-12-2027 " * 8)).assemble(720)
    value = layout.find("field.valid_upto.value")
    assert value.text.endswith("…")


@pytest.mark.parametrize("orientation,variant", [("portrait", "standard"), ("landscape", "exact"), ("portrait", "exact")])
def test_stacked_fronts(orientation, variant):
    spec = CardSpec(orientation=orientation, variant=variant)
    layout = _template(spec=spec).assemble(400)
    assert layout.height == round(400 * spec.base_aspect)
    assert layout.find("photo") is not None
    assert layout.find("signature") is not None
    if variant == "exact":
        assert layout.find("details") is not None
        assert layout.find("heading") is not None
    else:
        assert layout.find("name").text == "Ravi Kumar"


def test_below_stamp_moves_later_content_down():
    spec = CardSpec(orientation="portrait")
    overlap = _template(spec=spec, stamp=StampSpec(mode="overlap")).assemble(400)
    below = _template(spec=spec, stamp=StampSpec(mode="below", factor=1.2)).assemble(400)
    assert below.find("cell").box.y > overlap.find("cell").box.y


def test_back_side_has_no_notice_band():
    layout = _template(side="back", assets=AssetRefs(qr="qr:1")).assemble(720)
    assert layout.bands.bands["notice"] == 0
    assert layout.find("qr") is not None
    assert layout.find("terms.title") is not None
    assert layout.find("photo") is None


def test_on_bands_diagnostics():
    seen = []
    _template(on_bands=seen.extend).assemble(720)
    assert [r.name for r in seen] == ["top", "notice", "body", "bottom"]


def test_wide_render_scales_chrome():
    narrow = _template().assemble(720)
    wide = _template().assemble(1440)
    assert narrow.bands.render_scale == 1.0
    assert wide.bands.render_scale == pytest.approx(2.0)


def test_invalid_side():
    with pytest.raises(ValueError):
        CardTemplate(side="middle")


def _overlaps(a, b):
    return a.x < b.right and b.x < a.right and a.y < b.bottom and b.y < a.bottom


@pytest.mark.parametrize("orientation,variant", [("landscape", "standard"), ("portrait", "standard"), ("portrait", "exact")])
def test_above_stamp_sits_clear_of_photo_and_logo(orientation, variant):
    spec = CardSpec(orientation=orientation, variant=variant)
    layout = _template(spec=spec, stamp=StampSpec(mode="above")).assemble(720)
    stamp = layout.find("stamp").box
    photo = layout.find("photo").box
    assert stamp.h > 0
    assert not _overlaps(stamp, photo)
    assert stamp.bottom <= photo.y
    assert not _overlaps(stamp, layout.find("logo").box)
    body_y, body_h = layout.bands.band_span("body")
    assert stamp.y >= body_y
    assert photo.bottom <= body_y + body_h
