import pytest

from compositor import (
    PhotoBox,
    PhotoSpec,
    StampSpec,
    photo_size,
    place_photo,
    place_signature,
    place_stamp,
    position_factor,
    stamp_size,
)


@pytest.mark.parametrize(
    "spec,source",
    [
        (PhotoSpec(height_in=0.9), "height_in"),
        (PhotoSpec(height_px=130), "height_px"),
        (PhotoSpec(width_in=0.7), "width_in"),
        (PhotoSpec(width_px=101), "width_px"),
        (PhotoSpec(), "proportion"),
    ],
)
def test_photo_aspect_identical_across_inputs(spec, source):
    size = photo_size(spec, body_px=240, px_per_in=213.3)
    assert size.source == source
    assert size.width / size.height == pytest.approx(0.778)


def test_photo_priority_height_over_width():
    size = photo_size(PhotoSpec(height_px=100, width_px=500), body_px=240)
    assert size.source == "height_px"
    assert size.height == 100


def test_photo_fallback_without_body():
    size = photo_size(PhotoSpec(body_proportion=0))
    assert size.source == "fallback"
    assert size.height == 120


def test_place_photo_applies_nudges():
    box = place_photo(photo_size(PhotoSpec(height_px=100)), 10, 20, PhotoSpec(offset_x=3, offset_y=-2))
    assert (box.x, box.y) == (13, 18)


def test_position_factor_clamped_per_mode():
    assert position_factor(StampSpec(mode="overlap", factor=5)) == 1.0
    assert position_factor(StampSpec(mode="overlap", factor=0.1)) == 0.6
    assert position_factor(StampSpec(mode="above", factor=0.1)) == 1.2
    assert position_factor(StampSpec(mode="below", factor=9)) == 2.0
    assert position_factor(StampSpec(mode="overlap")) == 0.62


def test_stamp_size_clamped_to_column():
    assert stamp_size(100, 128, StampSpec(mode="above", factor=2.0)) == pytest.approx(200)
    assert stamp_size(100, 128, StampSpec(mode="above", factor=2.0), column_width=150) == 150


def test_overlap_stamp_pushed_out_of_corner():
    photo = PhotoBox(0, 0, 78, 100)
    st = place_stamp(photo, StampSpec(mode="overlap"))
    size = 78 * 0.62
    outward = min(18, round(size * 0.18))
    assert st.size == pytest.approx(size)
    assert st.x == pytest.approx(photo.right - size + outward)
    assert st.y == pytest.approx(photo.bottom - size + outward)
    assert not st.in_flow


def test_overlap_push_bounded_by_render_scale():
    photo = PhotoBox(0, 0, 400, 500)
    st = place_stamp(photo, StampSpec(mode="overlap", corner="top-left"))
    # 18% of a 248px stamp is 45px; the push stops at 18 * render scale
    assert st.x == pytest.approx(-18)
    assert st.y == pytest.approx(-18)


def test_above_stamp_does_not_flow_and_respects_min_y():
    photo = PhotoBox(10, 100, 78, 100)
    st = place_stamp(photo, StampSpec(mode="above", gap=4))
    assert st.y == pytest.approx(100 - 4 - st.size)
    assert st.x == pytest.approx(photo.center_x - st.size / 2)
    assert st.flow_advance == 0
    clamped = place_stamp(photo, StampSpec(mode="above"), min_y=50)
    assert clamped.y == 50
    assert clamped.size == pytest.approx(46)
    assert clamped.y + clamped.size <= photo.y
    squeezed = place_stamp(photo, StampSpec(mode="above"), min_y=99)
    assert squeezed.size == 0


def test_below_stamp_reports_flow_advance():
    photo = PhotoBox(10, 100, 78, 100)
    st = place_stamp(photo, StampSpec(mode="below", gap=4), render_scale=2.0)
    assert st.in_flow
    assert st.y == pytest.approx(photo.bottom + 8)
    assert st.flow_advance == pytest.approx(st.size + 8)


def test_stamp_nudges_do_not_change_size():
    photo = PhotoBox(0, 0, 78, 100)
    base = place_stamp(photo, StampSpec())
    nudged = place_stamp(photo, StampSpec(offset_x=5, offset_y=-3))
    assert nudged.size == base.size
    assert (nudged.x - base.x, nudged.y - base.y) == pytest.approx((5, -3))


def test_invalid_stamp_mode():
    with pytest.raises(ValueError):
        StampSpec(mode="sideways")


def test_signature_fits_column_and_limits():
    x, y, w, h = place_signature(0, 100, 10, 60, align="right")
    assert w <= 100
    assert y + h == pytest.approx(60)
    assert x + w == pytest.approx(100)
    assert w / h == pytest.approx(190 / 90)
