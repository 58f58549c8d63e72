import pytest

from bands import CardSpec, band_report, compute_bands, derived_body_inches, pixels_per_inch, render_scale, resolve_width_px


def test_band_scenario_body_absorbs_rounding():
    spec = CardSpec(
        width_in=2.125,
        height_in=2.1264,
        width_px=400,
        top_band_in=0.24,
        notice_band_in=0.24,
        bottom_band_in=0.1806,
    )
    layout = compute_bands(spec)
    ppi = 400 / 2.125
    assert layout.px_per_in == pytest.approx(ppi)
    assert layout.bands["top"] == 45
    assert layout.bands["notice"] == 45
    assert layout.bands["bottom"] == 34
    assert sum(layout.bands.values()) == round(2.1264 * ppi) == 400
    assert layout.bands["body"] == 400 - 124
    assert derived_body_inches(spec) == pytest.approx(1.4658)


@pytest.mark.parametrize("width_px", [300, 360, 401, 777, 1012, 2400])
def test_explicit_bands_sum_to_total(width_px):
    spec = CardSpec(
        width_in=3.375,
        height_in=2.125,
        width_px=width_px,
        top_band_in=0.2333,
        notice_band_in=0.2471,
        body_band_in=1.4621,
        bottom_band_in=0.1825,
    )
    layout = compute_bands(spec)
    assert sum(layout.bands.values()) == round(2.125 * layout.px_per_in)
    assert not layout.degraded


def test_dpi_width_uses_dpi_as_ppi():
    spec = CardSpec(width_in=3.375, height_in=2.125, dpi=300)
    assert resolve_width_px(spec) == 1012
    assert pixels_per_inch(spec, 1012) == 300.0
    # a different render width falls back to width / width_in
    assert pixels_per_inch(spec, 675) == pytest.approx(200.0)


def test_forced_total_height_is_respected():
    layout = compute_bands(CardSpec(), width_px=720, total_px=500)
    assert layout.total_px == 500
    assert sum(layout.bands.values()) == 500


def test_negative_body_is_clamped_and_flagged(caplog):
    spec = CardSpec(width_in=3.375, height_in=0.5, width_px=400, top_band_in=0.3, notice_band_in=0.3, bottom_band_in=0.3)
    with caplog.at_level("WARNING"):
        layout = compute_bands(spec)
    assert layout.degraded
    assert layout.bands["body"] == 0
    assert "clamped" in caplog.text


def test_render_scale():
    assert render_scale(720) == 1.0
    assert render_scale(860) == 1.0
    assert render_scale(1440) == pytest.approx(2.0)
    assert render_scale(1440, explicit=1.5) == 1.5
    # never below 1
    assert render_scale(2000, explicit=0.5) == 1.0


def test_on_bands_callback_receives_report():
    seen = []
    layout = compute_bands(CardSpec(), width_px=720, on_bands=seen.extend)
    assert [r.name for r in seen] == ["top", "notice", "body", "bottom"]
    assert [r.px for r in seen] == [r.px for r in band_report(layout)]
    assert seen[0].inches == pytest.approx(0.24, abs=0.01)


def test_exact_variant_uses_tall_aspect():
    spec = CardSpec(variant="exact")
    w, h = spec.physical_size()
    assert w == 2.125
    assert spec.base_aspect == pytest.approx(1.42)


def test_invalid_orientation_rejected():
    with pytest.raises(ValueError):
        CardSpec(orientation="diagonal")
