import pytest

from autofit import (
    FitParams,
    LayoutState,
    Measurement,
    TextFitter,
    ellipsize,
    fit_block,
    fit_line,
    initial_state,
    measure_state,
    step,
)


def mono(text, size, spacing):
    """Synthetic metrics: every glyph is half the font size wide."""
    if not text:
        return 0.0
    return len(text) * size * 0.5 + spacing * (len(text) - 1)


def test_fitting_label_fills_container_with_positive_spacing():
    result = fit_line("HELLO", 40, mono, 10)
    assert result.converged
    assert result.scale == 1.0
    assert result.letter_spacing >= 0
    assert result.width == pytest.approx(40, abs=0.5)
    assert result.passes <= 6


def test_inset_reduces_target():
    result = fit_line("HELLO", 40, mono, 10, inset=6)
    assert result.width == pytest.approx(34, abs=0.5)


def test_too_wide_text_shrinks_to_largest_fitting_scale():
    result = fit_line("ABCDEFGHIJ", 40, mono, 10)
    assert result.converged
    assert result.scale == pytest.approx(0.8)
    assert result.width <= 40 + 0.5
    # a slightly larger scale would no longer fit
    assert mono("ABCDEFGHIJ", 10 * (result.scale + 0.01), 0) > 40


def test_overflow_at_min_scale_uses_bounded_negative_spacing():
    result = fit_line("ABCDEFGHIJ", 30, mono, 10)
    assert result.scale == pytest.approx(0.7)
    assert -0.8 <= result.letter_spacing < 0
    assert result.width <= 30 + 0.5


def test_negative_spacing_never_exceeds_cap():
    result = fit_line("ABCDEFGHIJ", 10, mono, 10)
    assert result.scale == pytest.approx(0.7)
    assert result.letter_spacing == pytest.approx(-0.8)


def test_converged_pair_is_idempotent():
    result = fit_line("HELLO", 40, mono, 10)
    state = LayoutState(text="HELLO", container_width=40, scale=result.scale, letter_spacing=result.letter_spacing)
    again = step(state, measure_state(state, mono, 10))
    assert again.converged
    assert again.scale == result.scale
    assert again.letter_spacing == result.letter_spacing


def test_step_ignores_converged_state():
    state = LayoutState(text="AB", container_width=10, converged=True, scale=0.9)
    assert step(state, Measurement(width=100, truncated=True)) is state


def test_growth_respects_ceiling():
    # growing from 0.9 would land above 94% of the target: spread slack as spacing instead
    state = LayoutState(text="ABCD", container_width=19, scale=0.9)
    grown = step(state, Measurement(width=mono("ABCD", 9, 0)))
    assert grown.scale == pytest.approx(0.9)
    assert grown.letter_spacing > 0

    state = LayoutState(text="ABCD", container_width=40, scale=0.9)
    grown = step(state, Measurement(width=mono("ABCD", 9, 0)))
    assert grown.scale == pytest.approx(0.9 * 1.015)


def test_small_slack_is_still_spread_as_spacing():
    # 1px over 9 gaps is below the 0.15 floor but above the tolerance
    out = step(initial_state("ABCDEFGHIJ", 51.0), Measurement(width=50.0))
    assert not out.converged
    assert out.letter_spacing == pytest.approx(1 / 9)

    result = fit_line("ABCDEFGHIJ", 51.0, mono, 10)
    assert result.converged
    assert result.scale == 1.0
    assert result.width == pytest.approx(51.0, abs=0.5)


def test_slack_within_tolerance_converges_without_spacing():
    out = step(initial_state("ABCDEFGHIJ", 50.4), Measurement(width=50.0))
    assert out.converged
    assert out.letter_spacing == 0.0


def test_residual_spacing_below_floor_snaps_to_zero_when_line_still_fits():
    state = LayoutState(text="ABCDEFGHIJ", container_width=50.3, letter_spacing=0.05)
    out = step(state, Measurement(width=50.45))
    assert out.converged
    assert out.letter_spacing == 0.0


def test_iteration_cap_marks_best_effort(caplog):
    params = FitParams(max_iterations=2)
    with caplog.at_level("WARNING"):
        result = fit_line("ABCDEFGHIJ", 30, mono, 10, params=params)
    assert result.passes == 2
    assert not result.converged
    assert "not converged" in caplog.text


def test_fitter_drops_stale_measurements():
    fitter = TextFitter()
    g1 = fitter.set_inputs("HELLO", 40)
    g2 = fitter.set_inputs("HELLO WORLD", 40)
    assert g2 == g1 + 1
    assert fitter.on_measurement(Measurement(width=25, generation=g1)) is False
    assert fitter.state.iterations == 0
    assert fitter.on_measurement(Measurement(width=55, truncated=True, generation=g2)) is True
    assert fitter.state.iterations == 1


def test_fitter_same_inputs_keep_generation():
    fitter = TextFitter()
    g = fitter.set_inputs("HELLO", 40)
    assert fitter.set_inputs("HELLO", 40) == g


def test_disposed_fitter_ignores_callbacks():
    fitter = TextFitter()
    g = fitter.set_inputs("HELLO", 40)
    before = fitter.state
    fitter.dispose()
    assert fitter.on_measurement(Measurement(width=25, generation=g)) is False
    assert fitter.state is before


def test_block_uses_tightest_line():
    block = fit_block(["SHORT", "A MUCH LONGER LINE"], 60, mono, 10, params=FitParams(positive_cap=0.0))
    assert len(block.lines) == 2
    assert block.scale == min(r.scale for r in block.lines)
    assert block.scale < 1.0
    assert block.font_size == pytest.approx(10 * block.scale)


def test_block_skips_empty_lines():
    block = fit_block(["", "ABC"], 60, mono, 10)
    assert len(block.lines) == 1


def test_ellipsize():
    assert ellipsize("ABCDEFGHIJ", 100, mono, 10) == "ABCDEFGHIJ"
    cut = ellipsize("ABCDEFGHIJ", 30, mono, 10)
    assert cut.endswith("…")
    assert mono(cut, 10, 0) <= 30
    assert ellipsize("ABC", 1, mono, 10) == ""
