"""
Auto-fit text justifier.

A single line of text has to fill its container exactly: no clipping, no
visibly loose or cramped spacing, at any width or DPI. The fit is a
fixed-point iteration over (font scale, letter spacing):

    render -> measure -> step(state, measurement) -> render -> ...

`step` is pure. `TextFitter` owns the state for one text run and guards it
against stale measurements (generation stamp) and late callbacks after
disposal. `fit_line` / `fit_block` drive the loop synchronously against an
injected `measure(text, font_size, letter_spacing) -> width` function, so the
algorithm never needs a live rendering host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Sequence

from config import (
    FIT_DECAY,
    FIT_GROWTH,
    FIT_GROWTH_CEILING,
    FIT_MAX_ITERATIONS,
    FIT_MIN_SCALE,
    FIT_NEGATIVE_SPACING_CAP,
    FIT_POSITIVE_SPACING_CAP,
    FIT_POSITIVE_SPACING_FLOOR,
    FIT_TOLERANCE_PX,
)

logger = logging.getLogger(__name__)

MeasureFn = Callable[[str, float, float], float]

_EPS = 1e-9
# Spacing smaller than this is noise from float arithmetic; snap it to 0
_SPACING_SNAP = 0.01
ELLIPSIS = "…"


@dataclass(frozen=True)
class FitParams:
    decay: float = FIT_DECAY
    growth: float = FIT_GROWTH
    growth_ceiling: float = FIT_GROWTH_CEILING
    tolerance: float = FIT_TOLERANCE_PX
    min_scale: float = FIT_MIN_SCALE
    negative_cap: float = FIT_NEGATIVE_SPACING_CAP
    positive_floor: float = FIT_POSITIVE_SPACING_FLOOR
    positive_cap: float = FIT_POSITIVE_SPACING_CAP
    max_iterations: int = FIT_MAX_ITERATIONS


DEFAULT_PARAMS = FitParams()


@dataclass(frozen=True)
class LayoutState:
    """Fit state for one text run. Replaced, never mutated."""

    text: str
    container_width: float
    inset: float = 0.0
    generation: int = 0
    scale: float = 1.0
    letter_spacing: float = 0.0
    converged: bool = False
    iterations: int = 0
    exhausted: bool = False

    @property
    def target_width(self) -> float:
        return max(0.0, self.container_width - self.inset)

    @property
    def gaps(self) -> int:
        return max(len(self.text) - 1, 0)


@dataclass(frozen=True)
class Measurement:
    width: float
    truncated: bool = False
    generation: int = 0


@dataclass
class FitResult:
    text: str
    scale: float
    letter_spacing: float
    font_size: float
    width: float
    passes: int
    converged: bool


@dataclass
class BlockFit:
    scale: float
    letter_spacing: float
    font_size: float
    lines: List[FitResult] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return all(r.converged for r in self.lines)


def initial_state(text: str, container_width: float, inset: float = 0.0, generation: int = 0) -> LayoutState:
    return LayoutState(text=text or "", container_width=float(container_width), inset=float(inset), generation=generation)


def _shrink(scale: float, natural_width: float, target: float, params: FitParams) -> float:
    """Decay the scale; jump straight to the proportional fit when that is smaller."""
    proposed = scale * params.decay
    if natural_width > 0 and target > 0:
        proposed = min(proposed, scale * target / natural_width)
    return max(params.min_scale, proposed)


def step(state: LayoutState, measurement: Measurement, params: FitParams = DEFAULT_PARAMS) -> LayoutState:
    """
    Advance the fit by one measurement.

    Order of checks:
      1. truncated: shrink scale, reset spacing
      2. overflow: give back positive spacing, then shrink scale down to
         min_scale, then compress with bounded negative spacing
      3. slack below scale 1: grow scale while the grown width stays under
         the growth ceiling
      4. stable: spread the remaining slack as positive letter spacing
    """
    if measurement.generation != state.generation or state.converged:
        return state

    target = state.target_width
    gaps = state.gaps
    scale = state.scale
    spacing = state.letter_spacing
    width = float(measurement.width)
    natural = width - spacing * gaps
    at_floor = scale <= params.min_scale + _EPS
    done = False

    if measurement.truncated and not at_floor:
        scale = _shrink(scale, natural, target, params)
        spacing = 0.0
    elif measurement.truncated or width > target + params.tolerance:
        overflow = width - target
        if spacing > 0 and gaps:
            spacing = max(0.0, spacing - overflow / gaps)
        elif not at_floor:
            scale = _shrink(scale, natural, target, params)
            spacing = 0.0
        elif gaps and spacing > params.negative_cap + _EPS:
            spacing = max(params.negative_cap, spacing - overflow / gaps)
        else:
            # floor scale and spacing cap reached: best effort
            done = True
    else:
        remaining = target - width
        grown = min(1.0, scale * params.growth)
        if remaining <= params.tolerance:
            done = True
        elif spacing < 0 and gaps:
            spacing = min(0.0, spacing + remaining / gaps)
        elif scale < 1.0 and natural * grown / scale < params.growth_ceiling * target:
            scale = grown
            spacing = 0.0
        elif not gaps:
            done = True
        else:
            spacing = min(spacing + remaining / gaps, params.positive_cap)
            done = abs(spacing - state.letter_spacing) < _EPS

    if done and abs(spacing) < _SPACING_SNAP:
        spacing = 0.0
    elif done and 0 < spacing < params.positive_floor and abs(target - (width - spacing * gaps)) <= params.tolerance:
        # residual spacing below the floor is dropped when the line still fits without it
        spacing = 0.0

    new_state = replace(
        state,
        scale=scale,
        letter_spacing=spacing,
        iterations=state.iterations + 1,
        converged=done,
    )
    if not done and new_state.iterations >= params.max_iterations:
        logger.warning(
            "Text fit not converged after %d passes (%r in %.1fpx); keeping scale=%.3f spacing=%.2f",
            new_state.iterations,
            state.text,
            target,
            scale,
            spacing,
        )
        new_state = replace(new_state, converged=True, exhausted=True)
    return new_state


def measure_state(state: LayoutState, measure: MeasureFn, base_size: float, tolerance: float = FIT_TOLERANCE_PX) -> Measurement:
    """Render-and-measure pass: a line wider than its whole container is truncated."""
    width = measure(state.text, base_size * state.scale, state.letter_spacing)
    truncated = width > state.container_width + tolerance
    return Measurement(width=width, truncated=truncated, generation=state.generation)


class TextFitter:
    """
    Owns the LayoutState of one text run.

    Measurements are tagged with the generation they were taken for; any
    measurement from an older generation (inputs changed since) or arriving
    after dispose() is dropped.
    """

    def __init__(self, params: Optional[FitParams] = None):
        self.params = params or DEFAULT_PARAMS
        self.state: Optional[LayoutState] = None
        self._generation = 0
        self._disposed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def disposed(self) -> bool:
        return self._disposed

    def set_inputs(self, text: str, container_width: float, inset: float = 0.0) -> int:
        """Start a new fit when text or width changed; returns the current generation."""
        if self._disposed:
            return self._generation
        s = self.state
        if s is not None and s.text == (text or "") and s.container_width == float(container_width) and s.inset == float(inset):
            return self._generation
        self._generation += 1
        self.state = initial_state(text, container_width, inset, self._generation)
        return self._generation

    def on_measurement(self, measurement: Measurement) -> bool:
        """Apply a measurement callback. Returns False when it was discarded."""
        if self._disposed or self.state is None:
            return False
        if measurement.generation != self._generation:
            logger.debug("Dropping stale measurement (gen %d, current %d)", measurement.generation, self._generation)
            return False
        self.state = step(self.state, measurement, self.params)
        return True

    def dispose(self) -> None:
        self._disposed = True


def fit_line(
    text: str,
    container_width: float,
    measure: MeasureFn,
    base_size: float,
    inset: float = 0.0,
    params: Optional[FitParams] = None,
) -> FitResult:
    """Run the fit loop for one line until it converges or hits the pass cap."""
    fitter = TextFitter(params)
    fitter.set_inputs(text, container_width, inset)
    while not fitter.state.converged:
        fitter.on_measurement(measure_state(fitter.state, measure, base_size, fitter.params.tolerance))
    s = fitter.state
    size = base_size * s.scale
    return FitResult(
        text=s.text,
        scale=s.scale,
        letter_spacing=s.letter_spacing,
        font_size=size,
        width=measure(s.text, size, s.letter_spacing),
        passes=s.iterations,
        converged=not s.exhausted,
    )


def fit_block(
    lines: Sequence[str],
    container_width: float,
    measure: MeasureFn,
    base_size: float,
    inset: float = 0.0,
    params: Optional[FitParams] = None,
) -> BlockFit:
    """Fit several lines to one shared (scale, spacing): the tightest line wins."""
    results = [fit_line(line, container_width, measure, base_size, inset, params) for line in lines if line]
    if not results:
        return BlockFit(scale=1.0, letter_spacing=0.0, font_size=base_size)
    scale = min(r.scale for r in results)
    spacing = min(r.letter_spacing for r in results)
    return BlockFit(scale=scale, letter_spacing=spacing, font_size=base_size * scale, lines=results)


def ellipsize(text: str, max_width: float, measure: MeasureFn, font_size: float, letter_spacing: float = 0.0) -> str:
    """Trim text from the tail and append an ellipsis until it fits max_width."""
    text = text or ""
    if measure(text, font_size, letter_spacing) <= max_width:
        return text
    cut = len(text)
    while cut > 0:
        cut -= 1
        candidate = text[:cut].rstrip() + ELLIPSIS
        if measure(candidate, font_size, letter_spacing) <= max_width:
            return candidate
    return ""
