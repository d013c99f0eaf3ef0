"""Slope-field grid sampling.

The grid includes both ends of each axis: ``t_div`` divisions give
``t_div + 1`` columns (and likewise for ``y``), so a pass always yields
``(t_div + 1) * (y_div + 1)`` samples in row-major order, ``y`` outer and
``t`` inner.

Evaluation is a single vectorized call over the whole grid. A point whose
slope is undefined keeps its place in the output with ``slope = nan`` and is
skipped when tick segments are built, so one bad sample leaves a gap instead
of blanking the field.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import NamedTuple

import numpy as np

from .config import DomainConfig
from .mapping import DEFAULT_SURFACE, Point, Surface, to_display_arrays
from .segments import FIELD_STYLE, Segment, SegmentStyle

__all__ = ["SamplePoint", "field_segments", "grid_axes", "sample"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class SamplePoint(NamedTuple):
    """One grid sample; ``slope`` is ``nan`` when ``f`` is undefined there."""

    t: float
    y: float
    slope: float

    @property
    def is_valid(self) -> bool:
        return math.isfinite(self.slope)


def grid_axes(config: DomainConfig) -> tuple[np.ndarray, np.ndarray]:
    """Return the inclusive ``t`` and ``y`` grid coordinates."""
    i = np.arange(config.t_div + 1, dtype=float)
    j = np.arange(config.y_div + 1, dtype=float)
    t = (config.t_max - config.t_min) / config.t_div * i + config.t_min
    y = (config.y_max - config.y_min) / config.y_div * j + config.y_min
    return t, y


def _sample_arrays(config: DomainConfig) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    t_axis, y_axis = grid_axes(config)
    tt, yy = np.meshgrid(t_axis, y_axis)  # shape (y_div + 1, t_div + 1)
    slopes = config.equation.evaluate_array({"t": tt, "y": yy})
    return tt.ravel(), yy.ravel(), slopes.ravel()


def sample(config: DomainConfig) -> list[SamplePoint]:
    """Sample ``f(t, y)`` over the configured grid.

    Returns
    -------
    list[SamplePoint]
        Exactly ``(t_div + 1) * (y_div + 1)`` points.

    Raises
    ------
    EvalError
        Only when the equation uses a variable other than ``t`` and ``y``;
        undefined values never raise.
    """
    tt, yy, slopes = _sample_arrays(config)
    points = [SamplePoint(float(t), float(y), float(s)) for t, y, s in zip(tt, yy, slopes)]
    if logger.isEnabledFor(logging.DEBUG):
        invalid = int(np.count_nonzero(np.isnan(slopes)))
        logger.debug("sampled %d points (%d undefined) for %r", len(points), invalid, config.equation.text)
    return points


def field_segments(
    samples: Iterable[SamplePoint],
    config: DomainConfig,
    surface: Surface = DEFAULT_SURFACE,
    style: SegmentStyle = FIELD_STYLE,
) -> list[Segment]:
    """Build display-space tick segments for ``samples``.

    Each tick is centered on the mapped sample, points along
    ``(cos θ, -sin θ)`` with ``θ = atan(slope)`` (display ``y`` points down),
    and reaches a quarter of the grid spacing to either side; horizontal and
    vertical spacing are applied independently. Invalid samples are skipped.
    """
    valid = [s for s in samples if s.is_valid]
    if not valid:
        return []

    t = np.fromiter((s.t for s in valid), dtype=float, count=len(valid))
    y = np.fromiter((s.y for s in valid), dtype=float, count=len(valid))
    slope = np.fromiter((s.slope for s in valid), dtype=float, count=len(valid))

    x_spacing = surface.width / config.t_div
    y_spacing = surface.height / config.y_div
    x_px, y_px = to_display_arrays(t, y, config, surface)
    theta = np.arctan(slope)
    half_dx = np.cos(theta) * x_spacing / 4.0
    half_dy = np.sin(theta) * y_spacing / 4.0

    return [
        Segment(
            start=Point(float(cx - hx), float(cy + hy)),
            end=Point(float(cx + hx), float(cy - hy)),
            width=style.width,
            color=style.color,
        )
        for cx, cy, hx, hy in zip(x_px, y_px, half_dx, half_dy)
    ]
