"""Forward/backward Euler tracing of a solution curve through a seed point.

Two cursors start at the seed. Each iteration advances the left cursor one
step backwards in ``t`` and then the right cursor one step forwards, emitting
one segment per live cursor::

    left'  = (t - dt, y - f(t, y) * dt)
    right' = (t + dt, y + f(t, y) * dt)

A cursor dies permanently once it leaves the domain (see
:meth:`DomainConfig.contains`) or ``f`` is undefined at its position; the
trace ends when both are dead. Because ``t`` moves by ``dt`` every step, the
nominal run is bounded by the domain width. ``DomainConfig.trace_step_cap``
is enforced on top of that as a hard stop.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Optional

from .config import DomainConfig
from .errors import EvalError
from .mapping import DEFAULT_SURFACE, Point, Surface, to_display
from .segments import LEFT_TRACE_STYLE, RIGHT_TRACE_STYLE, Segment, SegmentStyle

__all__ = ["trace", "trace_display"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class _Cursor:
    """One trace front; ``direction`` is -1 (left) or +1 (right)."""

    __slots__ = ("position", "direction", "style", "alive")

    def __init__(self, position: Point, direction: int, style: SegmentStyle) -> None:
        self.position = position
        self.direction = direction
        self.style = style
        self.alive = True

    def step(self, config: DomainConfig) -> Optional[Segment]:
        """Advance one Euler step, or mark the cursor dead and return None."""
        if not self.alive:
            return None
        t, y = self.position
        if not config.contains(t, y):
            self.alive = False
            return None
        try:
            slope = config.equation.evaluate({"t": t, "y": y})
        except EvalError as exc:
            logger.debug("cursor %+d stopped at (%g, %g): %s", self.direction, t, y, exc)
            self.alive = False
            return None

        h = self.direction * config.dt
        new = Point(t + h, y + slope * h)
        self.position = new
        return Segment.styled(Point(t, y), new, self.style)


def trace(
    seed: Point,
    config: DomainConfig,
    *,
    left_style: SegmentStyle = LEFT_TRACE_STYLE,
    right_style: SegmentStyle = RIGHT_TRACE_STYLE,
) -> Iterator[Segment]:
    """Lazily trace the solution curve through ``seed``.

    Parameters
    ----------
    seed : Point
        Domain-space start ``(t, y)``.
    config : DomainConfig
        Snapshot to trace against.

    Yields
    ------
    Segment
        Domain-space steps, alternating left/right while both cursors live.
        Each call starts over from ``seed``.
    """
    seed = Point(*seed)
    left = _Cursor(seed, -1, left_style)
    right = _Cursor(seed, +1, right_style)
    cap = config.trace_step_cap

    iterations = 0
    while left.alive or right.alive:
        if iterations >= cap:
            logger.warning(
                "trace from (%g, %g) hit the %d-step cap for %r", seed.x, seed.y, cap, config.equation.text
            )
            return
        iterations += 1
        for cursor in (left, right):
            segment = cursor.step(config)
            if segment is not None:
                yield segment


def trace_display(
    seed: Point,
    config: DomainConfig,
    surface: Surface = DEFAULT_SURFACE,
) -> list[Segment]:
    """Trace from ``seed`` and map every segment to display pixels."""
    return [segment.map(lambda p: to_display(p, config, surface)) for segment in trace(seed, config)]
