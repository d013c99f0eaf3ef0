"""Drawable line segments and the stroke styles attached to them.

Both the slope-field ticks and the traced solution curve are handed to the
render sink as :class:`Segment` batches. The stroke defaults reproduce the
established look: thin black ticks, a red curve whose backward (left) half
is drawn slightly heavier than the forward (right) half.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

from .mapping import Point


@dataclass(frozen=True)
class SegmentStyle:
    """Stroke width (pixels) and color for a family of segments."""

    width: float
    color: str

    def __post_init__(self) -> None:
        if not self.width > 0:
            raise ValueError(f"Stroke width must be > 0, got {self.width!r}")


FIELD_STYLE = SegmentStyle(width=1.2, color="rgb(0, 0, 0)")
LEFT_TRACE_STYLE = SegmentStyle(width=1.5, color="rgb(255, 0, 0)")
RIGHT_TRACE_STYLE = SegmentStyle(width=1.0, color="rgb(255, 0, 0)")


@dataclass(frozen=True)
class Segment:
    """One straight stroke from ``start`` to ``end``.

    The coordinate space is decided by the producer: the tracer emits domain
    coordinates, field ticks are built directly in display pixels. Use
    :meth:`map` to convert.
    """

    start: Point
    end: Point
    width: float
    color: str

    @classmethod
    def styled(cls, start: Point, end: Point, style: SegmentStyle) -> "Segment":
        return cls(start=Point(*start), end=Point(*end), width=style.width, color=style.color)

    @property
    def style(self) -> SegmentStyle:
        return SegmentStyle(width=self.width, color=self.color)

    def map(self, fn: Callable[[Point], Point]) -> "Segment":
        """Return a copy with both endpoints transformed by ``fn``."""
        return replace(self, start=fn(self.start), end=fn(self.end))


__all__ = [
    "FIELD_STYLE",
    "LEFT_TRACE_STYLE",
    "RIGHT_TRACE_STYLE",
    "Segment",
    "SegmentStyle",
]
