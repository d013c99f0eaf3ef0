"""Affine transforms between domain space ``(t, y)`` and display pixels.

The mapping is origin-anchored: domain ``(0, 0)`` always lands at the center
of the surface, and the scale is the full surface size divided by the domain
span. An asymmetric domain such as ``t in [-5, 15]`` therefore renders
off-center. This matches the established on-screen behavior and is kept
deliberately; see ``DESIGN.md``.

Display ``y`` grows downwards, so the vertical axis is flipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

if TYPE_CHECKING:
    from .config import DomainConfig

__all__ = [
    "DEFAULT_SURFACE",
    "Point",
    "Surface",
    "to_display",
    "to_display_arrays",
    "to_domain",
]


class Point(NamedTuple):
    """A 2D point; ``(t, y)`` in domain space or ``(x, y)`` pixels in display space."""

    x: float
    y: float


@dataclass(frozen=True)
class Surface:
    """Fixed-size render surface in pixels."""

    width: float = 800.0
    height: float = 600.0

    def __post_init__(self) -> None:
        if not (self.width > 0 and self.height > 0):
            raise ValueError(f"Surface size must be positive, got {self.width}x{self.height}")

    @property
    def center(self) -> Point:
        return Point(self.width / 2.0, self.height / 2.0)


DEFAULT_SURFACE = Surface()


def to_display(point: Point, config: "DomainConfig", surface: Surface = DEFAULT_SURFACE) -> Point:
    """Map a domain point to display pixels.

    Raises ``ZeroDivisionError`` for a zero-width span, which a validated
    :class:`~slopefield.config.DomainConfig` never has.
    """
    t, y = point
    cx, cy = surface.center
    return Point(
        cx + t / (config.t_max - config.t_min) * surface.width,
        cy - y / (config.y_max - config.y_min) * surface.height,
    )


def to_domain(point: Point, config: "DomainConfig", surface: Surface = DEFAULT_SURFACE) -> Point:
    """Map display pixels back to a domain point (inverse of :func:`to_display`)."""
    dx, dy = point
    cx, cy = surface.center
    return Point(
        (dx - cx) / surface.width * (config.t_max - config.t_min),
        -(dy - cy) / surface.height * (config.y_max - config.y_min),
    )


def to_display_arrays(
    t: np.ndarray, y: np.ndarray, config: "DomainConfig", surface: Surface = DEFAULT_SURFACE
) -> tuple[np.ndarray, np.ndarray]:
    """Vectorized :func:`to_display` over broadcastable coordinate arrays."""
    cx, cy = surface.center
    x_px = cx + np.asarray(t, dtype=float) / (config.t_max - config.t_min) * surface.width
    y_px = cy - np.asarray(y, dtype=float) / (config.y_max - config.y_min) * surface.height
    return x_px, y_px
