"""Render sinks: where display-space segments end up.

The engine never draws. A driver hands each frame's segments to a
:class:`RenderSink` between ``clear()`` and ``present()``.

:class:`PlotlyRenderSink` draws into a Plotly figure. Segments are grouped by
stroke (width and color) and each group becomes one ``Scatter`` trace whose
line pieces are separated by ``None`` gaps, so a 41x33 field is three traces,
not thirteen hundred. The axes are pinned to the surface in pixels with the
vertical axis reversed, which makes Plotly data coordinates identical to
display coordinates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional, Protocol, Union, runtime_checkable

import plotly.graph_objects as go

from .mapping import DEFAULT_SURFACE, Surface
from .segments import Segment

__all__ = ["PlotlyRenderSink", "RenderSink", "segments_to_polyline"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@runtime_checkable
class RenderSink(Protocol):
    """Per-frame drawing surface."""

    def clear(self) -> None: ...

    def draw_segments(self, segments: Iterable[Segment]) -> None: ...

    def present(self) -> None: ...


def segments_to_polyline(segments: Iterable[Segment]) -> tuple[list[Optional[float]], list[Optional[float]]]:
    """Flatten segments into Plotly ``x``/``y`` lists separated by ``None``."""
    xs: list[Optional[float]] = []
    ys: list[Optional[float]] = []
    for seg in segments:
        xs.extend((seg.start.x, seg.end.x, None))
        ys.extend((seg.start.y, seg.end.y, None))
    return xs, ys


class PlotlyRenderSink:
    """Render sink backed by a ``go.Figure`` or ``go.FigureWidget``.

    Parameters
    ----------
    figure : go.Figure or go.FigureWidget, optional
        Target figure. A fresh ``go.Figure`` is created when omitted.
    surface : Surface, optional
        Pixel size of the drawing area.
    background : str, optional
        Plot background color.
    keep_traces : int, optional
        Number of leading traces owned by the caller (e.g. a click-target
        layer). They are left in place, with their callbacks, on every frame.
    """

    def __init__(
        self,
        figure: Optional[Union[go.Figure, go.FigureWidget]] = None,
        *,
        surface: Surface = DEFAULT_SURFACE,
        background: str = "white",
        keep_traces: int = 0,
    ) -> None:
        self.figure = figure if figure is not None else go.Figure()
        self.surface = surface
        self.keep_traces = keep_traces
        self._pending: list[Segment] = []
        self.figure.update_layout(**self._layout(background))

    def _layout(self, background: str) -> dict:
        axis = dict(showgrid=False, zeroline=False, showticklabels=False, fixedrange=True)
        return dict(
            width=self.surface.width,
            height=self.surface.height,
            margin=dict(l=0, r=0, t=0, b=0),
            plot_bgcolor=background,
            paper_bgcolor=background,
            showlegend=False,
            xaxis=dict(range=[0, self.surface.width], **axis),
            yaxis=dict(range=[self.surface.height, 0], **axis),
        )

    def clear(self) -> None:
        self._pending = []

    def draw_segments(self, segments: Iterable[Segment]) -> None:
        self._pending.extend(segments)

    def traces(self) -> list[go.Scatter]:
        """Build one ``Scatter`` trace per stroke group of the pending segments."""
        groups: dict[tuple[float, str], list[Segment]] = {}
        for seg in self._pending:
            groups.setdefault((seg.width, seg.color), []).append(seg)

        traces = []
        for (width, color), members in groups.items():
            xs, ys = segments_to_polyline(members)
            traces.append(
                go.Scatter(
                    x=xs,
                    y=ys,
                    mode="lines",
                    line=dict(width=width, color=color),
                    hoverinfo="skip",
                    showlegend=False,
                    name=f"{color} {width:g}px",
                )
            )
        return traces

    def present(self) -> None:
        traces = self.traces()
        self.figure.data = self.figure.data[: self.keep_traces]
        if traces:
            self.figure.add_traces(traces)
        logger.debug("presented %d segments in %d traces", len(self._pending), len(traces))

    @property
    def segment_count(self) -> int:
        return len(self._pending)

