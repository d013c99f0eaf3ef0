"""Notebook front end: interactive slope field in a Plotly ``FigureWidget``.

Purpose
-------
:class:`SlopeFieldWidget` puts a :class:`~slopefield.app.SlopeFieldApp` on
screen inside Jupyter:

- the field and curve are drawn by a :class:`PlotlyRenderSink` into a
  ``go.FigureWidget``;
- an invisible grid of click targets (trace 0, kept across frames) turns
  clicks into seed positions, throttled with :class:`PointerThrottle`;
- a text area holds the configuration text and the *Reload* button applies
  it through :meth:`ConfigStore.reload_text`. Errors are shown in the status
  line and the last good field stays on screen.

Examples
--------
>>> from slopefield import SlopeFieldWidget  # doctest: +SKIP
>>> SlopeFieldWidget()  # doctest: +SKIP
"""

from __future__ import annotations

import html
import logging
from typing import Any, Optional

import ipywidgets as widgets
import numpy as np
import plotly.graph_objects as go
from IPython.display import display

from .app import SlopeFieldApp, StaticPointer
from .config_text import format_config_text
from .debouncing import PointerThrottle
from .errors import ConfigError, ParseError, SlopeFieldError
from .mapping import Point
from .render import PlotlyRenderSink

__all__ = ["SlopeFieldWidget"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class SlopeFieldWidget:
    """Interactive slope-field view for notebooks.

    Parameters
    ----------
    app : SlopeFieldApp, optional
        Application to drive. Its ``sink`` and ``pointer`` are replaced.
    hit_spacing : float, optional
        Pixel spacing of the invisible click-target grid.
    interval_ms : int, optional
        Minimum time between redraws triggered by clicks.
    """

    def __init__(
        self,
        app: Optional[SlopeFieldApp] = None,
        *,
        hit_spacing: float = 10.0,
        interval_ms: int = 30,
    ) -> None:
        self.app = app if app is not None else SlopeFieldApp()
        surface = self.app.surface

        self.pointer = StaticPointer()
        self.app.pointer = self.pointer

        self.figure_widget = go.FigureWidget()
        self.figure_widget.add_trace(self._hit_layer(hit_spacing))
        self.sink = PlotlyRenderSink(self.figure_widget, surface=surface, keep_traces=1)
        self.app.sink = self.sink

        self._throttle = PointerThrottle(self._on_pointer, interval_ms=interval_ms)
        self.figure_widget.data[0].on_click(self._on_click)

        self.config_area = widgets.Textarea(
            value=format_config_text(self.app.config),
            layout=widgets.Layout(width="360px", height="170px"),
        )
        self.reload_button = widgets.Button(description="Reload", button_style="primary")
        self.reload_button.on_click(self._on_reload_clicked)
        self.status = widgets.HTML(value="")

        self.root_widget = widgets.VBox(
            [
                self.figure_widget,
                widgets.HBox([self.config_area, self.reload_button]),
                self.status,
            ]
        )
        self.app.tick()

    def _hit_layer(self, spacing: float) -> go.Scatter:
        surface = self.app.surface
        xs = np.arange(0.0, surface.width + spacing / 2, spacing)
        ys = np.arange(0.0, surface.height + spacing / 2, spacing)
        gx, gy = np.meshgrid(xs, ys)
        return go.Scatter(
            x=gx.ravel(),
            y=gy.ravel(),
            mode="markers",
            marker=dict(size=spacing, opacity=0),
            hoverinfo="none",
            showlegend=False,
            name="pointer",
        )

    def _on_click(self, _trace: Any, points: Any, _selector: Any) -> None:
        if not points.xs:
            return
        self._throttle(Point(points.xs[0], points.ys[0]))

    def _on_pointer(self, position: Point) -> None:
        self.select(position)

    def select(self, position: Optional[Point]) -> None:
        """Move the seed to ``position`` (display pixels) and redraw."""
        self.pointer.move_to(position)
        self.app.tick()

    def _on_reload_clicked(self, _button: Any) -> None:
        self.reload(self.config_area.value)

    def reload(self, text: str) -> bool:
        """Apply configuration text; returns False (and reports why) on failure."""
        try:
            report = self.app.reload_text(text)
        except ParseError as exc:
            self._set_status(f"Equation error: {exc}\n{exc.pointer()}", error=True)
            return False
        except ConfigError as exc:
            self._set_status(f"Configuration error: {exc}", error=True)
            return False
        except SlopeFieldError as exc:
            self._set_status(f"Reload failed: {exc}", error=True)
            return False

        notes = list(report.warnings)
        if report.unknown_keys:
            notes.append("unknown keys: " + ", ".join(report.unknown_keys))
        self._set_status("Reloaded." + ("".join(f"\n{n}" for n in notes)), error=bool(notes))
        self.app.tick()
        return True

    def _set_status(self, message: str, *, error: bool) -> None:
        color = "#b91c1c" if error else "#15803d"
        self.status.value = f'<pre style="color:{color};margin:0">{html.escape(message)}</pre>'

    def _ipython_display_(self, **kwargs: Any) -> None:
        """Display the widget tree when the object is the value of a notebook cell."""
        display(self.root_widget)
