"""Top-level public API for the ``slopefield`` package.

Slope fields and Euler solution curves for ``dy/dt = f(t, y)``:

>>> from slopefield import DomainConfig, parse, sample, trace  # doctest: +SKIP
>>> config = DomainConfig(equation=parse("t - y"))  # doctest: +SKIP
>>> points = sample(config)  # doctest: +SKIP
>>> curve = list(trace((0.0, 1.0), config))  # doctest: +SKIP

The notebook widget lives in :mod:`slopefield.widget` and is imported lazily
so the numeric engine does not pull in ipywidgets.
"""

from .app import Frame, PointerSource, SlopeFieldApp, StaticPointer
from .config import OVERRIDE_KEYS, ConfigStore, DomainConfig, ReloadReport, apply_overrides
from .config_text import (
    ConfigText,
    format_config_text,
    load_config_file,
    load_equation_file,
    parse_config_text,
)
from .errors import ConfigError, EvalError, ParseError, SlopeFieldError
from .expression import DEFAULT_EQUATION, Expression, ParseLimits, parse
from .mapping import DEFAULT_SURFACE, Point, Surface, to_display, to_domain
from .render import PlotlyRenderSink, RenderSink
from .sampler import SamplePoint, field_segments, sample
from .segments import FIELD_STYLE, LEFT_TRACE_STYLE, RIGHT_TRACE_STYLE, Segment, SegmentStyle
from .tracer import trace, trace_display


def __getattr__(name: str):
    if name == "SlopeFieldWidget":
        from .widget import SlopeFieldWidget

        return SlopeFieldWidget
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "DEFAULT_EQUATION",
    "DEFAULT_SURFACE",
    "FIELD_STYLE",
    "LEFT_TRACE_STYLE",
    "OVERRIDE_KEYS",
    "RIGHT_TRACE_STYLE",
    "ConfigError",
    "ConfigStore",
    "ConfigText",
    "DomainConfig",
    "EvalError",
    "Expression",
    "Frame",
    "ParseError",
    "ParseLimits",
    "PlotlyRenderSink",
    "Point",
    "PointerSource",
    "ReloadReport",
    "RenderSink",
    "SamplePoint",
    "Segment",
    "SegmentStyle",
    "SlopeFieldApp",
    "SlopeFieldError",
    "SlopeFieldWidget",
    "StaticPointer",
    "Surface",
    "apply_overrides",
    "field_segments",
    "format_config_text",
    "load_config_file",
    "load_equation_file",
    "parse",
    "parse_config_text",
    "sample",
    "to_display",
    "to_domain",
    "trace",
    "trace_display",
]
