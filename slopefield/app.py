"""Frame driver wiring pointer input, the numeric engine and a render sink.

Purpose
-------
:class:`SlopeFieldApp` owns a :class:`~slopefield.config.ConfigStore` and, on
every :meth:`~SlopeFieldApp.tick`:

1. takes one config snapshot,
2. samples the slope field (cached per snapshot, since it only depends on
   the config),
3. converts the pointer position to a domain seed and traces the curve,
4. hands both segment batches to the render sink between ``clear()`` and
   ``present()``.

Reloads go through the store, so a failed reload keeps the last good field
on screen.

Examples
--------
>>> app = SlopeFieldApp(pointer=StaticPointer(Point(400.0, 300.0)))  # doctest: +SKIP
>>> frame = app.tick()  # doctest: +SKIP
>>> len(frame.samples)  # doctest: +SKIP
1353
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, Union, runtime_checkable

from .config import ConfigStore, DomainConfig, ReloadReport
from .config_text import load_equation_file
from .mapping import DEFAULT_SURFACE, Point, Surface, to_domain
from .render import RenderSink
from .sampler import SamplePoint, field_segments, sample
from .segments import Segment
from .tracer import trace_display

__all__ = ["Frame", "PointerSource", "SlopeFieldApp", "StaticPointer"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@runtime_checkable
class PointerSource(Protocol):
    """Supplies the pointer position in display pixels, or None when unknown."""

    def position(self) -> Optional[Point]: ...


class StaticPointer:
    """Pointer source holding the last position it was moved to."""

    def __init__(self, position: Optional[Point] = None) -> None:
        self._position = None if position is None else Point(*position)

    def move_to(self, position: Optional[Point]) -> None:
        self._position = None if position is None else Point(*position)

    def position(self) -> Optional[Point]:
        return self._position


@dataclass(frozen=True)
class Frame:
    """Everything computed for one tick (display-space segments)."""

    config: DomainConfig
    samples: list[SamplePoint]
    field: list[Segment]
    seed: Optional[Point]
    trace: list[Segment]

    @property
    def segments(self) -> list[Segment]:
        return self.field + self.trace


class SlopeFieldApp:
    """Per-tick orchestration of sampling, tracing and rendering.

    Parameters
    ----------
    store : ConfigStore, optional
        Config owner; a default store is created when omitted.
    sink : RenderSink, optional
        Where frames are drawn; :meth:`tick` only computes when omitted.
    pointer : PointerSource, optional
        Seed source; no curve is traced without one.
    surface : Surface, optional
        Display size shared by mapping and rendering.
    """

    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        *,
        sink: Optional[RenderSink] = None,
        pointer: Optional[PointerSource] = None,
        surface: Surface = DEFAULT_SURFACE,
    ) -> None:
        self.store = store if store is not None else ConfigStore()
        self.sink = sink
        self.pointer = pointer
        self.surface = surface
        self._field_cache: Optional[tuple[DomainConfig, list[SamplePoint], list[Segment]]] = None

    @classmethod
    def from_files(
        cls,
        *,
        config_path: Optional[Union[str, Path]] = None,
        equation_path: Optional[Union[str, Path]] = None,
        **kwargs: Any,
    ) -> "SlopeFieldApp":
        """Start from an optional config file and an optional equation file.

        The equation file wins over an ``eq`` line in the config file.
        """
        app = cls(**kwargs)
        if config_path is not None:
            app.store.reload_file(config_path)
        if equation_path is not None:
            app.store.reload(load_equation_file(equation_path))
        return app

    @property
    def config(self) -> DomainConfig:
        return self.store.snapshot()

    def _field(self, config: DomainConfig) -> tuple[list[SamplePoint], list[Segment]]:
        cached = self._field_cache
        if cached is not None and cached[0] is config:
            return cached[1], cached[2]
        samples = sample(config)
        segments = field_segments(samples, config, self.surface)
        self._field_cache = (config, samples, segments)
        return samples, segments

    def compute_frame(self, pointer_position: Optional[Point] = None) -> Frame:
        """Compute one frame from the current snapshot without drawing it."""
        config = self.store.snapshot()
        samples, field = self._field(config)
        seed = None if pointer_position is None else to_domain(pointer_position, config, self.surface)
        curve = [] if seed is None else trace_display(seed, config, self.surface)
        return Frame(config=config, samples=samples, field=field, seed=seed, trace=curve)

    def tick(self) -> Frame:
        """Poll the pointer, compute a frame and present it on the sink."""
        position = self.pointer.position() if self.pointer is not None else None
        frame = self.compute_frame(position)
        if self.sink is not None:
            self.sink.clear()
            self.sink.draw_segments(frame.field)
            self.sink.draw_segments(frame.trace)
            self.sink.present()
        logger.debug("tick: %d field segments, %d trace segments", len(frame.field), len(frame.trace))
        return frame

    def reload(
        self,
        equation_text: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ReloadReport:
        """See :meth:`ConfigStore.reload`."""
        return self.store.reload(equation_text, overrides)

    def reload_text(self, text: str) -> ReloadReport:
        return self.store.reload_text(text)

    def reload_file(self, path: Union[str, Path]) -> ReloadReport:
        return self.store.reload_file(path)
