"""Domain configuration and the single-writer store that owns it.

Purpose
-------
:class:`DomainConfig` is the immutable description of one slope-field view:
domain bounds, grid resolution, integration step and equation. It validates
itself on construction, so a config that exists is a config the sampler,
tracer and coordinate mapper can use without further checks.

:class:`ConfigStore` holds the current config for a running application.

Concurrency contract
--------------------
- Readers call :meth:`ConfigStore.snapshot` once per tick and use that
  object for the whole tick. Snapshots never change.
- :meth:`ConfigStore.reload` is the only writer. It builds and validates the
  replacement completely before swapping the stored reference, under a lock
  so concurrent reloads serialize. A failing reload raises and leaves the
  stored config untouched.

Examples
--------
>>> store = ConfigStore()
>>> report = store.reload("t*y", {"t_div": 2, "y_div": 2})
>>> store.snapshot().t_div
2
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Union

from .convert import to_number
from .errors import ConfigError
from .expression import DEFAULT_EQUATION, DEFAULT_LIMITS, Expression, ParseLimits, parse

__all__ = [
    "OVERRIDE_KEYS",
    "ConfigStore",
    "DomainConfig",
    "ReloadReport",
    "apply_overrides",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_FLOAT_KEYS = ("t_min", "t_max", "y_min", "y_max", "dt")
_INT_KEYS = ("t_div", "y_div")
OVERRIDE_KEYS: tuple[str, ...] = _FLOAT_KEYS + _INT_KEYS + ("eq",)


def _default_equation() -> Expression:
    return parse(DEFAULT_EQUATION)


@dataclass(frozen=True)
class DomainConfig:
    """Validated, immutable slope-field configuration.

    Parameters
    ----------
    t_min, t_max : float
        Horizontal domain bounds, ``t_min < t_max``.
    y_min, y_max : float
        Vertical domain bounds, ``y_min < y_max``.
    t_div, y_div : int
        Grid divisions; the sampler produces ``t_div + 1`` columns and
        ``y_div + 1`` rows.
    dt : float
        Euler step, ``> 0``.
    equation : Expression
        Right-hand side ``f(t, y)``.
    clip_y : bool
        When True (default) a trace cursor stops once it leaves the vertical
        bounds as well as the horizontal ones. False restores the looser
        t-only check.
    max_trace_steps : int or None
        Hard cap on tracer iterations; ``None`` derives one from the domain
        (see :attr:`trace_step_cap`).

    Raises
    ------
    ConfigError
        If any value is out of range.
    """

    t_min: float = -10.0
    t_max: float = 10.0
    t_div: int = 40
    y_min: float = -10.0
    y_max: float = 10.0
    y_div: int = 32
    dt: float = 0.01
    equation: Expression = field(default_factory=_default_equation)
    clip_y: bool = True
    max_trace_steps: Optional[int] = None

    def __post_init__(self) -> None:
        for name in _FLOAT_KEYS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{name} must be a real number, got {value!r}")
            if not math.isfinite(value):
                raise ConfigError(f"{name} must be finite, got {value!r}")
            object.__setattr__(self, name, float(value))

        for name in _INT_KEYS + ("max_trace_steps",):
            value = getattr(self, name)
            if value is None and name == "max_trace_steps":
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
            if value <= 0:
                raise ConfigError(f"{name} must be > 0, got {value!r}")

        if not self.t_min < self.t_max:
            raise ConfigError(f"t_min must be < t_max, got [{self.t_min}, {self.t_max}]")
        if not self.y_min < self.y_max:
            raise ConfigError(f"y_min must be < y_max, got [{self.y_min}, {self.y_max}]")
        if self.dt <= 0:
            raise ConfigError(f"dt must be > 0, got {self.dt!r}")
        if not isinstance(self.equation, Expression):
            raise ConfigError(
                f"equation must be an Expression (use parse()), got {type(self.equation).__name__}"
            )

    @property
    def t_range(self) -> tuple[float, float]:
        return (self.t_min, self.t_max)

    @property
    def y_range(self) -> tuple[float, float]:
        return (self.y_min, self.y_max)

    @property
    def trace_step_cap(self) -> int:
        """Maximum tracer iterations.

        A cursor moving ``dt`` per step leaves ``[t_min, t_max]`` within
        ``ceil((t_max - t_min) / dt) + 1`` steps and the next iteration
        notices; one more iteration absorbs floating-point drift.
        """
        if self.max_trace_steps is not None:
            return self.max_trace_steps
        return math.ceil((self.t_max - self.t_min) / self.dt) + 3

    def contains(self, t: float, y: float) -> bool:
        """Trace bounds check (inclusive); ``y`` is only checked when ``clip_y``."""
        if not self.t_min <= t <= self.t_max:
            return False
        if self.clip_y:
            return self.y_min <= y <= self.y_max
        return not math.isnan(y)

    def as_overrides(self) -> dict[str, Any]:
        """Return the config in override-key form (``eq`` holds the equation text)."""
        out: dict[str, Any] = {name: getattr(self, name) for name in _FLOAT_KEYS + _INT_KEYS}
        out["eq"] = self.equation.text
        return out


def apply_overrides(
    base: DomainConfig,
    overrides: Mapping[str, Any],
    *,
    limits: ParseLimits = DEFAULT_LIMITS,
) -> tuple[DomainConfig, tuple[str, ...]]:
    """Build a new config from ``base`` with ``overrides`` applied.

    Keys are the names in :data:`OVERRIDE_KEYS`. String values are coerced
    (``"2*pi"`` is accepted for floats); ``eq`` may be text or an
    :class:`Expression`.

    Returns
    -------
    tuple[DomainConfig, tuple[str, ...]]
        The validated config and the override keys that were not recognized,
        in input order.

    Raises
    ------
    ConfigError
        If a value cannot be coerced or the result is invalid.
    ParseError
        If the ``eq`` text does not parse.
    """
    changes: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in overrides.items():
        if key in _FLOAT_KEYS or key in _INT_KEYS:
            dest_type = float if key in _FLOAT_KEYS else int
            try:
                changes[key] = to_number(value, dest_type)
            except ValueError as exc:
                raise ConfigError(f"Invalid value for {key}: {value!r} ({exc})") from exc
        elif key == "eq":
            changes["equation"] = value if isinstance(value, Expression) else parse(str(value), limits=limits)
        else:
            unknown.append(str(key))
    return replace(base, **changes), tuple(unknown)


@dataclass(frozen=True)
class ReloadReport:
    """Outcome of a successful :meth:`ConfigStore.reload`.

    Parameters
    ----------
    config : DomainConfig
        The config now stored.
    unknown_keys : tuple[str, ...]
        Override keys that were ignored because they are not recognized.
    warnings : tuple[str, ...]
        Other non-fatal issues found while reading configuration text.
    """

    config: DomainConfig
    unknown_keys: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def clean(self) -> bool:
        return not self.unknown_keys and not self.warnings


class ConfigStore:
    """Owner of the current :class:`DomainConfig` (single writer, snapshot readers)."""

    def __init__(self, initial: Optional[DomainConfig] = None, *, limits: ParseLimits = DEFAULT_LIMITS) -> None:
        self._config = initial if initial is not None else DomainConfig()
        self._limits = limits
        self._lock = threading.Lock()

    def snapshot(self) -> DomainConfig:
        """Return the current immutable config."""
        return self._config

    @property
    def config(self) -> DomainConfig:
        return self._config

    def reload(
        self,
        equation_text: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ReloadReport:
        """Atomically replace the equation and/or other settings.

        Parameters
        ----------
        equation_text : str, optional
            New right-hand side. Equivalent to an ``eq`` override.
        overrides : mapping, optional
            Keys from :data:`OVERRIDE_KEYS`; unknown keys are reported.

        Raises
        ------
        ParseError
            Equation text is malformed. The stored config is unchanged.
        ConfigError
            Values are invalid, or ``equation_text`` conflicts with an ``eq``
            override. The stored config is unchanged.
        """
        merged: dict[str, Any] = dict(overrides or {})
        if equation_text is not None:
            if "eq" in merged and str(merged["eq"]).strip() != equation_text.strip():
                raise ConfigError(
                    "reload() received both equation_text= and an 'eq' override with different values; use only one."
                )
            merged["eq"] = equation_text

        with self._lock:
            new_config, unknown = apply_overrides(self._config, merged, limits=self._limits)
            self._config = new_config

        if unknown:
            logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
        logger.debug(
            "reloaded config: eq=%r t=[%g, %g]/%d y=[%g, %g]/%d dt=%g",
            new_config.equation.text,
            new_config.t_min,
            new_config.t_max,
            new_config.t_div,
            new_config.y_min,
            new_config.y_max,
            new_config.y_div,
            new_config.dt,
        )
        return ReloadReport(config=new_config, unknown_keys=unknown)

    def reload_text(self, text: str) -> ReloadReport:
        """Reload from ``key: value`` configuration text (see :mod:`slopefield.config_text`)."""
        from .config_text import parse_config_text

        parsed = parse_config_text(text)
        report = self.reload(overrides=parsed.overrides)
        return ReloadReport(
            config=report.config,
            unknown_keys=parsed.unknown_keys + report.unknown_keys,
            warnings=parsed.warnings,
        )

    def reload_file(self, path: Union[str, Path]) -> ReloadReport:
        """Reload from a configuration file on disk."""
        return self.reload_text(Path(path).read_text(encoding="utf-8"))

