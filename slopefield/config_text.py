"""Plain-text configuration source.

Format: one ``key: value`` pair per line, for example::

    # damped oscillation
    t min: -5
    t max: 15
    t div: 40
    y min: -2*pi
    y max: 2*pi
    y div: 32
    eq: -y/2 + sin(t)

Keys are case-insensitive; spaces, underscores and dashes inside a key are
interchangeable (``t min`` == ``T_MIN``). ``equation`` is accepted for ``eq``.
Blank lines and lines starting with ``#`` are ignored. Values are kept as
text here and coerced by :func:`slopefield.config.apply_overrides`.

Unknown keys and malformed lines do not stop parsing: they are logged at
WARNING level and returned to the caller in :class:`ConfigText`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Union

from .config import OVERRIDE_KEYS

if TYPE_CHECKING:
    from .config import DomainConfig

__all__ = ["ConfigText", "format_config_text", "load_config_file", "load_equation_file", "normalize_key", "parse_config_text"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_KEY_ALIASES = {"equation": "eq"}


@dataclass(frozen=True)
class ConfigText:
    """Result of parsing configuration text.

    Parameters
    ----------
    overrides : dict[str, str]
        Recognized settings keyed by canonical override key.
    unknown_keys : tuple[str, ...]
        Keys as written in the text that are not recognized.
    warnings : tuple[str, ...]
        Malformed-line and duplicate-key messages, with line numbers.
    """

    overrides: dict[str, str] = field(default_factory=dict)
    unknown_keys: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


def normalize_key(key: str) -> str:
    """Return the canonical override key for ``key`` as written in a file."""
    canonical = re.sub(r"[\s_\-]+", "_", key.strip().lower())
    return _KEY_ALIASES.get(canonical, canonical)


def parse_config_text(text: str) -> ConfigText:
    """Parse ``key: value`` lines into overrides."""
    overrides: dict[str, str] = {}
    unknown: list[str] = []
    warnings: list[str] = []

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key_text, sep, value = line.partition(":")
        if not sep:
            warnings.append(f"line {lineno}: expected 'key: value', got {line!r}")
            continue
        key = normalize_key(key_text)
        value = value.strip()
        if not key:
            warnings.append(f"line {lineno}: missing key in {line!r}")
            continue
        if key not in OVERRIDE_KEYS:
            unknown.append(key_text.strip())
            continue
        if not value:
            warnings.append(f"line {lineno}: missing value for {key_text.strip()!r}")
            continue
        if key in overrides:
            warnings.append(f"line {lineno}: {key_text.strip()!r} given more than once; using the last value")
        overrides[key] = value

    for message in warnings:
        logger.warning("config: %s", message)
    if unknown:
        logger.warning("config: unknown keys: %s", ", ".join(unknown))

    return ConfigText(overrides=overrides, unknown_keys=tuple(unknown), warnings=tuple(warnings))


def load_config_file(path: Union[str, Path]) -> ConfigText:
    """Read and parse a configuration file."""
    return parse_config_text(Path(path).read_text(encoding="utf-8"))


def load_equation_file(path: Union[str, Path]) -> str:
    """Read a file holding only the equation text (surrounding whitespace stripped)."""
    return Path(path).read_text(encoding="utf-8").strip()


_FILE_KEYS = (
    ("t_min", "t min"),
    ("t_max", "t max"),
    ("t_div", "t div"),
    ("y_min", "y min"),
    ("y_max", "y max"),
    ("y_div", "y div"),
    ("dt", "dt"),
    ("eq", "eq"),
)


def format_config_text(config: "DomainConfig") -> str:
    """Render ``config`` in the file format (round-trips through :func:`parse_config_text`)."""
    values = config.as_overrides()
    lines = []
    for key, label in _FILE_KEYS:
        lines.append(f"{label}: {values[key]}")
    return "\n".join(lines) + "\n"
