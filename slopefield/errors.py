"""Exception types raised by the slope-field engine.

Every error the core can raise derives from :class:`SlopeFieldError`, and each
concrete type also derives from the closest built-in category so callers that
only know about ``ValueError`` or ``ArithmeticError`` still catch them.

Nothing in the engine terminates the process: parse and configuration errors
propagate to the caller that asked for the change, while evaluation errors are
absorbed per point (sampling) or per cursor (tracing).
"""

from __future__ import annotations

from typing import Optional

__all__ = ["SlopeFieldError", "ConfigError", "ParseError", "EvalError"]


class SlopeFieldError(Exception):
    """Base class for all slope-field engine errors."""


class ConfigError(SlopeFieldError, ValueError):
    """Raised when domain bounds, grid resolution or step size are invalid."""


class ParseError(SlopeFieldError, ValueError):
    """Raised when equation text cannot be parsed.

    Parameters
    ----------
    message : str
        Human-readable description of the problem.
    position : int or None
        Zero-based character offset into ``text`` where the problem was
        detected, or ``None`` when no precise location is known.
    text : str
        The text that failed to parse.
    """

    def __init__(self, message: str, position: Optional[int] = None, text: str = "") -> None:
        self.message = message
        self.position = position
        self.text = text
        super().__init__(self._format())

    def _format(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (at position {self.position})"

    def pointer(self) -> str:
        """Return the source text with a caret under the error position."""
        if self.position is None or not self.text:
            return self.text
        return f"{self.text}\n{' ' * self.position}^"


class EvalError(SlopeFieldError, ArithmeticError):
    """Raised when an expression cannot be evaluated at a point.

    ``kind`` is ``"unknown_name"`` when a variable has no binding (``name``
    holds the variable) and ``"domain"`` when the result is not a finite real
    number.
    """

    UNKNOWN_NAME = "unknown_name"
    DOMAIN = "domain"

    def __init__(self, kind: str, message: str, *, name: Optional[str] = None) -> None:
        self.kind = kind
        self.name = name
        super().__init__(message)

    @classmethod
    def unknown_name(cls, name: str) -> "EvalError":
        return cls(cls.UNKNOWN_NAME, f"No binding for variable {name!r}", name=name)

    @classmethod
    def domain(cls, detail: str) -> "EvalError":
        return cls(cls.DOMAIN, f"Expression is undefined here: {detail}")
