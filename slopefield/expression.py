"""Equation parsing and evaluation for ``dy/dt = f(t, y)``.

Purpose
-------
This module turns user-typed equation text into an immutable
:class:`Expression` and evaluates it against explicit name->value bindings.

Concepts and structure
----------------------
Parsing happens in two stages:

1. A small scanner walks the text, checks the token sequence (operand,
   operator, parentheses, function calls) and reports problems as
   :class:`~slopefield.errors.ParseError` with a character position. It also
   enforces :class:`ParseLimits` so adversarial input (huge text, deep
   nesting) is rejected before SymPy ever sees it.
2. The validated text is handed to SymPy's ``parse_expr`` with ``^`` converted
   to power and a closed namespace: the supported functions, the constants
   ``pi`` and ``e``, and one plain ``Symbol`` per identifier in the text.

The SymPy tree is then compiled once with :func:`slopefield.numpify.numpify`
and wrapped in :class:`Expression`.

Evaluation policy
-----------------
- A variable used by the expression but missing from the bindings raises
  ``EvalError(kind="unknown_name")`` in both scalar and array evaluation.
- :meth:`Expression.evaluate` raises ``EvalError(kind="domain")`` when the
  value is not a finite real number (division by zero, ``log`` of a
  non-positive number, overflow).
- :meth:`Expression.evaluate_array` never raises for domain problems; such
  entries come back as ``nan`` so a whole grid can be evaluated in one call.
- Constant singularities folded by SymPy (``1/0``, ``log(0)``) and integer
  literals beyond float range are compiled as ``nan`` and ``inf``, so they
  follow the same two rules instead of failing at parse time.

Examples
--------
>>> f = parse("t*y")
>>> f.evaluate({"t": 2.0, "y": 3.0})
6.0
>>> f.variables
('t', 'y')
"""

from __future__ import annotations

import keyword
import logging
import math
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

import numpy as np
import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    parse_expr,
    standard_transformations,
)

from .errors import EvalError, ParseError
from .numpify import NumpifiedFunction, numpify_cached

__all__ = [
    "DEFAULT_EQUATION",
    "DEFAULT_LIMITS",
    "FUNCTIONS",
    "CONSTANTS",
    "Expression",
    "ParseLimits",
    "parse",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DEFAULT_EQUATION = "sin(t)*sin(y)"

FUNCTIONS: dict[str, Any] = {
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "exp": sp.exp,
    "log": sp.log,
    "sqrt": sp.sqrt,
    "abs": sp.Abs,
}

CONSTANTS: dict[str, sp.Expr] = {
    "pi": sp.pi,
    "e": sp.E,
}

# Function classes allowed in a SymPy tree (``sqrt`` is a ``Pow``).
_ALLOWED_FUNCTION_CLASSES = (sp.sin, sp.cos, sp.tan, sp.exp, sp.log, sp.Abs)

_TRANSFORMATIONS = standard_transformations + (convert_xor,)

_BINARY_OPERATORS = frozenset({"+", "-", "*", "/", "^", "**"})

_NON_FINITE = (sp.zoo, sp.oo, -sp.oo)


@dataclass(frozen=True)
class ParseLimits:
    """Upper bounds applied to equation text before parsing.

    Parameters
    ----------
    max_length : int
        Maximum number of characters.
    max_depth : int
        Maximum parenthesis nesting depth (function-call parentheses count).
    """

    max_length: int = 4096
    max_depth: int = 64

    def __post_init__(self) -> None:
        if self.max_length <= 0 or self.max_depth <= 0:
            raise ValueError("ParseLimits values must be > 0")


DEFAULT_LIMITS = ParseLimits()


class _Token(NamedTuple):
    kind: str
    text: str
    pos: int


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>\*\*|[-+*/^()])
    """,
    re.VERBOSE,
)


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ParseError(f"Unknown operator {text[pos]!r}", pos, text)
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


def _check_structure(text: str, tokens: list[_Token], limits: ParseLimits) -> set[str]:
    """Validate token order and parentheses; return the free identifiers."""
    expect_operand = True
    open_parens: list[int] = []
    identifiers: set[str] = set()

    for idx, tok in enumerate(tokens):
        nxt = tokens[idx + 1] if idx + 1 < len(tokens) else None
        opens_call = nxt is not None and nxt.text == "("

        if tok.kind in ("number", "name") and not expect_operand:
            raise ParseError(f"Missing operator before {tok.text!r}", tok.pos, text)

        if tok.kind == "number":
            expect_operand = False
        elif tok.kind == "name":
            name = tok.text
            if name.startswith("_") or keyword.iskeyword(name):
                raise ParseError(f"Invalid name {name!r}", tok.pos, text)
            if name in FUNCTIONS:
                if not opens_call:
                    raise ParseError(f"Function {name!r} must be followed by '('", tok.pos, text)
                # Still expecting an operand: the call's '(' comes next.
            elif opens_call:
                raise ParseError(f"Unknown function {name!r}", tok.pos, text)
            else:
                if name not in CONSTANTS:
                    identifiers.add(name)
                expect_operand = False
        elif tok.text == "(":
            if not expect_operand:
                raise ParseError("Missing operator before '('", tok.pos, text)
            open_parens.append(tok.pos)
            if len(open_parens) > limits.max_depth:
                raise ParseError(
                    f"Parentheses nested deeper than {limits.max_depth} levels", tok.pos, text
                )
        elif tok.text == ")":
            if not open_parens:
                raise ParseError("Unbalanced ')'", tok.pos, text)
            if expect_operand:
                raise ParseError("Expected an operand before ')'", tok.pos, text)
            open_parens.pop()
        elif expect_operand:
            if tok.text not in ("+", "-"):
                raise ParseError(f"Expected an operand before {tok.text!r}", tok.pos, text)
        else:
            expect_operand = True

    if open_parens:
        raise ParseError("Unbalanced '('", open_parens[-1], text)
    if expect_operand:
        raise ParseError("Unexpected end of expression", len(text), text)
    return identifiers


def _check_functions(expr: sp.Basic, text: str) -> None:
    for app in expr.atoms(sp.Function):
        if not isinstance(app, _ALLOWED_FUNCTION_CLASSES):
            raise ParseError(f"Unsupported function {app.func.__name__!r}", None, text)


def _finite_literals(expr: sp.Expr) -> sp.Expr:
    """Make every constant printable as a float literal before compilation.

    SymPy folds literal singularities such as ``1/0`` or ``log(0)`` into
    ``zoo``, and keeps integers of any size. Non-finite constants become
    ``nan``; rationals outside float range become (possibly infinite) floats.
    """
    replacements: dict[sp.Expr, sp.Expr] = {c: sp.nan for c in _NON_FINITE if expr.has(c)}
    for r in expr.atoms(sp.Rational):
        if abs(r.p) > sys.float_info.max or r.q > sys.float_info.max:
            replacements[r] = sp.Float(r)
    return expr.xreplace(replacements) if replacements else expr


def parse(text: str, *, limits: ParseLimits = DEFAULT_LIMITS) -> Expression:
    """Parse equation text into an :class:`Expression`.

    Parameters
    ----------
    text : str
        Right-hand side ``f(t, y)``, e.g. ``"sin(t)*sin(y)"`` or ``"t^2 - y"``.
    limits : ParseLimits, optional
        Length and nesting bounds.

    Returns
    -------
    Expression

    Raises
    ------
    ParseError
        On empty input, unknown operators or functions, unbalanced
        parentheses, misplaced operators, or input exceeding ``limits``.
    """
    if not isinstance(text, str):
        raise TypeError(f"parse() expects a string, got {type(text).__name__}")
    if len(text) > limits.max_length:
        raise ParseError(
            f"Expression longer than {limits.max_length} characters", limits.max_length, text
        )
    if not text.strip():
        raise ParseError("Empty expression", 0, text)

    tokens = _tokenize(text)
    identifiers = _check_structure(text, tokens, limits)

    namespace: dict[str, Any] = {name: sp.Symbol(name) for name in identifiers}
    namespace.update(FUNCTIONS)
    namespace.update(CONSTANTS)
    try:
        symbolic = parse_expr(text.strip(), local_dict=namespace, transformations=_TRANSFORMATIONS)
    except Exception as exc:
        raise ParseError(f"Could not parse expression: {exc}", None, text) from exc

    return Expression.from_sympy(symbolic, text=text.strip())


@dataclass(frozen=True)
class Expression:
    """Immutable compiled right-hand side ``f(t, y)``.

    Parameters
    ----------
    text : str
        Source text (or the SymPy string form for expressions built directly).
    symbolic : sympy.Expr
        Parsed SymPy expression.
    variables : tuple[str, ...]
        Names that must be bound at evaluation time, sorted.
    compiled : NumpifiedFunction
        NumPy callable taking ``variables`` positionally.

    Notes
    -----
    Instances hold no mutable state, so one expression may be evaluated from
    several threads with different bindings.
    """

    text: str
    symbolic: sp.Expr
    variables: tuple[str, ...]
    compiled: NumpifiedFunction = field(repr=False, compare=False)

    @classmethod
    def from_sympy(cls, expr: Any, *, text: Optional[str] = None) -> "Expression":
        """Wrap an existing SymPy expression (e.g. ``sp.sin(t) * sp.sin(y)``)."""
        symbolic = sp.sympify(expr)
        source = text if text is not None else str(symbolic)
        if not isinstance(symbolic, sp.Expr):
            raise ParseError(
                f"Equation must be a scalar expression, got {type(symbolic).__name__}", None, source
            )
        _check_functions(symbolic, source)
        symbols = tuple(sorted(symbolic.free_symbols, key=lambda s: s.name))
        try:
            compiled = numpify_cached(_finite_literals(symbolic), vars=symbols)
        except Exception as exc:
            raise ParseError(f"Could not compile expression: {exc}", None, source) from exc
        variables = tuple(sym.name for sym in symbols)
        logger.debug("compiled %r with variables %s", source, variables)
        return cls(text=source, symbolic=symbolic, variables=variables, compiled=compiled)

    def _ordered_args(self, bindings: Mapping[str, Any]) -> list[Any]:
        args = []
        for name in self.variables:
            if name not in bindings:
                raise EvalError.unknown_name(name)
            args.append(bindings[name])
        return args

    def evaluate(self, bindings: Mapping[str, float]) -> float:
        """Evaluate at one point; bindings map variable names to floats.

        Raises
        ------
        EvalError
            ``kind="unknown_name"`` for a missing binding, ``kind="domain"``
            when the value is not a finite real number.
        """
        args = self._ordered_args(bindings)
        try:
            with np.errstate(all="ignore"):
                raw = np.asarray(self.compiled(*args))
        except ArithmeticError as exc:
            raise EvalError.domain(str(exc)) from exc

        if raw.size != 1:
            raise TypeError("evaluate() expects scalar bindings; use evaluate_array() for arrays")
        if np.iscomplexobj(raw):
            if raw.imag.item() != 0:
                raise EvalError.domain(f"complex value {raw.item()!r} for {self.text!r}")
            raw = raw.real
        value = float(raw.item())
        if not math.isfinite(value):
            raise EvalError.domain(f"{value} for {self.text!r} at {dict(bindings)!r}")
        return value

    def evaluate_array(self, bindings: Mapping[str, Any]) -> np.ndarray:
        """Vectorized evaluation with NumPy broadcasting.

        The result has the broadcast shape of *all* bindings, including ones
        the expression does not use. Entries that are not finite real numbers
        are ``nan``.
        """
        args = self._ordered_args(bindings)
        shape = np.broadcast(*[np.asarray(v, dtype=float) for v in bindings.values()]).shape if bindings else ()
        with np.errstate(all="ignore"):
            try:
                raw = np.asarray(self.compiled(*args))
            except ArithmeticError as exc:
                logger.debug("%r undefined on the whole grid: %s", self.text, exc)
                return np.full(shape, np.nan)
            if np.iscomplexobj(raw):
                raw = np.where(raw.imag == 0, raw.real, np.nan)
            out = np.array(np.broadcast_to(raw, shape), dtype=float)
        out[~np.isfinite(out)] = np.nan
        return out

    def __call__(self, t: float, y: float) -> float:
        return self.evaluate({"t": t, "y": y})

    def __str__(self) -> str:
        return self.text
