"""
numpify: compile SymPy right-hand sides into NumPy-evaluated functions
======================================================================

The SymPy form of ``f(t, y)`` is printed with SymPy's ``NumPyPrinter`` into
the body of a small generated function and executed once. The result serves
both the scalar trace stepper and the vectorized slope-field grid.

Generated functions

- take the variables positionally, in the order of ``vars``;
- coerce each argument with ``numpy.asarray(..., dtype=float)`` so integer
  inputs never hit NumPy's integer-power rules;
- broadcast constants to the argument shape, so ``f = 0`` on a grid is a grid
  of zeros.

Compilation is memoized (see :func:`numpify_cached`): reloading a config that
keeps the equation reuses the compiled function.

Examples
--------
>>> import numpy as np
>>> import sympy as sp
>>> t, y = sp.symbols("t y")
>>> f = numpify(t * y, vars=(t, y))
>>> float(f(2.0, 3.0))
6.0
>>> f(np.array([1.0, 2.0]), 2.0)
array([2., 4.])

Notes
-----
Code generation uses ``exec``. Expressions reaching this module through
:func:`slopefield.expression.parse` are already limited to arithmetic and the
supported elementary functions.
"""

from __future__ import annotations

import builtins
import keyword
import logging
import time
from functools import lru_cache
from typing import Any, Callable, Iterable, Optional, Union

import numpy as np
import sympy as sp
from sympy.printing.numpy import NumPyPrinter

__all__ = ["NumpifiedFunction", "numpify", "numpify_cached"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

VarsSpec = Optional[Union[sp.Symbol, Iterable[sp.Symbol]]]

_RESERVED = frozenset(keyword.kwlist) | frozenset(dir(builtins)) | {"numpy", "np", "_shape"}


class NumpifiedFunction:
    """Generated NumPy callable plus the expression and argument names it came from.

    ``call_signature`` pairs each SymPy symbol with the Python parameter name
    used in ``source``; the two differ only when a symbol name is not a
    usable identifier.
    """

    __slots__ = ("_fn", "symbolic", "call_signature", "source")

    def __init__(
        self,
        fn: Callable[..., Any],
        symbolic: sp.Basic,
        call_signature: tuple[tuple[sp.Symbol, str], ...],
        source: str,
    ) -> None:
        self._fn = fn
        self.symbolic = symbolic
        self.call_signature = call_signature
        self.source = source

    def __call__(self, *args: Any) -> Any:
        if len(args) != len(self.call_signature):
            raise TypeError(
                f"Expected {len(self.call_signature)} positional argument(s), got {len(args)}"
            )
        return self._fn(*args)

    @property
    def vars(self) -> tuple[sp.Symbol, ...]:
        return tuple(sym for sym, _ in self.call_signature)

    @property
    def var_names(self) -> tuple[str, ...]:
        """Symbol names in call order."""
        return tuple(sym.name for sym, _ in self.call_signature)

    def __repr__(self) -> str:
        return f"NumpifiedFunction({self.symbolic!r}, vars=({', '.join(self.var_names)}))"


def numpify(expr: Any, *, vars: VarsSpec = None, cache: bool = True) -> NumpifiedFunction:
    """Compile ``expr`` into a NumPy-evaluable function.

    Parameters
    ----------
    expr:
        SymPy expression, or anything :func:`sympy.sympify` accepts.
    vars:
        Positional arguments of the compiled function. ``None`` uses every
        free symbol sorted by name; a single Symbol or an iterable keeps the
        given order.
    cache:
        Reuse a previously compiled function for the same ``(expr, vars)``.

    Raises
    ------
    TypeError
        If ``expr`` is not a SymPy expression or ``vars`` holds non-Symbols.
    ValueError
        If ``expr`` has free symbols that are not in ``vars``.
    """
    expr_sym = _as_sympy(expr)
    vars_tuple = _normalize_vars(expr_sym, vars)
    if cache:
        return _compile_cached(expr_sym, vars_tuple)
    return _compile(expr_sym, vars_tuple)


def numpify_cached(expr: Any, *, vars: VarsSpec = None) -> NumpifiedFunction:
    """:func:`numpify` through the shared LRU cache.

    ``numpify_cached.cache_info()`` and ``numpify_cached.cache_clear()``
    expose the cache.
    """
    return numpify(expr, vars=vars, cache=True)


def _as_sympy(expr: Any) -> sp.Basic:
    try:
        expr_sym = sp.sympify(expr)
    except (sp.SympifyError, TypeError) as exc:
        raise TypeError(f"numpify expects a SymPy-compatible expression, got {type(expr)}") from exc
    if not isinstance(expr_sym, sp.Basic):
        raise TypeError(f"numpify expects a SymPy expression, got {type(expr_sym)}")
    return expr_sym


def _normalize_vars(expr: sp.Basic, vars: VarsSpec) -> tuple[sp.Symbol, ...]:
    if vars is None:
        return tuple(sorted(expr.free_symbols, key=lambda s: s.name))
    if isinstance(vars, sp.Symbol):
        return (vars,)
    try:
        vars_tuple = tuple(vars)
    except TypeError as exc:
        raise TypeError("vars must be a SymPy Symbol or an iterable of SymPy Symbols") from exc
    for v in vars_tuple:
        if not isinstance(v, sp.Symbol):
            raise TypeError(f"vars must contain only SymPy Symbols, got {type(v)}")
    return vars_tuple


def _parameter_name(name: str, used: set[str]) -> str:
    """Pick an unused Python identifier for a symbol called ``name``."""
    if name.isidentifier() and not keyword.iskeyword(name):
        base = name
    else:
        base = "".join(ch if (ch == "_" or ch.isalnum()) else "_" for ch in name)
        if not base or base[0].isdigit():
            base = f"_{base}"
        if keyword.iskeyword(base):
            base = f"{base}__"

    candidate, suffix = base, 0
    while candidate in used or keyword.iskeyword(candidate):
        candidate = f"{base}__{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


def _generate_source(body: str, arg_names: list[str], is_constant: bool) -> str:
    lines = [f"def _generated({', '.join(arg_names)}):"]
    lines += [f"    {nm} = numpy.asarray({nm}, dtype=float)" for nm in arg_names]
    if is_constant and arg_names:
        lines.append(f"    _shape = numpy.broadcast({', '.join(arg_names)}).shape")
        lines.append(f"    return ({body}) + numpy.zeros(_shape)")
    else:
        lines.append(f"    return {body}")
    return "\n".join(lines)


def _compile(expr: sp.Basic, vars_tuple: tuple[sp.Symbol, ...]) -> NumpifiedFunction:
    missing = sorted({s.name for s in expr.free_symbols} - {v.name for v in vars_tuple})
    if missing:
        raise ValueError(
            f"Expression contains unbound symbols: {', '.join(missing)}. "
            f"Provide them in vars=({', '.join(v.name for v in vars_tuple)})."
        )

    t0 = time.perf_counter()
    used = set(_RESERVED)
    call_signature = tuple((sym, _parameter_name(sym.name, used)) for sym in vars_tuple)
    arg_names = [name for _, name in call_signature]
    renamed = expr.xreplace({sym: sp.Symbol(name) for sym, name in call_signature})

    body = NumPyPrinter(settings={"user_functions": {}}).doprint(renamed)
    src = _generate_source(body, arg_names, is_constant=not expr.free_symbols)

    namespace: dict[str, Any] = {"numpy": np}
    exec(src, namespace)
    fn = namespace["_generated"]
    fn.__doc__ = f"NumPy evaluation of {expr!r}."

    logger.debug(
        "numpify: compiled %r with vars=%s in %.2f ms",
        expr,
        arg_names,
        1000.0 * (time.perf_counter() - t0),
    )
    return NumpifiedFunction(fn=fn, symbolic=expr, call_signature=call_signature, source=src)


@lru_cache(maxsize=256)
def _compile_cached(expr: sp.Basic, vars_tuple: tuple[sp.Symbol, ...]) -> NumpifiedFunction:
    logger.debug("numpify: cache miss for %r", expr)
    return _compile(expr, vars_tuple)


numpify_cached.cache_info = _compile_cached.cache_info  # type: ignore[attr-defined]
numpify_cached.cache_clear = _compile_cached.cache_clear  # type: ignore[attr-defined]
