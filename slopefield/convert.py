"""Number coercion for configuration values.

Configuration values arrive as numbers from code and as strings from text
files. Strings may be plain literals (``"-10"``) or anything SymPy can
evaluate to a real number (``"2*pi"``, ``"sqrt(2)/10"``).
"""

from __future__ import annotations

from typing import Any, Type, TypeVar

import sympy as sp

T = TypeVar("T", int, float)


def to_number(obj: Any, dest_type: Type[T] = float) -> T:
    """Coerce a configuration value to ``float`` or ``int``.

    Numbers are cast directly (``bool`` is refused). Strings are read as a
    float literal first and otherwise evaluated with SymPy, with ``^``
    accepted as power, so ``"2*pi"`` and ``"10^2"`` both work.

    Conversions are exact: a value with a non-zero imaginary part, or a
    non-integral value requested as ``int`` (``"3.5"``), is an error.

    Raises
    ------
    NotImplementedError
        If dest_type is neither float nor int.
    ValueError
        If the value cannot be converted under these rules.
    """
    if dest_type not in (float, int):
        raise NotImplementedError(
            f"Unsupported destination type: {dest_type!r}. Only float and int are supported."
        )

    def _coerce_numeric_value(x: complex) -> T:
        if x.imag != 0:
            raise ValueError(
                f"Could not convert non-real {x!r} to {dest_type.__name__}: imaginary part is non-zero."
            )
        r_val = x.real

        if dest_type is float:
            return float(r_val)  # type: ignore[return-value]

        if not r_val.is_integer():
            raise ValueError(f"Could not convert {x!r} to int: value is not an exact integer.")
        return int(r_val)  # type: ignore[return-value]

    # Fast path: numeric types (exclude bool)
    if isinstance(obj, (int, float, complex)) and not isinstance(obj, bool):
        try:
            return _coerce_numeric_value(complex(obj))
        except Exception as e:
            raise ValueError(f"Could not convert {obj!r} to {dest_type.__name__}.") from e

    if isinstance(obj, str):
        s = obj.strip()
        if s == "":
            raise ValueError(f"Cannot convert empty string to {dest_type.__name__}.")

        try:
            literal = float(s)
        except ValueError:
            pass
        else:
            return _coerce_numeric_value(complex(literal))

        try:
            expr = sp.sympify(s.replace("^", "**"))
            val = complex(expr.evalf())
        except Exception as e:
            raise ValueError(
                f"Could not convert {obj!r} to {dest_type.__name__} (neither directly nor via SymPy)."
            ) from e
        return _coerce_numeric_value(val)

    raise ValueError(f"Could not convert {obj!r} to {dest_type.__name__}.")


__all__ = ["to_number"]
