from __future__ import annotations

from importlib import import_module

import numpy as np
import pytest
import sympy as sp

numpify_mod = import_module("slopefield.numpify")
numpify = numpify_mod.numpify
numpify_cached = numpify_mod.numpify_cached


def test_numpify_uses_cache_by_default() -> None:
    t = sp.Symbol("t")
    numpify_cached.cache_clear()

    f1 = numpify(t + 1, vars=t)
    f2 = numpify(t + 1, vars=t)

    assert f1 is f2
    assert numpify_cached.cache_info().hits >= 1


def test_numpify_cache_false_forces_recompile() -> None:
    t = sp.Symbol("t")

    f1 = numpify(t + 1, vars=t, cache=False)
    f2 = numpify(t + 1, vars=t, cache=False)

    assert f1 is not f2
    assert f1(2.0) == f2(2.0) == 3.0


def test_default_vars_are_sorted_by_name() -> None:
    t, y = sp.symbols("t y")
    f = numpify(y - t)
    assert f.var_names == ("t", "y")
    assert f(1.0, 5.0) == 4.0


def test_explicit_vars_keep_given_order() -> None:
    t, y = sp.symbols("t y")
    f = numpify(y - t, vars=(y, t))
    assert f.var_names == ("y", "t")
    assert f(1.0, 5.0) == -4.0


def test_reserved_and_keyword_names_are_mangled() -> None:
    lam, total = sp.Symbol("lambda"), sp.Symbol("sum")
    f = numpify(lam + total, vars=(lam, total))

    names = [name for _, name in f.call_signature]
    assert names == ["lambda__", "sum__0"]
    assert f.var_names == ("lambda", "sum")
    assert f(1.0, 2.0) == 3.0


def test_constant_broadcasts_to_argument_shape() -> None:
    t, y = sp.symbols("t y")
    f = numpify(sp.Integer(3), vars=(t, y))
    out = f(np.zeros((2, 4)), np.zeros(4))
    assert out.shape == (2, 4)
    np.testing.assert_array_equal(out, np.full((2, 4), 3.0))


def test_integer_inputs_are_evaluated_as_floats() -> None:
    t = sp.Symbol("t")
    f = numpify(t ** -2, vars=t)
    assert f(2) == pytest.approx(0.25)
    np.testing.assert_allclose(f(np.array([1, 2])), [1.0, 0.25])


def test_unbound_symbol_is_rejected() -> None:
    t, y = sp.symbols("t y")
    with pytest.raises(ValueError, match="unbound symbols: y"):
        numpify(t * y, vars=t)


def test_wrong_argument_count_raises_type_error() -> None:
    t, y = sp.symbols("t y")
    f = numpify(t * y)
    with pytest.raises(TypeError, match="Expected 2 positional"):
        f(1.0)


def test_invalid_vars_raise_type_error() -> None:
    t = sp.Symbol("t")
    with pytest.raises(TypeError):
        numpify(t, vars=["t"])
    with pytest.raises(TypeError):
        numpify(t, vars=3)


def test_generated_source_is_exposed() -> None:
    t = sp.Symbol("t")
    f = numpify(sp.sin(t), vars=t, cache=False)
    assert "def _generated(t):" in f.source
    assert "numpy.sin" in f.source
    assert "NumpifiedFunction(sin(t), vars=(t))" == repr(f)
