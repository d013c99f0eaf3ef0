from __future__ import annotations

import math
import re
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
import sympy as sp

from slopefield.errors import EvalError, ParseError
from slopefield.expression import Expression, ParseLimits, parse


def test_parse_and_evaluate_arithmetic() -> None:
    f = parse("2*t^2 - y/4 + 1")
    assert f.variables == ("t", "y")
    assert f.evaluate({"t": 3.0, "y": 8.0}) == pytest.approx(17.0)
    assert f(3.0, 8.0) == pytest.approx(17.0)


def test_unary_minus_and_power_precedence() -> None:
    assert parse("-t^2").evaluate({"t": 3.0}) == pytest.approx(-9.0)
    assert parse("2^3^2").evaluate({}) == pytest.approx(512.0)
    assert parse("--t").evaluate({"t": 2.0}) == pytest.approx(2.0)
    assert parse("t**2").evaluate({"t": 3.0}) == pytest.approx(9.0)


def test_elementary_functions_and_constants() -> None:
    f = parse("sin(t) + cos(t) + tan(0) + exp(0) + log(e) + sqrt(4) + abs(-y)")
    expected = math.sin(0.3) + math.cos(0.3) + 0.0 + 1.0 + 1.0 + 2.0 + 2.0
    assert f.evaluate({"t": 0.3, "y": 2.0}) == pytest.approx(expected)
    assert parse("pi").evaluate({}) == pytest.approx(math.pi)


def test_number_literal_forms() -> None:
    assert parse(".5 + 1e-3 + 2.").evaluate({}) == pytest.approx(2.501)


def test_extra_bindings_are_ignored() -> None:
    assert parse("y").evaluate({"t": 100.0, "y": 2.0}) == 2.0


@pytest.mark.parametrize(
    ("text", "position", "message"),
    [
        ("", 0, "Empty expression"),
        ("   ", 0, "Empty expression"),
        ("t + ", 4, "Unexpected end"),
        ("(t + y", 0, "Unbalanced '('"),
        ("t + y)", 5, "Unbalanced ')'"),
        ("t % y", 2, "Unknown operator"),
        ("t $ y", 2, "Unknown operator"),
        ("foo(t)", 0, "Unknown function"),
        ("t(y)", 0, "Unknown function"),
        ("sin t", 0, "must be followed by '('"),
        ("t y", 2, "Missing operator"),
        ("2*/t", 2, "Expected an operand"),
        ("2(y)", 1, "Missing operator before '('"),
        ("()", 1, "Expected an operand before ')'"),
        ("__import__", 0, "Invalid name"),
        ("lambda", 0, "Invalid name"),
    ],
)
def test_parse_errors_report_position(text: str, position: int, message: str) -> None:
    with pytest.raises(ParseError, match=re.escape(message)) as excinfo:
        parse(text)
    assert excinfo.value.position == position
    assert excinfo.value.text == text


def test_parse_error_pointer_marks_position() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse("t + y)")
    assert excinfo.value.pointer() == "t + y)\n     ^"


def test_parse_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        parse("sin(")


def test_parse_limits_reject_deep_nesting_and_long_text() -> None:
    deep = "(" * 10 + "t" + ")" * 10
    with pytest.raises(ParseError, match="nested deeper") as excinfo:
        parse(deep, limits=ParseLimits(max_depth=5))
    assert excinfo.value.position == 5
    assert parse(deep).evaluate({"t": 1.5}) == 1.5

    with pytest.raises(ParseError, match="longer than"):
        parse("t+" * 10 + "t", limits=ParseLimits(max_length=8))


def test_parse_rejects_non_string() -> None:
    with pytest.raises(TypeError):
        parse(3)  # type: ignore[arg-type]


def test_unknown_name_raises_eval_error() -> None:
    f = parse("a*t")
    assert f.variables == ("a", "t")
    with pytest.raises(EvalError) as excinfo:
        f.evaluate({"t": 1.0})
    assert excinfo.value.kind == EvalError.UNKNOWN_NAME
    assert excinfo.value.name == "a"
    assert f.evaluate({"t": 1.5, "a": 2.0}) == pytest.approx(3.0)

    with pytest.raises(EvalError):
        f.evaluate_array({"t": np.ones(3)})


@pytest.mark.parametrize(
    ("text", "bindings"),
    [
        ("1/t", {"t": 0.0}),
        ("log(y)", {"y": -1.0}),
        ("log(y)", {"y": 0.0}),
        ("sqrt(t)", {"t": -4.0}),
        ("exp(t)", {"t": 1e6}),
        ("sqrt(-1)", {}),
        ("1/0", {}),
        ("t/0", {"t": 1.0}),
        ("log(0)", {}),
        ("y + 1/(1-1)", {"y": 1.0}),
        ("t + 10^400", {"t": 1.0}),
        ("10^400", {}),
        ("t^(10^400)", {"t": 2.0}),
    ],
)
def test_domain_errors_raise_from_scalar_evaluation(text: str, bindings: dict) -> None:
    with pytest.raises(EvalError) as excinfo:
        parse(text).evaluate(bindings)
    assert excinfo.value.kind == EvalError.DOMAIN


def test_evaluate_array_marks_domain_errors_as_nan() -> None:
    f = parse("1/t")
    out = f.evaluate_array({"t": np.array([-1.0, 0.0, 2.0]), "y": 0.0})
    np.testing.assert_array_equal(out, [-1.0, np.nan, 0.5])


def test_evaluate_array_broadcasts_over_all_bindings() -> None:
    out = parse("t").evaluate_array({"t": np.array([1.0, 2.0]), "y": np.zeros((3, 1))})
    assert out.shape == (3, 2)
    np.testing.assert_array_equal(out[2], [1.0, 2.0])

    zeros = parse("0").evaluate_array({"t": np.ones((2, 3)), "y": np.ones((2, 3))})
    np.testing.assert_array_equal(zeros, np.zeros((2, 3)))


def test_evaluate_rejects_array_bindings() -> None:
    with pytest.raises(TypeError, match="evaluate_array"):
        parse("t").evaluate({"t": np.array([1.0, 2.0])})


def test_concurrent_evaluation_with_different_bindings() -> None:
    f = parse("t*y + sin(t)")

    def _eval(k: int) -> float:
        return f.evaluate({"t": float(k), "y": 2.0})

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(_eval, range(200)))

    assert results == [pytest.approx(2.0 * k + math.sin(k)) for k in range(200)]


def test_from_sympy_wraps_hand_written_equation() -> None:
    t, y = sp.symbols("t y")
    f = Expression.from_sympy(sp.sin(t) * sp.sin(y))
    assert f(1.0, 2.0) == pytest.approx(math.sin(1.0) * math.sin(2.0))
    assert f.variables == ("t", "y")


def test_from_sympy_rejects_unsupported_functions() -> None:
    t = sp.Symbol("t")
    with pytest.raises(ParseError, match="Unsupported function"):
        Expression.from_sympy(sp.gamma(t))
    with pytest.raises(ParseError, match="Unsupported function"):
        Expression.from_sympy(sp.Function("g")(t))


def test_expressions_compare_by_text_and_tree() -> None:
    assert parse("t*y") == parse("t*y")
    assert parse(" t*y ").text == "t*y"
    assert parse("t*y") != parse("y*t + 0*t + t")
    assert str(parse("t - y")) == "t - y"


@pytest.mark.parametrize("text", ["1/0", "t/0", "log(0)", "y + 1/(1-1)", "t + 10^400", "y*10^400"])
def test_constant_singularities_and_huge_literals_parse_to_undefined(text: str) -> None:
    f = parse(text)
    out = f.evaluate_array({"t": np.linspace(-1.0, 1.0, 3), "y": np.ones((2, 1))})
    assert out.shape == (2, 3)
    assert np.isnan(out).all()


def test_tiny_literals_underflow_to_zero() -> None:
    assert parse("t + 10^(-400)").evaluate({"t": 1.5}) == 1.5


def test_compile_failure_becomes_parse_error(monkeypatch) -> None:
    def _broken(*_args, **_kwargs):
        raise KeyError("ComplexInfinity")

    monkeypatch.setattr("slopefield.expression.numpify_cached", _broken)
    with pytest.raises(ParseError, match="Could not compile"):
        parse("t + y")


def test_arithmetic_failure_in_compiled_code() -> None:
    def _overflowing(t):
        raise OverflowError("int too large to convert to float")

    f = Expression(text="t", symbolic=sp.Symbol("t"), variables=("t",), compiled=_overflowing)
    out = f.evaluate_array({"t": np.zeros(4)})
    assert out.shape == (4,)
    assert np.isnan(out).all()
    with pytest.raises(EvalError) as excinfo:
        f.evaluate({"t": 0.0})
    assert excinfo.value.kind == EvalError.DOMAIN
