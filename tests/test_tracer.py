from __future__ import annotations

import logging

import pytest

from slopefield.config import DomainConfig
from slopefield.expression import parse
from slopefield.mapping import Point
from slopefield.segments import LEFT_TRACE_STYLE, RIGHT_TRACE_STYLE
from slopefield.tracer import trace, trace_display


def _config(eq: str, **kwargs) -> DomainConfig:
    return DomainConfig(equation=parse(eq), **kwargs)


def test_zero_equation_traces_horizontal_line() -> None:
    config = _config("0", t_min=-1.0, t_max=1.0, dt=0.1)
    segments = list(trace(Point(0.0, 2.0), config))

    assert segments
    assert all(seg.start.y == seg.end.y == 2.0 for seg in segments)


def test_left_then_right_with_distinct_weights() -> None:
    config = _config("0", dt=0.5)
    first = list(trace(Point(0.0, 0.0), config))[:4]

    assert [seg.width for seg in first] == [1.5, 1.0, 1.5, 1.0]
    assert first[0].end == Point(-0.5, 0.0)
    assert first[1].end == Point(0.5, 0.0)
    assert first[2].start == first[0].end
    assert first[0].style == LEFT_TRACE_STYLE
    assert first[1].style == RIGHT_TRACE_STYLE


def test_euler_follows_closed_form_for_t() -> None:
    config = _config("t", t_min=-4.0, t_max=4.0, y_min=-20.0, y_max=20.0, dt=0.001)
    right = [seg for seg in trace(Point(0.0, 5.0), config) if seg.style == RIGHT_TRACE_STYLE]

    assert right[-1].end.x >= 4.0 - 1e-6
    for seg in right:
        assert seg.end.y == pytest.approx(5.0 + seg.end.x**2 / 2.0, abs=0.01)


def test_nominal_run_is_bounded_by_domain_width() -> None:
    config = _config("0", t_min=-1.0, t_max=1.0, dt=0.01)
    segments = list(trace(Point(0.0, 0.0), config))
    assert len(segments) <= 2 * (2.0 / 0.01) + 4


@pytest.mark.parametrize("clip_y", [True, False])
def test_singular_slope_terminates(clip_y: bool) -> None:
    config = _config("1/(t-5)", clip_y=clip_y)
    segments = list(trace(Point(0.0, 0.0), config))
    assert 0 < len(segments) <= 2 * config.trace_step_cap


def test_seed_on_singularity_emits_nothing() -> None:
    assert list(trace(Point(5.0, 0.0), _config("1/(t-5)"))) == []


def test_seed_outside_domain_emits_nothing() -> None:
    config = _config("t*y")
    assert list(trace(Point(20.0, 0.0), config)) == []
    assert list(trace(Point(0.0, -11.0), config)) == []


def test_step_cap_stops_trace_and_warns(caplog) -> None:
    config = _config("0", max_trace_steps=5)
    with caplog.at_level(logging.WARNING, logger="slopefield.tracer"):
        segments = list(trace(Point(0.0, 0.0), config))

    assert len(segments) == 10
    assert "5-step cap" in caplog.text


def test_vertical_clipping_shortens_diverging_curve() -> None:
    clipped = list(trace(Point(0.0, 1.0), _config("y", clip_y=True)))
    loose = list(trace(Point(0.0, 1.0), _config("y", clip_y=False)))

    assert len(clipped) < len(loose)
    assert all(-10.0 <= seg.start.y <= 10.0 for seg in clipped)


def test_domain_error_stops_only_one_cursor() -> None:
    config = _config("sqrt(t)")
    segments = list(trace(Point(0.5, 0.0), config))

    left = [seg for seg in segments if seg.style == LEFT_TRACE_STYLE]
    right = [seg for seg in segments if seg.style == RIGHT_TRACE_STYLE]
    assert 0 < len(left) < 60
    assert all(seg.start.x >= 0.0 for seg in left)
    assert len(right) > 900
    assert right[-1].end.x > 10.0 - 0.02


def test_trace_is_restartable() -> None:
    config = _config("sin(t)*sin(y)", dt=0.05)
    gen = trace(Point(1.0, 2.0), config)
    head = [next(gen) for _ in range(3)]

    assert list(trace(Point(1.0, 2.0), config))[:3] == head
    assert list(trace(Point(1.0, 2.0), config)) == list(trace(Point(1.0, 2.0), config))


def test_trace_display_maps_to_pixels() -> None:
    config = _config("0")
    segments = trace_display(Point(0.0, 0.0), config)

    assert segments[0].start == Point(400.0, 300.0)
    assert segments[0].end == pytest.approx((399.6, 300.0))
    assert segments[1].end == pytest.approx((400.4, 300.0))


@pytest.mark.parametrize("eq", ["1/0", "log(0)", "t/0", "t + 10^400"])
def test_literal_singularities_trace_nothing(eq: str) -> None:
    assert list(trace(Point(0.0, 0.0), _config(eq))) == []
