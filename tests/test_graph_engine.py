"""Tests for function_grapher.graph_engine."""

from __future__ import annotations

import math

import pytest

from function_grapher import config
from function_grapher.evaluator import compile_expression
from function_grapher.graph_engine import (
    CurvePath,
    build_figure,
    build_scope,
    build_segments,
    clamp_pixel,
    evaluate_sample,
    generate_x_samples,
    is_autorange_event,
    relayout_to_ranges,
    sample_expression,
    segments_to_svg_path,
)
from function_grapher.normalizer import normalize_expression
from function_grapher.session import GraphSession, Parameter
from function_grapher.viewport import Viewport


def _segments(points, viewport=None):
    viewport = viewport or Viewport(840, 560)
    x_scale, y_scale = viewport.rescale()
    return build_segments(points, x_scale, y_scale, viewport.width, viewport.height)


# ── sampling ─────────────────────────────────────────────────────────

class TestSampling:
    def test_samples_cover_domain(self):
        xs = generate_x_samples(-15, 15, config.NUM_SAMPLES)
        assert len(xs) == config.NUM_SAMPLES
        assert xs[0] == -15
        assert xs[-1] == pytest.approx(15)

    def test_linear_function(self):
        params = {"a": Parameter("a", value=2.0), "b": Parameter("b", value=3.0)}
        points = sample_expression("a*x+b", params, (-1, 1), count=3)
        (x0, y0), (x1, y1), (x2, y2) = points
        assert y1 == pytest.approx(3.0)
        assert (y2 - y1) / (x2 - x1) == pytest.approx((y1 - y0) / (x1 - x0))

    def test_plain_mapping_parameters(self):
        points = sample_expression("k x", {"k": {"value": 4}}, (1, 1), count=1)
        assert points == [(1, pytest.approx(4.0))]

    def test_base_two_log(self):
        compiled = compile_expression(normalize_expression("log2(x+1)"))
        assert evaluate_sample(compiled, build_scope({}), 1.0) == pytest.approx(1.0)

    def test_unbound_symbol_defaults_to_one(self):
        points = sample_expression("k*x", {}, (0, 2), count=3)
        assert [y for _, y in points] == pytest.approx([0.0, 1.0, 2.0])

    def test_fallback_binding_stays_local(self):
        scope = build_scope({})
        compiled = compile_expression("k*x")
        assert evaluate_sample(compiled, scope, 2.0) == pytest.approx(2.0)
        assert "k" not in scope

    def test_negative_sqrt_is_nan(self):
        points = sample_expression("sqrt(x)", {}, (-4, 4), count=9)
        ys = [y for _, y in points]
        assert all(math.isnan(y) for y in ys[:4])
        assert ys[4:] == pytest.approx([0.0, 1.0, math.sqrt(2), math.sqrt(3), 2.0])

    def test_non_real_is_nan(self):
        points = sample_expression("asin(x)", {}, (2, 2), count=1)
        assert math.isnan(points[0][1])

    def test_infinity_becomes_sentinel(self):
        points = sample_expression("log(x)", {}, (0, 0), count=1)
        assert points[0][1] == -config.INFINITY_SENTINEL

    def test_division_by_zero_does_not_raise(self):
        points = sample_expression("1/x", {}, (-1, 1), count=3)
        assert len(points) == 3

    def test_unparseable_yields_nothing(self):
        assert sample_expression("x +", {}, (0, 1)) == []


# ── segments ─────────────────────────────────────────────────────────

class TestSegments:
    def test_domain_break(self):
        points = sample_expression("sqrt(x)", {}, (-4, 4), count=9)
        segments = _segments(points)
        assert len(segments) == 1
        assert len(segments[0]) == 5

    def test_gap_in_the_middle(self):
        points = sample_expression("sqrt(x^2 - 1)", {}, (-2, 2), count=5)
        segments = _segments(points)
        assert [len(s) for s in segments] == [2, 2]

    def test_sentinel_is_clamped(self):
        (segment,) = _segments([(0.0, config.INFINITY_SENTINEL)])
        assert segment == [(pytest.approx(420), -config.MAX_PIXEL)]

    def test_clamp_pixel(self):
        assert clamp_pixel(1e9, 100) == 100 + config.MAX_PIXEL
        assert clamp_pixel(-1e9, 100) == -config.MAX_PIXEL
        assert clamp_pixel(42, 100) == 42

    def test_svg_path(self):
        assert segments_to_svg_path([[(0, 0), (1, 2)], [(3, 4)]]) == "M0,0L1,2M3,4"


# ── rendering ────────────────────────────────────────────────────────

class TestRender:
    def test_hidden_functions_skipped(self):
        session = GraphSession()
        first = session.add_function("x")
        second = session.add_function("x^2")
        session.toggle_visibility(first.id)
        paths = session.render()
        assert [p.function_id for p in paths] == [second.id]

    def test_order_and_colors(self):
        session = GraphSession()
        entries = [session.add_function(expr) for expr in ("x", "2x", "3x")]
        paths = session.render()
        assert [p.function_id for p in paths] == [e.id for e in entries]
        assert [p.color for p in paths] == config.FUNCTION_PALETTE[:3]

    def test_unparseable_entry_is_empty(self):
        session = GraphSession()
        session.add_function("x +")
        (path,) = session.render()
        assert path.is_empty

    def test_figure(self):
        session = GraphSession()
        session.add_function("sqrt(x^2 - 1)")
        fig = build_figure(session.render(), session.viewport, uirevision="grapher-3")
        assert len(fig.data) == 2
        assert None in fig.data[1].x
        assert list(fig.layout.xaxis.range) == pytest.approx([-15, 15])
        assert list(fig.layout.yaxis.range) == pytest.approx([-10, 10])
        assert fig.layout.uirevision == "grapher-3"

    def test_zero_tick_not_labelled(self):
        fig = build_figure([], Viewport(840, 560), uirevision="grapher-0")
        labels = [a.text for a in fig.layout.annotations]
        assert "0" not in labels
        assert "2" in labels

    def test_empty_path(self):
        assert CurvePath("abc", "#000000").is_empty


# ── relayout events ──────────────────────────────────────────────────

class TestRelayout:
    def test_indexed_keys(self):
        relayout = {
            "xaxis.range[0]": -5,
            "xaxis.range[1]": 5,
            "yaxis.range[0]": -2,
            "yaxis.range[1]": 2,
        }
        assert relayout_to_ranges(relayout) == ((-5.0, 5.0), (-2.0, 2.0))

    def test_list_form_without_y(self):
        assert relayout_to_ranges({"xaxis.range": [-1, 1]}) == ((-1.0, 1.0), None)

    @pytest.mark.parametrize("relayout", [None, {}, {"autosize": True}, {"xaxis.range": [1, 1]}])
    def test_no_range(self, relayout):
        assert relayout_to_ranges(relayout) is None

    def test_autorange(self):
        assert is_autorange_event({"xaxis.autorange": True})
        assert not is_autorange_event({"xaxis.range[0]": 1})
        assert not is_autorange_event(None)
