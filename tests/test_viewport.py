"""Tests for function_grapher.viewport."""

from __future__ import annotations

import pytest

from function_grapher.errors import ViewportError
from function_grapher.viewport import (
    IDENTITY,
    LinearScale,
    Viewport,
    ViewportTransform,
    format_tick,
    nice_multiplier,
    nice_step,
    tick_range,
    tick_step,
)


def _approx_range(pair):
    return pytest.approx(list(pair))


# ── scales and transforms ────────────────────────────────────────────

class TestLinearScale:
    def test_forward_and_invert(self):
        scale = LinearScale([-10, 10], [560, 0])
        assert scale(0) == pytest.approx(280)
        assert scale.invert(0) == pytest.approx(10)

    def test_degenerate_domain(self):
        with pytest.raises(ViewportError):
            LinearScale([1, 1], [0, 100])


class TestViewportTransform:
    def test_rescale(self):
        t = ViewportTransform(x=10, y=0, k=2)
        rescaled = t.rescale_x(LinearScale([0, 10], [0, 100]))
        assert rescaled.domain == _approx_range((-0.5, 4.5))

    def test_from_dict_clamps(self):
        assert ViewportTransform.from_dict({"k": 5000}).k == 1000

    def test_from_dict_garbage(self):
        assert ViewportTransform.from_dict(None) is IDENTITY
        assert ViewportTransform.from_dict({"k": "wide"}) is IDENTITY


# ── base mapping ─────────────────────────────────────────────────────

class TestBaseMapping:
    def test_identity_domain(self):
        vp = Viewport(840, 560)
        x_domain, y_domain = vp.visible_domain()
        assert x_domain == _approx_range((-15, 15))
        assert y_domain == _approx_range((-10, 10))

    def test_square_container(self):
        vp = Viewport(840, 560)
        vp.resize(400, 400)
        x_domain, y_domain = vp.visible_domain()
        assert x_domain == _approx_range((-10, 10))
        assert y_domain == _approx_range((-10, 10))

    @pytest.mark.parametrize("k", [1, 2, 37.5])
    def test_equal_aspect(self, k):
        vp = Viewport(840, 560)
        vp.zoom_to(k)
        x_scale, y_scale = vp.rescale()
        horizontal = x_scale(1) - x_scale(0)
        vertical = y_scale(0) - y_scale(1)
        assert horizontal == pytest.approx(vertical)
        assert horizontal == pytest.approx(28 * k)

    @pytest.mark.parametrize("size", [(0, 100), (100, -1), ("wide", 100)])
    def test_bad_size(self, size):
        with pytest.raises(ViewportError):
            Viewport(*size)


# ── gestures ─────────────────────────────────────────────────────────

class TestGestures:
    def test_zoom_clamped_high(self):
        vp = Viewport()
        assert vp.zoom_to(5000).k == 1000

    def test_zoom_clamped_low(self):
        vp = Viewport()
        assert vp.zoom_to(0.0001).k == 0.01

    def test_zoom_factor_clamped(self):
        vp = Viewport()
        vp.zoom(5000)
        assert vp.transform.k == 1000

    def test_zoom_about_center(self):
        vp = Viewport(840, 560)
        vp.zoom(2)
        x_domain, y_domain = vp.visible_domain()
        assert x_domain == _approx_range((-7.5, 7.5))
        assert y_domain == _approx_range((-5, 5))

    def test_zoom_keeps_pointer_fixed(self):
        vp = Viewport(840, 560)
        vp.zoom(2, center=(0, 0))
        x_scale, y_scale = vp.rescale()
        assert x_scale.invert(0) == pytest.approx(-15)
        assert y_scale.invert(0) == pytest.approx(10)

    def test_pan(self):
        vp = Viewport(840, 560)
        vp.pan(28, 0)
        x_domain, _ = vp.visible_domain()
        assert x_domain == _approx_range((-16, 14))

    def test_reset(self):
        vp = Viewport()
        vp.zoom(3)
        vp.pan(10, 10)
        assert vp.reset() is IDENTITY

    def test_set_domain(self):
        vp = Viewport(840, 560)
        t = vp.set_domain((-5, 5), (-2, 2))
        assert t.k == pytest.approx(3)
        x_domain, y_domain = vp.visible_domain()
        assert x_domain == _approx_range((-5, 5))
        assert y_domain == _approx_range((-10 / 3, 10 / 3))

    def test_set_domain_clamps(self):
        vp = Viewport()
        assert vp.set_domain((-1e9, 1e9)).k == 0.01

    def test_set_domain_empty(self):
        with pytest.raises(ViewportError):
            Viewport().set_domain((1, 1))


# ── ticks ────────────────────────────────────────────────────────────

class TestTicks:
    @pytest.mark.parametrize("norm,expected", [(1.2, 1), (2.8, 2), (6.0, 5), (9.0, 10)])
    def test_nice_multiplier(self, norm, expected):
        assert nice_multiplier(norm) == expected

    def test_nice_step(self):
        assert nice_step(0.28) == pytest.approx(0.2)
        assert nice_step(12) == pytest.approx(10)

    @pytest.mark.parametrize("rough", [0, -1, float("inf"), float("nan")])
    def test_nice_step_rejects(self, rough):
        with pytest.raises(ValueError):
            nice_step(rough)

    def test_tick_step_identity(self):
        assert tick_step(60, 28, 1) == 2

    def test_tick_range_half_step(self):
        assert tick_range(-1.05, 1.05, 0.5) == pytest.approx([-1.0, -0.5, 0.0, 0.5, 1.0])

    def test_tick_range_includes_upper(self):
        assert tick_range(0, 10, 2) == pytest.approx([0, 2, 4, 6, 8, 10])

    def test_identity_ticks(self):
        vp = Viewport(840, 560)
        assert vp.x_ticks() == pytest.approx(list(range(-14, 15, 2)))
        assert vp.y_ticks() == pytest.approx(list(range(-10, 11, 2)))

    def test_ticks_shrink_with_zoom(self):
        vp = Viewport(840, 560)
        vp.zoom_to(10)
        assert vp.tick_step() == pytest.approx(0.2)

    @pytest.mark.parametrize(
        "value,label",
        [(2.0, "2"), (-0.5, "-0.5"), (0.30000000000000004, "0.3"), (1e-12, "0")],
    )
    def test_format_tick(self, value, label):
        assert format_tick(value) == label


class TestAxisPositions:
    def test_identity(self):
        assert Viewport(840, 560).axis_positions() == pytest.approx((280, 420))

    def test_clamped_when_origin_off_screen(self):
        vp = Viewport(840, 560)
        vp.pan(-10000, 10000)
        assert vp.axis_positions() == pytest.approx((560, 0))
