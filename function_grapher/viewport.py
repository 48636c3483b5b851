"""Mapping between math coordinates and pixels under pan/zoom.

The base mapping shows ``UNITS_TO_SHOW_V`` units over the container height
and derives the horizontal span from the aspect ratio, so one unit has the
same pixel length on both axes. Pan/zoom state is a d3-style transform
``(x, y, k)`` applied on top of the base scales in pixel space.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import config
from .errors import ViewportError

Range = Tuple[float, float]


class LinearScale:
    """Affine map from ``domain`` to ``range``; ``invert`` goes back."""

    def __init__(self, domain: Sequence[float], range_: Sequence[float]) -> None:
        d0, d1 = float(domain[0]), float(domain[1])
        if d0 == d1:
            raise ViewportError("degenerate scale domain")
        self._domain = (d0, d1)
        self._range = (float(range_[0]), float(range_[1]))

    @property
    def domain(self) -> Range:
        return self._domain

    @property
    def range(self) -> Range:
        return self._range

    def __call__(self, value: float) -> float:
        d0, d1 = self._domain
        r0, r1 = self._range
        return r0 + (value - d0) / (d1 - d0) * (r1 - r0)

    def invert(self, pixel: float) -> float:
        d0, d1 = self._domain
        r0, r1 = self._range
        return d0 + (pixel - r0) / (r1 - r0) * (d1 - d0)

    def with_domain(self, domain: Sequence[float]) -> "LinearScale":
        return LinearScale(domain, self._range)

    def __repr__(self) -> str:
        return f"LinearScale(domain={self._domain}, range={self._range})"


def clamp_scale(k: float) -> float:
    return max(config.SCALE_MIN, min(config.SCALE_MAX, float(k)))


@dataclass(frozen=True)
class ViewportTransform:
    x: float = 0.0
    y: float = 0.0
    k: float = 1.0

    def apply_x(self, px: float) -> float:
        return px * self.k + self.x

    def apply_y(self, py: float) -> float:
        return py * self.k + self.y

    def invert_x(self, px: float) -> float:
        return (px - self.x) / self.k

    def invert_y(self, py: float) -> float:
        return (py - self.y) / self.k

    def rescale_x(self, scale: LinearScale) -> LinearScale:
        r0, r1 = scale.range
        return scale.with_domain([scale.invert(self.invert_x(r0)), scale.invert(self.invert_x(r1))])

    def rescale_y(self, scale: LinearScale) -> LinearScale:
        r0, r1 = scale.range
        return scale.with_domain([scale.invert(self.invert_y(r0)), scale.invert(self.invert_y(r1))])

    def scale_to(self, k: float, center: Tuple[float, float]) -> "ViewportTransform":
        """Zoom to ``k`` (clamped) keeping the pixel ``center`` fixed."""
        k1 = clamp_scale(k)
        cx, cy = center
        px, py = self.invert_x(cx), self.invert_y(cy)
        return ViewportTransform(x=cx - px * k1, y=cy - py * k1, k=k1)

    def translate_by(self, dx: float, dy: float) -> "ViewportTransform":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "k": self.k}

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "ViewportTransform":
        if not isinstance(raw, dict):
            return IDENTITY
        try:
            return cls(x=float(raw.get("x", 0.0)), y=float(raw.get("y", 0.0)), k=clamp_scale(raw.get("k", 1.0)))
        except (TypeError, ValueError):
            return IDENTITY


IDENTITY = ViewportTransform()


def nice_multiplier(norm: float) -> int:
    low, mid, high = config.NICE_THRESHOLDS
    if norm < low:
        return 1
    if norm < mid:
        return 2
    if norm < high:
        return 5
    return 10


def nice_step(rough_step: float) -> float:
    """Snap ``rough_step`` to 1, 2, 5 or 10 times a power of ten."""
    if not (rough_step > 0 and math.isfinite(rough_step)):
        raise ValueError(f"tick step must be positive and finite, got {rough_step!r}")
    p10 = 10 ** math.floor(math.log10(rough_step))
    return nice_multiplier(rough_step / p10) * p10


def tick_step(target_px: float, pixels_per_unit: float, k: float) -> float:
    return nice_step(target_px / (pixels_per_unit * k))


def tick_range(lo: float, hi: float, step: float) -> List[float]:
    """Multiples of ``step`` from ``ceil(lo)`` up to ``hi``, tolerant by half a step."""
    start = math.ceil(lo / step) * step
    count = max(0, math.ceil((hi + step / 2 - start) / step))
    return [start + i * step for i in range(count)]


def format_tick(value: float) -> str:
    if abs(value) < config.ZERO_LABEL_EPS:
        return "0"
    return f"{value:.4g}"


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class Viewport:
    """Container size plus the current pan/zoom transform."""

    def __init__(self, width: float = config.GRAPH_WIDTH, height: float = config.GRAPH_HEIGHT, transform: ViewportTransform = IDENTITY) -> None:
        self.transform = transform
        self.resize(width, height)

    def resize(self, width: float, height: float) -> None:
        try:
            width, height = float(width), float(height)
        except (TypeError, ValueError) as exc:
            raise ViewportError(f"invalid container size {width!r}x{height!r}") from exc
        if not (width > 0 and height > 0 and math.isfinite(width) and math.isfinite(height)):
            raise ViewportError(f"invalid container size {width!r}x{height!r}")
        self.width = width
        self.height = height
        self.pixels_per_unit = height / config.UNITS_TO_SHOW_V
        units_h = width / self.pixels_per_unit
        units_v = config.UNITS_TO_SHOW_V
        self.base_x_scale = LinearScale([-units_h / 2, units_h / 2], [0.0, width])
        self.base_y_scale = LinearScale([-units_v / 2, units_v / 2], [height, 0.0])

    @property
    def center(self) -> Tuple[float, float]:
        return self.width / 2, self.height / 2

    def rescale(self, transform: Optional[ViewportTransform] = None) -> Tuple[LinearScale, LinearScale]:
        t = transform or self.transform
        return t.rescale_x(self.base_x_scale), t.rescale_y(self.base_y_scale)

    def visible_domain(self) -> Tuple[Range, Range]:
        x_scale, y_scale = self.rescale()
        y0, y1 = y_scale.domain
        return x_scale.domain, (min(y0, y1), max(y0, y1))

    # Gestures. Each one stores and returns the new transform.

    def zoom(self, factor: float, center: Optional[Tuple[float, float]] = None) -> ViewportTransform:
        return self.zoom_to(self.transform.k * factor, center)

    def zoom_to(self, k: float, center: Optional[Tuple[float, float]] = None) -> ViewportTransform:
        self.transform = self.transform.scale_to(k, center or self.center)
        return self.transform

    def pan(self, dx: float, dy: float) -> ViewportTransform:
        self.transform = self.transform.translate_by(dx, dy)
        return self.transform

    def reset(self) -> ViewportTransform:
        self.transform = IDENTITY
        return self.transform

    def set_domain(self, x_range: Range, y_range: Optional[Range] = None) -> ViewportTransform:
        """Fit the transform to a requested domain, keeping equal aspect.

        The zoom comes from the horizontal span; the view is centred on the
        middle of both ranges (the current vertical centre if ``y_range`` is
        missing).
        """
        x0, x1 = float(x_range[0]), float(x_range[1])
        if x0 == x1:
            raise ViewportError("empty horizontal range")
        base_span = self.base_x_scale.domain[1] - self.base_x_scale.domain[0]
        k = clamp_scale(base_span / abs(x1 - x0))
        cx = (x0 + x1) / 2
        if y_range is not None:
            cy = (float(y_range[0]) + float(y_range[1])) / 2
        else:
            _, y_scale = self.rescale()
            cy = y_scale.invert(self.height / 2)
        px, py = self.center
        self.transform = ViewportTransform(
            x=px - self.base_x_scale(cx) * k,
            y=py - self.base_y_scale(cy) * k,
            k=k,
        )
        return self.transform

    # Ticks and axes

    def tick_step(self) -> float:
        return tick_step(config.TARGET_TICK_PX, self.pixels_per_unit, self.transform.k)

    def x_ticks(self) -> List[float]:
        (x0, x1), _ = self.visible_domain()
        return tick_range(x0, x1, self.tick_step())

    def y_ticks(self) -> List[float]:
        _, (y0, y1) = self.visible_domain()
        return tick_range(y0, y1, self.tick_step())

    def axis_positions(self) -> Tuple[float, float]:
        """Pixel positions ``(x_axis_py, y_axis_px)`` of the zero lines, clamped into the container."""
        x_scale, y_scale = self.rescale()
        return (
            _clamp(y_scale(0.0), 0.0, self.height),
            _clamp(x_scale(0.0), 0.0, self.width),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"width": self.width, "height": self.height, "transform": self.transform.to_dict()}

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "Viewport":
        raw = raw if isinstance(raw, dict) else {}
        return cls(
            width=raw.get("width", config.GRAPH_WIDTH),
            height=raw.get("height", config.GRAPH_HEIGHT),
            transform=ViewportTransform.from_dict(raw.get("transform")),
        )
