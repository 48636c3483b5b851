from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import plotly.graph_objects as go

from . import config
from .errors import EvaluationException, NonRealResult, NormalizationFailure, UndefinedSymbol
from .evaluator import CompiledExpression, coerce_real, compile_expression
from .normalizer import normalize_expression
from .viewport import LinearScale, Viewport, format_tick

logger = logging.getLogger(__name__)

SamplePoint = Tuple[float, float]
PixelPoint = Tuple[float, float]


@dataclass
class CurvePath:
    function_id: str
    color: str
    segments: List[List[PixelPoint]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any(self.segments)


def generate_x_samples(x_min: float, x_max: float, count: int) -> List[float]:
    if count < 2:
        return [x_min]
    step = (x_max - x_min) / (count - 1)
    return [x_min + i * step for i in range(count)]


def build_scope(parameters: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    scope: Dict[str, Any] = {"pi": math.pi, "e": math.e, "ans": 0}
    for name, param in (parameters or {}).items():
        value = getattr(param, "value", param)
        if isinstance(param, Mapping):
            value = param.get("value")
        try:
            scope[name] = float(value)
        except (TypeError, ValueError):
            logger.debug("skipping non-numeric parameter %s=%r", name, value)
    return scope


def evaluate_sample(compiled: CompiledExpression, scope: Mapping[str, Any], x: float) -> float:
    """Evaluate at ``x``; every failure becomes NaN.

    An undefined symbol is bound to 1 and the evaluation retried once.
    """
    sample_scope = dict(scope)
    sample_scope["x"] = x
    try:
        try:
            value = compiled.evaluate(sample_scope)
        except UndefinedSymbol as exc:
            sample_scope[exc.name] = config.UNDEFINED_SYMBOL_FALLBACK
            value = compiled.evaluate(sample_scope)
        return coerce_real(value)
    except (UndefinedSymbol, NonRealResult, EvaluationException):
        return math.nan


def sample_compiled(compiled: CompiledExpression, scope: Mapping[str, Any], xs: Iterable[float]) -> List[SamplePoint]:
    return [(x, evaluate_sample(compiled, scope, x)) for x in xs]


def sample_expression(
    expression: str,
    parameters: Optional[Mapping[str, Any]],
    x_domain: Tuple[float, float],
    count: int = config.NUM_SAMPLES,
) -> List[SamplePoint]:
    """Sample a raw expression across ``x_domain``.

    Unparseable expressions produce no samples.
    """
    try:
        compiled = compile_expression(normalize_expression(expression))
    except NormalizationFailure as exc:
        logger.debug("not sampling %r: %s", expression, exc)
        return []
    missing = [name for name in compiled.symbols if name != "x" and name not in (parameters or {})]
    if missing:
        logger.debug("%r references unbound symbols %s", expression, missing)
    xs = generate_x_samples(x_domain[0], x_domain[1], count)
    return sample_compiled(compiled, build_scope(parameters), xs)


def clamp_pixel(value: float, size: float) -> float:
    return max(-config.MAX_PIXEL, min(size + config.MAX_PIXEL, value))


def is_defined(y: float) -> bool:
    return math.isfinite(y)


def build_segments(
    points: Sequence[SamplePoint],
    x_scale: LinearScale,
    y_scale: LinearScale,
    width: float,
    height: float,
) -> List[List[PixelPoint]]:
    """Map samples to clamped pixels, starting a new segment after each gap."""
    segments: List[List[PixelPoint]] = []
    current: List[PixelPoint] = []
    for x, y in points:
        if not is_defined(y):
            if current:
                segments.append(current)
                current = []
            continue
        current.append((clamp_pixel(x_scale(x), width), clamp_pixel(y_scale(y), height)))
    if current:
        segments.append(current)
    return segments


def segments_to_svg_path(segments: Iterable[Sequence[PixelPoint]]) -> str:
    commands: List[str] = []
    for segment in segments:
        for index, (px, py) in enumerate(segment):
            commands.append(f"{'M' if index == 0 else 'L'}{px:g},{py:g}")
    return "".join(commands)


def render_curves(entries: Iterable[Any], parameters: Optional[Mapping[str, Any]], viewport: Viewport) -> List[CurvePath]:
    """One path per visible entry, in entry order (later entries draw on top)."""
    x_scale, y_scale = viewport.rescale()
    x_domain = x_scale.domain
    paths: List[CurvePath] = []
    for entry in entries:
        if not entry.visible or not entry.raw_expression.strip():
            continue
        points = sample_expression(entry.raw_expression, parameters, x_domain)
        segments = build_segments(points, x_scale, y_scale, viewport.width, viewport.height)
        paths.append(CurvePath(function_id=entry.id, color=entry.color, segments=segments))
    return paths


def _segments_to_data(segments: Sequence[Sequence[PixelPoint]], x_scale: LinearScale, y_scale: LinearScale) -> Tuple[List[Optional[float]], List[Optional[float]]]:
    xs: List[Optional[float]] = []
    ys: List[Optional[float]] = []
    for index, segment in enumerate(segments):
        if index:
            xs.append(None)
            ys.append(None)
        for px, py in segment:
            xs.append(x_scale.invert(px))
            ys.append(y_scale.invert(py))
    return xs, ys


def grid_shapes(viewport: Viewport) -> List[Dict[str, Any]]:
    (x0, x1), (y0, y1) = viewport.visible_domain()
    shapes: List[Dict[str, Any]] = []
    for tick in viewport.x_ticks():
        shapes.append(dict(type="line", x0=tick, x1=tick, y0=y0, y1=y1, line=dict(config.GRID_LINE_STYLE), layer="below"))
    for tick in viewport.y_ticks():
        shapes.append(dict(type="line", x0=x0, x1=x1, y0=tick, y1=tick, line=dict(config.GRID_LINE_STYLE), layer="below"))
    return shapes


def axis_shapes_and_labels(viewport: Viewport) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    x_scale, y_scale = viewport.rescale()
    (x0, x1), (y0, y1) = viewport.visible_domain()
    x_axis_py, y_axis_px = viewport.axis_positions()
    x_axis_y = y_scale.invert(x_axis_py)
    y_axis_x = x_scale.invert(y_axis_px)
    shapes = [
        dict(type="line", x0=x0, x1=x1, y0=x_axis_y, y1=x_axis_y, line=dict(config.AXIS_LINE_STYLE)),
        dict(type="line", x0=y_axis_x, x1=y_axis_x, y0=y0, y1=y1, line=dict(config.AXIS_LINE_STYLE)),
    ]
    labels: List[Dict[str, Any]] = []
    for tick in viewport.x_ticks():
        if abs(tick) <= config.ZERO_LABEL_EPS:
            continue
        labels.append(
            dict(
                x=tick,
                y=x_axis_y,
                text=format_tick(tick),
                showarrow=False,
                yshift=-10,
                font=dict(config.TICK_LABEL_FONT),
            )
        )
    for tick in viewport.y_ticks():
        if abs(tick) <= config.ZERO_LABEL_EPS:
            continue
        labels.append(
            dict(
                x=y_axis_x,
                y=tick,
                text=format_tick(tick),
                showarrow=False,
                xanchor="right",
                xshift=-6,
                font=dict(config.TICK_LABEL_FONT),
            )
        )
    return shapes, labels


def curve_traces(paths: Sequence[CurvePath], viewport: Viewport) -> List[go.Scatter]:
    x_scale, y_scale = viewport.rescale()
    traces: List[go.Scatter] = []
    for path in paths:
        xs, ys = _segments_to_data(path.segments, x_scale, y_scale)
        traces.append(
            go.Scatter(
                x=xs,
                y=ys,
                mode="lines",
                name=path.function_id,
                line=dict(color=path.color, width=config.CURVE_LINE_WIDTH, shape="linear"),
                connectgaps=False,
                hovertemplate="x=%{x:.3f}<br>y=%{y:.3f}<extra></extra>",
                showlegend=False,
            )
        )
    return traces


def build_figure(paths: Sequence[CurvePath], viewport: Viewport, *, uirevision: str) -> go.Figure:
    (x0, x1), (y0, y1) = viewport.visible_domain()
    shapes, labels = axis_shapes_and_labels(viewport)
    fig = go.Figure(
        data=[
            go.Scatter(
                x=[0.0],
                y=[0.0],
                mode="markers",
                name="Origin",
                marker=dict(config.ORIGIN_MARKER_STYLE),
                hoverinfo="skip",
                showlegend=False,
            ),
            *curve_traces(paths, viewport),
        ]
    )
    hidden_axis = dict(showgrid=False, zeroline=False, showticklabels=False, ticks="", showline=False)
    fig.update_layout(
        width=int(viewport.width),
        height=int(viewport.height),
        margin=dict(l=0, r=0, t=0, b=0),
        paper_bgcolor=config.FIGURE_COLORS["background"],
        plot_bgcolor=config.FIGURE_COLORS["background"],
        xaxis=dict(range=[x0, x1], **hidden_axis),
        yaxis=dict(range=[y0, y1], **hidden_axis),
        showlegend=False,
        dragmode="pan",
        uirevision=uirevision,
        shapes=[*grid_shapes(viewport), *shapes],
        annotations=labels,
    )
    return fig


def relayout_to_ranges(relayout: Optional[Dict[str, Any]]) -> Optional[Tuple[Tuple[float, float], Optional[Tuple[float, float]]]]:
    """Pull the new axis ranges out of Plotly ``relayoutData``.

    Returns ``None`` when the event carries no horizontal range.
    """
    if not isinstance(relayout, dict):
        return None

    def _axis_range(axis: str) -> Optional[Tuple[float, float]]:
        raw = relayout.get(f"{axis}.range")
        if isinstance(raw, (list, tuple)) and len(raw) == 2:
            lo, hi = raw
        else:
            lo = relayout.get(f"{axis}.range[0]")
            hi = relayout.get(f"{axis}.range[1]")
        try:
            lo_f, hi_f = float(lo), float(hi)
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(lo_f) and math.isfinite(hi_f)) or lo_f == hi_f:
            return None
        return lo_f, hi_f

    x_range = _axis_range("xaxis")
    if x_range is None:
        return None
    return x_range, _axis_range("yaxis")


def is_autorange_event(relayout: Optional[Dict[str, Any]]) -> bool:
    if not isinstance(relayout, dict):
        return False
    return bool(relayout.get("xaxis.autorange") or relayout.get("yaxis.autorange"))
