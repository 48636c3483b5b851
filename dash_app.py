"""Dash front end for the function grapher."""

from __future__ import annotations

import base64
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

import dash
from dash import ALL, Input, Output, State, dcc, html
import plotly.graph_objects as go

from function_grapher import config
from function_grapher.errors import ViewportError
from function_grapher.graph_engine import build_figure, is_autorange_event, relayout_to_ranges
from function_grapher.logger import (
    base_log_record,
    build_csv_content,
    format_preview_message,
    log_with_throttle,
    read_session_log_records,
    session_log_path,
    write_log_record,
)
from function_grapher.notation import to_latex
from function_grapher.scan import FunctionScanner, ScanMode, StaticScanner
from function_grapher.session import FunctionEntry, GraphSession

logger = logging.getLogger(__name__)

_PREVIEW_LOG_CAPACITY = 8
_THROTTLED_EVENTS = {"param_change", "viewport_change"}

# Replace with a hosted vision-model client implementing FunctionScanner.
SCANNER: FunctionScanner = StaticScanner()

_CARD_STYLE: Dict[str, Any] = {
    "padding": "12px",
    "borderRadius": "16px",
    "border": "1px solid rgba(255,255,255,0.08)",
    "backgroundColor": "rgba(255,255,255,0.04)",
    "marginBottom": "12px",
}

_ICON_BUTTON_STYLE: Dict[str, Any] = {
    "minWidth": "44px",
    "height": "36px",
    "marginLeft": "4px",
    "borderRadius": "10px",
    "border": "1px solid rgba(255,255,255,0.1)",
    "backgroundColor": "rgba(255,255,255,0.05)",
    "color": "#d4d4d8",
}


def _get_session_id(session_data: Optional[Dict[str, Any]]) -> str:
    if isinstance(session_data, dict):
        raw = session_data.get("session_id")
        if isinstance(raw, str) and raw:
            return raw
    return "unknown"


def _resolve_uirevision(session: GraphSession) -> str:
    return f"{config.UI_BASE_TOKEN}{session.revision}"


def _append_preview_log(log_data: Any, message: str) -> List[str]:
    entries = list(log_data) if isinstance(log_data, list) else []
    entries.append(message)
    return entries[-_PREVIEW_LOG_CAPACITY:]


def _record_event(session_id: str, session: GraphSession, event: str, log_data: Any, **fields: Any) -> List[str]:
    record = base_log_record(
        session_id,
        event=event,
        uirevision=_resolve_uirevision(session),
        viewport=session.viewport.transform.to_dict(),
        **fields,
    )
    if event in _THROTTLED_EVENTS:
        log_with_throttle(session_id, record)
    else:
        write_log_record(session_id, record)
    return _append_preview_log(log_data, format_preview_message(record))


def _build_graph_figure(session: GraphSession) -> go.Figure:
    return build_figure(session.render(), session.viewport, uirevision=_resolve_uirevision(session))


def _parameter_row(session: GraphSession, entry: FunctionEntry, name: str) -> html.Div:
    param = session.parameters[name]
    return html.Div(
        [
            html.Div(
                [
                    html.Span(
                        f"{param.name} = {param.value:.2f}",
                        style={"fontFamily": "monospace", "fontSize": "0.75rem", "color": "#a1a1aa"},
                    ),
                    html.Button(
                        "x",
                        id={"type": "param-delete", "fn": entry.id, "name": name},
                        n_clicks=0,
                        title=f"Remove parameter {name}",
                        style={**_ICON_BUTTON_STYLE, "minWidth": "28px", "height": "24px"},
                        **{"aria-label": f"Remove parameter {name}"},
                    ),
                ],
                style={"display": "flex", "justifyContent": "space-between", "alignItems": "center"},
            ),
            dcc.Slider(
                id={"type": "param-slider", "fn": entry.id, "name": name},
                min=param.min,
                max=param.max,
                step=param.step,
                value=param.value,
                marks=None,
                updatemode="mouseup",
                tooltip={"placement": "bottom", "always_visible": False},
            ),
        ],
        style={"marginTop": "8px"},
    )


def _function_card(session: GraphSession, entry: FunctionEntry) -> html.Div:
    swatches = [
        html.Button(
            "",
            id={"type": "fn-color", "id": entry.id, "color": color},
            n_clicks=0,
            title=color,
            style={
                "width": "20px",
                "height": "20px",
                "borderRadius": "50%",
                "marginRight": "6px",
                "backgroundColor": color,
                "border": "2px solid #ffffff" if color == entry.color else "2px solid transparent",
            },
        )
        for color in config.FUNCTION_PALETTE
    ]
    used = session.used_parameters(entry)
    error = session.expression_error(entry)
    error_rows = []
    if error:
        error_rows.append(
            html.Div(
                f"Cannot graph: {error}",
                id={"type": "fn-error", "id": entry.id},
                style={"color": "#f87171", "fontSize": "0.8rem", "marginTop": "6px"},
            )
        )
    return html.Div(
        [
            html.Div(
                [
                    html.Button(
                        "",
                        id={"type": "fn-toggle", "id": entry.id},
                        n_clicks=0,
                        title="Show/hide",
                        style={
                            "width": "20px",
                            "height": "20px",
                            "borderRadius": "50%",
                            "border": f"2px solid {entry.color}",
                            "backgroundColor": entry.color if entry.visible else "transparent",
                        },
                        **{"aria-label": "Toggle visibility"},
                    ),
                    dcc.Markdown(
                        f"${to_latex(entry.raw_expression)}$",
                        mathjax=True,
                        style={"flex": "1", "overflow": "hidden", "marginLeft": "12px", "color": "#e4e4e7"},
                    ),
                    html.Button("Edit", id={"type": "fn-edit", "id": entry.id}, n_clicks=0, style=_ICON_BUTTON_STYLE),
                    html.Button(
                        "Delete",
                        id={"type": "fn-delete", "id": entry.id},
                        n_clicks=0,
                        style={**_ICON_BUTTON_STYLE, "color": "#f87171"},
                    ),
                ],
                style={"display": "flex", "alignItems": "center"},
            ),
            *error_rows,
            html.Div(swatches, style={"display": "flex", "flexWrap": "wrap", "marginTop": "8px"}),
            *[_parameter_row(session, entry, name) for name in used],
        ],
        style=_CARD_STYLE,
    )


def _function_list(session: GraphSession) -> List[Any]:
    if not session.functions:
        return [html.P("No functions yet", style={"color": "#52525b", "textAlign": "center"})]
    return [_function_card(session, entry) for entry in session.functions]


_INITIAL_SESSION = GraphSession()
_INITIAL_FIGURE = _build_graph_figure(_INITIAL_SESSION)


app = dash.Dash(__name__, external_scripts=[config.MATHJAX_CDN])
server = app.server


def _serve_layout() -> html.Div:
    controls_column = html.Div(
        [
            html.H3("Functions", style={"color": "#71717a", "letterSpacing": "0.1em"}),
            html.Div(_function_list(_INITIAL_SESSION), id="function-list"),
            html.Div(
                [
                    dcc.Input(
                        id="input-expression",
                        type="text",
                        value="",
                        debounce=False,
                        placeholder="y = k*sin(x) + b",
                        style={"flex": "1", "height": "40px", "padding": "0 10px"},
                    ),
                    html.Button("Add", id="btn-add", n_clicks=0, className="a11y-target", style={"marginLeft": "8px"}),
                ],
                style={"display": "flex", "marginTop": "12px"},
            ),
            html.Div(
                [
                    html.H4("Photo scan", style={"color": "#a1a1aa"}),
                    dcc.RadioItems(
                        id="scan-mode",
                        options=[
                            {"label": "Fast", "value": ScanMode.FAST.value},
                            {"label": "High quality", "value": ScanMode.HIGH_QUALITY.value},
                        ],
                        value=ScanMode.FAST.value,
                        inline=True,
                    ),
                    dcc.Upload(
                        id="upload-scan",
                        children=html.Div("Drop or select a photo"),
                        accept="image/*",
                        style={
                            "marginTop": "8px",
                            "padding": "16px",
                            "border": "1px dashed #52525b",
                            "borderRadius": "12px",
                            "textAlign": "center",
                            "color": "#a1a1aa",
                        },
                    ),
                    dcc.Checklist(id="scan-selection", options=[], value=[], style={"marginTop": "8px"}),
                    html.Button("Add selected", id="btn-scan-accept", n_clicks=0, style={"marginTop": "8px"}),
                    html.Button("Rescan", id="btn-scan-regenerate", n_clicks=0, style={"marginTop": "8px", "marginLeft": "8px"}),
                ],
                style={**_CARD_STYLE, "marginTop": "16px"},
            ),
        ],
        style={"flex": "1", "minWidth": "300px"},
    )

    graph_column = html.Div(
        [
            html.Div(
                dcc.Graph(
                    id="graph-main",
                    figure=_INITIAL_FIGURE,
                    config={"displaylogo": False, "scrollZoom": True, "doubleClick": "autosize"},
                ),
                id="graph-container",
                style={"width": "100%", "overflow": "hidden"},
            ),
            dcc.Interval(id="interval-container", interval=1000, n_intervals=0),
            html.Div(
                [
                    html.Button("+", id="btn-zoom-in", n_clicks=0, className="a11y-target", title="Zoom in"),
                    html.Button("-", id="btn-zoom-out", n_clicks=0, className="a11y-target", title="Zoom out"),
                    html.Button("Reset view", id="btn-reset-view", n_clicks=0, className="a11y-target"),
                ],
                style={"display": "flex", "gap": "8px", "marginTop": "8px"},
            ),
            dcc.Markdown(
                "Recent logs will appear here.",
                id="log-display",
                style={"marginTop": "16px", "fontSize": "0.9rem", "color": "#a1a1aa"},
            ),
            html.Div(
                [
                    html.Button("Download JSONL", id="btn-download-jsonl", n_clicks=0),
                    html.Button("Download CSV", id="btn-download-csv", n_clicks=0, style={"marginLeft": "8px"}),
                    dcc.Download(id="download-jsonl"),
                    dcc.Download(id="download-csv"),
                ],
                style={"marginTop": "16px"},
            ),
        ],
        style={"flex": "2", "minWidth": "0"},
    )

    return html.Div(
        [
            dcc.Store(id="store-session", data={"session_id": uuid.uuid4().hex}),
            dcc.Store(id="store-graph", data=_INITIAL_SESSION.to_dict()),
            dcc.Store(id="store-editing", data=None),
            dcc.Store(id="store-scan", data={"results": []}),
            dcc.Store(id="store-log-sink", data=[]),
            dcc.Store(id="store-container", data=None),
            html.H1("Function Grapher", style={"color": "#fafafa"}),
            html.Div(
                [graph_column, controls_column],
                style={"display": "flex", "gap": "32px", "alignItems": "flex-start"},
            ),
        ],
        style={"backgroundColor": "#18181b", "padding": "24px", "minHeight": "100vh", "color": "#e4e4e7"},
    )


app.layout = _serve_layout


app.clientside_callback(
    """
    function(_n, current) {
        const container = document.getElementById("graph-container");
        if (!container || !container.clientWidth) {
            return window.dash_clientside.no_update;
        }
        const width = Math.round(container.clientWidth);
        const height = Math.round(width * %(aspect)s);
        if (current && current.width === width && current.height === height) {
            return window.dash_clientside.no_update;
        }
        return {width: width, height: height};
    }
    """ % {"aspect": config.GRAPH_HEIGHT / config.GRAPH_WIDTH},
    Output("store-container", "data"),
    Input("interval-container", "n_intervals"),
    State("store-container", "data"),
)


def _apply_container_size(session: GraphSession, size: Any) -> bool:
    """Resize the viewport to the measured graph container; True when it changed."""
    if not isinstance(size, dict):
        return False
    width, height = size.get("width"), size.get("height")
    if (width, height) == (session.viewport.width, session.viewport.height):
        return False
    try:
        session.resize(width, height)
    except ViewportError as exc:
        logger.warning("ignoring container size %s: %s", size, exc)
        return False
    return True


def _apply_expression(session: GraphSession, raw: Optional[str], editing_id: Optional[str]) -> Tuple[Optional[str], Dict[str, Any]]:
    if editing_id and session.get_function(editing_id) is not None:
        entry = session.edit_function(editing_id, raw or "")
        return ("function_edit" if entry else None), {"function_id": editing_id, "expression": raw}
    entry = session.add_function(raw or "")
    if entry is None:
        return None, {}
    return "function_add", {"function_id": entry.id, "expression": raw, "color": entry.color}


@app.callback(
    Output("store-graph", "data"),
    Output("store-editing", "data"),
    Output("input-expression", "value"),
    Output("store-log-sink", "data"),
    Input("btn-add", "n_clicks"),
    Input("input-expression", "n_submit"),
    Input({"type": "fn-toggle", "id": ALL}, "n_clicks"),
    Input({"type": "fn-edit", "id": ALL}, "n_clicks"),
    Input({"type": "fn-delete", "id": ALL}, "n_clicks"),
    Input({"type": "fn-color", "id": ALL, "color": ALL}, "n_clicks"),
    Input({"type": "param-slider", "fn": ALL, "name": ALL}, "value"),
    Input({"type": "param-delete", "fn": ALL, "name": ALL}, "n_clicks"),
    Input("graph-main", "relayoutData"),
    Input("btn-zoom-in", "n_clicks"),
    Input("btn-zoom-out", "n_clicks"),
    Input("btn-reset-view", "n_clicks"),
    Input("btn-scan-accept", "n_clicks"),
    Input("store-container", "data"),
    State("input-expression", "value"),
    State("store-editing", "data"),
    State("store-graph", "data"),
    State("store-scan", "data"),
    State("scan-selection", "value"),
    State("store-session", "data"),
    State("store-log-sink", "data"),
    prevent_initial_call=True,
)
def _update_graph_state(
    _add_clicks,
    _submits,
    _toggle_clicks,
    _edit_clicks,
    _delete_clicks,
    _color_clicks,
    _slider_values,
    _param_delete_clicks,
    relayout_data,
    _zoom_in_clicks,
    _zoom_out_clicks,
    _reset_clicks,
    _scan_accept_clicks,
    container_size,
    input_value,
    editing_id,
    graph_data,
    scan_data,
    scan_selection,
    session_data,
    log_store_data,
):
    ctx = dash.callback_context
    if not ctx.triggered:
        return dash.no_update, dash.no_update, dash.no_update, dash.no_update
    trigger = ctx.triggered_id
    trigger_value = ctx.triggered[0].get("value")
    session = GraphSession.from_dict(graph_data)
    session_id = _get_session_id(session_data)
    next_editing = editing_id
    next_input: Any = dash.no_update
    event: Optional[str] = None
    fields: Dict[str, Any] = {}

    if isinstance(trigger, dict):
        kind = trigger.get("type")
        if kind == "param-slider":
            name = trigger.get("name")
            param = session.parameters.get(name)
            if param is None or trigger_value is None:
                return dash.no_update, dash.no_update, dash.no_update, dash.no_update
            old_value = param.value
            new_value = session.set_parameter_value(name, trigger_value)
            if abs(new_value - old_value) < 1e-9:
                return dash.no_update, dash.no_update, dash.no_update, dash.no_update
            event, fields = "param_change", {"param_name": name, "old_value": old_value, "new_value": new_value, "source": "slider"}
        elif not trigger_value:
            # Buttons freshly rendered with n_clicks=0.
            return dash.no_update, dash.no_update, dash.no_update, dash.no_update
        elif kind == "param-delete":
            name = trigger.get("name")
            if session.delete_parameter(name):
                event, fields = "param_delete", {"param_name": name, "source": "button"}
        else:
            function_id = trigger.get("id")
            entry = session.get_function(function_id)
            if entry is None:
                return dash.no_update, dash.no_update, dash.no_update, dash.no_update
            if kind == "fn-toggle":
                session.toggle_visibility(function_id)
                event, fields = "visibility_toggle", {"function_id": function_id, "visible": entry.visible}
            elif kind == "fn-edit":
                next_editing = function_id
                next_input = entry.raw_expression
            elif kind == "fn-delete":
                session.delete_function(function_id)
                event, fields = "function_delete", {"function_id": function_id, "expression": entry.raw_expression}
                if editing_id == function_id:
                    next_editing = None
            elif kind == "fn-color":
                color = trigger.get("color")
                session.set_color(function_id, color)
                event, fields = "color_change", {"function_id": function_id, "color": color}
    elif trigger in {"btn-add", "input-expression"}:
        event, fields = _apply_expression(session, input_value, editing_id)
        if event is None:
            return dash.no_update, dash.no_update, dash.no_update, dash.no_update
        next_editing = None
        next_input = ""
    elif trigger == "graph-main":
        if is_autorange_event(relayout_data):
            session.reset_view()
            event = "viewport_reset"
        else:
            ranges = relayout_to_ranges(relayout_data)
            if ranges is None:
                return dash.no_update, dash.no_update, dash.no_update, dash.no_update
            try:
                session.set_domain(*ranges)
            except ViewportError as exc:
                logger.warning("ignoring relayout %s: %s", relayout_data, exc)
                return dash.no_update, dash.no_update, dash.no_update, dash.no_update
            event, fields = "viewport_change", {"source": "pointer"}
    elif trigger in {"btn-zoom-in", "btn-zoom-out"}:
        factor = config.ZOOM_STEP if trigger == "btn-zoom-in" else 1 / config.ZOOM_STEP
        session.zoom(factor)
        event, fields = "viewport_change", {"source": "button"}
    elif trigger == "btn-reset-view":
        session.reset_view()
        event, fields = "viewport_reset", {"source": "button"}
    elif trigger == "btn-scan-accept":
        results = (scan_data or {}).get("results") or []
        added = session.apply_scan_results(results, scan_selection or [])
        if not added:
            return dash.no_update, dash.no_update, dash.no_update, dash.no_update
        event, fields = "scan_accept", {"new_value": len(added), "scan_mode": (scan_data or {}).get("mode")}
    elif trigger == "store-container":
        if not _apply_container_size(session, container_size):
            return dash.no_update, dash.no_update, dash.no_update, dash.no_update
    else:
        return dash.no_update, dash.no_update, dash.no_update, dash.no_update

    log_update = dash.no_update
    if event:
        fields.setdefault("source", "button")
        log_update = _record_event(session_id, session, event, log_store_data, **fields)
    return session.to_dict(), next_editing, next_input, log_update


@app.callback(
    Output("graph-main", "figure"),
    Output("function-list", "children"),
    Output("btn-add", "children"),
    Input("store-graph", "data"),
    Input("store-editing", "data"),
)
def _render_graph(graph_data, editing_id):
    session = GraphSession.from_dict(graph_data)
    label = "Update" if editing_id and session.get_function(editing_id) else "Add"
    return _build_graph_figure(session), _function_list(session), label


def _scan_image(contents: Optional[str], filename: Optional[str], mode_value: Optional[str]) -> Optional[Dict[str, Any]]:
    if not contents:
        return None
    header, _, encoded = contents.partition(",")
    mime_type = header[len("data:"):].split(";")[0] or "image/jpeg"
    try:
        image = base64.b64decode(encoded, validate=True)
    except (ValueError, TypeError) as exc:
        logger.warning("could not decode upload %s: %s", filename, exc)
        return None
    mode = ScanMode(mode_value or ScanMode.FAST.value)
    results = SCANNER.extract_functions(image, mime_type, mode)
    return {"results": results, "mode": mode.value}


@app.callback(
    Output("store-scan", "data"),
    Output("scan-selection", "options"),
    Output("scan-selection", "value"),
    Input("upload-scan", "contents"),
    Input("btn-scan-regenerate", "n_clicks"),
    State("upload-scan", "filename"),
    State("scan-mode", "value"),
    prevent_initial_call=True,
)
def _handle_scan_upload(contents, _regenerate_clicks, filename, mode_value):
    """Scan a new upload, or rescan the current one (e.g. after switching mode)."""
    scan_data = _scan_image(contents, filename, mode_value)
    if scan_data is None:
        return dash.no_update, dash.no_update, dash.no_update
    results = scan_data["results"]
    options = [{"label": expr, "value": index} for index, expr in enumerate(results)]
    return scan_data, options, list(range(len(results)))


@app.callback(
    Output("download-jsonl", "data"),
    Input("btn-download-jsonl", "n_clicks"),
    State("store-session", "data"),
    prevent_initial_call=True,
)
def _handle_download_jsonl(n_clicks, session_data):
    if not n_clicks:
        return dash.no_update
    session_id = _get_session_id(session_data)
    path = session_log_path(session_id)
    if not path.exists():
        return dash.no_update
    write_log_record(session_id, base_log_record(session_id, event="export", source="button", export_type="jsonl"))
    return dcc.send_file(str(path))


@app.callback(
    Output("download-csv", "data"),
    Input("btn-download-csv", "n_clicks"),
    State("store-session", "data"),
    prevent_initial_call=True,
)
def _handle_download_csv(n_clicks, session_data):
    if not n_clicks:
        return dash.no_update
    session_id = _get_session_id(session_data)
    csv_content = build_csv_content(read_session_log_records(session_id))
    if not csv_content:
        return dash.no_update
    write_log_record(session_id, base_log_record(session_id, event="export", source="button", export_type="csv"))
    return dcc.send_string(csv_content, filename=f"session_{session_id}.csv")


@app.callback(
    Output("log-display", "children"),
    Input("store-log-sink", "data"),
)
def _render_log_display(log_entries):
    if not isinstance(log_entries, list) or not log_entries:
        return "Recent logs will appear here."
    lines = [f"- {entry}" for entry in reversed(log_entries)]
    return "\n".join(["Recent logs:", *lines])


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(debug=True)
