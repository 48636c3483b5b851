import streamlit as st

from function_grapher import config
from function_grapher.graph_engine import build_figure
from function_grapher.scan import ScanMode, StaticScanner
from function_grapher.session import GraphSession
from function_grapher.ui_components import function_card

st.set_page_config(page_title="Function Grapher", layout="wide")

st.title("Function Grapher")
st.caption("Type a function (e.g. y = k*sin(x) + b) or scan one from a photo; parameters get sliders.")

if "graph_session" not in st.session_state:
    st.session_state["graph_session"] = GraphSession()
if "graph_editing_id" not in st.session_state:
    st.session_state["graph_editing_id"] = None
if "graph_scan_results" not in st.session_state:
    st.session_state["graph_scan_results"] = []
if "graph_input" not in st.session_state:
    st.session_state["graph_input"] = ""

session: GraphSession = st.session_state["graph_session"]
scanner = StaticScanner()


def _rerun():
    rerun_fn = getattr(st, "rerun", getattr(st, "experimental_rerun", None))
    if rerun_fn is not None:
        rerun_fn()


def _submit_expression():
    raw = st.session_state.get("graph_input", "")
    editing_id = st.session_state.get("graph_editing_id")
    if editing_id and session.get_function(editing_id) is not None:
        session.edit_function(editing_id, raw)
    else:
        session.add_function(raw)
    st.session_state["graph_editing_id"] = None
    st.session_state["graph_input"] = ""


graph_col, controls_col = st.columns([2, 1], gap="large")

with controls_col:
    st.subheader("Functions")
    if not session.functions:
        st.caption("No functions yet")
    for entry in list(session.functions):
        action = function_card(session, entry)
        if action == "edit":
            st.session_state["graph_editing_id"] = entry.id
            st.session_state["graph_input"] = entry.raw_expression
            _rerun()
        elif action == "delete":
            _rerun()

    editing = st.session_state.get("graph_editing_id") is not None
    st.text_input("Expression", key="graph_input", on_change=_submit_expression)
    st.button("Update" if editing else "Add", on_click=_submit_expression, use_container_width=True)

    with st.expander("Photo scan"):
        mode = st.radio(
            "Mode",
            options=[ScanMode.FAST, ScanMode.HIGH_QUALITY],
            format_func=lambda m: "Fast" if m == ScanMode.FAST else "High quality",
            horizontal=True,
        )
        upload = st.file_uploader("Photo", type=["png", "jpg", "jpeg"])
        results = st.session_state["graph_scan_results"]
        if upload is not None and st.button("Rescan" if results else "Scan"):
            results = scanner.extract_functions(upload.getvalue(), upload.type, mode)
            st.session_state["graph_scan_results"] = results
        selected = [i for i, expr in enumerate(results) if st.checkbox(expr, value=True, key=f"scan-{i}")]
        if results and st.button("Add selected"):
            session.apply_scan_results(results, selected)
            st.session_state["graph_scan_results"] = []
            _rerun()

graph_width = st.sidebar.slider("Graph width (px)", min_value=400, max_value=1400, value=config.GRAPH_WIDTH, step=20, key="graph_width")
if graph_width != int(session.viewport.width):
    session.resize(graph_width, graph_width * config.GRAPH_HEIGHT / config.GRAPH_WIDTH)

with graph_col:
    zoom_in, zoom_out, left, right, up, down, reset = st.columns(7)
    step_px = session.viewport.width / 8
    if zoom_in.button("＋", use_container_width=True):
        session.zoom(config.ZOOM_STEP)
    if zoom_out.button("－", use_container_width=True):
        session.zoom(1 / config.ZOOM_STEP)
    if left.button("◀", use_container_width=True):
        session.pan(step_px, 0)
    if right.button("▶", use_container_width=True):
        session.pan(-step_px, 0)
    if up.button("▲", use_container_width=True):
        session.pan(0, step_px)
    if down.button("▼", use_container_width=True):
        session.pan(0, -step_px)
    if reset.button("Reset", use_container_width=True):
        session.reset_view()

    fig = build_figure(session.render(), session.viewport, uirevision=f"{config.UI_BASE_TOKEN}{session.revision}")
    st.plotly_chart(fig, use_container_width=False, config={"displaylogo": False, "staticPlot": False})
