"""Streamlit UI components for the grapher."""

from __future__ import annotations

from typing import Any, Optional

import streamlit as st
import streamlit_shadcn_ui as ui

from . import config
from .notation import to_latex
from .session import FunctionEntry, GraphSession


def _slider_raw_value(slider_value: Any) -> Optional[float]:
    raw_value = None
    if isinstance(slider_value, (list, tuple)):
        if slider_value:
            raw_value = slider_value[0]
    elif isinstance(slider_value, (int, float)):
        raw_value = slider_value
    elif isinstance(slider_value, str):
        try:
            raw_value = float(slider_value)
        except ValueError:
            raw_value = None
    if raw_value is None:
        return None
    try:
        return float(raw_value)
    except (TypeError, ValueError):
        return None


def parameter_slider(session: GraphSession, name: str, *, key_prefix: str) -> bool:
    """Render one parameter slider; returns True when the value changed."""
    param = session.parameters[name]
    label_col, delete_col = st.columns([4, 1])
    label_col.caption(f"{param.name} = {param.value:.2f}")
    if delete_col.button("✕", key=f"{key_prefix}-delete-{name}", help=f"Remove parameter {name}"):
        session.delete_parameter(name)
        return True
    slider_value = ui.slider(
        label=None,
        min_value=param.min,
        max_value=param.max,
        step=param.step,
        default_value=[param.value],
        key=f"{key_prefix}-slider-{name}",
    )
    raw_value = _slider_raw_value(slider_value)
    if raw_value is None or abs(round(raw_value, 2) - param.value) < 1e-9:
        return False
    session.set_parameter_value(name, round(raw_value, 2))
    return True


def function_card(session: GraphSession, entry: FunctionEntry) -> Optional[str]:
    """Render a function entry; returns the action taken (``edit``/``delete``/...) if any."""
    action = None
    with st.container(border=True):
        toggle_col, tex_col, edit_col, delete_col = st.columns([1, 6, 1, 1])
        visible = toggle_col.checkbox("show", value=entry.visible, key=f"visible-{entry.id}", label_visibility="collapsed")
        if visible != entry.visible:
            session.toggle_visibility(entry.id)
            action = "toggle"
        tex_col.latex(to_latex(entry.raw_expression))
        error = session.expression_error(entry)
        if error:
            tex_col.caption(f":red[Cannot graph: {error}]")
        if edit_col.button("✎", key=f"edit-{entry.id}", help="Edit"):
            action = "edit"
        if delete_col.button("🗑", key=f"delete-{entry.id}", help="Delete"):
            session.delete_function(entry.id)
            return "delete"
        palette = config.FUNCTION_PALETTE
        index = palette.index(entry.color) if entry.color in palette else 0
        color = st.selectbox("Color", palette, index=index, key=f"color-{entry.id}")
        if color != entry.color:
            session.set_color(entry.id, color)
            action = action or "color"
        for name in session.used_parameters(entry):
            if parameter_slider(session, name, key_prefix=entry.id):
                action = action or "param"
    return action
