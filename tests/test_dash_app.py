"""Tests for the Dash front end helpers."""

from __future__ import annotations

import base64
import json
from collections import Counter

import pytest
from dash import dcc
from dash.development.base_component import Component

import dash_app
from function_grapher.scan import ScanMode, StaticScanner
from function_grapher.session import GraphSession


def _walk(node):
    if isinstance(node, (list, tuple)):
        for child in node:
            yield from _walk(child)
        return
    if not isinstance(node, Component):
        return
    yield node
    yield from _walk(getattr(node, "children", None))


def _ids(node):
    return [json.dumps(c.id, sort_keys=True) for c in _walk(node) if getattr(c, "id", None) is not None]


@pytest.fixture
def shared_session():
    session = GraphSession()
    session.add_function("k*x")
    session.add_function("k*x^2")
    return session


class TestFunctionList:
    def test_ids_unique_with_shared_parameter(self, shared_session):
        counts = Counter(_ids(dash_app._function_list(shared_session)))
        assert [key for key, count in counts.items() if count > 1] == []

    def test_slider_per_card(self, shared_session):
        sliders = [c for c in _walk(dash_app._function_list(shared_session)) if isinstance(c, dcc.Slider)]
        assert {s.id["fn"] for s in sliders} == {e.id for e in shared_session.functions}
        assert {s.id["name"] for s in sliders} == {"k"}

    def test_sliders_update_on_release(self, shared_session):
        sliders = [c for c in _walk(dash_app._function_list(shared_session)) if isinstance(c, dcc.Slider)]
        assert sliders
        assert all(s.updatemode == "mouseup" for s in sliders)

    def test_unparseable_entry_shows_error(self):
        session = GraphSession()
        entry = session.add_function("x +")
        errors = [c for c in _walk(dash_app._function_list(session)) if getattr(c, "id", None) == {"type": "fn-error", "id": entry.id}]
        assert len(errors) == 1
        assert "unparseable expression" in errors[0].children

    def test_valid_entry_has_no_error(self):
        session = GraphSession()
        session.add_function("x^2")
        ids = _ids(dash_app._function_list(session))
        assert not any("fn-error" in key for key in ids)


class TestContainerSize:
    def test_resize(self):
        session = GraphSession()
        before = session.revision
        assert dash_app._apply_container_size(session, {"width": 400, "height": 400})
        assert session.viewport.visible_domain() == ((pytest.approx(-10), pytest.approx(10)), (pytest.approx(-10), pytest.approx(10)))
        assert session.revision > before

    def test_same_size_is_ignored(self):
        session = GraphSession()
        size = {"width": session.viewport.width, "height": session.viewport.height}
        assert not dash_app._apply_container_size(session, size)

    @pytest.mark.parametrize("size", [None, {}, {"width": 0, "height": 300}])
    def test_bad_size(self, size):
        session = GraphSession()
        assert not dash_app._apply_container_size(session, size)
        assert session.viewport.width == 840


class TestScanImage:
    def test_rescan_uses_mode(self, monkeypatch):
        scanner = StaticScanner(["x^2"])
        monkeypatch.setattr(dash_app, "SCANNER", scanner)
        contents = "data:image/png;base64," + base64.b64encode(b"png").decode()
        assert dash_app._scan_image(contents, "photo.png", "fast") == {"results": ["x^2"], "mode": "fast"}
        assert dash_app._scan_image(contents, "photo.png", "high") == {"results": ["x^2"], "mode": "high"}
        assert scanner.calls == [ScanMode.FAST, ScanMode.HIGH_QUALITY]

    def test_no_upload(self):
        assert dash_app._scan_image(None, None, "fast") is None

    def test_bad_payload(self, monkeypatch):
        monkeypatch.setattr(dash_app, "SCANNER", StaticScanner(["x"]))
        assert dash_app._scan_image("data:image/png;base64,!!!", "photo.png", "fast") is None
