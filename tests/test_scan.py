"""Tests for function_grapher.scan."""

from __future__ import annotations

import pytest

from function_grapher.scan import ScanMode, StaticScanner, parse_scan_response
from function_grapher.session import GraphSession


class TestParseScanResponse:
    def test_list(self):
        assert parse_scan_response('["y = x^2", "sin(x)"]') == ["y = x^2", "sin(x)"]

    @pytest.mark.parametrize("text", [None, "", "not json", '{"a": 1}', "42"])
    def test_malformed(self, text):
        assert parse_scan_response(text) == []

    def test_non_strings_dropped(self):
        assert parse_scan_response('["x", 3, " ", null]') == ["x"]


class TestStaticScanner:
    def test_reply_and_mode(self):
        scanner = StaticScanner(["x^2", "log(x, 2)"])
        assert scanner.extract_functions(b"", "image/png", ScanMode.HIGH_QUALITY) == ["x^2", "log(x, 2)"]
        assert scanner.calls == [ScanMode.HIGH_QUALITY]

    def test_mode_from_value(self):
        scanner = StaticScanner()
        assert scanner.extract_functions(b"", mode="fast") == []
        assert scanner.calls == [ScanMode.FAST]

    def test_results_feed_session(self):
        session = GraphSession()
        results = StaticScanner(["y = kx", "x^2"]).extract_functions(b"")
        session.apply_scan_results(results)
        assert [e.raw_expression for e in session.functions] == ["y = kx", "x^2"]
        assert "k" in session.parameters
