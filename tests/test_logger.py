"""Tests for function_grapher.logger."""

from __future__ import annotations

import logging
import uuid

import pytest

from function_grapher import config
from function_grapher import logger as event_log

BOUNDS = {"min": -10.0, "max": 10.0, "step": 0.1}


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    return tmp_path


@pytest.fixture
def session_id():
    return uuid.uuid4().hex


class TestNormalizeParamValue:
    def test_clamp(self):
        assert event_log.normalize_param_value(42, BOUNDS) == 10.0
        assert event_log.normalize_param_value(-42, BOUNDS) == -10.0

    def test_snap(self):
        assert event_log.normalize_param_value(2.36, BOUNDS) == 2.4

    def test_negative_zero(self):
        assert str(event_log.normalize_param_value(-0.04, BOUNDS)) == "0.0"

    def test_default(self):
        assert event_log.normalize_param_value("abc", BOUNDS, default=3.0) == 3.0


class TestRecords:
    def test_sequence(self, session_id):
        first = event_log.base_log_record(session_id, event="function_add", expression="x")
        second = event_log.base_log_record(session_id, event="function_delete")
        assert (first["seq"], second["seq"]) == (1, 2)
        assert first["expression"] == "x"
        assert first["mode"] == config.APP_MODE

    def test_viewport_fields(self, session_id):
        record = event_log.base_log_record(session_id, event="viewport_change", viewport={"k": 2.0, "x": 1.0, "y": -1.0})
        assert (record["viewport_k"], record["viewport_x"], record["viewport_y"]) == (2.0, 1.0, -1.0)

    def test_unknown_session(self):
        assert event_log.safe_session_id(None) == "unknown"

    def test_preview(self):
        record = {"event": "param_change", "param_name": "k", "old_value": 1, "new_value": 2}
        assert event_log.format_preview_message(record) == "param_change | k: 1 -> 2"


class TestPersistence:
    def test_write_and_read(self, data_dir, session_id):
        record = event_log.base_log_record(session_id, event="function_add", expression="x^2")
        event_log.write_log_record(session_id, record)
        assert event_log.read_session_log_records(session_id) == [record]
        assert event_log.session_log_path(session_id).parent == data_dir

    def test_missing_log(self, data_dir, session_id):
        assert event_log.read_session_log_records(session_id) == []

    def test_malformed_line_skipped(self, data_dir, session_id):
        path = event_log.session_log_path(session_id)
        path.write_text('{"event": "export"}\nnot json\n', encoding="utf-8")
        assert event_log.read_session_log_records(session_id) == [{"event": "export"}]

    def test_write_failure_is_logged(self, session_id, monkeypatch, caplog):
        def _boom(path, record):
            raise OSError("disk full")

        monkeypatch.setattr(event_log, "append_jsonl", _boom)
        with caplog.at_level(logging.WARNING, logger="function_grapher.logger"):
            event_log.write_log_record(session_id, {"event": "export"})
        assert "disk full" in caplog.text

    def test_throttle_keeps_latest(self, data_dir, session_id):
        event_log.log_with_throttle(session_id, {"event": "viewport_change", "viewport_k": 1.0})
        event_log.log_with_throttle(session_id, {"event": "viewport_change", "viewport_k": 2.0})
        event_log.log_with_throttle(session_id, {"event": "viewport_change", "viewport_k": 3.0})
        event_log._flush_pending_record(session_id)
        records = event_log.read_session_log_records(session_id)
        assert [r["viewport_k"] for r in records] == [1.0, 3.0]


class TestCsv:
    def test_empty(self):
        assert event_log.build_csv_content([]) is None

    def test_columns(self, session_id):
        record = event_log.base_log_record(session_id, event="param_change", param_name="k", extra="dropped")
        content = event_log.build_csv_content([record])
        header, row = content.splitlines()
        assert header == ",".join(config.SCHEMA_COLUMNS)
        assert "param_change" in row
        assert "dropped" not in content
