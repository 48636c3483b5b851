"""Per-session JSONL event log for graph interactions.

Records are appended to ``DATA_DIR/session_<id>.jsonl``. High-frequency events
(slider drags, pan/zoom) go through ``log_with_throttle`` so at most one
record per ``LOG_RATE_LIMIT_SECONDS`` reaches disk.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from . import config

logger = logging.getLogger(__name__)


@dataclass
class _SessionClock:
    seq: int = 0
    last_client_ms: Optional[int] = None
    last_server_ms: Optional[int] = None


@dataclass
class _Throttle:
    last_write: float = 0.0
    pending: Optional[Dict[str, Any]] = None
    timer: Optional[threading.Timer] = None


_CLOCKS: Dict[str, _SessionClock] = {}
_THROTTLES: Dict[str, _Throttle] = {}


def normalize_param_value(value: Any, bounds: Mapping[str, float], *, default: float = config.DEFAULT_PARAMETER["value"]) -> float:
    """Clamp ``value`` into ``bounds`` and snap it to the slider step."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = float(default)
    number = min(max(number, bounds["min"]), bounds["max"])
    step = bounds.get("step") or config.DEFAULT_PARAMETER["step"]
    snapped = round(number / step) * step
    # + 0.0 turns -0.0 into 0.0
    return float(f"{snapped:.12g}") + 0.0


def safe_session_id(session_id: Optional[str]) -> str:
    if isinstance(session_id, str) and session_id:
        return session_id
    return "unknown"


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def next_seq_and_elapsed(session_id: str, t_client_ms: Optional[int] = None) -> Dict[str, Any]:
    """Advance the session's sequence number and measure time since its previous event.

    Client timestamps are preferred when both this and the previous event
    carry one; otherwise the server clock is used.
    """
    clock = _CLOCKS.setdefault(session_id, _SessionClock())
    now_ms = int(time.time() * 1000)
    clock.seq += 1
    if t_client_ms is not None and clock.last_client_ms is not None:
        elapsed = t_client_ms - clock.last_client_ms
    elif clock.last_server_ms is not None:
        elapsed = now_ms - clock.last_server_ms
    else:
        elapsed = 0
    clock.last_client_ms = t_client_ms
    clock.last_server_ms = now_ms
    return {"seq": clock.seq, "elapsed_time_ms": max(int(elapsed), 0), "t_server_iso": _utc_iso(), "now_ms": now_ms}


def base_log_record(
    session_id: str,
    *,
    event: str,
    source: str = "system",
    uirevision: Optional[str] = None,
    viewport: Optional[Mapping[str, float]] = None,
    t_client_ms: Optional[int] = None,
    **fields: Any,
) -> Dict[str, Any]:
    session_id = safe_session_id(session_id)
    timing = next_seq_and_elapsed(session_id, t_client_ms)
    record: Dict[str, Any] = dict(
        schema_version=config.SCHEMA_VERSION,
        session_id=session_id,
        t_client_ms=t_client_ms,
        t_server_iso=timing["t_server_iso"],
        seq=timing["seq"],
        event=event,
        source=source,
        elapsed_time_ms=timing["elapsed_time_ms"],
        mode=config.APP_MODE,
        uirevision=uirevision,
    )
    if viewport:
        for axis in ("k", "x", "y"):
            record[f"viewport_{axis}"] = viewport.get(axis)
    record.update(fields)
    return record


def session_log_path(session_id: str) -> Path:
    return config.DATA_DIR / f"session_{safe_session_id(session_id)}.jsonl"


def append_jsonl(path: Path, record: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(record, ensure_ascii=False)
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(line + "\n")


def write_log_record(session_id: str, record: Dict[str, Any]) -> None:
    """Append ``record``; failures are logged and otherwise ignored."""
    try:
        append_jsonl(session_log_path(session_id), record)
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("could not write event log record %s: %s", record.get("event"), exc)


def _flush_pending_record(session_id: str) -> None:
    throttle = _THROTTLES.get(session_id)
    if throttle is None:
        return
    throttle.timer = None
    if throttle.pending is None:
        return
    record, throttle.pending = throttle.pending, None
    write_log_record(session_id, record)
    throttle.last_write = time.monotonic()


def log_with_throttle(session_id: str, record: Dict[str, Any]) -> None:
    """Write at most one record per rate-limit window; the latest pending one wins."""
    throttle = _THROTTLES.setdefault(session_id, _Throttle())
    now = time.monotonic()
    wait = config.LOG_RATE_LIMIT_SECONDS - (now - throttle.last_write)
    if wait <= 0:
        if throttle.timer is not None:
            throttle.timer.cancel()
            throttle.timer = None
        throttle.pending = None
        write_log_record(session_id, record)
        throttle.last_write = now
        return
    throttle.pending = record
    if throttle.timer is None:
        throttle.timer = threading.Timer(max(wait, 0.01), _flush_pending_record, args=(session_id,))
        throttle.timer.daemon = True
        throttle.timer.start()


def read_session_log_records(session_id: str) -> List[Dict[str, Any]]:
    path = session_log_path(session_id)
    if not path.is_file():
        return []
    records: List[Dict[str, Any]] = []
    for number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError:
            logger.warning("skipping malformed line %d in %s", number, path.name)
    return records


def flatten_record_for_csv(record: Dict[str, Any]) -> Dict[str, Any]:
    row = {column: record.get(column) for column in config.SCHEMA_COLUMNS}
    if row["t_client_ms"] is not None:
        try:
            row["t_client_ms"] = str(int(row["t_client_ms"]))
        except (TypeError, ValueError):
            logger.debug("leaving non-integer t_client_ms %r as is", row["t_client_ms"])
    return row


def build_csv_content(records: List[Dict[str, Any]]) -> Optional[str]:
    """CSV export with the fixed ``SCHEMA_COLUMNS`` order; ``None`` when there is nothing to export."""
    if not records:
        return None
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=config.SCHEMA_COLUMNS)
    writer.writeheader()
    writer.writerows(flatten_record_for_csv(record) for record in records)
    return buffer.getvalue()


def format_preview_message(record: Dict[str, Any]) -> str:
    parts = [str(record.get("event", "event"))]
    if record.get("expression"):
        parts.append(repr(record["expression"]))
    if record.get("param_name"):
        parts.append(f"{record['param_name']}: {record.get('old_value')} -> {record.get('new_value')}")
    if record.get("viewport_k") is not None:
        parts.append(f"zoom {float(record['viewport_k']):.3g}x")
    return " | ".join(parts)
