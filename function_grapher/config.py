from __future__ import annotations

from pathlib import Path

# Paths and filenames
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "function_grapher" / "data"

# Sampling
NUM_SAMPLES = 1000

# Base coordinate mapping (1 vertical unit : 1 horizontal unit)
UNITS_TO_SHOW_V = 20

# Zoom extent
SCALE_MIN = 0.01
SCALE_MAX = 1000.0

# Ticks and clipping
TARGET_TICK_PX = 60
NICE_THRESHOLDS = (1.5, 3.5, 7.5)
MAX_PIXEL = 50000
ZERO_LABEL_EPS = 1e-10

# Evaluation guard rails
COMPLEX_EPS = 1e-10
INFINITY_SENTINEL = 1e100
UNDEFINED_SYMBOL_FALLBACK = 1.0

# Normalization
KNOWN_FUNCTIONS = [
    "sin",
    "cos",
    "tan",
    "asin",
    "acos",
    "atan",
    "log",
    "ln",
    "sqrt",
    "abs",
    "exp",
    "pi",
    "phi",
]
RESERVED_SYMBOLS = frozenset({"x", "y", "e", "pi", "PI", "phi", "i"})

# Parameter defaults and bounds
DEFAULT_PARAMETER = {"value": 1.0, "min": -10.0, "max": 10.0, "step": 0.1}

# Function palette, cycled by function count
FUNCTION_PALETTE = [
    "#6366f1",
    "#ec4899",
    "#f59e0b",
    "#10b981",
    "#ef4444",
    "#3b82f6",
    "#8b5cf6",
    "#06b6d4",
    "#f97316",
    "#14b8a6",
    "#ffffff",
]

# Figure and styles (dark)
GRAPH_WIDTH = 840
GRAPH_HEIGHT = 560
FIGURE_COLORS = {
    "background": "#09090b",
    "grid": "rgba(255,255,255,0.05)",
    "axis": "#52525b",
    "tick_label": "#71717a",
    "origin": "#71717a",
}
CURVE_LINE_WIDTH = 2.5
GRID_LINE_STYLE = {"color": FIGURE_COLORS["grid"], "width": 1}
AXIS_LINE_STYLE = {"color": FIGURE_COLORS["axis"], "width": 2}
TICK_LABEL_FONT = {"color": FIGURE_COLORS["tick_label"], "size": 10}
ORIGIN_MARKER_STYLE = {"color": FIGURE_COLORS["origin"], "size": 6, "symbol": "circle"}
ZOOM_STEP = 1.5

# Event log, schema
SCHEMA_VERSION = 1
APP_MODE = "dash"
UI_BASE_TOKEN = "grapher-"
LOG_RATE_LIMIT_SECONDS = 0.1

# CSV column order
SCHEMA_COLUMNS = [
    "schema_version",
    "session_id",
    "t_client_ms",
    "t_server_iso",
    "seq",
    "event",
    "function_id",
    "expression",
    "param_name",
    "old_value",
    "new_value",
    "source",
    "elapsed_time_ms",
    "mode",
    "viewport_k",
    "viewport_x",
    "viewport_y",
    "uirevision",
    "color",
    "visible",
    "scan_mode",
    "export_type",
]

# External assets
MATHJAX_CDN = "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"
