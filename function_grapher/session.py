"""In-memory graph session state.

Parameter discovery is two explicit steps: ``detect_symbols`` is pure, and
``GraphSession.reconcile_parameters`` is the only place detection mutates the
parameter map. Detection runs on every add and edit, before sampling.
"""

from __future__ import annotations

import logging
import random
import re
import string
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from . import config
from .errors import NormalizationFailure
from .evaluator import compile_expression, is_builtin_function, prepare_source
from .graph_engine import CurvePath, render_curves
from .logger import normalize_param_value
from .normalizer import normalize_expression
from .viewport import Viewport

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase
_NAME_RE = re.compile(r"[^\W\d]\w*")


def new_function_id() -> str:
    return "".join(random.choice(_ID_ALPHABET) for _ in range(9))


@dataclass
class FunctionEntry:
    id: str
    raw_expression: str
    visible: bool = True
    color: str = config.FUNCTION_PALETTE[0]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FunctionEntry":
        return cls(
            id=str(raw["id"]),
            raw_expression=str(raw.get("raw_expression", "")),
            visible=bool(raw.get("visible", True)),
            color=str(raw.get("color") or config.FUNCTION_PALETTE[0]),
        )


@dataclass
class Parameter:
    name: str
    value: float = config.DEFAULT_PARAMETER["value"]
    min: float = config.DEFAULT_PARAMETER["min"]
    max: float = config.DEFAULT_PARAMETER["max"]
    step: float = config.DEFAULT_PARAMETER["step"]

    @property
    def bounds(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max, "step": self.step}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Parameter":
        defaults = config.DEFAULT_PARAMETER
        return cls(
            name=str(raw["name"]),
            value=float(raw.get("value", defaults["value"])),
            min=float(raw.get("min", defaults["min"])),
            max=float(raw.get("max", defaults["max"])),
            step=float(raw.get("step", defaults["step"])),
        )


def _symbols_of(raw: str) -> List[str]:
    """Free symbol names of ``raw`` in order of first appearance."""
    try:
        expression = normalize_expression(raw)
        symbols = set(compile_expression(expression).symbols)
    except NormalizationFailure:
        return []
    ordered: List[str] = []
    for match in _NAME_RE.finditer(prepare_source(expression)):
        name = match.group()
        if name in symbols and name not in ordered:
            ordered.append(name)
    return ordered


def expression_error(raw: str) -> Optional[str]:
    """Why ``raw`` cannot be graphed, or ``None`` when it parses."""
    try:
        compile_expression(normalize_expression(raw))
    except NormalizationFailure as exc:
        return exc.reason
    return None


def detect_symbols(raw: str) -> Set[str]:
    """Free parameter names in ``raw``: everything except ``x``, ``y``, constants and functions."""
    return {
        name
        for name in _symbols_of(raw)
        if name not in config.RESERVED_SYMBOLS and not is_builtin_function(name)
    }


@dataclass
class GraphSession:
    functions: List[FunctionEntry] = field(default_factory=list)
    parameters: Dict[str, Parameter] = field(default_factory=dict)
    viewport: Viewport = field(default_factory=Viewport)
    revision: int = 0

    def _touch(self) -> None:
        self.revision += 1

    # Functions

    def get_function(self, function_id: str) -> Optional[FunctionEntry]:
        for entry in self.functions:
            if entry.id == function_id:
                return entry
        return None

    def _require_function(self, function_id: str) -> FunctionEntry:
        entry = self.get_function(function_id)
        if entry is None:
            raise KeyError(f"unknown function id {function_id!r}")
        return entry

    def next_color(self) -> str:
        palette = config.FUNCTION_PALETTE
        return palette[len(self.functions) % len(palette)]

    def add_function(self, raw: str) -> Optional[FunctionEntry]:
        """Add ``raw`` as a new visible function; blank input is ignored.

        Unparseable expressions are still added so they can be edited.
        """
        if raw is None or not raw.strip():
            return None
        self.reconcile_parameters(detect_symbols(raw))
        entry = FunctionEntry(id=new_function_id(), raw_expression=raw, color=self.next_color())
        self.functions.append(entry)
        self._touch()
        logger.debug("added function %s: %r", entry.id, raw)
        if expression_error(raw):
            logger.info("function %s is unparseable: %r", entry.id, raw)
        return entry

    def edit_function(self, function_id: str, raw: str) -> Optional[FunctionEntry]:
        if raw is None or not raw.strip():
            return None
        entry = self._require_function(function_id)
        self.reconcile_parameters(detect_symbols(raw))
        entry.raw_expression = raw
        self._touch()
        return entry

    def delete_function(self, function_id: str) -> bool:
        before = len(self.functions)
        self.functions = [entry for entry in self.functions if entry.id != function_id]
        removed = len(self.functions) != before
        if removed:
            self._touch()
        return removed

    def toggle_visibility(self, function_id: str) -> FunctionEntry:
        entry = self._require_function(function_id)
        entry.visible = not entry.visible
        self._touch()
        return entry

    def set_color(self, function_id: str, color: str) -> FunctionEntry:
        entry = self._require_function(function_id)
        entry.color = color
        self._touch()
        return entry

    def apply_scan_results(self, expressions: Iterable[str], selected: Optional[Iterable[int]] = None) -> List[FunctionEntry]:
        """Add the selected scanned expressions (all of them when ``selected`` is None)."""
        expressions = list(expressions)
        indices = range(len(expressions)) if selected is None else sorted(set(selected))
        added: List[FunctionEntry] = []
        for index in indices:
            if 0 <= index < len(expressions):
                entry = self.add_function(expressions[index])
                if entry is not None:
                    added.append(entry)
        return added

    # Parameters

    def reconcile_parameters(self, detected: Iterable[str]) -> List[str]:
        """Create default parameters for newly detected names; never removes any."""
        created: List[str] = []
        for name in sorted(detected):
            if name not in self.parameters:
                self.parameters[name] = Parameter(name=name)
                created.append(name)
        if created:
            logger.debug("created parameters %s", created)
            self._touch()
        return created

    def set_parameter_value(self, name: str, value: Any) -> float:
        param = self.parameters[name]
        param.value = normalize_param_value(value, param.bounds, default=param.value)
        self._touch()
        return param.value

    def delete_parameter(self, name: str) -> bool:
        if self.parameters.pop(name, None) is None:
            return False
        self._touch()
        return True

    def used_parameters(self, entry: FunctionEntry) -> List[str]:
        return [name for name in _symbols_of(entry.raw_expression) if name in self.parameters]

    def expression_error(self, entry: FunctionEntry) -> Optional[str]:
        return expression_error(entry.raw_expression)

    # Viewport

    def resize(self, width: float, height: float) -> None:
        self.viewport.resize(width, height)
        self._touch()

    def zoom(self, factor: float, center=None) -> None:
        self.viewport.zoom(factor, center)
        self._touch()

    def pan(self, dx: float, dy: float) -> None:
        self.viewport.pan(dx, dy)
        self._touch()

    def set_domain(self, x_range, y_range=None) -> None:
        self.viewport.set_domain(x_range, y_range)
        self._touch()

    def reset_view(self) -> None:
        self.viewport.reset()
        self._touch()

    # Rendering

    def render(self) -> List[CurvePath]:
        return render_curves(self.functions, self.parameters, self.viewport)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "functions": [entry.to_dict() for entry in self.functions],
            "parameters": {name: param.to_dict() for name, param in self.parameters.items()},
            "viewport": self.viewport.to_dict(),
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "GraphSession":
        raw = raw if isinstance(raw, dict) else {}
        return cls(
            functions=[FunctionEntry.from_dict(item) for item in raw.get("functions") or []],
            parameters={
                name: Parameter.from_dict({**item, "name": name})
                for name, item in (raw.get("parameters") or {}).items()
            },
            viewport=Viewport.from_dict(raw.get("viewport")),
            revision=int(raw.get("revision", 0) or 0),
        )
