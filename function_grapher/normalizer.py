"""Rewrite user-facing math notation into evaluator syntax.

The rules run in a fixed order; later rules assume the earlier ones have
already run, so placeholder text from one step never leaks into another.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from . import config
from .errors import NormalizationFailure

logger = logging.getLogger(__name__)

_ASSIGNMENT_RE = re.compile(r"^\s*(f\(x\)|y)\s*=")
_INVERSE_TRIG_RE = re.compile(r"(sin|cos|tan)\^-1", re.IGNORECASE)
_BASE_LOG_RE = re.compile(r"log(10|2)\(", re.IGNORECASE)
_LETTER_PAIR_RE = re.compile(r"([a-z])([a-z])", re.IGNORECASE)

# Private-use code points: no letters, so the letter-pair split cannot touch them.
_PLACEHOLDER_OPEN = "\ue000"
_PLACEHOLDER_CLOSE = "\ue001"
_LETTER_BEFORE_PLACEHOLDER_RE = re.compile(r"([a-z])(?=" + _PLACEHOLDER_OPEN + ")", re.IGNORECASE)
_LETTER_AFTER_PLACEHOLDER_RE = re.compile("(" + _PLACEHOLDER_CLOSE + r")(?=[a-z])", re.IGNORECASE)


@dataclass(frozen=True)
class NormalizedExpression:
    raw: str
    lhs: Optional[str]
    expression: str


def split_assignment(raw: str) -> Tuple[Optional[str], str]:
    """Split a leading ``f(x) =`` or ``y =`` off ``raw``.

    Returns ``(lhs, rhs)``; ``lhs`` is ``None`` when there is no prefix.
    """
    match = _ASSIGNMENT_RE.match(raw)
    if match is None:
        return None, raw.strip()
    return match.group(1), raw[match.end():].strip()


def rewrite_inverse_trig(expr: str) -> str:
    return _INVERSE_TRIG_RE.sub(lambda m: "a" + m.group(1).lower(), expr)


def _find_closing_paren(expr: str, start: int) -> Optional[int]:
    depth = 1
    for index in range(start, len(expr)):
        char = expr[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
    return None


def rewrite_base_logs(expr: str) -> str:
    """Rewrite ``log2(E)``/``log10(E)`` into ``log(E, 2)``/``log(E, 10)``.

    The argument ends at the close paren matching the opening one, so nested
    groups inside ``E`` are kept whole. Unbalanced input is passed through.
    """
    parts: List[str] = []
    pos = 0
    while True:
        match = _BASE_LOG_RE.search(expr, pos)
        if match is None:
            parts.append(expr[pos:])
            break
        close = _find_closing_paren(expr, match.end())
        if close is None:
            parts.append(expr[pos:])
            break
        inner = rewrite_base_logs(expr[match.end():close])
        parts.append(expr[pos:match.start()])
        parts.append(f"log({inner}, {match.group(1)})")
        pos = close + 1
    return "".join(parts)


def replace_pi_glyph(expr: str) -> str:
    return expr.replace("π", "pi")


def _placeholder(index: int) -> str:
    return f"{_PLACEHOLDER_OPEN}{index}{_PLACEHOLDER_CLOSE}"


def split_implicit_multiplication(expr: str) -> str:
    """Separate adjacent single letters (``kx`` -> ``k x``).

    Known function names are swapped for placeholders first so they are not
    split, then restored. Runs of letters that are not function names are
    always split into single-letter symbols, including multi-letter
    parameter names.
    """
    names = sorted(config.KNOWN_FUNCTIONS, key=len, reverse=True)
    processed = expr
    for index, name in enumerate(names):
        processed = re.sub(re.escape(name), _placeholder(index), processed, flags=re.IGNORECASE)

    # Two passes: one pass only splits non-overlapping pairs (kxy -> k xy).
    processed = _LETTER_PAIR_RE.sub(r"\1 \2", processed)
    processed = _LETTER_PAIR_RE.sub(r"\1 \2", processed)
    processed = _LETTER_BEFORE_PLACEHOLDER_RE.sub(r"\1 ", processed)
    processed = _LETTER_AFTER_PLACEHOLDER_RE.sub(r"\1 ", processed)

    for index, name in enumerate(names):
        processed = processed.replace(_placeholder(index), name)
    return processed


def normalize(raw: str) -> NormalizedExpression:
    if raw is None or not str(raw).strip():
        raise NormalizationFailure(str(raw or ""), "empty expression")
    lhs, rhs = split_assignment(str(raw))
    if not rhs:
        raise NormalizationFailure(raw, "empty expression")
    expr = rewrite_inverse_trig(rhs)
    expr = rewrite_base_logs(expr)
    expr = replace_pi_glyph(expr)
    expr = split_implicit_multiplication(expr)
    expr = expr.strip()
    logger.debug("normalized %r -> %r", raw, expr)
    return NormalizedExpression(raw=raw, lhs=lhs, expression=expr)


def normalize_expression(raw: str) -> str:
    return normalize(raw).expression
