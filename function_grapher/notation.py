"""Typeset (LaTeX) rendering of raw expressions for display only."""

from __future__ import annotations

import logging
import re

import sympy

from .normalizer import rewrite_base_logs
from .evaluator import parse_expression

logger = logging.getLogger(__name__)

_FRACTION_RE = re.compile(r"\(([^()]+)\)/\(([^()]+)\)")
_SQRT_RE = re.compile(r"sqrt\(([^()]+)\)")


def fallback_latex(expr: str) -> str:
    """Crude text substitution used when the expression does not parse."""
    tex = _FRACTION_RE.sub(r"\\frac{\1}{\2}", expr)
    tex = _SQRT_RE.sub(r"\\sqrt{\1}", tex)
    tex = tex.replace("/", "\\div ")
    tex = tex.replace("*", "\\cdot ")
    return tex


def to_latex(raw: str) -> str:
    """LaTeX for ``raw``, keeping any ``lhs =`` part. Never raises."""
    expr = (raw or "").strip()
    if not expr:
        return ""
    parts = expr.split("=")
    lhs = None
    rhs = expr
    if len(parts) > 1:
        lhs, rhs = parts[0].strip(), parts[1].strip()
    try:
        tex = sympy.latex(parse_expression(rewrite_base_logs(rhs)))
    except Exception as exc:
        logger.debug("latex fallback for %r: %s", raw, exc)
        return fallback_latex(expr)
    return f"{lhs} = {tex}" if lhs is not None else tex
