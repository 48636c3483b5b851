"""Numeric expression evaluator built on sympy's parser.

Normalized expressions are parsed once into a sympy expression and turned
into an mpmath-backed callable. Square roots and logarithms of negative
numbers therefore come back as complex values rather than exceptions, and
``coerce_real`` decides what to keep.
"""

from __future__ import annotations

import logging
import math
import re
from functools import lru_cache
from keyword import iskeyword
from tokenize import NAME, OP
from typing import Any, Dict, List, Mapping, Tuple

import mpmath
import sympy
from sympy.parsing.sympy_parser import (
    convert_xor,
    function_exponentiation,
    implicit_application,
    implicit_multiplication,
    parse_expr,
    standard_transformations,
)

from . import config
from .errors import EvaluationException, NonRealResult, NormalizationFailure, UndefinedSymbol

logger = logging.getLogger(__name__)

BUILTIN_FUNCTIONS: Dict[str, Any] = {
    "sin": sympy.sin,
    "cos": sympy.cos,
    "tan": sympy.tan,
    "asin": sympy.asin,
    "acos": sympy.acos,
    "atan": sympy.atan,
    "log": sympy.log,
    "ln": sympy.log,
    "sqrt": sympy.sqrt,
    "abs": sympy.Abs,
    "exp": sympy.exp,
    "factorial": sympy.factorial,
}

CONSTANTS: Dict[str, Any] = {
    "pi": sympy.pi,
    "PI": sympy.pi,
    "e": sympy.E,
    "E": sympy.E,
    "phi": sympy.GoldenRatio,
    "i": sympy.I,
}

# Names the parser's own transformations emit.
_PARSER_GLOBALS: Dict[str, Any] = {
    "Symbol": sympy.Symbol,
    "Function": sympy.Function,
    "Integer": sympy.Integer,
    "Float": sympy.Float,
    "Rational": sympy.Rational,
    "factorial": sympy.factorial,
    "factorial2": sympy.factorial2,
}

_NUMBER_LETTER_RE = re.compile(r"(\d)(?![eE][+-]?\d)(?=[^\W\d_])")


def _unknown_call_as_product(tokens: List[Tuple[int, str]], local_dict: Dict[str, Any], global_dict: Dict[str, Any]):
    """Read ``k(x + 1)`` as ``k*(x + 1)`` when ``k`` is not a known function."""
    result: List[Tuple[int, str]] = []
    for tok, next_tok in zip(tokens, tokens[1:] + [(None, None)]):
        result.append(tok)
        if (
            tok[0] == NAME
            and next_tok == (OP, "(")
            and tok[1] not in local_dict
            and tok[1] not in global_dict
            and not iskeyword(tok[1])
        ):
            result.append((OP, "*"))
    return result


TRANSFORMATIONS = (
    (_unknown_call_as_product,)
    + standard_transformations
    + (convert_xor, implicit_multiplication, implicit_application, function_exponentiation)
)


def is_builtin_function(name: str) -> bool:
    return name in BUILTIN_FUNCTIONS


def prepare_source(expression: str) -> str:
    """Space a number from a following letter (``2x`` -> ``2 x``), keeping exponents."""
    return _NUMBER_LETTER_RE.sub(r"\1 ", expression)


def parse_expression(expression: str) -> sympy.Expr:
    source = prepare_source(expression.strip())
    if not source:
        raise NormalizationFailure(expression, "empty expression")
    local_dict: Dict[str, Any] = dict(BUILTIN_FUNCTIONS)
    local_dict.update(CONSTANTS)
    try:
        parsed = parse_expr(
            source,
            local_dict=local_dict,
            global_dict=dict(_PARSER_GLOBALS),
            transformations=TRANSFORMATIONS,
        )
    except Exception as exc:
        logger.debug("parse failed for %r: %s", expression, exc)
        raise NormalizationFailure(expression) from exc
    if not isinstance(parsed, sympy.Basic):
        raise NormalizationFailure(expression, "not an expression")
    return parsed


class CompiledExpression:
    """A parsed expression ready for repeated numeric evaluation."""

    def __init__(self, source: str, expr: sympy.Expr) -> None:
        self.source = source
        self.expr = expr
        ordered = sorted(expr.free_symbols, key=lambda s: s.name)
        self.symbols: List[str] = [s.name for s in ordered]
        self._fn = sympy.lambdify(ordered, expr, modules="mpmath")

    def evaluate(self, scope: Mapping[str, Any]) -> Any:
        args = []
        for name in self.symbols:
            if name not in scope:
                raise UndefinedSymbol(name)
            args.append(scope[name])
        try:
            return self._fn(*args)
        except Exception as exc:
            raise EvaluationException(self.source, exc) from exc

    def __repr__(self) -> str:
        return f"CompiledExpression({self.source!r})"


@lru_cache(maxsize=256)
def compile_expression(expression: str) -> CompiledExpression:
    parsed = parse_expression(expression)
    try:
        return CompiledExpression(expression, parsed)
    except Exception as exc:
        logger.debug("lambdify failed for %r: %s", expression, exc)
        raise NormalizationFailure(expression, "cannot evaluate expression") from exc


def coerce_real(value: Any) -> float:
    """Reduce an evaluation result to a plottable float.

    Complex values keep their real part only when the imaginary part is
    negligible. Infinities become a large finite sentinel.
    """
    if isinstance(value, (complex, mpmath.mpc)):
        if abs(value.imag) >= config.COMPLEX_EPS:
            raise NonRealResult(value)
        value = value.real
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise NonRealResult(value) from exc
    if math.isinf(number):
        return math.copysign(config.INFINITY_SENTINEL, number)
    return number
