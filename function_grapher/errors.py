from __future__ import annotations

from typing import Any, Optional


class GraphError(Exception):
    """Base class for errors raised by the graphing core."""


class NormalizationFailure(GraphError):
    """Expression could not be rewritten into a form the evaluator accepts."""

    def __init__(self, expression: str, reason: str = "unparseable expression") -> None:
        super().__init__(f"{reason}: {expression!r}")
        self.expression = expression
        self.reason = reason


class UndefinedSymbol(GraphError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Undefined symbol {name}")
        self.name = name


class NonRealResult(GraphError):
    def __init__(self, value: Any) -> None:
        super().__init__(f"non-real result: {value}")
        self.value = value


class EvaluationException(GraphError):
    def __init__(self, expression: str, cause: Optional[BaseException] = None) -> None:
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "evaluation failed"
        super().__init__(f"{expression!r}: {detail}")
        self.expression = expression
        self.cause = cause


class ViewportError(GraphError):
    """Container dimensions are missing or degenerate."""
