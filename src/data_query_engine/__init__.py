"""Constrained read-only query execution with a structured-query fallback."""
from .dispatcher import ExecutionResult, QueryEngine, QueryOutcome
from .cancellation import CancellationToken
from .validator import validate
from .translator import translate, supported_shapes

__all__ = [
    "ExecutionResult",
    "QueryEngine",
    "QueryOutcome",
    "CancellationToken",
    "validate",
    "translate",
    "supported_shapes",
]
