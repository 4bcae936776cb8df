"""linecalc.calc - Incremental recalculation engine for line-oriented notebooks."""

from linecalc.calc._diff import LineChanges, detect_changes
from linecalc.calc._engine import RecalcEngine
from linecalc.calc._evaluator import ExpressionEvaluator
from linecalc.calc._functions import EvaluationError, FunctionRegistry
from linecalc.calc._graph import DependencyGraph
from linecalc.calc._identity import LineIdentityRegistry, reference_name
from linecalc.calc._labels import ReferenceHighlight, ResultAnnotation, format_value
from linecalc.calc._parser import (
    IdentifierReference,
    LineKind,
    ParsedLine,
    normalize_content,
    parse_line,
)
from linecalc.calc._protocol import Editor, Evaluator, LineDelta, Marker, RecalcResult

__all__ = [
    "DependencyGraph",
    "Editor",
    "EvaluationError",
    "Evaluator",
    "ExpressionEvaluator",
    "FunctionRegistry",
    "IdentifierReference",
    "LineChanges",
    "LineDelta",
    "LineIdentityRegistry",
    "LineKind",
    "Marker",
    "ParsedLine",
    "RecalcEngine",
    "RecalcResult",
    "ReferenceHighlight",
    "ResultAnnotation",
    "detect_changes",
    "format_value",
    "normalize_content",
    "parse_line",
    "reference_name",
]
