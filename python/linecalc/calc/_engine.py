"""RecalcEngine: per-document update cycle (identify, link, evaluate, propagate)."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any

from linecalc._config import NotebookConfig
from linecalc.calc._diff import LineChanges, detect_changes
from linecalc.calc._evaluator import ExpressionEvaluator, normalize_result
from linecalc.calc._functions import EvaluationError
from linecalc.calc._graph import DependencyGraph
from linecalc.calc._identity import LineIdentityRegistry, reference_name
from linecalc.calc._labels import (
    ReferenceHighlight,
    ResultAnnotation,
    reference_highlights,
    reference_label,
    result_annotations,
)
from linecalc.calc._parser import ParsedLine, parse_document, variable_table
from linecalc.calc._protocol import Evaluator, LineDelta, Marker, RecalcResult

logger = logging.getLogger(__name__)


def _values_differ(a: Any, b: Any, tolerance: float = 0.0) -> bool:
    """Check if two line results differ beyond tolerance."""
    if a is None and b is None:
        return False
    if a is None or b is None:
        return True
    if isinstance(a, Marker) or isinstance(b, Marker):
        return a != b
    if isinstance(a, bool) != isinstance(b, bool):
        return True
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
            return False
        return abs(a - b) > tolerance if tolerance else a != b
    return a != b


def _has_value(result: Any) -> bool:
    return result is not None and not isinstance(result, Marker)


class RecalcEngine:
    """Owns one document's identity, graph and result state.

    Every call to :meth:`update` is one complete cycle: diff against the
    previous text, assign line ids, rebuild the variable table and the
    dependency graph from scratch, evaluate every calculation line in
    document order, then re-evaluate everything downstream of the lines
    whose result changed.  Only line ids and reference labels carry over
    between cycles.

    Usage::

        engine = RecalcEngine()
        engine.update("a = 2\\nb = a * 3")
        engine.results        # {0: 2, 1: 6}
        engine.update("a = 5\\nb = a * 3")
        engine.results[1]     # 15
    """

    def __init__(
        self,
        evaluator: Evaluator | None = None,
        config: NotebookConfig | None = None,
        identity: LineIdentityRegistry | None = None,
        labels: Mapping[str, str] | None = None,
        text: str = "",
    ) -> None:
        self._evaluator: Evaluator = evaluator or ExpressionEvaluator()
        self._config = config or NotebookConfig()
        self.identity = identity or LineIdentityRegistry()
        # line id -> "source = result", survives reordering
        self.labels: dict[str, str] = dict(labels or {})
        # text the identity state was computed for
        self.text = text
        self.lines: list[ParsedLine] = []
        self.variables: dict[str, int] = {}
        self.graph = DependencyGraph()
        self.results: dict[int, Any] = {}

    @property
    def config(self) -> NotebookConfig:
        return self._config

    @property
    def id_mapping(self) -> dict[int, str]:
        return self.identity.id_mapping

    # ------------------------------------------------------------------
    # Update cycle
    # ------------------------------------------------------------------

    def update(self, text: str) -> RecalcResult:
        """Run one full update cycle for the document *text*."""
        if not isinstance(text, str):
            raise TypeError(f"Document text must be str, got {type(text).__name__}")

        lines = parse_document(text, self._config.comment_prefix)
        changes = detect_changes(self.text, text)
        self.identity.assign(lines, changes)
        prior = self._carry_results(changes, len(lines))

        self.lines = lines
        self.variables = variable_table(lines)
        self.graph = DependencyGraph.build(
            lines, self.variables, self.identity.positions_by_id(),
        )
        self.results = dict(prior)
        self.text = text
        labels: dict[str, str] = {}

        # Full pass in document order
        calc_positions: list[int] = []
        for pos, parsed in enumerate(lines):
            if not parsed.is_calculation:
                self.results[pos] = Marker.EMPTY
                continue
            calc_positions.append(pos)
            self._evaluate_line(pos, labels)

        changed = tuple(
            pos for pos in calc_positions
            if _values_differ(prior.get(pos), self.results.get(pos))
        )

        # Propagation pass: each downstream line exactly once, inputs first
        affected = self.graph.affected_lines(changed)
        order = self.graph.evaluation_order(affected)
        for pos in order:
            self._evaluate_line(pos, labels)

        cyclic = self.graph.cyclic_lines()
        if cyclic:
            logger.debug("Reference cycle involving lines %s", sorted(cyclic))

        self.labels = labels

        deltas: list[LineDelta] = []
        for pos, parsed in enumerate(lines):
            old_val = prior.get(pos)
            new_val = self.results.get(pos)
            if old_val is None and new_val is Marker.EMPTY:
                continue
            if _values_differ(old_val, new_val):
                deltas.append(LineDelta(
                    line=pos,
                    line_id=self.identity.id_mapping.get(pos),
                    old_value=old_val,
                    new_value=new_val,
                    source=parsed.text,
                ))

        return RecalcResult(
            deltas=tuple(deltas),
            changed_lines=changed,
            propagated_lines=tuple(order),
            total_calc_lines=len(calc_positions),
        )

    def _carry_results(self, changes: LineChanges, line_count: int) -> dict[int, Any]:
        """Previous results re-keyed to the positions their lines now occupy."""
        carried: dict[int, Any] = {}
        for pos in range(line_count):
            old_pos = changes.previous_position(pos)
            if old_pos is not None and old_pos in self.results:
                carried[pos] = self.results[old_pos]
        return carried

    # ------------------------------------------------------------------
    # Line evaluation
    # ------------------------------------------------------------------

    def _build_scope(self, pos: int) -> dict[str, Any]:
        """Names visible to the line at *pos*: variables and ``_calc<N>`` references.

        A line never sees its own previous result, and lines without a
        numeric result (errors, not yet evaluated) are left out.
        """
        scope: dict[str, Any] = {}
        for name, var_pos in self.variables.items():
            if var_pos == pos:
                continue
            value = self.results.get(var_pos)
            if _has_value(value):
                scope[name] = value
        for line_pos, line_id in self.identity.id_mapping.items():
            if line_pos == pos:
                continue
            value = self.results.get(line_pos)
            if _has_value(value):
                scope[reference_name(line_id)] = value
        return scope

    def _evaluate_line(self, pos: int, labels: dict[str, str]) -> None:
        """Evaluate one calculation line, storing its result or the error marker.

        Everything that touches the value, labelling included, runs under the
        same guard so a bad result only ever marks its own line.
        """
        parsed = self.lines[pos]
        line_id = self.identity.id_mapping.get(pos)
        scope = self._build_scope(pos)
        label: str | None = None
        try:
            value = normalize_result(self._evaluator.evaluate(parsed.expression, scope))
            if line_id is not None:
                label = reference_label(
                    parsed.text,
                    value,
                    self._config.label_preview_max,
                    self._config.label_result_max,
                )
        except EvaluationError as e:
            logger.debug("Cannot evaluate line %d %r: %s", pos, parsed.text, e)
            value = Marker.ERROR
        except Exception:
            logger.exception("Evaluator failed on line %d %r", pos, parsed.text)
            value = Marker.ERROR

        self.results[pos] = value
        if line_id is None:
            return
        if value is Marker.ERROR or label is None:
            labels.pop(line_id, None)
        else:
            labels[line_id] = label

    # ------------------------------------------------------------------
    # Read access for the presentation layer
    # ------------------------------------------------------------------

    def result_at(self, line: int) -> Any:
        return self.results.get(line)

    def line_id_at(self, line: int) -> str | None:
        return self.identity.id_mapping.get(line)

    def reference_for_line(self, line: int) -> str | None:
        """``_calc<N>`` token for the line, or None for blank/comment lines."""
        line_id = self.line_id_at(line)
        return reference_name(line_id) if line_id else None

    def annotations(self) -> list[ResultAnnotation]:
        return result_annotations(
            self.lines, self.results, self.identity.id_mapping,
            self._config.display_result_max,
        )

    def highlights(self) -> list[ReferenceHighlight]:
        return reference_highlights(
            self.lines, self.identity.positions_by_id(), self.labels,
        )
