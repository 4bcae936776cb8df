"""Collaborator protocols, result markers and recalculation result dataclasses."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


class Marker:
    """Non-numeric line result (blank/comment line, or failed evaluation).

    Use ``Marker.of(text)`` to get a cached singleton for each marker text.
    """

    __slots__ = ("text",)
    _cache: dict[str, Marker] = {}

    EMPTY: Marker
    ERROR: Marker

    def __init__(self, text: str) -> None:
        self.text = text

    @classmethod
    def of(cls, text: str) -> Marker:
        if text not in cls._cache:
            cls._cache[text] = cls(text)
        return cls._cache[text]

    def __repr__(self) -> str:
        return f"Marker({self.text!r})"

    def __str__(self) -> str:
        return self.text

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Marker):
            return self.text == other.text
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.text)


# Singletons
Marker.EMPTY = Marker.of("")
Marker.ERROR = Marker.of("...")


@dataclass(frozen=True)
class LineDelta:
    """A single line's result change from one update cycle."""

    line: int
    line_id: str | None
    old_value: Any
    new_value: Any
    source: str = ""  # the line text that produced new_value


@dataclass(frozen=True)
class RecalcResult:
    """Outcome of one update cycle."""

    deltas: tuple[LineDelta, ...]  # lines whose result differs from the prior cycle
    changed_lines: tuple[int, ...] = ()  # changed by the full pass
    propagated_lines: tuple[int, ...] = ()  # re-evaluated by the propagation pass
    total_calc_lines: int = 0

    @property
    def propagation_ratio(self) -> float:
        if self.total_calc_lines == 0:
            return 0.0
        return len(self.propagated_lines) / self.total_calc_lines


@runtime_checkable
class Evaluator(Protocol):
    """Protocol for expression evaluators."""

    def evaluate(self, expression: str, scope: Mapping[str, Any]) -> Any:
        """Evaluate *expression* against *scope*.

        Raises EvaluationError for malformed expressions, unknown symbols
        or operands of the wrong type.
        """
        ...


@runtime_checkable
class Editor(Protocol):
    """Protocol for the text-editing surface hosting a notebook."""

    def get_text(self) -> str:
        ...

    def set_text(self, text: str) -> None:
        ...

    def on_text_changed(self, callback: Callable[[str], None]) -> None:
        """Register *callback*, called with the full new text on every edit."""
        ...

    def place_inline_annotation(self, line: int, column: int, renderable: Any) -> None:
        ...

    def remove_all_inline_annotations(self) -> None:
        ...

    def scroll_to_line(self, line: int) -> None:
        ...

    def temporarily_highlight_line(self, line: int, duration_ms: int) -> None:
        ...

    def set_cursor(self, line: int, column: int) -> None:
        ...

    def replace_selections(self, text: str) -> None:
        """Replace every current selection (or insert at each cursor) with *text*."""
        ...
