"""Line parser: regex-based line classification and reference extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from linecalc._config import DEFAULT_COMMENT_PREFIX

# ---------------------------------------------------------------------------
# Regex patterns for line classification and reference extraction
# ---------------------------------------------------------------------------

# Assignment: name = expr
_ASSIGNMENT_RE = re.compile(r"^\s*([a-zA-Z][a-zA-Z0-9_]*)\s*=\s*(.+)$")

# Bare names that aren't part of longer names (so "calc0" in "_calc0" is skipped)
_VARIABLE_RE = re.compile(r"(?<![a-zA-Z0-9_])([a-zA-Z][a-zA-Z0-9_]*)(?![a-zA-Z0-9_])")

# Identifier references: _calc0, _calc12
IDENTIFIER_PREFIX = "calc"
_IDENTIFIER_REF_RE = re.compile(rf"_{IDENTIFIER_PREFIX}(\d+)")

_WHITESPACE_RE = re.compile(r"\s+")

MATH_FUNCTIONS: frozenset[str] = frozenset({
    "sin", "cos", "tan", "log", "exp", "sqrt",
    "abs", "ceil", "floor", "round", "max", "min",
})
MATH_CONSTANTS: frozenset[str] = frozenset({"pi", "e"})


class LineKind(Enum):
    BLANK = "blank"
    COMMENT = "comment"
    ASSIGNMENT = "assignment"
    EXPRESSION = "expression"


@dataclass(frozen=True)
class IdentifierReference:
    """An explicit ``_calc<N>`` reference and where it sits in its line."""

    ref: str  # "_calc3"
    line_id: str  # "calc3"
    start: int

    @property
    def length(self) -> int:
        return len(self.ref)

    @property
    def end(self) -> int:
        return self.start + len(self.ref)


@dataclass(frozen=True)
class ParsedLine:
    """A single line classified once, consumed by every later pass."""

    text: str
    kind: LineKind
    variable: str | None = None
    expression: str = ""
    variable_refs: tuple[str, ...] = ()
    identifier_refs: tuple[IdentifierReference, ...] = ()

    @property
    def is_calculation(self) -> bool:
        return self.kind in (LineKind.ASSIGNMENT, LineKind.EXPRESSION)


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def parse_assignment(line: str) -> tuple[str, str] | None:
    """Return ``(variable, expression)`` if *line* is ``name = expr``."""
    m = _ASSIGNMENT_RE.match(line)
    if m is None:
        return None
    return (m.group(1), m.group(2))


def find_identifier_references(text: str) -> list[IdentifierReference]:
    """All non-overlapping ``_calc<N>`` references, in order of appearance."""
    return [
        IdentifierReference(
            ref=m.group(0),
            line_id=f"{IDENTIFIER_PREFIX}{m.group(1)}",
            start=m.start(),
        )
        for m in _IDENTIFIER_REF_RE.finditer(text)
    ]


def find_variable_references(text: str) -> list[str]:
    """Names that may refer to variables, excluding math functions and constants.

    Duplicates are kept in order of first appearance only.
    """
    names: list[str] = []
    seen: set[str] = set()
    for m in _VARIABLE_RE.finditer(text):
        name = m.group(1)
        if name in MATH_FUNCTIONS or name in MATH_CONSTANTS or name.startswith("_"):
            continue
        if name not in seen:
            names.append(name)
            seen.add(name)
    return names


def normalize_content(text: str) -> str:
    """Trim and collapse internal whitespace runs to a single space."""
    return _WHITESPACE_RE.sub(" ", text.strip())


def is_comment(line: str, comment_prefix: str = DEFAULT_COMMENT_PREFIX) -> bool:
    return line.lstrip().startswith(comment_prefix)


# ---------------------------------------------------------------------------
# Line classification
# ---------------------------------------------------------------------------


def parse_line(line: str, comment_prefix: str = DEFAULT_COMMENT_PREFIX) -> ParsedLine:
    """Classify *line* and extract its references."""
    if not line.strip():
        return ParsedLine(text=line, kind=LineKind.BLANK)
    if is_comment(line, comment_prefix):
        return ParsedLine(text=line, kind=LineKind.COMMENT)

    variable_refs = tuple(find_variable_references(line))
    identifier_refs = tuple(find_identifier_references(line))

    assignment = parse_assignment(line)
    if assignment is not None:
        return ParsedLine(
            text=line,
            kind=LineKind.ASSIGNMENT,
            variable=assignment[0],
            expression=assignment[1],
            variable_refs=variable_refs,
            identifier_refs=identifier_refs,
        )
    return ParsedLine(
        text=line,
        kind=LineKind.EXPRESSION,
        expression=line,
        variable_refs=variable_refs,
        identifier_refs=identifier_refs,
    )


def parse_document(text: str, comment_prefix: str = DEFAULT_COMMENT_PREFIX) -> list[ParsedLine]:
    """Split *text* on newlines and parse every line."""
    return [parse_line(line, comment_prefix) for line in text.split("\n")]


def variable_table(lines: list[ParsedLine]) -> dict[str, int]:
    """Map each assigned variable to its defining position (last assignment wins)."""
    variables: dict[str, int] = {}
    for pos, parsed in enumerate(lines):
        if parsed.kind is LineKind.ASSIGNMENT and parsed.variable is not None:
            variables[parsed.variable] = pos
    return variables
