"""Display records and human-readable labels for line results."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from linecalc._config import DISPLAY_RESULT_MAX, LABEL_PREVIEW_MAX, LABEL_RESULT_MAX
from linecalc.calc._identity import reference_name
from linecalc.calc._parser import ParsedLine
from linecalc.calc._protocol import Marker

ELLIPSIS = "..."

UNKNOWN_REFERENCE = "Unknown reference"

_SCIENTIFIC_FROM = 10 ** 21


@dataclass(frozen=True)
class ResultAnnotation:
    """Inline widget shown at the end of a line with a result."""

    line: int
    column: int  # end of the line text
    text: str  # truncated display string
    value: Any
    reference: str | None  # "_calc3", inserted when the user picks this result
    line_id: str | None

    @property
    def tooltip(self) -> str | None:
        if self.reference is None:
            return None
        return f"Reference this as: {self.reference}"


@dataclass(frozen=True)
class ReferenceHighlight:
    """Marks an identifier reference inside a line and points at its target."""

    line: int
    start: int
    end: int
    line_id: str
    target_line: int
    label: str


def truncate(text: str, limit: int) -> str:
    """Cut *text* to *limit* characters, ending in ``...`` when shortened."""
    if len(text) <= limit:
        return text
    return text[: max(limit - len(ELLIPSIS), 0)] + ELLIPSIS


def format_value(value: Any) -> str:
    """String form of a line result (``true``/``false``, ints without ``.0``)."""
    if isinstance(value, Marker):
        return value.text
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value == int(value) and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return _format_int(value)
    return str(value)


def _format_int(value: int) -> str:
    """Plain digits below 1e21, scientific notation from there on."""
    if abs(value) < _SCIENTIFIC_FROM:
        return str(value)
    # str() of a huge int is slow and capped by sys.get_int_max_str_digits()
    exponent = int(math.log10(abs(value)))
    mantissa = value / 10 ** exponent
    if abs(mantissa) >= 10:
        mantissa /= 10
        exponent += 1
    elif abs(mantissa) < 1:
        mantissa *= 10
        exponent -= 1
    return f"{mantissa:.16g}e+{exponent}"


def reference_label(
    line: str,
    result: Any,
    preview_max: int = LABEL_PREVIEW_MAX,
    result_max: int = LABEL_RESULT_MAX,
) -> str:
    """Short ``"<source> = <result>"`` summary used as a reference tooltip."""
    preview = truncate(line.strip(), preview_max)
    return f"{preview} = {truncate(format_value(result), result_max)}"


def result_annotations(
    lines: Sequence[ParsedLine],
    results: Mapping[int, Any],
    id_mapping: Mapping[int, str],
    display_max: int = DISPLAY_RESULT_MAX,
) -> list[ResultAnnotation]:
    """One annotation per calculation line with a defined, non-empty result."""
    annotations: list[ResultAnnotation] = []
    for pos, parsed in enumerate(lines):
        if not parsed.is_calculation:
            continue
        value = results.get(pos)
        if value is None or value is Marker.EMPTY:
            continue
        line_id = id_mapping.get(pos)
        annotations.append(ResultAnnotation(
            line=pos,
            column=len(parsed.text),
            text=truncate(format_value(value), display_max),
            value=value,
            reference=reference_name(line_id) if line_id else None,
            line_id=line_id,
        ))
    return annotations


def reference_highlights(
    lines: Sequence[ParsedLine],
    positions_by_id: Mapping[str, int],
    labels: Mapping[str, str],
) -> list[ReferenceHighlight]:
    """Highlights for every identifier reference whose target still exists."""
    highlights: list[ReferenceHighlight] = []
    for pos, parsed in enumerate(lines):
        for ref in parsed.identifier_refs:
            target = positions_by_id.get(ref.line_id)
            if target is None:
                continue
            highlights.append(ReferenceHighlight(
                line=pos,
                start=ref.start,
                end=ref.end,
                line_id=ref.line_id,
                target_line=target,
                label=labels.get(ref.line_id, UNKNOWN_REFERENCE),
            ))
    return highlights
