"""Stable line identifiers that survive edits, moves and reloads."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from linecalc.calc._diff import LineChanges
from linecalc.calc._parser import IDENTIFIER_PREFIX, ParsedLine, normalize_content

_ID_RE = re.compile(rf"^{IDENTIFIER_PREFIX}(\d+)$")

# Deleted lines remembered for content re-association
RETIRED_CONTENT_LIMIT = 256


def reference_name(line_id: str) -> str:
    """The token other lines use to reference *line_id* (``calc3`` -> ``_calc3``)."""
    return f"_{line_id}"


class LineIdentityRegistry:
    """Assigns each calculation line a ``calc<N>`` id, preserving ids across edits.

    Preservation order for a line at a new position:

    1. unchanged line -> id of the old position it continues
    2. modified line -> id of the old position it continues
    3. same normalized text as a previously known line -> that line's id
    4. same position as before -> that position's previous id
    5. a freshly minted id

    Rules 1-2 are applied to every line before rules 3-5, and rules 3-4 only
    hand out ids no other position has claimed in the same cycle, so the
    resulting mapping never contains duplicates.
    """

    __slots__ = (
        "id_mapping", "id_counter", "content_to_id", "line_history", "retired_limit",
    )

    def __init__(
        self,
        id_mapping: Mapping[int, str] | None = None,
        id_counter: int = 0,
        content_to_id: Mapping[str, str] | None = None,
        line_history: Mapping[int, str] | None = None,
        retired_limit: int = RETIRED_CONTENT_LIMIT,
    ) -> None:
        # position -> id for the current document
        self.id_mapping: dict[int, str] = dict(id_mapping or {})
        # normalized text -> id (last write wins)
        self.content_to_id: dict[str, str] = dict(content_to_id or {})
        # position -> id from the previous cycle
        self.line_history: dict[int, str] = dict(line_history or {})
        self.id_counter = max(id_counter, self._next_free_counter())
        # how many deleted lines stay re-associable by content
        self.retired_limit = retired_limit

    def _next_free_counter(self) -> int:
        """Smallest counter above every numeric id already known."""
        highest = -1
        for line_id in (
            *self.id_mapping.values(),
            *self.content_to_id.values(),
            *self.line_history.values(),
        ):
            m = _ID_RE.match(line_id)
            if m:
                highest = max(highest, int(m.group(1)))
        return highest + 1

    def generate_id(self) -> str:
        line_id = f"{IDENTIFIER_PREFIX}{self.id_counter}"
        self.id_counter += 1
        return line_id

    def position_of(self, line_id: str) -> int | None:
        """Current position holding *line_id*, or None if that line is gone."""
        for pos, candidate in self.id_mapping.items():
            if candidate == line_id:
                return pos
        return None

    def positions_by_id(self) -> dict[str, int]:
        """Reverse of ``id_mapping``."""
        return {line_id: pos for pos, line_id in self.id_mapping.items()}

    def assign(self, lines: Sequence[ParsedLine], changes: LineChanges) -> dict[int, str]:
        """Build the new position -> id mapping for *lines*.

        Blank and comment lines never receive an id.  Updates ``id_mapping``,
        ``content_to_id`` and ``line_history`` in place and returns the new
        mapping.
        """
        old_mapping = self.id_mapping
        old_content = self.content_to_id
        old_history = self.line_history

        calc_positions = [pos for pos, parsed in enumerate(lines) if parsed.is_calculation]
        new_mapping: dict[int, str] = {}
        claimed: set[str] = set()

        # Positional continuity first
        for pos in calc_positions:
            old_pos = changes.previous_position(pos)
            if old_pos is None:
                continue
            line_id = old_mapping.get(old_pos)
            if line_id is not None and line_id not in claimed:
                new_mapping[pos] = line_id
                claimed.add(line_id)

        # Content match, then position history, then a new id
        for pos in calc_positions:
            if pos in new_mapping:
                continue
            normalized = normalize_content(lines[pos].text)
            line_id = old_content.get(normalized)
            if line_id is None or line_id in claimed:
                line_id = old_history.get(pos)
            if line_id is None or line_id in claimed:
                line_id = self.generate_id()
            new_mapping[pos] = line_id
            claimed.add(line_id)

        # Retired ids keep their last text, newest retirements last; live ids
        # are re-indexed below
        retired = [
            (text, line_id) for text, line_id in old_content.items() if line_id not in claimed
        ]
        if len(retired) > self.retired_limit:
            retired = retired[len(retired) - self.retired_limit :]
        new_content = dict(retired)
        for pos in calc_positions:
            new_content[normalize_content(lines[pos].text)] = new_mapping[pos]

        self.id_mapping = dict(sorted(new_mapping.items()))
        self.content_to_id = new_content
        self.line_history = dict(self.id_mapping)
        return self.id_mapping
