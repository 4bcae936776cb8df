"""Line-level change detection between two versions of a document."""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field

# Minimum similarity for pairing lines inside an unequal replace block
_PAIR_MIN_RATIO = 0.5

# Blocks with more old x new combinations than this are paired in order
_PAIR_MAX_CANDIDATES = 2500


@dataclass
class LineChanges:
    """Per-line classification of a document edit.

    ``unchanged`` and ``modified`` map a new position to the old position it
    continues; ``added`` lists new positions, ``removed`` old positions.
    """

    added: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)
    modified: dict[int, int] = field(default_factory=dict)
    unchanged: dict[int, int] = field(default_factory=dict)

    def previous_position(self, new_pos: int) -> int | None:
        """Old position continued by *new_pos*, or None for added lines."""
        if new_pos in self.unchanged:
            return self.unchanged[new_pos]
        return self.modified.get(new_pos)


def _pair_block(old_lines: list[str], new_lines: list[str]) -> list[tuple[int, int]]:
    """Pair lines of an unequal ``replace`` block by text similarity.

    Returns ``(new_offset, old_offset)`` pairs.  Each line is paired at most
    once, best matches first; pairs scoring under ``_PAIR_MIN_RATIO`` are
    left unpaired.  Very large blocks fall back to pairing in order.
    """
    if len(old_lines) * len(new_lines) > _PAIR_MAX_CANDIDATES:
        paired = min(len(old_lines), len(new_lines))
        return [(offset, offset) for offset in range(paired)]

    candidates: list[tuple[float, int, int]] = []
    for j, new_line in enumerate(new_lines):
        for i, old_line in enumerate(old_lines):
            ratio = difflib.SequenceMatcher(None, old_line, new_line, autojunk=False).ratio()
            if ratio >= _PAIR_MIN_RATIO:
                candidates.append((ratio, j, i))

    pairs: list[tuple[int, int]] = []
    used_old: set[int] = set()
    used_new: set[int] = set()
    for _, j, i in sorted(candidates, key=lambda c: (-c[0], c[1], c[2])):
        if j in used_new or i in used_old:
            continue
        pairs.append((j, i))
        used_new.add(j)
        used_old.add(i)
    return sorted(pairs)


def detect_changes(old_text: str, new_text: str) -> LineChanges:
    """Diff two documents line by line (whitespace-trimmed comparison).

    Uses ``difflib.SequenceMatcher`` so inserting or deleting a line only
    shifts the lines after it instead of marking them all modified.  Inside
    a ``replace`` block of equal size old and new lines are paired in order
    (in-place edits); an unequal block is paired by similarity, so a delete
    and an edit landing in one cycle keep the edited line's pairing.  Lines
    left unpaired are reported as added or removed.
    """
    old_lines = [line.strip() for line in old_text.split("\n")] if old_text else []
    new_lines = [line.strip() for line in new_text.split("\n")]

    changes = LineChanges()
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for offset in range(i2 - i1):
                changes.unchanged[j1 + offset] = i1 + offset
        elif tag == "delete":
            changes.removed.extend(range(i1, i2))
        elif tag == "insert":
            changes.added.extend(range(j1, j2))
        elif tag == "replace":
            if i2 - i1 == j2 - j1:
                pairs = [(offset, offset) for offset in range(i2 - i1)]
            else:
                pairs = _pair_block(old_lines[i1:i2], new_lines[j1:j2])
            for new_offset, old_offset in pairs:
                changes.modified[j1 + new_offset] = i1 + old_offset
            paired_old = {old_offset for _, old_offset in pairs}
            paired_new = {new_offset for new_offset, _ in pairs}
            changes.removed.extend(i1 + k for k in range(i2 - i1) if k not in paired_old)
            changes.added.extend(j1 + k for k in range(j2 - j1) if k not in paired_new)

    return changes
