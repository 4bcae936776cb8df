"""Dependency graph between calculation lines, keyed by line position."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from linecalc.calc._parser import ParsedLine


class DependencyGraph:
    """Tracks which lines read which other lines.

    Rebuilt from scratch every update cycle.  Self-references never become
    edges and ``dependents`` is always the exact transpose of
    ``dependencies``.
    """

    __slots__ = ("dependencies", "dependents")

    def __init__(self) -> None:
        # line -> set of lines it reads from
        self.dependencies: dict[int, set[int]] = {}
        # line -> set of lines that read from it (reverse edges)
        self.dependents: dict[int, set[int]] = {}

    def add_line(self, line: int, reads: Iterable[int]) -> None:
        """Register a calculation line and the positions it reads."""
        deps = self.dependencies.setdefault(line, set())
        for target in reads:
            if target == line:
                continue
            deps.add(target)
            self.dependents.setdefault(target, set()).add(line)

    @classmethod
    def build(
        cls,
        lines: Sequence[ParsedLine],
        variables: Mapping[str, int],
        positions_by_id: Mapping[str, int],
    ) -> DependencyGraph:
        """Resolve every calculation line's references into edges.

        Variable references go through the variable table, identifier
        references through the current id mapping.  References that don't
        resolve (undefined variable, deleted line) contribute no edge.
        """
        graph = cls()
        for pos, parsed in enumerate(lines):
            if not parsed.is_calculation:
                continue
            reads: list[int] = []
            for name in parsed.variable_refs:
                target = variables.get(name)
                if target is not None:
                    reads.append(target)
            for ref in parsed.identifier_refs:
                target = positions_by_id.get(ref.line_id)
                if target is not None:
                    reads.append(target)
            graph.add_line(pos, reads)
        return graph

    def affected_lines(self, changed_lines: Iterable[int]) -> set[int]:
        """Every line reachable from *changed_lines* over one or more dependents edges.

        A changed line is included only when another changed line feeds it.
        """
        affected: set[int] = set()
        queue: deque[int] = deque(changed_lines)

        while queue:
            line = queue.popleft()
            for dep in self.dependents.get(line, set()):
                if dep not in affected:
                    affected.add(dep)
                    queue.append(dep)

        return affected

    def evaluation_order(self, lines: Iterable[int]) -> list[int]:
        """Order *lines* so that each comes after the lines it reads.

        Only edges inside *lines* are considered.  Lines caught in a
        reference cycle (or fed by one) can't be ordered; they are appended
        in document order so each still appears exactly once.
        """
        order, blocked = self._topological_split(set(lines))
        return order + sorted(blocked)

    def cyclic_lines(self) -> set[int]:
        """Lines in, or downstream of, a reference cycle."""
        _, blocked = self._topological_split(set(self.dependencies))
        return blocked

    def _topological_split(self, subset: set[int]) -> tuple[list[int], set[int]]:
        """Kahn's algorithm over *subset*: ``(ordered lines, lines left over)``."""
        if not subset:
            return [], set()

        in_degree: dict[int, int] = {
            line: len(self.dependencies.get(line, set()) & subset) for line in subset
        }
        queue: deque[int] = deque(sorted(line for line in subset if in_degree[line] == 0))

        order: list[int] = []
        while queue:
            line = queue.popleft()
            order.append(line)
            for dep in sorted(self.dependents.get(line, set())):
                if dep in subset:
                    in_degree[dep] -= 1
                    if in_degree[dep] == 0:
                        queue.append(dep)

        return order, subset - set(order)
