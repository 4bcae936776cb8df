"""Tests for linecalc.calc line identity assignment."""

from __future__ import annotations

from linecalc.calc._diff import detect_changes
from linecalc.calc._identity import LineIdentityRegistry, reference_name
from linecalc.calc._parser import parse_document


def _cycle(registry: LineIdentityRegistry, old: str, new: str) -> dict[int, str]:
    return registry.assign(parse_document(new), detect_changes(old, new))


class TestAssign:
    def test_fresh_ids_in_document_order(self) -> None:
        reg = LineIdentityRegistry()
        mapping = _cycle(reg, "", "a = 1\n\n// note\nb = 2")
        assert mapping == {0: "calc0", 3: "calc1"}
        assert reg.id_counter == 2

    def test_in_place_edit_keeps_id(self) -> None:
        reg = LineIdentityRegistry()
        _cycle(reg, "", "a = 2\nb = a * 3")
        mapping = _cycle(reg, "a = 2\nb = a * 3", "a = 5\nb = a * 3")
        assert mapping == {0: "calc0", 1: "calc1"}

    def test_inserted_line_shifts_ids(self) -> None:
        reg = LineIdentityRegistry()
        _cycle(reg, "", "a = 2\nb = a * 3")
        mapping = _cycle(reg, "a = 2\nb = a * 3", "c = 9\na = 2\nb = a * 3")
        assert mapping == {0: "calc2", 1: "calc0", 2: "calc1"}

    def test_moved_line_follows_content(self) -> None:
        reg = LineIdentityRegistry()
        _cycle(reg, "", "a = 1\nb = 2")
        mapping = _cycle(reg, "a = 1\nb = 2", "b = 2\na = 1")
        assert mapping == {0: "calc1", 1: "calc0"}

    def test_deleted_line_reassociated_later(self) -> None:
        reg = LineIdentityRegistry()
        _cycle(reg, "", "a = 1\nb = 2")
        _cycle(reg, "a = 1\nb = 2", "a = 1")
        assert reg.position_of("calc1") is None
        mapping = _cycle(reg, "a = 1", "a = 1\nc = 3\nb  =  2")
        assert mapping[2] == "calc1"
        assert mapping[1] == "calc2"

    def test_copy_paste_gets_new_id(self) -> None:
        reg = LineIdentityRegistry()
        _cycle(reg, "", "a = 1")
        mapping = _cycle(reg, "a = 1", "a = 1\na = 1")
        assert mapping == {0: "calc0", 1: "calc1"}

    def test_no_duplicates_after_shuffles(self) -> None:
        reg = LineIdentityRegistry()
        texts = [
            "x = 1\ny = 2\nz = 3",
            "z = 3\nx = 1\ny = 2\nx = 1",
            "y = 2\n\ny = 2\nq = 4",
            "q = 4\nx = 1\nz = 3\ny = 2",
        ]
        old = ""
        for text in texts:
            mapping = _cycle(reg, old, text)
            assert len(set(mapping.values())) == len(mapping)
            old = text

    def test_history_mirrors_mapping(self) -> None:
        reg = LineIdentityRegistry()
        _cycle(reg, "", "a = 1\nb = 2")
        assert reg.line_history == reg.id_mapping
        assert reg.content_to_id == {"a = 1": "calc0", "b = 2": "calc1"}

    def test_retired_content_is_capped(self) -> None:
        reg = LineIdentityRegistry(retired_limit=2)
        texts = ["k = 0\na = 1", "b = 2\nk = 0", "k = 0\nc = 3", "d = 4\nk = 0"]
        old = ""
        for text in texts:
            _cycle(reg, old, text)
            old = text
        # a, b and c were deleted in that order; only the two newest are remembered
        assert reg.content_to_id == {
            "b = 2": "calc2", "c = 3": "calc3", "k = 0": "calc0", "d = 4": "calc4",
        }
        mapping = _cycle(reg, old, "d = 4\nk = 0\na = 1\nc = 3")
        assert mapping == {0: "calc4", 1: "calc0", 2: "calc5", 3: "calc3"}


class TestRestore:
    def test_counter_raised_above_known_ids(self) -> None:
        reg = LineIdentityRegistry(id_mapping={0: "calc7"}, id_counter=2)
        assert reg.id_counter == 8
        assert reg.generate_id() == "calc8"

    def test_counter_kept_when_higher(self) -> None:
        reg = LineIdentityRegistry(id_mapping={0: "calc1"}, id_counter=5)
        assert reg.id_counter == 5

    def test_positions_by_id(self) -> None:
        reg = LineIdentityRegistry(id_mapping={0: "calc0", 2: "calc4"})
        assert reg.positions_by_id() == {"calc0": 0, "calc4": 2}
        assert reg.position_of("calc4") == 2


def test_reference_name() -> None:
    assert reference_name("calc3") == "_calc3"
