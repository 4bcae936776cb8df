"""Tests for linecalc Notebook: editor wiring, debounced cycles, persistence."""

from __future__ import annotations

import pytest

from linecalc import MemoryStore, Notebook, NotebookConfig, dump_state, load_state
from linecalc.calc import Editor, ReferenceHighlight, ResultAnnotation


def _open(editor, clock, store: MemoryStore | None = None, **config) -> Notebook:
    nb = Notebook(
        editor,
        store=store or MemoryStore(),
        config=NotebookConfig(**config),
        call_later=clock.call_later,
    )
    nb.open()
    return nb


class TestOpen:
    def test_new_user_gets_demo_text(self, editor, clock) -> None:
        nb = _open(editor, clock, demo_text="a = 2\nb = a * 3")
        assert editor.text == "a = 2\nb = a * 3"
        assert nb.result_at(1) == 6
        assert editor.cursor == (1, 9)
        assert len(editor.callbacks) == 1

    def test_renders_results_and_highlights(self, editor, clock) -> None:
        _open(editor, clock, demo_text="3+4\n_calc0*2")
        annotations = [r for _, _, r in editor.annotations if isinstance(r, ResultAnnotation)]
        highlights = [r for _, _, r in editor.annotations if isinstance(r, ReferenceHighlight)]
        assert [(a.line, a.text) for a in annotations] == [(0, "7"), (1, "14")]
        assert (0, 3) in [(line, col) for line, col, _ in editor.annotations]
        assert highlights[0].label == "3+4 = 7"

    def test_open_twice_rejected(self, editor, clock) -> None:
        nb = _open(editor, clock)
        with pytest.raises(RuntimeError):
            nb.open()

    def test_fake_editor_satisfies_protocol(self, editor) -> None:
        assert isinstance(editor, Editor)


class TestEditing:
    def test_edits_debounced_into_one_cycle(self, editor, clock) -> None:
        store = MemoryStore()
        nb = _open(editor, clock, store=store, demo_text="a = 2\nb = a * 3")
        writes: list[str] = []
        original_write = store.write
        store.write = lambda data: (writes.append(data), original_write(data))  # type: ignore[method-assign]

        for text in ("a = 3\nb = a * 3", "a = 4\nb = a * 3", "a = 5\nb = a * 3"):
            editor.type(text)
            clock.advance(0.05)
        assert nb.pending
        assert nb.result_at(1) == 6

        clock.advance(0.1)
        assert not nb.pending
        assert nb.result_at(1) == 15
        assert len(writes) == 1

    def test_flush(self, editor, clock) -> None:
        nb = _open(editor, clock, demo_text="a = 1")
        editor.type("a = 1\na * 10")
        assert nb.flush() is True
        assert nb.result_at(1) == 10
        assert [(line, col) for line, col, _ in editor.annotations][:2] == [(0, 5), (1, 6)]

    def test_error_line_rendered_as_marker(self, editor, clock) -> None:
        nb = _open(editor, clock)
        editor.type("2 +\n10/2")
        nb.flush()
        texts = [r.text for _, _, r in editor.annotations if isinstance(r, ResultAnnotation)]
        assert texts == ["...", "5"]


class TestReferences:
    def test_insert_reference(self, editor, clock) -> None:
        nb = _open(editor, clock, demo_text="3+4\n// note")
        assert nb.insert_reference(0) == "_calc0"
        assert editor.inserted == ["_calc0"]
        assert nb.insert_reference(1) is None
        assert editor.inserted == ["_calc0"]

    def test_follow_reference(self, editor, clock) -> None:
        nb = _open(editor, clock, demo_text="3+4\n1 + _calc0")
        assert nb.follow_reference(1, 6) == 0
        assert editor.scrolled_to == [0]
        assert editor.flashed == [(0, 1500)]

    def test_follow_outside_reference(self, editor, clock) -> None:
        nb = _open(editor, clock, demo_text="3+4\n1 + _calc0")
        assert nb.follow_reference(1, 1) is None
        assert editor.scrolled_to == []


class TestPersistence:
    def test_reload_keeps_line_ids(self, make_editor, clock) -> None:
        store = MemoryStore()
        first = make_editor()
        nb = _open(first, clock, store=store, demo_text="a = 1\nb = 2")
        first.type("c = 3\na = 1\nb = 2")
        nb.flush()
        nb.close()
        saved = load_state(store.read())
        assert saved.id_mapping == {0: "calc2", 1: "calc0", 2: "calc1"}

        second = make_editor()
        nb2 = _open(second, clock, store=store)
        assert second.text == "c = 3\na = 1\nb = 2"
        assert nb2.engine.id_mapping == {0: "calc2", 1: "calc0", 2: "calc1"}
        assert nb2.engine.identity.generate_id() == "calc3"

    def test_reference_survives_reload(self, make_editor, clock) -> None:
        store = MemoryStore()
        nb = _open(make_editor(), clock, store=store, demo_text="d = 1\n3+4\n_calc1*2")
        nb.close()

        reopened = make_editor()
        nb2 = _open(reopened, clock, store=store)
        reopened.type("3+4\n_calc1*2")
        nb2.flush()
        assert nb2.engine.line_id_at(0) == "calc1"
        assert nb2.result_at(1) == 14

    def test_corrupt_store_starts_fresh(self, editor, clock) -> None:
        nb = _open(editor, clock, store=MemoryStore("{broken"), demo_text="1 + 1")
        assert editor.text == "1 + 1"
        assert nb.result_at(0) == 2

    def test_context_manager_saves(self, editor, clock) -> None:
        store = MemoryStore(dump_state(load_state('{"content": "2 * 21"}')))
        with Notebook(editor, store=store, call_later=clock.call_later) as nb:
            assert nb.result_at(0) == 42
            editor.type("2 * 22")
        # the pending cycle runs before saving, so the last edit is kept
        saved = load_state(store.read())
        assert saved.content == "2 * 22"
        assert saved.reference_labels == {"calc0": "2 * 22 = 44"}
        assert not nb.pending
        assert nb.result_at(0) == 44
