"""Notebook - connects an editor, the recalculation engine and a store.

The editor reports edits; the notebook debounces them, runs an update
cycle, re-renders result widgets and reference highlights, and saves the
text together with the line-identity state so references survive a reload.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from linecalc._config import NotebookConfig
from linecalc._scheduler import CallLater, Debouncer
from linecalc._store import MemoryStore, NotebookState, Store, dump_state, restore
from linecalc.calc._engine import RecalcEngine

if TYPE_CHECKING:
    from linecalc.calc._protocol import Editor, Evaluator, RecalcResult

logger = logging.getLogger(__name__)


class Notebook:
    """A live calculation document hosted in an editor."""

    def __init__(
        self,
        editor: Editor,
        store: Store | None = None,
        evaluator: Evaluator | None = None,
        config: NotebookConfig | None = None,
        call_later: CallLater | None = None,
    ) -> None:
        self._editor = editor
        self._store: Store = store if store is not None else MemoryStore()
        self._evaluator = evaluator
        self._config = config or NotebookConfig()
        self._engine = RecalcEngine(evaluator=evaluator, config=self._config)
        self._debouncer = Debouncer(self._config.update_delay, self._on_settled, call_later)
        self._opened = False

    @property
    def engine(self) -> RecalcEngine:
        return self._engine

    @property
    def config(self) -> NotebookConfig:
        return self._config

    @property
    def pending(self) -> bool:
        """True while an edit is waiting for its debounced cycle."""
        return self._debouncer.pending

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> RecalcResult:
        """Restore the saved document into the editor and run the first cycle."""
        if self._opened:
            raise RuntimeError("Notebook is already open")
        state = restore(self._store)
        content = state.content or self._config.demo_text
        if state.content:
            self._engine = RecalcEngine(
                evaluator=self._evaluator,
                config=self._config,
                identity=state.to_registry(),
                labels=state.reference_labels,
                text=state.content,
            )
        self._editor.set_text(content)
        result = self._engine.update(content)
        self.render()
        self._editor.on_text_changed(self._on_text_changed)
        last_line = len(self._engine.lines) - 1
        self._editor.set_cursor(max(last_line, 0), len(content.split("\n")[-1]))
        self._opened = True
        logger.debug("Opened notebook with %d line(s)", len(self._engine.lines))
        return result

    def close(self) -> None:
        """Run any pending cycle and save the current document."""
        if not self._opened:
            self._debouncer.cancel()
        elif not self._debouncer.flush():
            self.save()
        self._opened = False

    def __enter__(self) -> Notebook:
        if not self._opened:
            self.open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Update cycle
    # ------------------------------------------------------------------

    def _on_text_changed(self, text: str) -> None:
        self._debouncer.trigger()

    def _on_settled(self) -> None:
        self.recalculate()

    def flush(self) -> bool:
        """Run a pending debounced cycle immediately. Returns True if one ran."""
        return self._debouncer.flush()

    def recalculate(self) -> RecalcResult:
        """Run an update cycle on the editor's current text, re-render and save."""
        text = self._editor.get_text()
        result = self._engine.update(text)
        self.render()
        self.save(text)
        return result

    def render(self) -> None:
        """Replace every inline annotation with the engine's current results."""
        self._editor.remove_all_inline_annotations()
        for annotation in self._engine.annotations():
            self._editor.place_inline_annotation(
                annotation.line, annotation.column, annotation,
            )
        for highlight in self._engine.highlights():
            self._editor.place_inline_annotation(highlight.line, highlight.start, highlight)

    def save(self, content: str | None = None) -> None:
        """Persist *content* (default: the engine's text) with the identity state."""
        text = self._engine.text if content is None else content
        state = NotebookState.capture(text, self._engine.identity, self._engine.labels)
        self._store.write(dump_state(state))

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def reference_for_line(self, line: int) -> str | None:
        return self._engine.reference_for_line(line)

    def insert_reference(self, line: int) -> str | None:
        """Put the reference to *line*'s result into every editor selection."""
        reference = self.reference_for_line(line)
        if reference is None:
            return None
        self._editor.replace_selections(reference)
        return reference

    def follow_reference(self, line: int, column: int) -> int | None:
        """Scroll to and flash the line an identifier reference at (*line*, *column*) names."""
        for highlight in self._engine.highlights():
            if highlight.line == line and highlight.start <= column < highlight.end:
                self._editor.scroll_to_line(highlight.target_line)
                self._editor.temporarily_highlight_line(
                    highlight.target_line, self._config.highlight_duration_ms,
                )
                return highlight.target_line
        return None

    def result_at(self, line: int) -> Any:
        return self._engine.result_at(line)

    def __repr__(self) -> str:
        state = "open" if self._opened else "closed"
        return f"<Notebook [{state}] lines={len(self._engine.lines)}>"
