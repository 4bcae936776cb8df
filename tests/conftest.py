"""Shared fakes: a manual clock for debouncing and an in-memory editor."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """``call_later`` stand-in driven by :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [t for t in self.timers if t.when <= self.now and not t.cancelled]
        self.timers = [t for t in self.timers if t not in due and not t.cancelled]
        for timer in sorted(due, key=lambda t: t.when):
            timer.callback()


class FakeEditor:
    """Records every call a notebook makes on its editor."""

    def __init__(self, text: str = "") -> None:
        self.text = text
        self.callbacks: list[Callable[[str], None]] = []
        self.annotations: list[tuple[int, int, Any]] = []
        self.cursor: tuple[int, int] | None = None
        self.scrolled_to: list[int] = []
        self.flashed: list[tuple[int, int]] = []
        self.inserted: list[str] = []

    def get_text(self) -> str:
        return self.text

    def set_text(self, text: str) -> None:
        self.text = text

    def on_text_changed(self, callback: Callable[[str], None]) -> None:
        self.callbacks.append(callback)

    def type(self, text: str) -> None:
        """Simulate a user edit: replace the text and notify listeners."""
        self.text = text
        for callback in self.callbacks:
            callback(text)

    def place_inline_annotation(self, line: int, column: int, renderable: Any) -> None:
        self.annotations.append((line, column, renderable))

    def remove_all_inline_annotations(self) -> None:
        self.annotations.clear()

    def scroll_to_line(self, line: int) -> None:
        self.scrolled_to.append(line)

    def temporarily_highlight_line(self, line: int, duration_ms: int) -> None:
        self.flashed.append((line, duration_ms))

    def set_cursor(self, line: int, column: int) -> None:
        self.cursor = (line, column)

    def replace_selections(self, text: str) -> None:
        self.inserted.append(text)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def editor() -> FakeEditor:
    return FakeEditor()


@pytest.fixture
def make_editor() -> type[FakeEditor]:
    return FakeEditor
