"""Persistence: the saved notebook document and where it is kept."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from linecalc.calc._identity import LineIdentityRegistry

logger = logging.getLogger(__name__)


class NotebookState(BaseModel):
    """Everything needed to reopen a notebook with its references intact.

    Serialized with camelCase keys (``idMapping``, ``idCounter``, ...).
    Every field is optional so partial documents still load.
    """

    model_config = ConfigDict(populate_by_name=True)

    content: str = ""
    id_mapping: dict[int, str] = Field(default_factory=dict, alias="idMapping")
    id_counter: int = Field(default=0, ge=0, alias="idCounter")
    content_to_id: dict[str, str] = Field(default_factory=dict, alias="contentToId")
    line_history: dict[int, str] = Field(default_factory=dict, alias="lineHistory")
    reference_labels: dict[str, str] = Field(default_factory=dict, alias="referenceLabels")

    @classmethod
    def capture(
        cls,
        content: str,
        identity: LineIdentityRegistry,
        labels: dict[str, str],
    ) -> NotebookState:
        return cls(
            content=content,
            id_mapping=dict(identity.id_mapping),
            id_counter=identity.id_counter,
            content_to_id=dict(identity.content_to_id),
            line_history=dict(identity.line_history),
            reference_labels=dict(labels),
        )

    def to_registry(self) -> LineIdentityRegistry:
        return LineIdentityRegistry(
            id_mapping=self.id_mapping,
            id_counter=self.id_counter,
            content_to_id=self.content_to_id,
            line_history=self.line_history,
        )


def dump_state(state: NotebookState) -> str:
    return state.model_dump_json(by_alias=True)


def load_state(raw: str | bytes | None) -> NotebookState:
    """Parse a saved document, falling back to an empty one if it's missing or corrupt."""
    if not raw:
        return NotebookState()
    try:
        return NotebookState.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("Discarding unreadable notebook state (%d error(s))", e.error_count())
        logger.debug("Notebook state validation errors: %s", e)
        return NotebookState()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@runtime_checkable
class Store(Protocol):
    """Where a notebook's serialized state lives."""

    def read(self) -> str | None:
        """Return the saved document, or None if nothing was saved yet."""
        ...

    def write(self, data: str) -> None:
        ...


class MemoryStore:
    """Keeps the saved document in memory (tests, embedding hosts)."""

    def __init__(self, data: str | None = None) -> None:
        self.data = data

    def read(self) -> str | None:
        return self.data

    def write(self, data: str) -> None:
        self.data = data


class FileStore:
    """Saves the document as a JSON file, replacing it atomically."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def read(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, data: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(data, encoding="utf-8")
        os.replace(tmp, self.path)

    def __repr__(self) -> str:
        return f"<FileStore {self.path}>"


def restore(store: Store) -> NotebookState:
    """Read and parse *store*; read failures also fall back to an empty document."""
    try:
        raw = store.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read notebook state from %r: %s", store, e)
        return NotebookState()
    return load_state(raw)
