"""linecalc - a live, line-oriented calculation notebook engine.

Usage::

    from linecalc import Notebook, FileStore

    nb = Notebook(editor, store=FileStore("notes.json"), call_later=loop.call_later)
    nb.open()               # restore text + line ids, evaluate, render
    # ... editor edits arrive, each burst triggers one debounced cycle ...
    nb.close()              # save

Or drive the engine directly::

    from linecalc.calc import RecalcEngine

    engine = RecalcEngine()
    engine.update("a = 2\\nb = a * 3")
    engine.results          # {0: 2, 1: 6}
"""

from linecalc._config import NotebookConfig
from linecalc._notebook import Notebook
from linecalc._scheduler import Debouncer
from linecalc._store import (
    FileStore,
    MemoryStore,
    NotebookState,
    Store,
    dump_state,
    load_state,
    restore,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Debouncer",
    "FileStore",
    "MemoryStore",
    "Notebook",
    "NotebookConfig",
    "NotebookState",
    "Store",
    "dump_state",
    "load_state",
    "restore",
]
