"""NotebookConfig: tunables for parsing, labelling, rendering and scheduling."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_COMMENT_PREFIX = "//"
LABEL_PREVIEW_MAX = 20
LABEL_RESULT_MAX = 10
DISPLAY_RESULT_MAX = 40


@dataclass(frozen=True)
class NotebookConfig:
    """Settings shared by the engine and the notebook host glue."""

    update_delay: float = 0.1  # seconds of quiet before a cycle runs
    comment_prefix: str = DEFAULT_COMMENT_PREFIX
    label_preview_max: int = LABEL_PREVIEW_MAX
    label_result_max: int = LABEL_RESULT_MAX
    display_result_max: int = DISPLAY_RESULT_MAX
    highlight_duration_ms: int = 1500
    demo_text: str = ""  # shown when the store holds no document

    def __post_init__(self) -> None:
        if self.update_delay < 0:
            raise ValueError(f"update_delay must be >= 0, got {self.update_delay}")
        if not self.comment_prefix:
            raise ValueError("comment_prefix must not be empty")
        for name in ("label_preview_max", "label_result_max", "display_result_max"):
            if getattr(self, name) < 4:
                raise ValueError(f"{name} must be at least 4")
