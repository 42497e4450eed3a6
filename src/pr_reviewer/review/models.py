"""Result types returned by the review operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

COMPLETED_PROMPT = "PR review completed!"


@dataclass(frozen=True)
class ReviewItem:
    """One file handed to the reviewer, or the completion sentinel.

    Attributes:
        file_path: Path of the file under review ("" for the sentinel).
        diff: Raw text diff of the file.
        current: 1-based position of the file in the review.
        total: Number of files in the review.
        custom_prompt: Reviewer instructions sent along with the diff.
    """

    file_path: str
    diff: str
    current: int
    total: int
    custom_prompt: str

    @classmethod
    def completed(cls) -> ReviewItem:
        """The result returned once no files remain."""
        return cls(file_path="", diff="", current=0, total=0, custom_prompt=COMPLETED_PROMPT)

    @property
    def is_completion(self) -> bool:
        return self.file_path == "" and self.custom_prompt == COMPLETED_PROMPT

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used on the wire."""
        return {
            "filePath": self.file_path,
            "diff": self.diff,
            "current": self.current,
            "total": self.total,
            "customPrompt": self.custom_prompt,
        }
