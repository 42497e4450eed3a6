"""Exclusion filtering of changed files."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from pr_reviewer.bitbucket.client import ChangedFile


class ExclusionFilter:
    """Drops files whose path matches any of a set of regular expressions.

    Patterns are searched anywhere in the path (``re.search``), so anchor
    them with ``^`` or ``$`` to match a prefix or suffix.
    """

    def __init__(self, patterns: Sequence[str]):
        self.patterns = [re.compile(pattern) for pattern in patterns]

    def is_excluded(self, path: str) -> bool:
        return any(pattern.search(path) for pattern in self.patterns)

    def apply(self, files: Iterable[ChangedFile]) -> list[ChangedFile]:
        """Return the files that survive the filter, order preserved."""
        return [f for f in files if not self.is_excluded(f.path)]
