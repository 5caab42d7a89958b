"""Analyser that groups files by extension."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Tuple

from .base import Analyser

NO_EXTENSION = "(none)"


class FileTypeCountAnalyser(Analyser):
    """Counts files per extension, most common first."""

    template_name = "file_type_count.md.j2"

    def __init__(self, tree, root_path: str) -> None:
        super().__init__(tree, root_path)
        self.counts: Counter[str] = Counter()

    @property
    def name(self) -> str:
        return "File Type Count"

    def analyze(self) -> None:
        counts: Counter[str] = Counter(
            node.extension or NO_EXTENSION for node in self.tree.files()
        )
        self.counts = counts
        self.completed = True

    def ordered(self) -> List[Tuple[str, int]]:
        # Ties are broken alphabetically so reports are reproducible.
        return sorted(self.counts.items(), key=lambda item: (-item[1], item[0]))

    def context(self) -> Dict[str, Any]:
        return {
            "types": self.ordered(),
            "total": sum(self.counts.values()),
        }
