"""Analyser that summarises file sizes."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Tuple

from .base import Analyser
from .file_type_count import NO_EXTENSION
from ..models import FileNode

_LARGEST_LIMIT = 10


class SizeSummaryAnalyser(Analyser):
    """Totals bytes per extension and lists the largest files."""

    template_name = "size_summary.md.j2"

    def __init__(self, tree, root_path: str, *, limit: int = _LARGEST_LIMIT) -> None:
        super().__init__(tree, root_path)
        self.limit = limit
        self.total_bytes = 0
        self.bytes_by_type: Dict[str, int] = {}
        self.largest: List[FileNode] = []

    @property
    def name(self) -> str:
        return "Size Summary"

    def analyze(self) -> None:
        totals: Dict[str, int] = defaultdict(int)
        files = list(self.tree.files())
        for node in files:
            totals[node.extension or NO_EXTENSION] += node.size or 0
        self.bytes_by_type = dict(totals)
        self.total_bytes = sum(totals.values())
        self.largest = sorted(files, key=lambda node: (-(node.size or 0), node.path))[: self.limit]
        self.completed = True

    def context(self) -> Dict[str, Any]:
        by_type: List[Tuple[str, int]] = sorted(
            self.bytes_by_type.items(), key=lambda item: (-item[1], item[0])
        )
        return {
            "total_bytes": self.total_bytes,
            "by_type": by_type,
            "largest": [
                (self.tree.relative_path(node), node.size or 0) for node in self.largest
            ],
        }
