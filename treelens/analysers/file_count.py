"""Analyser that counts the files in the tree."""

from __future__ import annotations

from typing import Any, Dict

from .base import Analyser
from ..models import NodeKind


class FileCountAnalyser(Analyser):
    """Counts file nodes, with directory totals for context."""

    template_name = "file_count.md.j2"

    def __init__(self, tree, root_path: str) -> None:
        super().__init__(tree, root_path)
        self.file_count = 0
        self.directory_count = 0
        self.max_depth = 0

    @property
    def name(self) -> str:
        return "File Count"

    def analyze(self) -> None:
        files = directories = deepest = 0
        for node in self.tree.iter_nodes():
            if node.kind is NodeKind.FILE:
                files += 1
            else:
                directories += 1
            deepest = max(deepest, node.depth)
        self.file_count = files
        self.directory_count = directories
        self.max_depth = deepest
        self.completed = True

    def context(self) -> Dict[str, Any]:
        return {
            "file_count": self.file_count,
            "directory_count": self.directory_count,
            "max_depth": self.max_depth,
        }
