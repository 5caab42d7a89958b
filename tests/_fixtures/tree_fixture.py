"""Helper utilities for constructing temporary directory trees in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Iterable, Mapping

from treelens.models import BuildOptions
from treelens.tree import Tree
from treelens.tree_builder import TreeBuilder


class TreeFixture:
    """Utility for writing files into a throwaway directory and building trees from it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "root"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries below the root."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")

    def mkdirs(self, directories: Iterable[str]) -> None:
        for relative in directories:
            (self.root / relative).mkdir(parents=True, exist_ok=True)

    def build(self, options: BuildOptions | None = None, **kwargs) -> Tree:
        """Return a fresh tree of the directory contents."""
        return TreeBuilder(options or BuildOptions.create(**kwargs)).build(self.root)

    def path(self) -> Path:
        return self.root


def relative_paths(tree: Tree) -> set[str]:
    return {tree.relative_path(node) for node in tree.iter_nodes()}


__all__ = ["TreeFixture", "relative_paths"]
