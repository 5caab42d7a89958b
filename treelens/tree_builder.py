"""Filesystem traversal that produces the filtered tree snapshot."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, FrozenSet, List, NoReturn, Optional, Sequence, Tuple

from .diagnostics import DiagnosticCollector, DiagnosticKind, TreeLensError
from .logging import get_logger
from .models import BuildOptions, Edge, FileNode, NodeKind
from .tree import Tree


class RootUnavailable(TreeLensError):
    """Raised when the starting path cannot be accessed at all."""


@dataclass
class IgnoreRule:
    """Represents an ignore pattern from the options or a .gitignore file.

    ``segments`` are matched against consecutive path segments. An anchored
    rule only matches starting at the root; otherwise any run of segments may
    match, so ``gen/out`` excludes ``a/gen/out`` as well as ``gen/out``.
    """

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool

    @property
    def segments(self) -> List[str]:
        return self.pattern.split("/")

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        parts = rel_path.split("/")
        segments = self.segments
        width = len(segments)
        if width > len(parts):
            return False
        starts = range(1) if self.anchored else range(len(parts) - width + 1)
        return any(
            all(fnmatchcase(part, segment) for part, segment in zip(parts[start:], segments))
            for start in starts
        )


def build_ignore_rule(
    pattern: str, negate: bool = False, *, anchor_slashes: bool = False
) -> IgnoreRule | None:
    """Compile one pattern.

    ``anchor_slashes`` applies the .gitignore convention that a pattern with a
    slash in the middle is relative to the root.
    """
    pattern = pattern.strip().replace("\\", "/")
    if pattern.startswith("!"):
        negate = not negate
        pattern = pattern[1:]
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern.rstrip("/")

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern.lstrip("/")
    if not pattern:
        return None

    if anchor_slashes and "/" in pattern:
        anchored = True
    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
    )


def _parse_gitignore(path: Path, diagnostics: DiagnosticCollector) -> List[IgnoreRule]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as exc:
        diagnostics.report(
            DiagnosticKind.ENTRY_SKIPPED, path.as_posix(), f"cannot read ignore file: {exc}"
        )
        return []

    rules: List[IgnoreRule] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        rule = build_ignore_rule(line, anchor_slashes=True)
        if rule is not None:
            rules.append(rule)
    return rules


def _root_relative(pattern: str, root: Path) -> Optional[str]:
    """Rewrite an absolute path below ``root`` as an anchored pattern.

    Returns None for absolute paths outside the root, which then keep their
    anchored-at-root reading.
    """
    negate = pattern.startswith("!")
    body = pattern[1:] if negate else pattern
    candidate = Path(body.rstrip("/\\"))
    if not candidate.is_absolute():
        return None
    for absolute in (candidate, candidate.resolve()):
        try:
            relative = absolute.relative_to(root)
        except ValueError:
            continue
        if not relative.parts:
            return None
        suffix = "/" if body.endswith(("/", "\\")) else ""
        return f"{'!' if negate else ''}/{relative.as_posix()}{suffix}"
    return None


def compile_ignore_rules(
    patterns: Sequence[str], root: Optional[Path] = None
) -> List[IgnoreRule]:
    """Compile option patterns; absolute paths under ``root`` are made root-relative."""
    rules: List[IgnoreRule] = []
    for pattern in patterns:
        body = pattern.strip().lstrip("!")
        if root is not None and body and Path(body).is_absolute():
            pattern = _root_relative(pattern.strip(), root) or pattern
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def default_root() -> Path:
    """Filesystem root of the drive holding the working directory."""
    return Path(Path.cwd().anchor)


def _list_dir(path: str) -> List[os.DirEntry]:
    with os.scandir(path) as entries:
        return sorted(entries, key=lambda entry: entry.name)


@dataclass
class _PendingDir:
    node: FileNode
    rel_path: str
    entries: List[os.DirEntry]
    ancestors: FrozenSet[str]


class TreeBuilder:
    """Walks a directory applying ignore rules, type filters and a depth bound."""

    def __init__(self, options: BuildOptions | None = None) -> None:
        self.options = options or BuildOptions()
        self.logger = get_logger("tree_builder")

    def build(
        self,
        path: str | os.PathLike[str] | None = None,
        *,
        diagnostics: DiagnosticCollector | None = None,
    ) -> Tree:
        """Return an immutable tree rooted at ``path`` (the filesystem root when None)."""
        if diagnostics is None:
            diagnostics = DiagnosticCollector()
        root_path = self._resolve_root(path, diagnostics)
        self.logger.info("Building tree for %s (max depth %d)", root_path, self.options.max_depth)

        rules = compile_ignore_rules(self.options.ignore, root_path)
        if self.options.respect_gitignore:
            rules.extend(_parse_gitignore(root_path / ".gitignore", diagnostics))

        if not root_path.is_dir():
            root = self._root_node(root_path, NodeKind.FILE, diagnostics)
            return Tree.single(root)

        root = self._root_node(root_path, NodeKind.DIRECTORY, diagnostics)
        entries: List[os.DirEntry] = []
        if self.options.max_depth > 0:
            try:
                entries = _list_dir(str(root_path))
            except OSError as exc:
                self._fail_root(root_path, f"cannot list directory: {exc}", diagnostics)

        edges: List[Edge] = []
        created: List[FileNode] = [root]
        children: Dict[FileNode, List[FileNode]] = {root: []}
        stack: List[_PendingDir] = [
            _PendingDir(root, "", entries, frozenset({os.path.realpath(root_path)}))
        ]
        while stack:
            pending = stack.pop()
            for entry in pending.entries:
                result = self._visit(entry, pending, rules, diagnostics)
                if result is None:
                    continue
                node, descend = result
                edges.append(Edge(parent=pending.node, child=node))
                created.append(node)
                children[pending.node].append(node)
                children[node] = []
                if descend is not None:
                    stack.append(descend)

        if self.options.prune_empty_dirs:
            edges = self._prune_empty(root, created, children, edges)

        tree = Tree.from_edges(root, edges)
        self.logger.debug("Tree for %s contains %d node(s)", root_path, len(tree))
        return tree

    def _resolve_root(
        self, path: str | os.PathLike[str] | None, diagnostics: DiagnosticCollector
    ) -> Path:
        root_path = default_root() if path is None else Path(path).expanduser()
        try:
            root_path = root_path.resolve(strict=True)
        except (OSError, RuntimeError) as exc:
            self._fail_root(root_path, f"path is not accessible: {exc}", diagnostics)
        if not os.access(root_path, os.R_OK):
            self._fail_root(root_path, "permission denied", diagnostics)
        return root_path

    def _fail_root(
        self, root_path: Path, reason: str, diagnostics: DiagnosticCollector
    ) -> NoReturn:
        diagnostics.report(DiagnosticKind.ROOT_UNAVAILABLE, str(root_path), reason)
        raise RootUnavailable(
            f"Starting path unavailable: {root_path} ({reason})", diagnostics.snapshot()
        )

    def _root_node(
        self, root_path: Path, kind: NodeKind, diagnostics: DiagnosticCollector
    ) -> FileNode:
        size: Optional[int] = None
        if kind is NodeKind.FILE:
            try:
                size = root_path.stat().st_size
            except OSError as exc:
                self._fail_root(root_path, f"cannot stat file: {exc}", diagnostics)
        return FileNode(
            path=root_path.as_posix(),
            name=root_path.name or root_path.as_posix(),
            kind=kind,
            depth=0,
            size=size,
        )

    def _visit(
        self,
        entry: os.DirEntry,
        parent: _PendingDir,
        rules: Sequence[IgnoreRule],
        diagnostics: DiagnosticCollector,
    ) -> Optional[Tuple[FileNode, Optional[_PendingDir]]]:
        rel_path = f"{parent.rel_path}/{entry.name}" if parent.rel_path else entry.name
        entry_path = Path(entry.path).as_posix()
        depth = parent.node.depth + 1

        try:
            is_symlink = entry.is_symlink()
            is_dir = entry.is_dir(follow_symlinks=True)
        except OSError as exc:
            diagnostics.report(DiagnosticKind.ENTRY_SKIPPED, entry_path, str(exc))
            return None

        if should_ignore(rel_path, is_dir, rules):
            self.logger.debug("Ignoring %s", rel_path)
            return None

        if not is_dir:
            node = FileNode(path=entry_path, name=entry.name, kind=NodeKind.FILE, depth=depth)
            if not self.options.accepts_type(node):
                return None
            try:
                size = entry.stat(follow_symlinks=True).st_size
            except OSError as exc:
                reason = "broken symbolic link" if is_symlink else str(exc)
                diagnostics.report(DiagnosticKind.ENTRY_SKIPPED, entry_path, reason)
                return None
            return replace(node, size=size), None

        node = FileNode(path=entry_path, name=entry.name, kind=NodeKind.DIRECTORY, depth=depth)
        if depth >= self.options.max_depth:
            return node, None
        if is_symlink and not self.options.follow_symlinks:
            self.logger.debug("Not descending into symbolic link %s", rel_path)
            return node, None

        real_path = os.path.realpath(entry.path)
        if real_path in parent.ancestors:
            diagnostics.report(
                DiagnosticKind.ENTRY_SKIPPED, entry_path, "symbolic link cycle back to an ancestor"
            )
            return None
        try:
            entries = _list_dir(entry.path)
        except OSError as exc:
            diagnostics.report(
                DiagnosticKind.ENTRY_SKIPPED, entry_path, f"cannot list directory: {exc}"
            )
            return None
        return node, _PendingDir(node, rel_path, entries, parent.ancestors | {real_path})

    def _prune_empty(
        self,
        root: FileNode,
        created: List[FileNode],
        children: Dict[FileNode, List[FileNode]],
        edges: List[Edge],
    ) -> List[Edge]:
        # Parents are always created before their children.
        keep: Dict[FileNode, bool] = {}
        for node in reversed(created):
            if node.kind is NodeKind.FILE:
                keep[node] = True
            else:
                keep[node] = any(keep[child] for child in children[node])
        keep[root] = True
        pruned = [edge for edge in edges if keep[edge.child]]
        self.logger.debug("Pruned %d empty director(ies)", len(edges) - len(pruned))
        return pruned


__all__ = [
    "IgnoreRule",
    "RootUnavailable",
    "TreeBuilder",
    "build_ignore_rule",
    "compile_ignore_rules",
    "default_root",
    "should_ignore",
]
