"""Immutable tree model over a filtered filesystem snapshot."""

from __future__ import annotations

from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .models import Edge, FileNode, NodeKind


class Tree:
    """Single-rooted tree of :class:`FileNode` objects.

    Instances are built once through :meth:`from_edges` and expose read-only
    traversal only, so analysers running on separate threads can share one
    instance without locking.
    """

    __slots__ = ("_root", "_children", "_parents", "_order")

    def __init__(
        self,
        root: FileNode,
        children: Mapping[FileNode, Tuple[FileNode, ...]],
        parents: Mapping[FileNode, FileNode],
        order: Tuple[FileNode, ...],
    ) -> None:
        self._root = root
        self._children = MappingProxyType(dict(children))
        self._parents = MappingProxyType(dict(parents))
        self._order = order

    @classmethod
    def from_edges(cls, root: FileNode, edges: Iterable[Edge]) -> "Tree":
        """Assemble a tree, validating the shape invariants."""
        if root.depth != 0:
            raise ValueError(f"Root node must have depth 0, got {root.depth}")

        children: Dict[FileNode, List[FileNode]] = {root: []}
        parents: Dict[FileNode, FileNode] = {}
        for edge in edges:
            parent, child = edge.parent, edge.child
            if child == root or child in parents:
                raise ValueError(f"Node has more than one parent: {child.path}")
            if parent.kind is not NodeKind.DIRECTORY:
                raise ValueError(f"Only directories may contain children: {parent.path}")
            if child.depth != parent.depth + 1:
                raise ValueError(
                    f"Depth of {child.path} ({child.depth}) does not follow its parent ({parent.depth})"
                )
            parents[child] = parent
            children.setdefault(parent, []).append(child)
            children.setdefault(child, [])

        frozen = {
            node: tuple(sorted(items, key=lambda item: item.name))
            for node, items in children.items()
        }
        order = tuple(_preorder(root, frozen))
        if len(order) != len(frozen):
            raise ValueError("Tree contains nodes that are not reachable from the root")
        if len({node.path for node in order}) != len(order):
            raise ValueError("Tree contains more than one node for the same path")
        return cls(root, frozen, parents, order)

    @classmethod
    def single(cls, root: FileNode) -> "Tree":
        return cls.from_edges(root, ())

    @property
    def root(self) -> FileNode:
        return self._root

    def children(self, node: FileNode) -> Tuple[FileNode, ...]:
        return self._children[node]

    def parent(self, node: FileNode) -> Optional[FileNode]:
        if node not in self._children:
            raise KeyError(node.path)
        return self._parents.get(node)

    def depth(self, node: FileNode) -> int:
        if node not in self._children:
            raise KeyError(node.path)
        return node.depth

    def iter_nodes(self) -> Iterator[FileNode]:
        """Yield every node once, pre-order from the root, siblings by name."""
        return iter(self._order)

    def edges(self) -> Iterator[Edge]:
        for node in self._order:
            parent = self._parents.get(node)
            if parent is not None:
                yield Edge(parent=parent, child=node)

    def files(self) -> Iterator[FileNode]:
        return (node for node in self._order if node.kind is NodeKind.FILE)

    def directories(self) -> Iterator[FileNode]:
        return (node for node in self._order if node.kind is NodeKind.DIRECTORY)

    def find(self, path: str) -> Optional[FileNode]:
        """Return the node whose absolute or root-relative path matches."""
        target = path.replace("\\", "/")
        for node in self._order:
            if node.path == target or self.relative_path(node) == target:
                return node
        return None

    def relative_path(self, node: FileNode) -> str:
        if node == self._root:
            return "."
        return PurePosixPath(node.path).relative_to(PurePosixPath(self._root.path)).as_posix()

    @property
    def max_depth(self) -> int:
        return max(node.depth for node in self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, node: object) -> bool:
        return node in self._children

    def __iter__(self) -> Iterator[FileNode]:
        return self.iter_nodes()

    def __repr__(self) -> str:
        return f"Tree(root={self._root.path!r}, nodes={len(self._order)})"


def _preorder(
    root: FileNode, children: Mapping[FileNode, Sequence[FileNode]]
) -> Iterator[FileNode]:
    stack: List[FileNode] = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(children.get(node, ())))


__all__ = ["Tree"]
