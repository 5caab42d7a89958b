"""Core data models shared across treelens components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

DEFAULT_MAX_DEPTH = 1000


class NodeKind(str, Enum):
    """Kind of filesystem entry captured in the tree."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class FileNode:
    """A single filesystem entry included in the snapshot."""

    path: str
    name: str
    kind: NodeKind
    depth: int
    size: Optional[int] = None

    @property
    def is_dir(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def extension(self) -> str:
        """Lower-cased suffix without the leading dot, empty when absent."""
        stem, dot, suffix = self.name.rpartition(".")
        if not dot or not stem:
            return ""
        return suffix.lower()


@dataclass(frozen=True)
class Edge:
    """Parent-contains-child relationship between two nodes."""

    parent: FileNode
    child: FileNode


def normalise_type_token(token: str) -> str:
    return token.strip().lstrip(".").lower()


@dataclass(frozen=True)
class BuildOptions:
    """Filtering configuration for one tree build."""

    ignore: Tuple[str, ...] = ()
    type_filters: FrozenSet[str] = field(default_factory=frozenset)
    max_depth: int = DEFAULT_MAX_DEPTH
    respect_gitignore: bool = False
    prune_empty_dirs: bool = False
    follow_symlinks: bool = False

    def __post_init__(self) -> None:
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {self.max_depth}")
        object.__setattr__(
            self, "ignore", tuple(item.strip() for item in self.ignore if item and item.strip())
        )
        object.__setattr__(
            self,
            "type_filters",
            frozenset(
                normalise_type_token(token)
                for token in self.type_filters
                if token and normalise_type_token(token)
            ),
        )

    @classmethod
    def create(
        cls,
        *,
        ignore: Optional[Iterable[str]] = None,
        type_filters: Optional[Iterable[str]] = None,
        max_depth: Optional[int] = None,
        respect_gitignore: bool = False,
        prune_empty_dirs: bool = False,
        follow_symlinks: bool = False,
    ) -> "BuildOptions":
        """Build options from loosely typed inputs, treating ``None`` as unset.

        A bare string counts as a single pattern or type, not a sequence of characters.
        """
        return cls(
            ignore=_as_items(ignore),
            type_filters=frozenset(_as_items(type_filters)),
            max_depth=DEFAULT_MAX_DEPTH if max_depth is None else max_depth,
            respect_gitignore=respect_gitignore,
            prune_empty_dirs=prune_empty_dirs,
            follow_symlinks=follow_symlinks,
        )

    def accepts_type(self, node: FileNode) -> bool:
        if not self.type_filters or node.is_dir:
            return True
        return node.extension in self.type_filters


def _as_items(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(values)


@dataclass(frozen=True)
class Artifact:
    """Opaque report output produced by one analyser."""

    name: str
    content: bytes
    media_type: str = "text/markdown"
