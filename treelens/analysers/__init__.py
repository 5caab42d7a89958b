"""Analyser plugin implementations and the identifier registry."""

from __future__ import annotations

import threading
from importlib import metadata
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..diagnostics import DiagnosticCollector, DiagnosticKind
from ..logging import get_logger
from ..tree import Tree
from .base import Analyser, ArtifactGenerationFailed
from .file_count import FileCountAnalyser
from .file_type_count import FileTypeCountAnalyser
from .size_summary import SizeSummaryAnalyser

AnalyserFactory = Callable[[Tree, str], Analyser]

_ENTRY_POINT_GROUP = "treelens.analysers"

_BUILTIN_FACTORIES: Dict[str, AnalyserFactory] = {
    "filecount": FileCountAnalyser,
    "filetypecount": FileTypeCountAnalyser,
    "sizesummary": SizeSummaryAnalyser,
}

_registered: Dict[str, AnalyserFactory] = {}
_registry_lock = threading.Lock()

logger = get_logger("analysers")


def normalise_identifier(identifier: str) -> str:
    return identifier.strip().lower()


def register_analyser(identifier: str, factory: AnalyserFactory) -> None:
    """Make ``factory`` resolvable under ``identifier`` (case-insensitive)."""
    key = normalise_identifier(identifier)
    if not key:
        raise ValueError("Analyser identifier must not be empty")
    if not callable(factory):
        raise TypeError(f"Analyser factory for '{identifier}' is not callable")
    with _registry_lock:
        _registered[key] = factory


def unregister_analyser(identifier: str) -> None:
    with _registry_lock:
        _registered.pop(normalise_identifier(identifier), None)


def available_analysers() -> List[str]:
    """Return every resolvable identifier, builtins first."""
    names: List[str] = list(_BUILTIN_FACTORIES)
    for entry in _iter_entry_points():
        key = normalise_identifier(entry.name)
        if key not in names:
            names.append(key)
    with _registry_lock:
        for key in _registered:
            if key not in names:
                names.append(key)
    return names


def resolve_analysers(
    identifiers: Sequence[str],
    tree: Tree,
    root_path: Optional[str] = None,
    diagnostics: Optional[DiagnosticCollector] = None,
) -> List[Analyser]:
    """Construct one analyser per identifier, in requested order.

    A repeated identifier yields a fresh instance each time; only identifiers
    that cannot be resolved are skipped, each with a diagnostic.
    """
    if diagnostics is None:
        diagnostics = DiagnosticCollector()
    bound_root = root_path if root_path is not None else tree.root.path

    analysers: List[Analyser] = []
    for identifier in identifiers:
        key = normalise_identifier(identifier)
        if not key:
            continue

        factory = _lookup(key, diagnostics, identifier)
        if factory is None:
            continue
        try:
            instance = factory(tree, bound_root)
        except Exception as exc:
            diagnostics.report(
                DiagnosticKind.UNRESOLVED_ANALYSER,
                identifier,
                f"factory raised {type(exc).__name__}: {exc}",
            )
            continue
        if not isinstance(instance, Analyser):
            diagnostics.report(
                DiagnosticKind.UNRESOLVED_ANALYSER,
                identifier,
                "factory did not return an Analyser instance",
            )
            continue
        analysers.append(instance)

    logger.debug("Resolved %d of %d requested analyser(s)", len(analysers), len(identifiers))
    return analysers


def _lookup(
    key: str, diagnostics: DiagnosticCollector, identifier: str
) -> Optional[AnalyserFactory]:
    with _registry_lock:
        registered = _registered.get(key)
    if registered is not None:
        return registered
    builtin = _BUILTIN_FACTORIES.get(key)
    if builtin is not None:
        return builtin

    for entry in _iter_entry_points():
        if normalise_identifier(entry.name) != key:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:
            diagnostics.report(
                DiagnosticKind.UNRESOLVED_ANALYSER,
                identifier,
                f"failed to load entry point: {exc}",
            )
            return None
        return _coerce_factory(loaded)

    diagnostics.report(DiagnosticKind.UNRESOLVED_ANALYSER, identifier, "unknown analyser")
    return None


def _coerce_factory(obj: object) -> AnalyserFactory:
    if isinstance(obj, type) and issubclass(obj, Analyser):
        return obj
    if callable(obj):
        return obj  # type: ignore[return-value]

    def _not_a_factory(tree: Tree, root_path: str) -> Analyser:
        raise TypeError("entry point is neither an Analyser subclass nor a factory")

    return _not_a_factory


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    try:
        entry_points = metadata.entry_points()
    except Exception:  # pragma: no cover
        return []

    if hasattr(entry_points, "select"):
        return entry_points.select(group=_ENTRY_POINT_GROUP)  # type: ignore[return-value]

    return entry_points.get(_ENTRY_POINT_GROUP, [])  # type: ignore[return-value]


__all__ = [
    "Analyser",
    "AnalyserFactory",
    "ArtifactGenerationFailed",
    "FileCountAnalyser",
    "FileTypeCountAnalyser",
    "SizeSummaryAnalyser",
    "available_analysers",
    "register_analyser",
    "resolve_analysers",
    "unregister_analyser",
]
