"""Structured warnings collected during a run."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Optional

from .logging import get_logger


class DiagnosticKind(str, Enum):
    """Categories of problems surfaced to callers instead of halting a run."""

    ROOT_UNAVAILABLE = "root_unavailable"
    ENTRY_SKIPPED = "entry_skipped"
    UNRESOLVED_ANALYSER = "unresolved_analyser"
    ANALYSIS_FAILED = "analysis_failed"
    EMPTY_REPORT = "empty_report"
    REPORT_MERGE_FAILED = "report_merge_failed"

    @property
    def fatal(self) -> bool:
        return self in (DiagnosticKind.ROOT_UNAVAILABLE, DiagnosticKind.REPORT_MERGE_FAILED)


@dataclass(frozen=True)
class Diagnostic:
    """One recorded problem, naming what it concerns and why."""

    kind: DiagnosticKind
    subject: str
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.subject}: {self.message}"


class TreeLensError(RuntimeError):
    """Base class for errors that abort a run."""

    def __init__(self, message: str, diagnostics: Iterable[Diagnostic] = ()) -> None:
        super().__init__(message)
        self.diagnostics: List[Diagnostic] = list(diagnostics)


class DiagnosticCollector:
    """Thread-safe accumulator shared by the builder, registry, engine and merger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._items: List[Diagnostic] = []
        self._lock = threading.Lock()
        self._logger = logger or get_logger("diagnostics")

    def report(self, kind: DiagnosticKind, subject: str, message: str) -> Diagnostic:
        diagnostic = Diagnostic(kind=kind, subject=subject, message=message)
        with self._lock:
            self._items.append(diagnostic)
        level = logging.ERROR if kind.fatal else logging.WARNING
        self._logger.log(level, "%s", diagnostic)
        return diagnostic

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [item for item in self.snapshot() if item.kind is kind]

    def snapshot(self) -> List[Diagnostic]:
        with self._lock:
            return list(self._items)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


__all__ = ["Diagnostic", "DiagnosticCollector", "DiagnosticKind", "TreeLensError"]
