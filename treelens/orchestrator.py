"""Pipeline orchestration: build the tree, run analysers, merge their reports."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .analysers import resolve_analysers
from .config import TreeLensConfig
from .diagnostics import Diagnostic, DiagnosticCollector
from .engine import AnalyserOutcome, ExecutionEngine
from .logging import get_logger
from .merger import MergedReport, ReportMerger
from .models import Artifact, BuildOptions
from .tree import Tree
from .tree_builder import TreeBuilder


@dataclass
class RunResult:
    """Everything a caller needs to present the outcome of one run."""

    tree: Tree
    outcomes: List[AnalyserOutcome]
    artifacts: List[Artifact]
    report: MergedReport
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def output_path(self) -> Path:
        return self.report.path

    @property
    def failed(self) -> List[AnalyserOutcome]:
        return [outcome for outcome in self.outcomes if outcome.error is not None]


class Orchestrator:
    """Coordinates one batch run over a filesystem snapshot.

    ``RootUnavailable`` and ``ReportMergeFailed`` propagate to the caller;
    every other problem ends up in :attr:`RunResult.diagnostics`.
    """

    def __init__(
        self,
        engine: ExecutionEngine | None = None,
        merger: ReportMerger | None = None,
    ) -> None:
        self.engine = engine or ExecutionEngine()
        self.merger = merger or ReportMerger()
        self.logger = get_logger("orchestrator")

    def run(
        self,
        path: str | os.PathLike[str] | None,
        output: str | os.PathLike[str],
        analysers: Sequence[str],
        options: BuildOptions | None = None,
        *,
        timeout: Optional[float] = None,
    ) -> RunResult:
        diagnostics = DiagnosticCollector()
        options = options or BuildOptions()
        self.logger.info("Starting run for %s", path if path is not None else "filesystem root")

        tree = TreeBuilder(options).build(path, diagnostics=diagnostics)
        root_path = tree.root.path

        resolved = resolve_analysers(analysers, tree, root_path, diagnostics)
        self.logger.debug("Resolved %d analyser(s)", len(resolved))

        engine = self.engine
        if timeout is not None:
            engine = ExecutionEngine(max_workers=engine.max_workers, timeout=timeout)
        execution = engine.run(resolved, diagnostics)
        artifacts = execution.artifacts

        report = self.merger.merge(
            artifacts, output, root_path=root_path, diagnostics=diagnostics
        )
        self.logger.info("Finished! Report is ready at %s", report.path)
        return RunResult(
            tree=tree,
            outcomes=execution.outcomes,
            artifacts=artifacts,
            report=report,
            diagnostics=diagnostics.snapshot(),
        )

    def run_config(
        self,
        config: TreeLensConfig,
        *,
        path: str | os.PathLike[str] | None = None,
        output: str | os.PathLike[str] | None = None,
        analysers: Optional[Sequence[str]] = None,
    ) -> RunResult:
        """Run with settings from a loaded config; explicit arguments win."""
        scan_path = path if path is not None else config.resolved_path()
        destination = output if output is not None else config.resolved_output()
        requested = list(analysers) if analysers else config.requested_analysers()
        return self.run(
            scan_path, destination, requested, config.build_options(), timeout=config.timeout
        )


__all__ = ["Orchestrator", "RunResult"]
