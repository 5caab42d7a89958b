"""Concurrent execution of analysers against one shared tree."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Set

from .analysers.base import Analyser
from .diagnostics import DiagnosticCollector, DiagnosticKind
from .logging import get_logger
from .models import Artifact

TIMEOUT_REASON = "timeout"


class AnalyserState(str, Enum):
    """Lifecycle of one analyser inside a run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (AnalyserState.SUCCEEDED, AnalyserState.FAILED)


@dataclass
class AnalyserOutcome:
    """Tracks one analyser by its position in the requested order."""

    index: int
    name: str
    state: AnalyserState = AnalyserState.PENDING
    artifact: Optional[Artifact] = None
    error: Optional[str] = None
    duration: Optional[float] = None


@dataclass
class ExecutionResult:
    """Outcomes in requested order plus the artifacts of the successful subset."""

    outcomes: List[AnalyserOutcome] = field(default_factory=list)

    @property
    def artifacts(self) -> List[Artifact]:
        return [
            outcome.artifact
            for outcome in self.outcomes
            if outcome.state is AnalyserState.SUCCEEDED and outcome.artifact is not None
        ]

    @property
    def failed(self) -> List[AnalyserOutcome]:
        return [outcome for outcome in self.outcomes if outcome.state is AnalyserState.FAILED]


class ExecutionEngine:
    """Runs every analyser on its own worker and joins all of them.

    ``timeout`` (seconds, measured from the moment the analysers are started)
    bounds how long the engine waits; analysers still running afterwards are
    marked failed and their late results are discarded.
    """

    def __init__(self, *, max_workers: Optional[int] = None, timeout: Optional[float] = None) -> None:
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")
        self.max_workers = max_workers
        self.timeout = timeout
        self.logger = get_logger("engine")

    def run(
        self,
        analysers: Sequence[Analyser],
        diagnostics: Optional[DiagnosticCollector] = None,
    ) -> ExecutionResult:
        if diagnostics is None:
            diagnostics = DiagnosticCollector()
        outcomes = [
            AnalyserOutcome(index=index, name=_safe_name(analyser, index))
            for index, analyser in enumerate(analysers)
        ]
        result = ExecutionResult(outcomes=outcomes)
        if not analysers:
            self.logger.debug("No analysers to run")
            return result

        workers = len(analysers)
        if self.max_workers is not None:
            workers = min(workers, self.max_workers)
        self.logger.info("Running %d analyser(s) on %d worker(s)", len(analysers), workers)

        lock = threading.Lock()
        futures: List[Future[Optional[Artifact]]] = []
        not_done: Set[Future[Optional[Artifact]]] = set()
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="treelens-analyser")
        try:
            for analyser, outcome in zip(analysers, outcomes):
                futures.append(executor.submit(self._execute, analyser, outcome, lock))
            _, not_done = wait(futures, timeout=self.timeout)
        finally:
            executor.shutdown(wait=not not_done, cancel_futures=bool(not_done))

        for future, outcome in zip(futures, outcomes):
            with lock:
                if future in not_done:
                    outcome.state = AnalyserState.FAILED
                    outcome.error = TIMEOUT_REASON
                    outcome.artifact = None
                elif not outcome.state.terminal:
                    # Only BaseExceptions escape _execute without a terminal state.
                    outcome.state = AnalyserState.FAILED
                    outcome.error = repr(future.exception())
            if outcome.state is AnalyserState.FAILED:
                diagnostics.report(
                    DiagnosticKind.ANALYSIS_FAILED, outcome.name, outcome.error or "unknown error"
                )

        self.logger.info(
            "Analysers finished: %d succeeded, %d failed",
            len(result.artifacts),
            len(result.failed),
        )
        return result

    def _execute(
        self, analyser: Analyser, outcome: AnalyserOutcome, lock: threading.Lock
    ) -> Optional[Artifact]:
        with lock:
            if outcome.state is not AnalyserState.PENDING:
                return None
            outcome.state = AnalyserState.RUNNING
        started = time.perf_counter()
        self.logger.debug("Running analyser %s", outcome.name)
        try:
            analyser.analyze()
            artifact = analyser.produce_artifact()
        except Exception as exc:
            self.logger.debug("Analyser %s failed", outcome.name, exc_info=True)
            with lock:
                if outcome.state is AnalyserState.RUNNING:
                    outcome.state = AnalyserState.FAILED
                    outcome.error = f"{type(exc).__name__}: {exc}"
                    outcome.duration = time.perf_counter() - started
            return None
        with lock:
            if outcome.state is AnalyserState.RUNNING:
                outcome.state = AnalyserState.SUCCEEDED
                outcome.artifact = artifact
                outcome.duration = time.perf_counter() - started
        return artifact


def _safe_name(analyser: Analyser, index: int) -> str:
    try:
        return str(analyser.name)
    except Exception:
        return f"{type(analyser).__name__}#{index}"


__all__ = ["AnalyserOutcome", "AnalyserState", "ExecutionEngine", "ExecutionResult"]
