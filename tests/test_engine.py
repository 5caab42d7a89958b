from __future__ import annotations

import random
import threading
import time

import pytest

from tests._fixtures.tree_fixture import TreeFixture
from treelens.analysers import Analyser, ArtifactGenerationFailed
from treelens.diagnostics import DiagnosticCollector, DiagnosticKind
from treelens.engine import TIMEOUT_REASON, AnalyserState, ExecutionEngine
from treelens.models import Artifact
from treelens.tree import Tree


class ScriptedAnalyser(Analyser):
    """Analyser whose behaviour is driven by the test."""

    def __init__(self, tree, root_path, label, *, delay=0.0, fail=None, artifact_fail=False, hook=None):
        super().__init__(tree, root_path)
        self.label = label
        self.delay = delay
        self.fail = fail
        self.artifact_fail = artifact_fail
        self.hook = hook

    @property
    def name(self) -> str:
        return self.label

    def analyze(self) -> None:
        if self.hook is not None:
            self.hook()
        if self.delay:
            time.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        self.completed = True

    def produce_artifact(self) -> Artifact:
        if self.artifact_fail:
            raise ArtifactGenerationFailed("cannot render")
        return Artifact(name=self.label, content=f"## {self.label}\n".encode("utf-8"))


@pytest.fixture
def tree(sample_tree: TreeFixture) -> Tree:
    return sample_tree.build()


def test_artifacts_follow_input_order_regardless_of_completion(tree: Tree) -> None:
    rng = random.Random(7)
    labels = [f"analyser-{index}" for index in range(8)]
    analysers = [
        ScriptedAnalyser(tree, tree.root.path, label, delay=rng.uniform(0, 0.05))
        for label in labels
    ]

    result = ExecutionEngine().run(analysers)

    assert [artifact.name for artifact in result.artifacts] == labels
    assert [outcome.index for outcome in result.outcomes] == list(range(8))
    assert all(outcome.state is AnalyserState.SUCCEEDED for outcome in result.outcomes)
    assert all(outcome.duration is not None for outcome in result.outcomes)


def test_failure_is_isolated(tree: Tree) -> None:
    analysers = [
        ScriptedAnalyser(tree, tree.root.path, "first"),
        ScriptedAnalyser(tree, tree.root.path, "broken", fail=ValueError("bad data")),
        ScriptedAnalyser(tree, tree.root.path, "last"),
    ]
    diagnostics = DiagnosticCollector()

    result = ExecutionEngine().run(analysers, diagnostics)

    assert [artifact.name for artifact in result.artifacts] == ["first", "last"]
    [failed] = result.failed
    assert failed.name == "broken"
    assert failed.error == "ValueError: bad data"
    assert failed.artifact is None
    [diagnostic] = diagnostics.of_kind(DiagnosticKind.ANALYSIS_FAILED)
    assert diagnostic.subject == "broken"


def test_artifact_generation_failure_marks_analyser_failed(tree: Tree) -> None:
    analysers = [
        ScriptedAnalyser(tree, tree.root.path, "renders"),
        ScriptedAnalyser(tree, tree.root.path, "no-render", artifact_fail=True),
    ]

    result = ExecutionEngine().run(analysers)

    assert [artifact.name for artifact in result.artifacts] == ["renders"]
    assert result.outcomes[1].state is AnalyserState.FAILED
    assert result.outcomes[1].error.startswith("ArtifactGenerationFailed")


def test_analysers_run_concurrently(tree: Tree) -> None:
    barrier = threading.Barrier(3, timeout=5)
    analysers = [
        ScriptedAnalyser(tree, tree.root.path, f"parallel-{index}", hook=barrier.wait)
        for index in range(3)
    ]

    result = ExecutionEngine().run(analysers)

    assert len(result.artifacts) == 3


def test_max_workers_limits_parallelism(tree: Tree) -> None:
    active = 0
    peak = 0
    lock = threading.Lock()

    def _track() -> None:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1

    analysers = [
        ScriptedAnalyser(tree, tree.root.path, f"worker-{index}", hook=_track)
        for index in range(5)
    ]

    result = ExecutionEngine(max_workers=2).run(analysers)

    assert len(result.artifacts) == 5
    assert peak <= 2


def test_timeout_marks_slow_analyser_failed(tree: Tree) -> None:
    release = threading.Event()
    analysers = [
        ScriptedAnalyser(tree, tree.root.path, "fast"),
        ScriptedAnalyser(tree, tree.root.path, "slow", hook=lambda: release.wait(5)),
    ]
    diagnostics = DiagnosticCollector()

    try:
        result = ExecutionEngine(timeout=0.2).run(analysers, diagnostics)
    finally:
        release.set()

    assert [artifact.name for artifact in result.artifacts] == ["fast"]
    slow = result.outcomes[1]
    assert slow.state is AnalyserState.FAILED
    assert slow.error == TIMEOUT_REASON
    assert [item.subject for item in diagnostics.of_kind(DiagnosticKind.ANALYSIS_FAILED)] == ["slow"]


def test_late_result_is_discarded_after_timeout(tree: Tree) -> None:
    release = threading.Event()
    slow = ScriptedAnalyser(tree, tree.root.path, "slow", hook=lambda: release.wait(5))

    result = ExecutionEngine(timeout=0.1).run([slow])
    release.set()
    time.sleep(0.1)

    assert result.outcomes[0].state is AnalyserState.FAILED
    assert result.outcomes[0].artifact is None
    assert result.artifacts == []


def test_empty_input_returns_empty_result(tree: Tree) -> None:
    diagnostics = DiagnosticCollector()
    result = ExecutionEngine().run([], diagnostics)

    assert result.outcomes == []
    assert result.artifacts == []
    assert len(diagnostics) == 0


@pytest.mark.parametrize("kwargs", [{"max_workers": 0}, {"timeout": 0}, {"timeout": -1.0}])
def test_invalid_engine_settings(kwargs) -> None:
    with pytest.raises(ValueError):
        ExecutionEngine(**kwargs)
