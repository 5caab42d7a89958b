"""Filtered filesystem trees analysed by concurrent, pluggable passes."""

from .analysers import (
    Analyser,
    ArtifactGenerationFailed,
    available_analysers,
    register_analyser,
    resolve_analysers,
)
from .diagnostics import Diagnostic, DiagnosticCollector, DiagnosticKind, TreeLensError
from .engine import AnalyserOutcome, AnalyserState, ExecutionEngine, ExecutionResult
from .merger import MergedReport, ReportMergeFailed, ReportMerger
from .models import Artifact, BuildOptions, Edge, FileNode, NodeKind
from .orchestrator import Orchestrator, RunResult
from .tree import Tree
from .tree_builder import RootUnavailable, TreeBuilder

__version__ = "0.1.0"

__all__ = [
    "Analyser",
    "AnalyserOutcome",
    "AnalyserState",
    "Artifact",
    "ArtifactGenerationFailed",
    "BuildOptions",
    "Diagnostic",
    "DiagnosticCollector",
    "DiagnosticKind",
    "Edge",
    "ExecutionEngine",
    "ExecutionResult",
    "FileNode",
    "MergedReport",
    "NodeKind",
    "Orchestrator",
    "ReportMergeFailed",
    "ReportMerger",
    "RootUnavailable",
    "RunResult",
    "Tree",
    "TreeBuilder",
    "TreeLensError",
    "available_analysers",
    "register_analyser",
    "resolve_analysers",
]
