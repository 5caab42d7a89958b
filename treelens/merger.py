"""Composition of analyser artifacts into one report document."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import List, Optional, Sequence

from .diagnostics import DiagnosticCollector, DiagnosticKind, TreeLensError
from .logging import get_logger
from .models import Artifact
from .postproc.markers import MarkerManager, SectionContent
from .postproc.toc import TableOfContentsBuilder

DEFAULT_TITLE = "Tree Analysis Report"
EMPTY_REPORT_BODY = "_No analyser produced a report for this run._"


class ReportMergeFailed(TreeLensError):
    """Raised when the merged report cannot be composed or written."""


@dataclass
class MergedReport:
    """Where the report went and which sections it holds, in order."""

    path: Path
    sections: List[str] = field(default_factory=list)
    placeholder: bool = False


class ReportMerger:
    """Concatenates artifacts in the given order under a title and table of contents.

    With ``timestamp=False`` the same artifacts always produce the same bytes.
    """

    def __init__(
        self,
        *,
        title: str = DEFAULT_TITLE,
        timestamp: bool = True,
        marker_manager: MarkerManager | None = None,
        toc_builder: TableOfContentsBuilder | None = None,
    ) -> None:
        self.title = title
        self.timestamp = timestamp
        self.marker_manager = marker_manager or MarkerManager()
        self.toc_builder = toc_builder or TableOfContentsBuilder()
        self.logger = get_logger("merger")

    def compose(self, artifacts: Sequence[Artifact], *, root_path: Optional[str] = None) -> str:
        """Return the merged Markdown document; raises ReportMergeFailed on bad artifacts."""
        lines: List[str] = [f"# {self.title}", ""]
        if root_path:
            lines.extend([f"Root: `{root_path}`", ""])
        if self.timestamp:
            generated = datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")
            lines.extend([f"_Generated {generated}_", ""])

        if not artifacts:
            lines.extend([EMPTY_REPORT_BODY, ""])
            return "\n".join(lines)

        lines.extend([TableOfContentsBuilder.PLACEHOLDER, ""])
        for artifact in artifacts:
            body = self._decode(artifact)
            lines.append(self.marker_manager.wrap(SectionContent(name=artifact.name, body=body)))
            lines.append("")
        return self.toc_builder.build("\n".join(lines))

    def merge(
        self,
        artifacts: Sequence[Artifact],
        destination: str | os.PathLike[str],
        *,
        root_path: Optional[str] = None,
        diagnostics: DiagnosticCollector | None = None,
    ) -> MergedReport:
        """Write the merged report to ``destination``.

        An empty artifact list still produces a placeholder document and an
        ``EMPTY_REPORT`` diagnostic. Failures are reported once and raised as
        :class:`ReportMergeFailed`; nothing is retried.
        """
        if diagnostics is None:
            diagnostics = DiagnosticCollector()
        target = Path(destination).expanduser()

        if not artifacts:
            diagnostics.report(
                DiagnosticKind.EMPTY_REPORT,
                str(target),
                "no analyser produced an artifact; writing a placeholder report",
            )

        try:
            document = self.compose(artifacts, root_path=root_path)
        except ReportMergeFailed as exc:
            diagnostics.report(DiagnosticKind.REPORT_MERGE_FAILED, str(target), str(exc))
            raise ReportMergeFailed(str(exc), diagnostics.snapshot()) from exc

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(document, encoding="utf-8")
        except OSError as exc:
            reason = f"cannot write report: {exc}"
            diagnostics.report(DiagnosticKind.REPORT_MERGE_FAILED, str(target), reason)
            raise ReportMergeFailed(
                f"Failed to write report to {target}: {exc}", diagnostics.snapshot()
            ) from exc

        self.logger.info("Report with %d section(s) written to %s", len(artifacts), target)
        return MergedReport(
            path=target,
            sections=[artifact.name for artifact in artifacts],
            placeholder=not artifacts,
        )

    @staticmethod
    def _decode(artifact: Artifact) -> str:
        if not artifact.media_type.startswith("text/"):
            raise ReportMergeFailed(
                f"Artifact '{artifact.name}' has unsupported media type {artifact.media_type}"
            )
        try:
            return artifact.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ReportMergeFailed(f"Artifact '{artifact.name}' is not valid UTF-8: {exc}") from exc


__all__ = ["MergedReport", "ReportMergeFailed", "ReportMerger"]
