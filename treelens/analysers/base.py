"""Base classes for analyser plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from ..diagnostics import TreeLensError
from ..models import Artifact
from ..tree import Tree

_TEMPLATES_DIR = Path(__file__).with_name("templates")


class ArtifactGenerationFailed(TreeLensError):
    """Raised when an analyser cannot render its result into an artifact."""


@lru_cache(maxsize=None)
def _environment(directories: Tuple[str, ...]) -> Environment:
    return Environment(
        loader=FileSystemLoader(list(directories)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


class Analyser(ABC):
    """Contract for read-only passes over a shared :class:`Tree`.

    Subclasses implement :meth:`analyze`, set ``self.completed`` once their
    result is computed and expose the values their template needs through
    :meth:`context`. The tree must never be modified: several analysers read
    it at the same time from different threads.
    """

    template_name: ClassVar[str] = ""
    template_dir: ClassVar[Optional[Path]] = None

    def __init__(self, tree: Tree, root_path: str) -> None:
        self.tree = tree
        self.root_path = root_path
        self.completed = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable human-readable label used in diagnostics and merge output."""

    @abstractmethod
    def analyze(self) -> None:
        """Compute the analyser's result from the tree."""

    def context(self) -> Dict[str, Any]:
        """Template variables describing the computed result."""
        return {}

    def produce_artifact(self) -> Artifact:
        """Render the completed result into a Markdown artifact."""
        if not self.completed:
            raise ArtifactGenerationFailed(
                f"Analyser '{self.name}' has not completed its analysis"
            )
        try:
            template = self._environment().get_template(self.template_name)
            text = template.render(name=self.name, root_path=self.root_path, **self.context())
        except TemplateError as exc:
            raise ArtifactGenerationFailed(
                f"Failed to render report for '{self.name}': {exc}"
            ) from exc
        return Artifact(name=self.name, content=text.encode("utf-8"))

    def _environment(self) -> Environment:
        directories = [str(_TEMPLATES_DIR)]
        if self.template_dir is not None:
            directories.insert(0, str(self.template_dir))
        return _environment(tuple(directories))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(root_path={self.root_path!r})"
