"""Configuration loading for treelens (.treelens.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .diagnostics import TreeLensError
from .models import DEFAULT_MAX_DEPTH, BuildOptions

CONFIG_FILENAME = ".treelens.yml"
DEFAULT_ANALYSERS = ["fileCount", "fileTypeCount"]
DEFAULT_OUTPUT = "treelens-report.md"


class ConfigError(TreeLensError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class TreeLensConfig:
    """Represents the settings defined in .treelens.yml."""

    root: Path
    path: Optional[str] = None
    output: Optional[str] = None
    analysers: List[str] = field(default_factory=list)
    ignore: List[str] = field(default_factory=list)
    type_filters: List[str] = field(default_factory=list)
    max_depth: Optional[int] = None
    respect_gitignore: bool = False
    prune_empty_dirs: bool = False
    follow_symlinks: bool = False
    timeout: Optional[float] = None

    def build_options(self) -> BuildOptions:
        return BuildOptions.create(
            ignore=self.ignore,
            type_filters=self.type_filters,
            max_depth=self.max_depth if self.max_depth is not None else DEFAULT_MAX_DEPTH,
            respect_gitignore=self.respect_gitignore,
            prune_empty_dirs=self.prune_empty_dirs,
            follow_symlinks=self.follow_symlinks,
        )

    def resolved_path(self) -> Optional[Path]:
        """Scan path relative to the config file's directory."""
        if self.path is None:
            return None
        candidate = Path(self.path).expanduser()
        return candidate if candidate.is_absolute() else self.root / candidate

    def resolved_output(self) -> Path:
        candidate = Path(self.output or DEFAULT_OUTPUT).expanduser()
        return candidate if candidate.is_absolute() else self.root / candidate

    def requested_analysers(self) -> List[str]:
        return list(self.analysers) if self.analysers else list(DEFAULT_ANALYSERS)


def load_config(config_path: Path) -> TreeLensConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return TreeLensConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    max_depth = _as_int(data.get("max_depth"))
    if max_depth is not None and max_depth < 0:
        raise ConfigError("max_depth must be a non-negative integer")
    timeout = _as_float(data.get("timeout"))
    if timeout is not None and timeout <= 0:
        raise ConfigError("timeout must be a positive number of seconds")

    return TreeLensConfig(
        root=root,
        path=_as_str(data.get("path")),
        output=_as_str(data.get("output")),
        analysers=_as_str_list(data.get("analysers")),
        ignore=_as_str_list(data.get("ignore")),
        type_filters=_as_str_list(data.get("type_filters")),
        max_depth=max_depth,
        respect_gitignore=_as_bool(data.get("respect_gitignore")) or False,
        prune_empty_dirs=_as_bool(data.get("prune_empty_dirs")) or False,
        follow_symlinks=_as_bool(data.get("follow_symlinks")) or False,
        timeout=timeout,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        # Comma-separated strings are accepted for parity with the CLI flags.
        return split_csv(value)
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


def split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "DEFAULT_ANALYSERS",
    "TreeLensConfig",
    "load_config",
    "split_csv",
]
