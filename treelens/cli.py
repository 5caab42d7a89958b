"""CLI entrypoints for treelens commands."""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import List

from .analysers import available_analysers
from .config import ConfigError, TreeLensConfig, load_config, split_csv
from .diagnostics import TreeLensError
from .logging import configure_logging
from .merger import ReportMerger
from .orchestrator import Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


class _CsvAppend(argparse.Action):
    """Accumulate comma-separated values across repeated flags."""

    def __call__(self, parser, namespace, values, option_string=None):  # type: ignore[override]
        current: List[str] = list(getattr(namespace, self.dest, None) or [])
        current.extend(split_csv(str(values)))
        setattr(namespace, self.dest, current)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="treelens",
        description="Analyse a directory tree with pluggable analysers and merge their reports.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Only log warnings and errors."
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Build the tree, run analysers and write the merged report.",
    )
    _add_verbose_option(run_parser, suppress_default=True)
    run_parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Directory to analyse (defaults to the configured path, else the filesystem root).",
    )
    run_parser.add_argument(
        "--path",
        dest="path_option",
        default=None,
        help="Directory to analyse, as an alternative to the positional argument.",
    )
    run_parser.add_argument(
        "-o",
        "--output",
        "--logpath",
        dest="output",
        default=None,
        help="Destination of the merged report.",
    )
    run_parser.add_argument(
        "-a",
        "--analysers",
        action=_CsvAppend,
        default=None,
        help="Comma-separated analyser identifiers, in report order.",
    )
    run_parser.add_argument(
        "--ignore",
        action=_CsvAppend,
        default=None,
        help="Comma-separated names or path patterns to exclude.",
    )
    run_parser.add_argument(
        "--type-filter",
        "--typefilter",
        dest="type_filters",
        action=_CsvAppend,
        default=None,
        help="Comma-separated file extensions to include (all files when omitted).",
    )
    run_parser.add_argument(
        "--max-depth",
        "--maxdepth",
        dest="max_depth",
        type=_non_negative_int,
        default=None,
        help="Deepest level below the root to traverse.",
    )
    run_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for analysers before marking them failed.",
    )
    run_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a .treelens.yml file or its directory (defaults to the working directory).",
    )
    run_parser.add_argument(
        "--respect-gitignore",
        action="store_true",
        default=None,
        help="Also apply the root's .gitignore rules.",
    )
    run_parser.add_argument(
        "--prune-empty-dirs",
        action="store_true",
        default=None,
        help="Drop directories left without files after filtering.",
    )
    run_parser.add_argument(
        "--follow-symlinks",
        action="store_true",
        default=None,
        help="Descend into symbolically linked directories.",
    )
    run_parser.add_argument(
        "--no-timestamp",
        dest="timestamp",
        action="store_false",
        help="Leave the generation time out of the report so identical trees give identical files.",
    )

    list_parser = subparsers.add_parser("analysers", help="List available analyser identifiers.")
    _add_verbose_option(list_parser, suppress_default=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from exc
    if number < 0:
        raise argparse.ArgumentTypeError("must be a non-negative integer")
    return number


def _apply_overrides(config: TreeLensConfig, args: argparse.Namespace) -> TreeLensConfig:
    overrides: dict[str, object] = {}
    for name in (
        "ignore",
        "type_filters",
        "max_depth",
        "timeout",
        "respect_gitignore",
        "prune_empty_dirs",
        "follow_symlinks",
        "analysers",
    ):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    return dataclasses.replace(config, **overrides)


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for treelens commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), quiet=args.quiet, log_file=args.log_file)

    if args.command == "analysers":
        for identifier in available_analysers():
            print(identifier)
    elif args.command == "run":
        try:
            config = load_config(args.config or Path.cwd())
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")
        config = _apply_overrides(config, args)
        if args.timeout is not None and args.timeout <= 0:
            parser.exit(2, "--timeout must be positive\n")
        if args.path and args.path_option and args.path != args.path_option:
            parser.error("give the directory either as an argument or with --path, not both")
        orchestrator = Orchestrator(merger=ReportMerger(timestamp=args.timestamp))
        try:
            result = orchestrator.run_config(
                config,
                path=args.path or args.path_option,
                output=args.output,
            )
        except TreeLensError as exc:
            # Diagnostics were already logged as they were reported.
            parser.exit(1, f"treelens run failed: {exc}\nRun with --verbose for more details.\n")
        print(f"Finished! Your report is ready at path: {_relativize(result.output_path)}")
    elif args.command == "serve":
        try:
            from .service import run_service
        except ModuleNotFoundError as exc:
            parser.exit(1, f"Service mode needs the service extra (pip install treelens[service]): {exc}\n")
        try:
            run_service(host=args.host, port=args.port)
        except RuntimeError as exc:
            parser.exit(1, f"{exc}\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
