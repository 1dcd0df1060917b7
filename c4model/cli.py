"""CLI entrypoints for c4model commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

from .config import ConfigError
from .logging import configure_logging, get_logger
from .orchestrator import AnalysisOptions, Orchestrator, summarize_problems
from .validators import ModelValidationError


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_report_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Configuration file or the directory holding it (defaults to current directory).",
    )
    parser.add_argument(
        "-u",
        "--include-undeclared",
        action="store_true",
        help="Report couplings found in code but not declared with @c4Relation.",
    )
    parser.add_argument(
        "-i",
        "--include-invalid",
        action="store_true",
        help="Report declared relations that failed validation.",
    )
    parser.add_argument(
        "--invalid-only",
        action="store_true",
        help="Report only invalid and undeclared relations.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail when any declaration was skipped or a business rule is violated.",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write the JSON model to this file instead of stdout.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="c4model",
        description="Extract a C4 component model from annotated Python sources.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    container_parser = subparsers.add_parser(
        "container",
        help="Analyse one container described by c4container.yml.",
    )
    _add_verbose_option(container_parser, suppress_default=True)
    _add_report_options(container_parser)

    workspace_parser = subparsers.add_parser(
        "workspace",
        help="Analyse every container listed in c4workspace.yml.",
    )
    _add_verbose_option(workspace_parser, suppress_default=True)
    _add_report_options(workspace_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for c4model commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))
    logger = get_logger("cli")

    orchestrator = Orchestrator(
        AnalysisOptions(
            include_undeclared=bool(args.include_undeclared),
            include_invalid=bool(args.include_invalid),
            invalid_only=bool(args.invalid_only),
            strict=bool(args.strict),
        )
    )

    try:
        if args.command == "container":
            analysis = orchestrator.analyze_container(Path(args.path))
            payload: Dict[str, Any] = analysis.to_dict()
            problems = summarize_problems([analysis])
        elif args.command == "workspace":
            workspace = orchestrator.analyze_workspace(Path(args.path))
            payload = workspace.to_dict()
            problems = summarize_problems(workspace.containers) + len(workspace.issues)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except ConfigError as exc:
        parser.exit(1, f"Configuration error: {exc}\n")
    except ModelValidationError as exc:
        parser.exit(1, f"c4model {args.command} failed: {exc}\n")

    if problems:
        logger.warning("Found %d relation problem(s); see the report for details", problems)

    rendered = json.dumps(payload, indent=2)
    if args.output is not None:
        args.output.write_text(rendered + "\n", encoding="utf-8")
        print(f"Model written to {_relativize(args.output.resolve())}")
    else:
        print(rendered)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
