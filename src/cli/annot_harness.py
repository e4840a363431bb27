# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""CLI harness for inspecting declaration annotations of a Python project."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

from rich.console import Console
from rich.logging import RichHandler
from rich.style import Style
from rich.table import Table

from annot.compilation import Compilation
from annot.errors import AmbiguousAnnotationError, UnknownDeclarationError
from annot.frontend import Diagnostic, Frontend
from annot.frontends import PythonFrontend
from annot.identity import Declaration
from annot.ignore import IgnoreMatcher
from annot.model import AnnotationRecord
from annot.structural import dealias, type_name

logger = logging.getLogger(__name__)

TABLE_COLUMN_RATIOS: dict[str, int] = {
    "declaration": 3,
    "kind": 1,
    "type": 2,
    "value": 4,
    "location": 2,
}


def configure_logging(level: int = logging.INFO) -> None:
    """Configure application logging with Rich handler.

    Args:
        level: Logging severity threshold.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser instance.
    """
    parser = argparse.ArgumentParser(prog="annot")
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    dump_parser = subparsers.add_parser("dump")
    dump_parser.add_argument("--path", required=True, help="Root path to analyze.")
    dump_parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
        help="Output format.",
    )
    dump_parser.add_argument(
        "--output",
        required=False,
        help="Optional output file path for raw JSON when --format json is used.",
    )
    dump_parser.add_argument(
        "--no-gitignore",
        action="store_true",
        help="Analyze files even when .gitignore patterns exclude them.",
    )

    query_parser = subparsers.add_parser("query")
    query_parser.add_argument("--path", required=True, help="Root path to analyze.")
    query_parser.add_argument(
        "--declaration",
        required=True,
        help="Declaration to inspect, spelled module:qualname.",
    )
    query_parser.add_argument(
        "--type",
        required=False,
        help="Type name for a single typed annotation query.",
    )
    query_parser.add_argument(
        "--no-gitignore",
        action="store_true",
        help="Analyze files even when .gitignore patterns exclude them.",
    )
    return parser


def run(argv: list[str], stdout: TextIO, stderr: TextIO) -> int:
    """Run CLI command.

    Args:
        argv: CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        logger.warning(f"Argument parsing failed (argv={argv})")
        return 2
    if args.verbose:
        logging.getLogger("annot").setLevel(logging.DEBUG)

    root_path = Path(args.path)
    if not root_path.is_dir():
        logger.warning(f"Path does not exist (path={root_path})")
        stderr.write(f"Path does not exist: {root_path}\n")
        return 2
    try:
        ignore = None if args.no_gitignore else IgnoreMatcher.from_project_root(root_path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning(f"Failed to read .gitignore files (error={exc})")
        stderr.write(f"Failed to read .gitignore files: {exc}\n")
        return 2

    compilation = Compilation()
    frontend: Frontend = PythonFrontend(compilation)
    declarations, diagnostics = frontend.analyze(root_path, ignore=ignore)
    logger.info(
        f"Elaboration completed (path={root_path} declarations={len(declarations)} diagnostics={len(diagnostics)})"
    )
    _write_diagnostics(diagnostics=diagnostics, stderr=stderr)

    if args.command == "dump":
        return _run_dump(args=args, compilation=compilation, stdout=stdout, stderr=stderr)
    if args.command == "query":
        return _run_query(args=args, compilation=compilation, stdout=stdout, stderr=stderr)

    logger.warning(f"Unsupported command (command={args.command})")
    stderr.write(f"Unsupported command: {args.command}\n")
    return 2


def _run_dump(
    args: argparse.Namespace, compilation: Compilation, stdout: TextIO, stderr: TextIO
) -> int:
    """Run dump command.

    Args:
        args: Parsed CLI arguments.
        compilation: Elaborated compilation.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    annotated = [
        (declaration, compilation.all_annotations(declaration.identity))
        for declaration in compilation.declarations.declarations()
    ]
    annotated = [(declaration, records) for declaration, records in annotated if records]
    if args.format == "json":
        payload = _payload(annotated)
        if args.output:
            output_path = Path(args.output)
            try:
                output_path.parent.mkdir(parents=True, exist_ok=True)
                output_path.write_text(
                    json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8"
                )
            except OSError as exc:
                logger.warning(
                    f"Failed to write JSON output file (output_path={args.output} error={exc})"
                )
                stderr.write(f"Failed to write JSON output file: {args.output}\n")
                return 2
        else:
            _write_json(payload=payload, stdout=stdout)
    else:
        _write_table(annotated=annotated, stdout=stdout)
    return 0


def _run_query(
    args: argparse.Namespace, compilation: Compilation, stdout: TextIO, stderr: TextIO
) -> int:
    """Run query command.

    Args:
        args: Parsed CLI arguments.
        compilation: Elaborated compilation.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code; 1 when the typed query is ambiguous.
    """
    try:
        identity = compilation.declarations.resolve_path(args.declaration)
    except UnknownDeclarationError as exc:
        logger.warning(f"Unknown declaration (declaration={args.declaration})")
        stderr.write(f"{exc}\n")
        return 2
    records = compilation.all_annotations(identity)
    if not args.type:
        declaration = compilation.declaration(identity)
        _write_json(payload=_payload([(declaration, records)]), stdout=stdout)
        return 0

    value_type = next(
        (
            record.value_type
            for record in records
            if type_name(dealias(record.value_type)) == args.type
        ),
        None,
    )
    if value_type is None:
        _write_json(payload={"declaration": args.declaration, "value": None}, stdout=stdout)
        return 0
    try:
        value = compilation.single_annotation_of_type(identity, value_type)
    except AmbiguousAnnotationError as exc:
        logger.warning(
            f"Ambiguous annotation query (declaration={args.declaration} type={args.type})"
        )
        stderr.write(f"{exc}\n")
        return 1
    _write_json(
        payload={"declaration": args.declaration, "type": args.type, "value": repr(value)},
        stdout=stdout,
    )
    return 0


def _payload(
    annotated: list[tuple[Declaration, tuple[AnnotationRecord, ...]]],
) -> dict[str, Any]:
    return {
        "declarations": [
            {
                "declaration": declaration.path,
                "kind": declaration.kind.value,
                "annotations": [
                    {
                        "type": type_name(record.value_type),
                        "value": repr(record.value),
                        "location": str(record.location),
                    }
                    for record in records
                ],
            }
            for declaration, records in annotated
        ]
    }


def _write_diagnostics(diagnostics: list[Diagnostic], stderr: TextIO) -> None:
    """Write frontend diagnostics to stderr.

    Args:
        diagnostics: Rejected files and declarations.
        stderr: Standard error stream.
    """
    for diagnostic in diagnostics:
        stderr.write(f"{diagnostic.error}: {diagnostic.message}\n")


def _write_json(payload: dict[str, Any], stdout: TextIO) -> None:
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    console.print(
        json.dumps(payload, indent=2, sort_keys=True),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def _write_table(
    annotated: list[tuple[Declaration, tuple[AnnotationRecord, ...]]],
    stdout: TextIO,
) -> None:
    """Write annotations as one table per module.

    Args:
        annotated: Declarations paired with their records.
        stdout: Standard output stream.
    """
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    by_module: dict[str, list[tuple[Declaration, tuple[AnnotationRecord, ...]]]] = {}
    for declaration, records in annotated:
        by_module.setdefault(declaration.module, []).append((declaration, records))

    for module in sorted(by_module):
        console.rule(module, style=Style(color="cyan"), characters="-")
        table = Table(show_header=True, show_lines=True, expand=True)
        for column, ratio in TABLE_COLUMN_RATIOS.items():
            table.add_column(column, ratio=ratio, overflow="fold")
        for declaration, records in by_module[module]:
            for record in records:
                table.add_row(
                    declaration.qualname or "<module>",
                    declaration.kind.value,
                    type_name(record.value_type),
                    repr(record.value),
                    str(record.location),
                )
        console.print(table)


def main() -> None:
    """Run the CLI application and exit."""
    configure_logging()
    exit_code = run(sys.argv[1:], stdout=sys.stdout, stderr=sys.stderr)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
