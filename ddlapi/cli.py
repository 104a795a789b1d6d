# File: ddlapi/cli.py
"""
ddlapi - Command-Line Interface
================================

Command-line front end built with the standard-library ``argparse`` module.

Usage examples::

    # Infer the API descriptor of a PostgreSQL schema (JSON on stdout)
    ddlapi schema.sql

    # Several files form one schema; write YAML to a file
    ddlapi 001_init.sql 002_alter.sql -d mysql --format yaml -o api.yaml

    # Domain model and descriptor together, settings from a config file
    ddlapi schema.sql -c ddlapi.yaml --emit both

    # Plain-text table listing
    ddlapi schema.sql --listing

    # Only report diagnostics
    ddlapi schema.sql --validate-only --fail-on-warnings

    # Read DDL from stdin
    cat schema.sql | ddlapi -

Exit codes:
    0 - success
    1 - model errors
    2 - lex/parse errors
    3 - warnings (with --fail-on-warnings)
    4 - input/argument error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

import yaml

from ddlapi.config import NamingStrategy, PipelineConfig, RelationshipMode, load_config
from ddlapi.diagnostics import Diagnostics, Severity, Stage
from ddlapi.dialects import Dialect
from ddlapi.listing import render_listing
from ddlapi.pipeline import (
    EXIT_INPUT_ERROR,
    EXIT_SUCCESS,
    PipelineResult,
    SchemaPipeline,
    Source,
)
from ddlapi.utils import read_file, write_file

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi")

STDIN_MARKER: str = "-"


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``ddlapi`` logger based on verbosity level.

    Args:
        verbosity: -1 = ERROR, 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    elif verbosity == 0:
        level = logging.WARNING
    else:
        level = logging.ERROR

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("ddlapi")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


class _ArgumentParser(argparse.ArgumentParser):
    """``ArgumentParser`` that exits with ``EXIT_INPUT_ERROR`` on bad usage."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_INPUT_ERROR, f"{self.prog}: error: {message}\n")


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from ddlapi import __version__

    parser: argparse.ArgumentParser = _ArgumentParser(
        prog="ddlapi",
        description=(
            "ddlapi - infer a REST API description from SQL DDL.\n\n"
            "Parses CREATE/ALTER/DROP statements, builds a resolved domain "
            "model and derives resources, operations, validation rules and "
            "relationship bindings from it."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s schema.sql\n"
            "  %(prog)s a.sql b.sql -d mysql --format yaml -o api.yaml\n"
            "  %(prog)s schema.sql --emit both -c ddlapi.yaml\n"
            "  %(prog)s schema.sql --validate-only --fail-on-warnings\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"ddlapi v{__version__}",
    )

    # --- Inputs ---
    parser.add_argument(
        "inputs",
        nargs="+",
        metavar="INPUT",
        help="DDL files, read in order as one schema ('-' reads stdin).",
    )

    # --- Output ---
    output_group = parser.add_argument_group("output")
    output_group.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="FILE",
        help="Write the result to FILE instead of stdout.",
    )
    output_group.add_argument(
        "--format",
        dest="output_format",
        choices=["json", "yaml"],
        default="json",
        help="Serialization format (default: json).",
    )
    output_group.add_argument(
        "--emit",
        choices=["descriptor", "model", "both"],
        default="descriptor",
        help="What to emit (default: descriptor).",
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--listing",
        action="store_true",
        default=False,
        help="Emit a plain-text table listing instead of JSON/YAML.",
    )
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only report diagnostics and a summary; emit nothing.",
    )

    # --- Config overrides ---
    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="YAML or JSON configuration file.",
    )
    config_group.add_argument(
        "-d", "--dialect",
        type=str,
        default=None,
        metavar="DIALECT",
        help=f"Input dialect ({', '.join(d.value for d in Dialect)}; aliases accepted).",
    )
    config_group.add_argument(
        "--schema-filter",
        type=str,
        default=None,
        metavar="SCHEMA",
        help="Keep only tables of this schema.",
    )
    config_group.add_argument(
        "--naming-strategy",
        choices=[n.value for n in NamingStrategy],
        default=None,
        help="Resource naming (default: passthrough).",
    )
    config_group.add_argument(
        "--relationship-mode",
        choices=[m.value for m in RelationshipMode],
        default=None,
        help="Expose relationships as references or embeds (default: reference).",
    )
    config_group.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="N",
        help="Parse inputs on N threads.",
    )
    config_group.add_argument(
        "--fail-on-warnings",
        action="store_true",
        default=None,
        help="Exit with status 3 when warnings were reported.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress everything on stderr except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _build_config(args: argparse.Namespace) -> PipelineConfig:
    """
    Load the config file (if any) and apply CLI overrides on top.

    Raises:
        FileNotFoundError: If the config file is missing.
        ValueError: If the file or an override does not validate.
    """
    config: PipelineConfig = load_config(args.config) if args.config else PipelineConfig()
    return config.with_overrides(
        dialect=args.dialect,
        schema_filter=args.schema_filter,
        naming_strategy=args.naming_strategy,
        relationship_mode=args.relationship_mode,
        max_workers=args.workers,
        fail_on_warnings=args.fail_on_warnings,
    )


# ---------------------------------------------------------------------------
# Running
# ---------------------------------------------------------------------------


def _run(pipeline: SchemaPipeline, inputs: Sequence[str]) -> PipelineResult:
    if STDIN_MARKER not in inputs:
        return pipeline.run_files(inputs)

    # Read stdin in place and keep the order of the other inputs
    diagnostics: Diagnostics = Diagnostics()
    sources: List[Source] = []
    for name in inputs:
        if name == STDIN_MARKER:
            sources.append(("<stdin>", sys.stdin.read()))
            continue
        try:
            sources.append((name, read_file(Path(name))))
        except (OSError, UnicodeDecodeError) as exc:
            diagnostics.error(Stage.INPUT, "INPUT_ERROR", f"Cannot read input: {exc}", source=name)
    return pipeline.run(sources, diagnostics=diagnostics)


def _print_diagnostics(diagnostics: Diagnostics, verbosity: int) -> None:
    """One ``file:line:column: severity[code]: message`` line per diagnostic."""
    for item in diagnostics:
        if item.severity == Severity.INFO and verbosity < 1:
            continue
        if item.severity != Severity.ERROR and verbosity < 0:
            continue
        print(str(item), file=sys.stderr)


def _payload(result: PipelineResult, emit: str) -> Optional[Dict[str, Any]]:
    model_data: Optional[Dict[str, Any]] = (
        result.model.model_dump(mode="json") if result.model is not None else None
    )
    descriptor_data: Optional[Dict[str, Any]] = (
        result.descriptor.model_dump(mode="json") if result.descriptor is not None else None
    )
    if emit == "model":
        return model_data
    if emit == "both":
        return {"model": model_data, "descriptor": descriptor_data}
    return descriptor_data


def _render(result: PipelineResult, args: argparse.Namespace) -> Optional[str]:
    """Serialize the requested artifact; None when there is nothing to emit."""
    if args.listing:
        return render_listing(result.model) if result.model is not None else None

    data: Optional[Dict[str, Any]] = _payload(result, args.emit)
    if data is None:
        return None
    if args.output_format == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def _emit(text: str, output: Optional[str]) -> None:
    if output is None:
        sys.stdout.write(text)
        return
    size: int = write_file(Path(output), text)
    logger.info("Wrote %d bytes to %s", size, output)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    verbosity: int = -1 if args.quiet else args.verbose
    _setup_logging(verbosity)

    try:
        config: PipelineConfig = _build_config(args)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(EXIT_INPUT_ERROR)

    logger.info("Inputs:   %s", ", ".join(args.inputs))
    logger.info("Dialect:  %s", config.dialect)

    result: PipelineResult = _run(SchemaPipeline(config), args.inputs)
    _print_diagnostics(result.diagnostics, verbosity)

    exit_code: int = result.exit_status(config.fail_on_warnings)

    if args.validate_only:
        if verbosity >= 0:
            print(result.summary())
        sys.exit(exit_code)

    text: Optional[str] = _render(result, args)
    if text is None:
        logger.error("Nothing to emit: the domain model has errors.")
    else:
        try:
            _emit(text, args.output)
        except OSError as exc:
            logger.error("Cannot write %s: %s", args.output, exc)
            sys.exit(EXIT_INPUT_ERROR)

    if exit_code == EXIT_SUCCESS:
        logger.info("Done: %s", result.diagnostics.summary())
    else:
        logger.error("Finished with exit code %d.", exit_code)
    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
]

logger.debug("ddlapi.cli loaded.")
