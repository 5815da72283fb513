"""Helpers shared across CLI commands."""

from __future__ import annotations

import json
import sys
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, TextIO

import typer

from tokenprism.cli.constants import VALIDATION_EXIT_CODE
from tokenprism.cli.formatters import OutputFormatter, create_formatter


@dataclass(slots=True)
class CLIOptions:
    """Global options stored on the Typer context."""

    format: str = "table"
    output_path: Path | None = None
    no_color: bool = False
    log_level: str = "INFO"
    config_path: Path | None = None


def get_cli_options(ctx: typer.Context) -> CLIOptions:
    ctx.ensure_object(dict)
    data = ctx.obj or {}
    return CLIOptions(
        format=str(data.get("format", "table")),
        output_path=data.get("output_path"),
        no_color=bool(data.get("no_color", False)),
        log_level=str(data.get("log_level", "INFO")),
        config_path=data.get("config_path"),
    )


def prepare_output(ctx: typer.Context) -> tuple[OutputFormatter, TextIO, ExitStack]:
    """Resolve the formatter and the stream to write to.

    The caller closes the returned stack once rendering is done.
    """
    options = get_cli_options(ctx)
    formatter = create_formatter(options.format, no_color=options.no_color)

    stack = ExitStack()
    if options.output_path is None:
        return formatter, sys.stdout, stack
    try:
        stream = stack.enter_context(open(options.output_path, "w", encoding="utf-8"))
    except OSError as exc:
        stack.close()
        emit_error(f"Unable to open '{options.output_path}': {exc}", "OUTPUT_WRITE_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    return formatter, stream, stack


def emit_error(message: str, code: str, *, details: Mapping[str, object] | None = None) -> None:
    """Print a structured error payload to stderr."""
    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        payload["details"] = {
            key: value if isinstance(value, (str, int, float, bool)) or value is None else str(value)
            for key, value in details.items()
        }
    typer.echo(json.dumps(payload, ensure_ascii=False, default=str), err=True)


__all__ = ["CLIOptions", "emit_error", "get_cli_options", "prepare_output"]
