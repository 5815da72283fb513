"""Main entry point for the tokenprism command line interface."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import typer

from tokenprism.core.config import ConfigManager
from tokenprism.core.logging import configure_logging

from .formatters import create_formatter
from .tokens import register as register_token_commands
from .utils import get_cli_options


def create_app() -> typer.Typer:
    """Create the Typer application."""

    app = typer.Typer(add_completion=False, help="tokenprism command line interface")

    @app.callback()
    def main(
        ctx: typer.Context,
        format: str = typer.Option("table", "--format", "-f", help="Output format (table or jsonl).", show_default=True),
        output: Path | None = typer.Option(None, "--output", "-o", help="Write output to a file instead of stdout."),
        log_level: str = typer.Option("WARNING", "--log-level", help="Log level.", show_default=True),
        no_color: bool = typer.Option(False, "--no-color", help="Disable colorized table output."),
        config: Path | None = typer.Option(None, "--config", help="Path to a TOML configuration file."),
    ) -> None:
        ctx.ensure_object(dict)
        normalized_format = format.strip().lower()
        try:
            create_formatter(normalized_format, no_color=no_color)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc

        ctx.obj.update(
            {
                "format": normalized_format,
                "output_path": output,
                "log_level": log_level.upper(),
                "no_color": no_color,
                "config_path": config,
            }
        )
        # stdout carries command output, so logs go to stderr
        configure_logging(log_level.upper(), console_stream=sys.stderr)

    @app.command("serve")
    def serve_command(
        ctx: typer.Context,
        host: str | None = typer.Option(None, "--host", help="Bind address."),
        port: int | None = typer.Option(None, "--port", help="Bind port."),
        reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
    ) -> None:
        """Run the HTTP and WebSocket server."""
        from tokenprism.web.main import serve

        options = get_cli_options(ctx)
        if options.config_path is not None:
            os.environ["TOKENPRISM_CONFIG_FILE"] = str(options.config_path)
        server = ConfigManager(options.config_path).get_config().server
        if host:
            server.host = host
        if port:
            server.port = port
        server.reload = reload or server.reload
        serve(server, log_level=options.log_level)

    register_token_commands(app)
    return app


app = create_app()


if __name__ == "__main__":
    app()
