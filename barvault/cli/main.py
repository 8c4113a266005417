"""Main entry point for the barvault command line interface."""

from __future__ import annotations

from pathlib import Path

import typer

from barvault.core.logging import LOG_LEVELS, configure_logging

from .calendars import register as register_calendar_commands
from .formatters import create_formatter
from .gaps import register as register_gaps_commands
from .jobs import register as register_jobs_commands
from .load import register as register_load_commands
from .validate import register as register_validate_commands


def create_app() -> typer.Typer:
    """Create a Typer application instance for barvault."""

    app = typer.Typer(add_completion=False, help="barvault minute-bar ingestion and verification")

    @app.callback()
    def main(
        ctx: typer.Context,
        format: str = typer.Option(
            "table",
            "--format",
            "-f",
            help="Output format (table or jsonl).",
            show_default=True,
        ),
        output: Path | None = typer.Option(
            None,
            "--output",
            "-o",
            help="Write output to a file instead of stdout.",
        ),
        config: Path | None = typer.Option(
            None,
            "--config",
            "-c",
            help="Path to a TOML config file (default ~/.barvault/config.toml).",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            help="Log level for the JSON log stream on stderr (default: [logging] level, INFO).",
        ),
        no_color: bool = typer.Option(
            False,
            "--no-color",
            help="Disable colorized output for table format.",
        ),
    ) -> None:
        ctx.ensure_object(dict)
        normalized_format = format.strip().lower()
        try:
            create_formatter(normalized_format, no_color=no_color)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc

        level = log_level.strip().upper() if log_level else None
        if level is not None and level not in LOG_LEVELS:
            raise typer.BadParameter(f"Unknown log level '{log_level}'.", param_hint="--log-level")

        ctx.obj.update(
            {
                "format": normalized_format,
                "output_path": output,
                "config_path": config,
                "log_level": level,
                "no_color": no_color,
            }
        )
        configure_logging(level or "INFO")

    register_load_commands(app)
    register_gaps_commands(app)
    register_validate_commands(app)
    register_jobs_commands(app)
    register_calendar_commands(app)
    return app


app = create_app()
