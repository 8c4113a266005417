"""Utility helpers shared across CLI commands."""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Mapping, Sequence
from contextlib import AbstractAsyncContextManager, ExitStack
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, TextIO, TypeVar

import typer

from barvault.core.config import BarVaultConfig, ConfigManager, parse_symbols
from barvault.core.exceptions import ConfigError
from barvault.core.logging import LogConfig, apply_log_config
from barvault.core.patterns import SymbolFailure
from barvault.core.pipeline import Pipeline, open_pipeline

from .constants import PARTIAL_FAILURE_EXIT_CODE, SUCCESS_EXIT_CODE, VALIDATION_EXIT_CODE
from .formatters import OutputFormatter, create_formatter

T = TypeVar("T")

RESULT_COLUMNS = ["symbol", "status", "bars", "error_code", "error"]


@dataclass(slots=True)
class CLIOptions:
    """Resolved options derived from the Typer context."""

    format: str = "table"
    output_path: Path | None = None
    no_color: bool = False
    config_path: Path | None = None
    log_level: str | None = None


def get_cli_options(ctx: typer.Context) -> CLIOptions:
    """Extract :class:`CLIOptions` from the Typer context object."""

    ctx.ensure_object(dict)
    data = ctx.obj or {}
    return CLIOptions(
        format=str(data.get("format", "table")),
        output_path=data.get("output_path"),
        no_color=bool(data.get("no_color", False)),
        config_path=data.get("config_path"),
        log_level=data.get("log_level"),
    )


def prepare_output(ctx: typer.Context) -> tuple[OutputFormatter, TextIO, ExitStack, CLIOptions]:
    """Resolve formatter and writable stream for the current command."""

    options = get_cli_options(ctx)
    try:
        formatter = create_formatter(options.format, no_color=options.no_color)
    except ValueError as exc:  # pragma: no cover - validated at callback
        emit_error(str(exc), "INVALID_FORMAT")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc

    stack = ExitStack()
    stream: TextIO
    if options.output_path is not None:
        try:
            stream = stack.enter_context(open(options.output_path, "w", encoding="utf-8"))
        except OSError as exc:
            stack.close()
            emit_error(f"Unable to open '{options.output_path}': {exc}", "OUTPUT_WRITE_ERROR")
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    else:
        stream = sys.stdout

    return formatter, stream, stack, options


def emit_error(message: str, code: str, *, details: Mapping[str, object] | None = None) -> None:
    """Print a structured error payload to stderr."""

    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        payload["details"] = _sanitize_details(details)
    typer.echo(json.dumps(payload, ensure_ascii=False, default=str), err=True)


def _sanitize_details(details: Mapping[str, object]) -> Mapping[str, object]:
    sanitized: dict[str, object] = {}
    for key, value in details.items():
        if isinstance(value, str | int | float | bool) or value is None:
            sanitized[key] = value
        elif isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray):
            sanitized[key] = [str(item) for item in value]
        else:
            sanitized[key] = str(value)
    return sanitized


def get_config(config_path: Path | None = None) -> BarVaultConfig:
    """Factory hook for the run configuration."""

    return ConfigManager(config_path).get_config()


def get_pipeline(config: BarVaultConfig) -> AbstractAsyncContextManager[Pipeline]:
    """Factory hook for opening the storage and provider resources."""

    return open_pipeline(config)


def load_cli_config(ctx: typer.Context) -> BarVaultConfig:
    """Load the run configuration and re-point logging at its ``[logging]`` section."""

    options = get_cli_options(ctx)
    try:
        config = get_config(options.config_path)
    except ConfigError as exc:
        emit_error(exc.message, exc.error_code, details=exc.details)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    try:
        log_config = LogConfig.from_settings(config.logging, level=options.log_level)
    except ValueError as exc:
        emit_error(f"Invalid logging configuration: {exc}", "CONFIG_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    apply_log_config(log_config)
    return config


def resolve_symbols(raw: str | None, config: BarVaultConfig) -> list[str]:
    """``--symbols`` when given, otherwise the configured symbol list."""

    symbols = parse_symbols(raw) if raw else list(config.pipeline.symbols)
    if not symbols:
        emit_error("At least one symbol is required.", "SYMBOLS_MISSING")
        raise typer.Exit(code=VALIDATION_EXIT_CODE)
    return symbols


def parse_date_option(value: str | None, option: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        emit_error(f"Invalid date '{value}'. Expected YYYY-MM-DD.", "INVALID_DATE", details={option: value})
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc


def run_async(awaitable: Awaitable[T]) -> T:
    async def _runner() -> T:
        return await awaitable

    return asyncio.run(_runner())


def symbol_result_rows(results: Mapping[str, int | SymbolFailure]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for symbol, value in results.items():
        if isinstance(value, SymbolFailure):
            rows.append(
                {
                    "symbol": symbol,
                    "status": "ERROR",
                    "bars": value.bars,
                    "error_code": value.error_code,
                    "error": value.error,
                }
            )
        else:
            rows.append({"symbol": symbol, "status": "OK", "bars": value, "error_code": None, "error": None})
    return rows


def results_exit_code(results: Mapping[str, object]) -> int:
    if any(isinstance(value, SymbolFailure) for value in results.values()):
        return PARTIAL_FAILURE_EXIT_CODE
    return SUCCESS_EXIT_CODE


__all__ = [
    "RESULT_COLUMNS",
    "CLIOptions",
    "emit_error",
    "get_cli_options",
    "get_config",
    "get_pipeline",
    "load_cli_config",
    "parse_date_option",
    "prepare_output",
    "resolve_symbols",
    "results_exit_code",
    "run_async",
    "symbol_result_rows",
]
