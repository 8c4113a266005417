"""Historical backfill command."""

from __future__ import annotations

from datetime import date
from typing import Any

import typer

from barvault.core.exceptions import BarVaultError

from . import utils as cli_utils
from .constants import SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .utils import RESULT_COLUMNS, emit_error, prepare_output, symbol_result_rows

COVERAGE_COLUMNS = ["symbol", "bars", "coverage_pct", "years_with_data", "missing_years"]


def register(app: typer.Typer) -> None:
    """Register the ``load`` command on the provided application."""

    app.command("load")(load_command)


def _resolve_range(start: date | None, end: date | None, year: int | None) -> tuple[date, date]:
    today = date.today()
    if year is not None:
        if start is not None or end is not None:
            emit_error("--year cannot be combined with --start-date/--end-date.", "INVALID_DATE_RANGE")
            raise typer.Exit(code=VALIDATION_EXIT_CODE)
        return date(year, 1, 1), min(date(year, 12, 31), today)
    if start is None:
        emit_error("Either --start-date or --year is required.", "INVALID_DATE_RANGE")
        raise typer.Exit(code=VALIDATION_EXIT_CODE)
    end = end or today
    if start > end:
        emit_error(
            "Start date must be on or before end date.",
            "INVALID_DATE_RANGE",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )
        raise typer.Exit(code=VALIDATION_EXIT_CODE)
    return start, end


def load_command(
    ctx: typer.Context,
    symbols: str | None = typer.Option(None, "--symbols", "-s", help="Comma separated symbols (default: configured)."),
    start_date: str | None = typer.Option(None, "--start-date", help="First date to load (YYYY-MM-DD)."),
    end_date: str | None = typer.Option(None, "--end-date", help="Last date to load (YYYY-MM-DD, default today)."),
    year: int | None = typer.Option(None, "--year", help="Load a single calendar year."),
    check_only: bool = typer.Option(False, "--check-only", help="Only report year coverage."),
) -> None:
    """Backfill minute bars for every year in range that has no stored data."""

    start, end = _resolve_range(
        cli_utils.parse_date_option(start_date, "start_date"),
        cli_utils.parse_date_option(end_date, "end_date"),
        year,
    )
    config = cli_utils.load_cli_config(ctx)
    selected = cli_utils.resolve_symbols(symbols, config)
    formatter, stream, stack, _ = prepare_output(ctx)

    async def _run() -> Any:
        async with cli_utils.get_pipeline(config) as pipeline:
            if check_only:
                return pipeline.orchestrator.check_coverage(selected, start, end)
            return await pipeline.orchestrator.backfill(selected, start, end)

    try:
        outcome = cli_utils.run_async(_run())
    except BarVaultError as error:
        stack.close()
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error

    try:
        if check_only:
            rows = [
                {
                    "symbol": symbol,
                    "bars": report.bars_count,
                    "coverage_pct": report.coverage_pct,
                    "years_with_data": ",".join(str(y) for y in report.years_with_data) or None,
                    "missing_years": ",".join(str(y) for y in report.missing_years) or None,
                }
                for symbol, report in outcome.items()
            ]
            formatter.render(rows, stream=stream, columns=COVERAGE_COLUMNS, title=f"Coverage {start} -> {end}")
            return
        formatter.render(
            symbol_result_rows(outcome), stream=stream, columns=RESULT_COLUMNS, title=f"Backfill {start} -> {end}"
        )
    finally:
        stack.close()
    exit_code = cli_utils.results_exit_code(outcome)
    if exit_code:
        raise typer.Exit(code=exit_code)


__all__ = ["COVERAGE_COLUMNS", "load_command", "register"]
