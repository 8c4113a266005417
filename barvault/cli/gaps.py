"""Gap check and repair command."""

from __future__ import annotations

from typing import Any

import typer

from barvault.core.exceptions import BarVaultError
from barvault.core.patterns import SymbolFailure
from barvault.core.services.gaps import GapFillOptions

from . import utils as cli_utils
from .constants import SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .utils import RESULT_COLUMNS, emit_error, prepare_output, symbol_result_rows

GAP_COLUMNS = ["symbol", "start", "end", "missing_minutes", "error"]


def register(app: typer.Typer) -> None:
    """Register the ``gaps`` command on the provided application."""

    app.command("gaps")(gaps_command)


def gaps_command(
    ctx: typer.Context,
    symbols: str | None = typer.Option(None, "--symbols", "-s", help="Comma separated symbols (default: configured)."),
    max_gap: int | None = typer.Option(None, "--max-gap", help="Largest gap in minutes treated as fillable."),
    lookback_hours: int | None = typer.Option(None, "--lookback-hours", help="How far back to scan for gaps."),
    check_only: bool = typer.Option(False, "--check-only", help="List fillable gaps without fetching."),
    market_hours: bool = typer.Option(
        False, "--market-hours", help="Keep only gaps inside one regular trading session."
    ),
) -> None:
    """Detect gaps in recent bars and refetch the fillable ones."""

    if max_gap is not None and max_gap <= 1:
        emit_error("--max-gap must be greater than 1.", "INVALID_MAX_GAP", details={"max_gap": max_gap})
        raise typer.Exit(code=VALIDATION_EXIT_CODE)
    if lookback_hours is not None and lookback_hours <= 0:
        emit_error("--lookback-hours must be positive.", "INVALID_LOOKBACK", details={"lookback_hours": lookback_hours})
        raise typer.Exit(code=VALIDATION_EXIT_CODE)

    config = cli_utils.load_cli_config(ctx)
    selected = cli_utils.resolve_symbols(symbols, config)
    options = GapFillOptions(
        lookback_hours=lookback_hours or config.pipeline.gap_lookback_hours,
        max_gap_minutes=max_gap or config.pipeline.max_gap_minutes,
        filter_market_hours=market_hours,
    )
    formatter, stream, stack, _ = prepare_output(ctx)

    async def _run() -> Any:
        async with cli_utils.get_pipeline(config) as pipeline:
            if check_only:
                return await pipeline.orchestrator.check_gaps(selected, options)
            return await pipeline.orchestrator.check_and_fill_gaps(selected, options)

    try:
        outcome = cli_utils.run_async(_run())
    except BarVaultError as error:
        stack.close()
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error

    try:
        if check_only:
            formatter.render(_gap_rows(outcome), stream=stream, columns=GAP_COLUMNS, title="Fillable gaps")
        else:
            formatter.render(symbol_result_rows(outcome), stream=stream, columns=RESULT_COLUMNS, title="Gap fill")
    finally:
        stack.close()
    exit_code = cli_utils.results_exit_code(outcome)
    if exit_code:
        raise typer.Exit(code=exit_code)


def _gap_rows(outcome: dict[str, Any]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for symbol, gaps in outcome.items():
        if isinstance(gaps, SymbolFailure):
            rows.append({"symbol": symbol, "error": gaps.error})
            continue
        for gap in gaps:
            rows.append(
                {
                    "symbol": symbol,
                    "start": gap.start,
                    "end": gap.end,
                    "missing_minutes": gap.missing_minutes,
                    "error": None,
                }
            )
    return rows


__all__ = ["GAP_COLUMNS", "gaps_command", "register"]
