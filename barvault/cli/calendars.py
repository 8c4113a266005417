"""Trading calendar maintenance commands."""

from __future__ import annotations

from datetime import date

import typer

from barvault.core.exceptions import BarVaultError

from . import utils as cli_utils
from .constants import SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .utils import emit_error, prepare_output

calendar_app = typer.Typer(help="Trading calendar operations.")


def register(app: typer.Typer) -> None:
    """Register calendar commands on the provided application."""

    app.add_typer(calendar_app, name="calendar", help="Maintain the stored trading calendar")


@calendar_app.command("sync")
def sync_command(
    ctx: typer.Context,
    start: str | None = typer.Option(None, "--start", help="First date (YYYY-MM-DD, default Jan 1 five years ago)."),
    end: str | None = typer.Option(None, "--end", help="Last date (YYYY-MM-DD, default Dec 31 this year)."),
) -> None:
    """Download trading days and session hours into the market calendar table."""

    today = date.today()
    start_date = cli_utils.parse_date_option(start, "start") or date(today.year - 5, 1, 1)
    end_date = cli_utils.parse_date_option(end, "end") or date(today.year, 12, 31)
    if start_date > end_date:
        emit_error("Start date must be on or before end date.", "INVALID_DATE_RANGE")
        raise typer.Exit(code=VALIDATION_EXIT_CODE)

    config = cli_utils.load_cli_config(ctx)
    formatter, stream, stack, _ = prepare_output(ctx)

    async def _run() -> int:
        async with cli_utils.get_pipeline(config) as pipeline:
            return await pipeline.calendar.sync(pipeline.client, start_date, end_date)

    try:
        written = cli_utils.run_async(_run())
    except BarVaultError as error:
        stack.close()
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error

    try:
        formatter.render(
            [{"start": start_date, "end": end_date, "trading_days": written}],
            stream=stream,
            columns=["start", "end", "trading_days"],
        )
    finally:
        stack.close()


__all__ = ["calendar_app", "register", "sync_command"]
