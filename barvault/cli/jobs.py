"""Backfill job listing and resume command."""

from __future__ import annotations

from typing import Any

import typer

from barvault.core.exceptions import BarVaultError
from barvault.core.models import JobStatus

from . import utils as cli_utils
from .constants import SYSTEM_EXIT_CODE, VALIDATION_EXIT_CODE
from .utils import RESULT_COLUMNS, emit_error, prepare_output, symbol_result_rows

JOB_COLUMNS = [
    "id",
    "symbol",
    "start_date",
    "end_date",
    "status",
    "bars_loaded",
    "last_bar_time",
    "error_message",
]


def register(app: typer.Typer) -> None:
    """Register the ``jobs`` command on the provided application."""

    app.command("jobs")(jobs_command)


def jobs_command(
    ctx: typer.Context,
    status: str | None = typer.Option(None, "--status", help="Filter by status (pending, running, completed, failed)."),
    symbol: str | None = typer.Option(None, "--symbol", help="Filter by symbol."),
    resume: bool = typer.Option(False, "--resume", help="Re-run every pending, running or failed job."),
) -> None:
    """List backfill jobs, or resume the incomplete ones."""

    job_status: JobStatus | None = None
    if status is not None:
        try:
            job_status = JobStatus(status.strip().lower())
        except ValueError as exc:
            allowed = ", ".join(value.value for value in JobStatus)
            emit_error(f"Unsupported status '{status}'. Allowed values: {allowed}", "INVALID_STATUS")
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc

    config = cli_utils.load_cli_config(ctx)
    formatter, stream, stack, _ = prepare_output(ctx)

    async def _run() -> Any:
        async with cli_utils.get_pipeline(config) as pipeline:
            if resume:
                return await pipeline.orchestrator.resume_incomplete()
            return pipeline.tracker.list_jobs(job_status, symbol.strip().upper() if symbol else None)

    try:
        outcome = cli_utils.run_async(_run())
    except BarVaultError as error:
        stack.close()
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error

    try:
        if resume:
            formatter.render(symbol_result_rows(outcome), stream=stream, columns=RESULT_COLUMNS, title="Resumed jobs")
        else:
            rows = [{column: getattr(job, column) for column in JOB_COLUMNS} for job in outcome]
            formatter.render(rows, stream=stream, columns=JOB_COLUMNS, title="Backfill jobs")
    finally:
        stack.close()
    if resume:
        exit_code = cli_utils.results_exit_code(outcome)
        if exit_code:
            raise typer.Exit(code=exit_code)


__all__ = ["JOB_COLUMNS", "jobs_command", "register"]
