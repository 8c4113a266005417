"""Quality verification command."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import typer

from barvault.core.exceptions import BarVaultError
from barvault.core.services.quality import QualityRun, QualityStatus

from . import utils as cli_utils
from .constants import QUALITY_FAIL_EXIT_CODE, SYSTEM_EXIT_CODE
from .utils import emit_error, prepare_output

REPORT_COLUMNS = [
    "symbol",
    "status",
    "total_bars",
    "regular_bars",
    "expected_bars",
    "coverage_pct",
    "ohlc_violations",
    "duplicates",
    "gaps",
    "largest_gap_minutes",
]
ISSUE_COLUMNS = ["symbol", "issue"]
SUMMARY_COLUMNS = ["metric", "value"]


def register(app: typer.Typer) -> None:
    """Register the ``validate`` command on the provided application."""

    app.command("validate")(validate_command)


def validate_command(
    ctx: typer.Context,
    symbols: str | None = typer.Option(None, "--symbols", "-s", help="Comma separated symbols (default: configured)."),
    no_filter: bool = typer.Option(False, "--no-filter", help="Count every gap, not just in-session ones."),
    fix_gaps: bool = typer.Option(False, "--fix-gaps", help="Fill fillable gaps before verifying."),
) -> None:
    """Verify stored bars and exit with code 3 when any symbol fails."""

    config = cli_utils.load_cli_config(ctx)
    selected = cli_utils.resolve_symbols(symbols, config)
    formatter, stream, stack, _ = prepare_output(ctx)

    async def _run() -> QualityRun:
        async with cli_utils.get_pipeline(config) as pipeline:
            if fix_gaps:
                await pipeline.orchestrator.check_and_fill_gaps(selected)
            return pipeline.orchestrator.verify(selected, filter_market_hours=not no_filter)

    try:
        run = cli_utils.run_async(_run())
    except BarVaultError as error:
        stack.close()
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error

    try:
        formatter.render(_report_rows(run), stream=stream, columns=REPORT_COLUMNS, title="Quality")
        issues = _issue_rows(run)
        if issues:
            formatter.render(issues, stream=stream, columns=ISSUE_COLUMNS, title="Issues")
        formatter.render(_summary_rows(run), stream=stream, columns=SUMMARY_COLUMNS, title="Summary")
    finally:
        stack.close()

    if run.summary.overall_status is QualityStatus.FAIL:
        raise typer.Exit(code=QUALITY_FAIL_EXIT_CODE)


def _report_rows(run: QualityRun) -> list[Mapping[str, Any]]:
    return [
        {
            "symbol": symbol,
            "status": report.status.value,
            "total_bars": report.total_bars,
            "regular_bars": report.regular_session_bars,
            "expected_bars": report.expected_bars,
            "coverage_pct": report.coverage_pct,
            "ohlc_violations": report.ohlc_violation_count,
            "duplicates": report.duplicate_count,
            "gaps": report.gap_count,
            "largest_gap_minutes": report.largest_gap.missing_minutes if report.largest_gap else None,
        }
        for symbol, report in run.reports.items()
    ]


def _issue_rows(run: QualityRun) -> list[Mapping[str, Any]]:
    return [{"symbol": symbol, "issue": issue} for symbol, report in run.reports.items() for issue in report.issues]


def _summary_rows(run: QualityRun) -> list[Mapping[str, Any]]:
    summary = run.summary
    return [
        {"metric": "total_symbols", "value": summary.total_symbols},
        {"metric": "passed", "value": summary.passed},
        {"metric": "warned", "value": summary.warned},
        {"metric": "failed", "value": summary.failed},
        {"metric": "overall_status", "value": summary.overall_status.value},
    ]


__all__ = ["ISSUE_COLUMNS", "REPORT_COLUMNS", "SUMMARY_COLUMNS", "register", "validate_command"]
