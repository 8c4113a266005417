"""Multi-symbol orchestration of backfill, gap repair and verification."""

from __future__ import annotations

import time as time_module
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, TypeVar

from barvault.core.exceptions import BarVaultError
from barvault.core.logging import logger
from barvault.core.models import ONE_MINUTE, FetchJob, Gap, JobStatus
from barvault.core.patterns import BoundedWorkerPool, SymbolFailure
from barvault.core.services.coverage import DEFAULT_MIN_DAY_COVERAGE_PCT, CoverageAnalyzer, CoverageReport
from barvault.core.services.gaps import GapFillOptions, GapFiller, ProgressCallback
from barvault.core.services.loader import BatchLoader
from barvault.core.services.quality import QualityRun, QualityVerifier, thresholds_from_config

if TYPE_CHECKING:
    from barvault.core.config import PipelineConfig
    from barvault.core.data.providers import FetchClient
    from barvault.core.data.storage import BarStore
    from barvault.core.monitoring import PipelineMetrics
    from barvault.core.patterns.retry import SleepFunc
    from barvault.core.services.calendars import MarketCalendar
    from barvault.core.services.jobs import JobTracker

T = TypeVar("T")

SymbolResults = dict[str, int | SymbolFailure]


def year_range(year: int, start_date: date, end_date: date) -> tuple[date, date]:
    """Clip ``start_date..end_date`` to calendar ``year``."""

    return max(start_date, date(year, 1, 1)), min(end_date, date(year, 12, 31))


class MarketDataOrchestrator:
    """Entry points for schedulers and the CLI.

    Every multi-symbol call fans out through one :class:`BoundedWorkerPool`,
    so backfill and gap filling running at the same time share a single
    concurrency bound. A failing symbol shows up as a :class:`SymbolFailure`
    in the result map and never aborts the run.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        store: BarStore,
        client: FetchClient,
        tracker: JobTracker,
        calendar: MarketCalendar | None = None,
        metrics: PipelineMetrics | None = None,
        sleep: SleepFunc | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.client = client
        self.tracker = tracker
        self.calendar = calendar
        self.metrics = metrics
        self._clock = clock or (lambda: datetime.now(UTC))
        self.pool = BoundedWorkerPool(config.max_concurrency)
        self.coverage = CoverageAnalyzer(store, calendar)
        self.loader = BatchLoader.from_config(
            config, client, store, tracker, metrics=metrics, sleep=sleep, clock=self._clock
        )
        self.gap_filler = GapFiller(store, self.loader, calendar, clock=self._clock)
        self.verifier = QualityVerifier(
            store,
            calendar,
            thresholds=thresholds_from_config(config.thresholds),
            gap_lookback_days=config.verify_gap_lookback_days,
        )

    def _symbols(self, symbols: Iterable[str] | None) -> list[str]:
        return list(symbols) if symbols is not None else list(self.config.symbols)

    def _on_failure(self, operation: str) -> Callable[[str, BaseException], None]:
        def _record(symbol: str, exc: BaseException) -> None:
            if self.metrics is not None:
                self.metrics.record_failure(operation)

        return _record

    async def _fan_out(
        self,
        operation: str,
        symbols: Sequence[str],
        worker: Callable[[str], Awaitable[T]],
        timeout: float | None,
    ) -> dict[str, T | SymbolFailure]:
        async def _timed(symbol: str) -> T:
            started = time_module.perf_counter()
            try:
                return await worker(symbol)
            finally:
                if self.metrics is not None:
                    self.metrics.observe_symbol(operation, time_module.perf_counter() - started)

        results = await self.pool.run(
            symbols, _timed, operation=operation, timeout=timeout, on_failure=self._on_failure(operation)
        )
        failures = sum(isinstance(value, SymbolFailure) for value in results.values())
        logger.info("[Orchestrator] {} finished for {} symbols ({} failed)", operation, len(results), failures)
        return results

    def check_coverage(
        self, symbols: Iterable[str] | None, start_date: date, end_date: date
    ) -> dict[str, CoverageReport]:
        return {
            symbol: self.coverage.check_coverage(symbol, start_date, end_date)
            for symbol in self._symbols(symbols)
        }

    async def backfill(self, symbols: Iterable[str] | None, start_date: date, end_date: date) -> SymbolResults:
        """Load every year of ``start_date..end_date`` that has no stored bars.

        Years already holding data, and jobs already completed, are skipped,
        so a repeated call loads nothing. A failed year does not stop the later
        ones; the symbol is then reported as a failure carrying the bars loaded.
        """

        async def _backfill_symbol(symbol: str) -> int:
            report = self.coverage.check_coverage(symbol, start_date, end_date)
            if report.is_complete:
                logger.info("[Orchestrator] {}: all {} years already covered", symbol, report.total_years)
                return 0
            total = 0
            first_error: BarVaultError | None = None
            for year in report.missing_years:
                job = self.tracker.start_or_resume(symbol, *year_range(year, start_date, end_date))
                if job.status is JobStatus.COMPLETED:
                    continue
                try:
                    result = await self.loader.run_job(job)
                except BarVaultError as exc:
                    # The job is failed with its checkpoint; the remaining years still load.
                    logger.error("[Orchestrator] {}: year {} failed: {}", symbol, year, exc.message)
                    total += int(exc.details.get("bars_loaded", 0))
                    first_error = first_error or exc
                    continue
                total += result.bars_loaded
            if first_error is not None:
                first_error.details["bars_loaded"] = total
                raise first_error
            return total

        return await self._fan_out(
            "backfill", self._symbols(symbols), _backfill_symbol, self.config.backfill_timeout_seconds
        )

    async def check_gaps(
        self, symbols: Iterable[str] | None = None, options: GapFillOptions | None = None
    ) -> dict[str, list[Gap] | SymbolFailure]:
        options = options or self.default_gap_options()

        async def _check(symbol: str) -> list[Gap]:
            return self.gap_filler.fillable_gaps(symbol, options)

        return await self._fan_out("gap_check", self._symbols(symbols), _check, self.config.gap_timeout_seconds)

    async def check_and_fill_gaps(
        self, symbols: Iterable[str] | None = None, options: GapFillOptions | None = None
    ) -> SymbolResults:
        options = options or self.default_gap_options()

        async def _fill(symbol: str) -> int:
            return await self.gap_filler.check_and_fill(symbol, options)

        return await self._fan_out("gap_fill", self._symbols(symbols), _fill, self.config.gap_timeout_seconds)

    def verify(self, symbols: Iterable[str] | None = None, filter_market_hours: bool = True) -> QualityRun:
        return self.verifier.verify(self._symbols(symbols), filter_market_hours)

    async def resume_incomplete(self) -> SymbolResults:
        """Re-run every pending, running or failed job, sequentially within a symbol."""

        jobs_by_symbol: dict[str, list[FetchJob]] = defaultdict(list)
        for job in self.tracker.list_incomplete():
            jobs_by_symbol[job.symbol].append(job)
        if not jobs_by_symbol:
            logger.info("[Orchestrator] no incomplete jobs to resume")
            return {}

        async def _resume(symbol: str) -> int:
            total = 0
            for job in sorted(jobs_by_symbol[symbol], key=lambda item: item.start_date):
                result = await self.loader.run_job(job)
                total += result.bars_loaded
            return total

        return await self._fan_out("resume", list(jobs_by_symbol), _resume, self.config.backfill_timeout_seconds)

    async def catch_up(self, symbols: Iterable[str] | None = None) -> SymbolResults:
        """Load from each symbol's latest stored bar up to now; symbols without data load nothing."""

        async def _catch_up(symbol: str) -> int:
            last = self.store.last_bar_time(symbol)
            if last is None:
                logger.info("[Orchestrator] {}: no stored bars, skipping catch-up", symbol)
                return 0
            result = await self.loader.load(symbol, last + ONE_MINUTE, self._clock())
            return result.bars_loaded

        return await self._fan_out(
            "catch_up", self._symbols(symbols), _catch_up, self.config.backfill_timeout_seconds
        )

    async def fill_incomplete_days(
        self,
        symbols: Iterable[str] | None,
        start_date: date,
        end_date: date,
        min_coverage_pct: float = DEFAULT_MIN_DAY_COVERAGE_PCT,
        progress: ProgressCallback | None = None,
    ) -> SymbolResults:
        async def _fill_days(symbol: str) -> int:
            days = self.coverage.find_incomplete_days(symbol, start_date, end_date, min_coverage_pct)
            if not days:
                return 0
            logger.info("[Orchestrator] {}: {} incomplete days to refill", symbol, len(days))
            return await self.gap_filler.fill_days(symbol, days, progress)

        return await self._fan_out(
            "day_fill", self._symbols(symbols), _fill_days, self.config.backfill_timeout_seconds
        )

    def default_gap_options(self) -> GapFillOptions:
        return GapFillOptions(
            lookback_hours=self.config.gap_lookback_hours,
            max_gap_minutes=self.config.max_gap_minutes,
        )


__all__ = ["MarketDataOrchestrator", "SymbolResults", "year_range"]
