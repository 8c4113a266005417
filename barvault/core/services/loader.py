"""Batch loader: chunked fetch, validation and idempotent persistence of bars."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from barvault.core.data.ingestion import validate_raw_bars
from barvault.core.exceptions import BarVaultError, FetchRetryExhaustedError
from barvault.core.logging import logger
from barvault.core.models import Bar, FetchJob, RawBar, ensure_utc
from barvault.core.models.bars import floor_minute
from barvault.core.patterns import FixedDelayRetry, RetryConfig
from barvault.core.patterns.retry import SleepFunc

if TYPE_CHECKING:
    from barvault.core.config import PipelineConfig
    from barvault.core.data.providers import FetchClient
    from barvault.core.data.storage import BarStore
    from barvault.core.monitoring import PipelineMetrics
    from barvault.core.services.jobs import JobTracker

DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 5.0
DEFAULT_MAX_WINDOW_DAYS = 30


@dataclass(frozen=True)
class LoadResult:
    """Outcome of one :meth:`BatchLoader.load` call."""

    bars_loaded: int = 0
    bars_rejected: int = 0
    windows_fetched: int = 0
    last_bar_time: datetime | None = None
    job: FetchJob | None = None


def split_windows(start: datetime, end: datetime, max_days: int) -> list[tuple[datetime, datetime]]:
    """Cut ``[start, end)`` into consecutive windows of at most ``max_days``."""

    if start >= end:
        return []
    step = timedelta(days=max_days)
    windows: list[tuple[datetime, datetime]] = []
    current = start
    while current < end:
        window_end = min(current + step, end)
        windows.append((current, window_end))
        current = window_end
    return windows


def _batches(bars: Sequence[Bar], size: int) -> Iterator[Sequence[Bar]]:
    for offset in range(0, len(bars), size):
        yield bars[offset : offset + size]


def job_window(job: FetchJob, now: datetime) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` covered by ``job``'s dates, capped at ``now``."""

    start = datetime.combine(job.start_date, time(0, 0), tzinfo=UTC)
    end = datetime.combine(job.end_date + timedelta(days=1), time(0, 0), tzinfo=UTC)
    return start, min(end, floor_minute(now))


class BatchLoader:
    """Fetches one symbol's bars window by window and upserts them in batches.

    Work for a single symbol is strictly sequential so a job checkpoint only
    ever advances. Every fetch error is treated as retriable.
    """

    def __init__(
        self,
        client: FetchClient,
        store: BarStore,
        tracker: JobTracker | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_window_days: int = DEFAULT_MAX_WINDOW_DAYS,
        metrics: PipelineMetrics | None = None,
        sleep: SleepFunc | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.tracker = tracker
        self.batch_size = batch_size
        self.max_window_days = max_window_days
        self.metrics = metrics
        self._retry_config = RetryConfig(
            max_attempts=max_retries,
            delay=retry_delay,
            provider=getattr(client, "name", "upstream"),
            retry_on_exceptions=(Exception,),
        )
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        client: FetchClient,
        store: BarStore,
        tracker: JobTracker | None = None,
        **kwargs: Any,
    ) -> BatchLoader:
        return cls(
            client,
            store,
            tracker,
            batch_size=config.batch_size,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay_seconds,
            max_window_days=config.max_window_days,
            **kwargs,
        )

    def now(self) -> datetime:
        return self._clock()

    async def load(self, symbol: str, start: datetime, end: datetime, job: FetchJob | None = None) -> LoadResult:
        """Fetch and persist ``symbol`` bars for ``[start, end)``.

        With a ``job`` the effective start is one minute past its checkpoint and
        progress is recorded after every persisted batch.
        """

        start = floor_minute(start)
        end = floor_minute(end)
        if job is not None:
            start = job.resume_from(start)
        if start >= end:
            return LoadResult(job=job)

        cumulative = job.bars_loaded if job is not None else 0
        loaded = 0
        rejected = 0
        windows = 0
        last_bar_time: datetime | None = None

        for window_start, window_end in split_windows(start, end, self.max_window_days):
            try:
                records = await self._fetch_with_retry(symbol, window_start, window_end)
            except FetchRetryExhaustedError as exc:
                exc.details["bars_loaded"] = loaded
                if job is not None and self.tracker is not None:
                    job = self.tracker.fail(job, exc.message)
                logger.error("[BatchLoader] {}: giving up on {} -> {}: {}", symbol, window_start, window_end, exc)
                raise
            windows += 1

            bars, issues = validate_raw_bars(symbol, records)
            if issues:
                rejected += len({issue.index for issue in issues})
                logger.warning(
                    "[BatchLoader] {}: rejected {} malformed bars ({})",
                    symbol,
                    len({issue.index for issue in issues}),
                    "; ".join(str(issue) for issue in issues[:3]),
                )
            if not bars:
                logger.debug("[BatchLoader] {}: no bars for {} -> {}", symbol, window_start, window_end)
                continue

            bars.sort(key=lambda bar: bar.timestamp)
            for batch in _batches(bars, self.batch_size):
                written = self.store.upsert_batch(batch)
                loaded += written
                cumulative += written
                last_bar_time = batch[-1].timestamp
                if self.metrics is not None:
                    self.metrics.record_written(written)
                if job is not None and self.tracker is not None:
                    job = self.tracker.record_progress(job, last_bar_time, cumulative)

        if self.metrics is not None:
            self.metrics.record_rejected(rejected)
        logger.info(
            "[BatchLoader] {}: loaded {} bars ({} rejected) over {} windows", symbol, loaded, rejected, windows
        )
        return LoadResult(
            bars_loaded=loaded,
            bars_rejected=rejected,
            windows_fetched=windows,
            last_bar_time=last_bar_time,
            job=job,
        )

    async def run_job(self, job: FetchJob) -> LoadResult:
        """Drive ``job`` through running to completed (or failed) and return the load result.

        Any exit other than success, including cancellation by a timeout, marks
        the job failed with its checkpoint intact before the error propagates.
        """

        if self.tracker is None:
            raise ValueError("run_job requires a job tracker")

        start, end = job_window(job, self.now())
        job = self.tracker.mark_running(job)
        prior = job.bars_loaded
        try:
            result = await self.load(job.symbol, start, end, job=job)
        except FetchRetryExhaustedError:
            raise
        except BaseException as exc:
            if isinstance(exc, asyncio.CancelledError):
                reason = "cancelled"
            elif isinstance(exc, BarVaultError):
                reason = exc.message
            else:
                reason = str(exc) or type(exc).__name__
            self.tracker.fail(job, reason)
            logger.error("[BatchLoader] {}: job {} failed: {}", job.symbol, job.id, reason)
            raise
        completed = self.tracker.complete(result.job or job, prior + result.bars_loaded)
        return LoadResult(
            bars_loaded=result.bars_loaded,
            bars_rejected=result.bars_rejected,
            windows_fetched=result.windows_fetched,
            last_bar_time=result.last_bar_time,
            job=completed,
        )

    async def _fetch_with_retry(self, symbol: str, start: datetime, end: datetime) -> list[RawBar]:
        retry = FixedDelayRetry(self._retry_config, sleep=self._sleep)
        try:
            return await retry.execute(self._fetch_once, symbol, start, end)
        except FetchRetryExhaustedError:
            if self.metrics is not None:
                self.metrics.record_fetch("exhausted")
            raise

    async def _fetch_once(self, symbol: str, start: datetime, end: datetime) -> list[RawBar]:
        try:
            response = await self.client.get_bars([symbol], start, end)
        except Exception:
            if self.metrics is not None:
                self.metrics.record_fetch("retry")
            raise
        if self.metrics is not None:
            self.metrics.record_fetch("success")
        records = list(response.get(symbol) or [])
        # Providers may treat ``end`` as inclusive; the window is [start, end).
        # Records without a timestamp are left for the validator to reject.
        in_window = [
            record for record in records if record.timestamp is None or start <= ensure_utc(record.timestamp) < end
        ]
        if len(in_window) != len(records):
            logger.debug(
                "[BatchLoader] {}: dropped {} bars outside {} -> {}", symbol, len(records) - len(in_window), start, end
            )
        return in_window


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_MAX_WINDOW_DAYS",
    "DEFAULT_RETRY_DELAY",
    "BatchLoader",
    "LoadResult",
    "job_window",
    "split_windows",
]
