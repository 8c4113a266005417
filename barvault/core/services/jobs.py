"""Durable checkpoints for resumable historical backfills."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from barvault.core.data.schema import FETCH_JOBS_TABLE
from barvault.core.data.storage.bar_store import from_db_timestamp, to_db_timestamp
from barvault.core.exceptions import JobStateError
from barvault.core.logging import logger
from barvault.core.models import INCOMPLETE_STATUSES, FetchJob, JobStatus

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_SELECT = (
    "SELECT id, symbol, start_date, end_date, status, bars_loaded, last_bar_time, error_message, "
    f"started_at, completed_at, inserted_at, updated_at FROM {FETCH_JOBS_TABLE.name}"
)


def _job_from_row(row: tuple[Any, ...]) -> FetchJob:
    (
        job_id,
        symbol,
        start_date,
        end_date,
        status,
        bars_loaded,
        last_bar_time,
        error_message,
        started_at,
        completed_at,
        inserted_at,
        updated_at,
    ) = row
    return FetchJob(
        id=job_id,
        symbol=symbol,
        start_date=start_date,
        end_date=end_date,
        status=JobStatus(status),
        bars_loaded=int(bars_loaded),
        last_bar_time=from_db_timestamp(last_bar_time),
        error_message=error_message,
        started_at=from_db_timestamp(started_at),
        completed_at=from_db_timestamp(completed_at),
        inserted_at=from_db_timestamp(inserted_at),
        updated_at=from_db_timestamp(updated_at),
    )


class JobTracker:
    """Persists :class:`FetchJob` records in ``historical_fetch_jobs``.

    Each ``(symbol, start_date, end_date)`` has at most one job. Updates return
    the refreshed record; ``last_bar_time`` never moves backward.
    """

    def __init__(
        self,
        conn: DuckDBPyConnection,
        *,
        clock: Callable[[], datetime] | None = None,
        ensure_table: bool = True,
    ) -> None:
        self.conn = conn
        self._clock = clock or (lambda: datetime.now(UTC))
        if ensure_table:
            FETCH_JOBS_TABLE.ensure(conn)

    def _now(self) -> datetime:
        return to_db_timestamp(self._clock())

    def start_or_resume(self, symbol: str, start_date: date, end_date: date) -> FetchJob:
        """Return the job for this range unchanged, creating a pending one if absent."""

        if start_date > end_date:
            raise JobStateError(f"start_date {start_date} is after end_date {end_date}")

        existing = self._find(symbol, start_date, end_date)
        if existing is not None:
            logger.info(
                "[JobTracker] {}: resuming job {} ({}, last bar {})",
                symbol,
                existing.id,
                existing.status.value,
                existing.last_bar_time,
            )
            return existing

        now = self._now()
        job_id = uuid4().hex
        self.conn.execute(
            f"INSERT INTO {FETCH_JOBS_TABLE.name} "
            "(id, symbol, start_date, end_date, status, bars_loaded, inserted_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, 0, ?, ?)",
            [job_id, symbol, start_date, end_date, JobStatus.PENDING.value, now, now],
        )
        logger.info("[JobTracker] {}: created job {} for {}..{}", symbol, job_id, start_date, end_date)
        return self._require(job_id)

    def mark_running(self, job: FetchJob) -> FetchJob:
        now = self._now()
        self.conn.execute(
            f"UPDATE {FETCH_JOBS_TABLE.name} SET status = ?, error_message = NULL, "
            "started_at = COALESCE(started_at, ?), updated_at = ? WHERE id = ?",
            [JobStatus.RUNNING.value, now, now, job.id],
        )
        return self._require(job.id)

    def record_progress(self, job: FetchJob, last_bar_time: datetime, bars_loaded: int) -> FetchJob:
        """Checkpoint after a persisted batch; safe to repeat with the same values."""

        checkpoint = to_db_timestamp(last_bar_time)
        self.conn.execute(
            f"UPDATE {FETCH_JOBS_TABLE.name} SET "
            "last_bar_time = CASE WHEN last_bar_time IS NULL OR last_bar_time < ? THEN ? ELSE last_bar_time END, "
            "bars_loaded = GREATEST(bars_loaded, ?), updated_at = ? WHERE id = ?",
            [checkpoint, checkpoint, bars_loaded, self._now(), job.id],
        )
        return self._require(job.id)

    def complete(self, job: FetchJob, total_bars: int) -> FetchJob:
        now = self._now()
        self.conn.execute(
            f"UPDATE {FETCH_JOBS_TABLE.name} SET status = ?, bars_loaded = ?, error_message = NULL, "
            "completed_at = ?, updated_at = ? WHERE id = ?",
            [JobStatus.COMPLETED.value, total_bars, now, now, job.id],
        )
        logger.info("[JobTracker] {}: job {} completed with {} bars", job.symbol, job.id, total_bars)
        return self._require(job.id)

    def fail(self, job: FetchJob, error_message: str) -> FetchJob:
        """Mark the job failed; ``last_bar_time`` is left as is so a retry resumes."""

        self.conn.execute(
            f"UPDATE {FETCH_JOBS_TABLE.name} SET status = ?, error_message = ?, updated_at = ? WHERE id = ?",
            [JobStatus.FAILED.value, error_message, self._now(), job.id],
        )
        logger.warning("[JobTracker] {}: job {} failed: {}", job.symbol, job.id, error_message)
        return self._require(job.id)

    def get(self, job_id: str) -> FetchJob | None:
        row = self.conn.execute(f"{_SELECT} WHERE id = ?", [job_id]).fetchone()
        return _job_from_row(row) if row else None

    def list_jobs(self, status: JobStatus | None = None, symbol: str | None = None) -> list[FetchJob]:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if symbol is not None:
            clauses.append("symbol = ?")
            params.append(symbol)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(f"{_SELECT}{where} ORDER BY symbol, start_date", params).fetchall()
        return [_job_from_row(row) for row in rows]

    def list_incomplete(self) -> list[FetchJob]:
        placeholders = ", ".join("?" for _ in INCOMPLETE_STATUSES)
        rows = self.conn.execute(
            f"{_SELECT} WHERE status IN ({placeholders}) ORDER BY symbol, start_date",
            [status.value for status in INCOMPLETE_STATUSES],
        ).fetchall()
        return [_job_from_row(row) for row in rows]

    @staticmethod
    def resume_from(job: FetchJob, window_start: datetime) -> datetime:
        return job.resume_from(window_start)

    def _find(self, symbol: str, start_date: date, end_date: date) -> FetchJob | None:
        row = self.conn.execute(
            f"{_SELECT} WHERE symbol = ? AND start_date = ? AND end_date = ?",
            [symbol, start_date, end_date],
        ).fetchone()
        return _job_from_row(row) if row else None

    def _require(self, job_id: str) -> FetchJob:
        job = self.get(job_id)
        if job is None:
            raise JobStateError(f"Unknown fetch job {job_id}", job_id=job_id)
        return job


__all__ = ["JobTracker"]
