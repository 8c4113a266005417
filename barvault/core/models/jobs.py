"""Durable backfill job checkpoint records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from barvault.core.models.bars import ONE_MINUTE


class JobStatus(str, Enum):
    """Lifecycle states of a :class:`FetchJob`."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


INCOMPLETE_STATUSES = (JobStatus.PENDING, JobStatus.RUNNING, JobStatus.FAILED)


@dataclass(slots=True, frozen=True)
class FetchJob:
    """Checkpoint for one ``(symbol, start_date, end_date)`` backfill request."""

    id: str
    symbol: str
    start_date: date
    end_date: date
    status: JobStatus = JobStatus.PENDING
    bars_loaded: int = 0
    last_bar_time: datetime | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    inserted_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def identity(self) -> tuple[str, date, date]:
        return (self.symbol, self.start_date, self.end_date)

    @property
    def is_incomplete(self) -> bool:
        return self.status in INCOMPLETE_STATUSES

    def resume_from(self, window_start: datetime) -> datetime:
        """First minute still to fetch: one past the checkpoint, never before ``window_start``."""

        if self.last_bar_time is None:
            return window_start
        return max(window_start, self.last_bar_time + ONE_MINUTE)


__all__ = ["INCOMPLETE_STATUSES", "FetchJob", "JobStatus"]
