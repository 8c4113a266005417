"""Tests for durable backfill job checkpoints."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import duckdb
import pytest

from barvault.core.exceptions import JobStateError
from barvault.core.models import JobStatus
from barvault.core.services.jobs import JobTracker

START = date(2024, 1, 1)
END = date(2024, 12, 31)
CHECKPOINT = datetime(2024, 3, 5, 15, 30, tzinfo=UTC)


def _fixed_clock() -> datetime:
    return datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def tracker(duckdb_connection: duckdb.DuckDBPyConnection) -> JobTracker:
    return JobTracker(duckdb_connection, clock=_fixed_clock)


def test_start_or_resume_creates_then_returns_same_job(tracker: JobTracker) -> None:
    job = tracker.start_or_resume("AAPL", START, END)

    assert job.status is JobStatus.PENDING
    assert job.bars_loaded == 0
    assert job.last_bar_time is None
    assert job.inserted_at == _fixed_clock()
    assert len(job.id) == 32

    again = tracker.start_or_resume("AAPL", START, END)
    assert again.id == job.id
    assert len(tracker.list_jobs()) == 1


def test_start_or_resume_rejects_reversed_range(tracker: JobTracker) -> None:
    with pytest.raises(JobStateError):
        tracker.start_or_resume("AAPL", END, START)


def test_running_progress_and_completion(tracker: JobTracker) -> None:
    job = tracker.mark_running(tracker.start_or_resume("AAPL", START, END))
    assert job.status is JobStatus.RUNNING
    assert job.started_at == _fixed_clock()

    job = tracker.record_progress(job, CHECKPOINT, 1000)
    assert job.last_bar_time == CHECKPOINT
    assert job.bars_loaded == 1000

    job = tracker.complete(job, 1500)
    assert job.status is JobStatus.COMPLETED
    assert job.bars_loaded == 1500
    assert job.completed_at == _fixed_clock()
    assert not job.is_incomplete


def test_checkpoint_never_moves_backward(tracker: JobTracker) -> None:
    job = tracker.start_or_resume("AAPL", START, END)
    tracker.record_progress(job, CHECKPOINT, 1000)

    job = tracker.record_progress(job, CHECKPOINT - timedelta(hours=1), 400)

    assert job.last_bar_time == CHECKPOINT
    assert job.bars_loaded == 1000

    repeated = tracker.record_progress(job, CHECKPOINT, 1000)
    assert repeated.last_bar_time == CHECKPOINT
    assert repeated.bars_loaded == 1000


def test_fail_preserves_checkpoint_and_resume_clears_error(tracker: JobTracker) -> None:
    job = tracker.mark_running(tracker.start_or_resume("AAPL", START, END))
    tracker.record_progress(job, CHECKPOINT, 600)

    failed = tracker.fail(job, "upstream unavailable")

    assert failed.status is JobStatus.FAILED
    assert failed.error_message == "upstream unavailable"
    assert failed.last_bar_time == CHECKPOINT
    assert tracker.resume_from(failed, datetime(2024, 1, 1, tzinfo=UTC)) == CHECKPOINT + timedelta(minutes=1)

    resumed = tracker.mark_running(tracker.start_or_resume("AAPL", START, END))
    assert resumed.status is JobStatus.RUNNING
    assert resumed.error_message is None
    assert resumed.last_bar_time == CHECKPOINT


def test_list_incomplete_and_filters(tracker: JobTracker) -> None:
    done = tracker.start_or_resume("AAPL", date(2023, 1, 1), date(2023, 12, 31))
    tracker.complete(done, 10)
    tracker.start_or_resume("MSFT", START, END)
    tracker.fail(tracker.start_or_resume("AAPL", START, END), "boom")

    incomplete = tracker.list_incomplete()

    assert [(job.symbol, job.start_date) for job in incomplete] == [("AAPL", START), ("MSFT", START)]
    assert [job.symbol for job in tracker.list_jobs(status=JobStatus.COMPLETED)] == ["AAPL"]
    assert len(tracker.list_jobs(symbol="AAPL")) == 2
    assert tracker.list_jobs(status=JobStatus.RUNNING, symbol="MSFT") == []


def test_unknown_job(tracker: JobTracker) -> None:
    assert tracker.get("missing") is None
