"""Tests for bar, gap and job records."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from barvault.core.models import Bar, FetchJob, Gap, JobStatus, MarketSession, RawBar, classify_session


def _utc(hour: int, minute: int, day: int = 5) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=UTC)


@pytest.mark.parametrize(
    ("timestamp", "expected"),
    [
        (_utc(9, 0), MarketSession.PRE_MARKET),  # 04:00 ET
        (_utc(14, 29), MarketSession.PRE_MARKET),  # 09:29 ET
        (_utc(14, 30), MarketSession.REGULAR),  # 09:30 ET
        (_utc(20, 59), MarketSession.REGULAR),  # 15:59 ET
        (_utc(21, 0), MarketSession.AFTER_HOURS),  # 16:00 ET
        (_utc(8, 59), MarketSession.AFTER_HOURS),  # 03:59 ET
    ],
)
def test_classify_session_uses_exchange_time(timestamp: datetime, expected: MarketSession) -> None:
    assert classify_session(timestamp) is expected


def test_classify_session_follows_daylight_saving() -> None:
    # 2024-07-01 is EDT, so 13:30 UTC is the regular open.
    assert classify_session(datetime(2024, 7, 1, 13, 30, tzinfo=UTC)) is MarketSession.REGULAR
    assert classify_session(datetime(2024, 7, 1, 13, 29, tzinfo=UTC)) is MarketSession.PRE_MARKET


def test_bar_derives_session_and_trade_date() -> None:
    bar = Bar(
        symbol="AAPL",
        timestamp=datetime(2024, 3, 6, 1, 30, 42, tzinfo=UTC),
        open=Decimal("100"),
        high=Decimal("101"),
        low=Decimal("99"),
        close=Decimal("100.5"),
        volume=10,
    )

    assert bar.timestamp == datetime(2024, 3, 6, 1, 30, tzinfo=UTC)
    # 20:30 ET on the 5th.
    assert bar.trade_date == date(2024, 3, 5)
    assert bar.session is MarketSession.AFTER_HOURS
    assert bar.key == ("AAPL", datetime(2024, 3, 6, 1, 30, tzinfo=UTC))


def test_bar_normalizes_offset_timestamps_to_utc() -> None:
    eastern = timezone(timedelta(hours=-5))
    bar = Bar("AAPL", datetime(2024, 3, 5, 9, 30, tzinfo=eastern), Decimal(1), Decimal(1), Decimal(1), Decimal(1), 1)

    assert bar.timestamp == _utc(14, 30)
    assert bar.timestamp.tzinfo is UTC
    assert bar.session is MarketSession.REGULAR


def test_from_raw_converts_floats_to_decimal() -> None:
    raw = RawBar(timestamp=_utc(15, 0), open=100.1, high=101.2, low=99.3, close=100.4, volume=7, vwap=100.2)

    bar = Bar.from_raw("MSFT", raw)

    assert bar.open == Decimal("100.1")
    assert bar.vwap == Decimal("100.2")
    assert bar.trade_count is None


@pytest.mark.parametrize(("minutes", "missing"), [(1, 0), (2, 1), (4, 3), (60, 59)])
def test_gap_missing_minutes(minutes: int, missing: int) -> None:
    start = _utc(15, 0)
    gap = Gap(start=start, end=start + timedelta(minutes=minutes))

    assert gap.span_minutes == minutes
    assert gap.missing_minutes == missing


def test_job_resume_from_checkpoint() -> None:
    window_start = _utc(0, 0)
    job = FetchJob(id="j1", symbol="AAPL", start_date=date(2024, 3, 5), end_date=date(2024, 3, 5))

    assert job.resume_from(window_start) == window_start
    assert job.is_incomplete

    checkpointed = FetchJob(
        id="j1",
        symbol="AAPL",
        start_date=date(2024, 3, 5),
        end_date=date(2024, 3, 5),
        status=JobStatus.FAILED,
        last_bar_time=_utc(10, 30),
    )
    assert checkpointed.resume_from(window_start) == _utc(10, 31)
    assert checkpointed.identity == ("AAPL", date(2024, 3, 5), date(2024, 3, 5))


def test_completed_job_is_not_incomplete() -> None:
    job = FetchJob("j2", "AAPL", date(2024, 1, 1), date(2024, 12, 31), status=JobStatus.COMPLETED)

    assert not job.is_incomplete
