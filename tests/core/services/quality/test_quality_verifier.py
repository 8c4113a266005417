"""Tests for the quality verifier."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import duckdb
import pytest

from barvault.core.data.storage import DuckDBBarStore
from barvault.core.models import Bar
from barvault.core.services.calendars import DuckDBMarketCalendar, StaticMarketCalendar
from barvault.core.services.quality import QualityStatus, QualityVerifier


def _session(day: date, minutes: int) -> list[datetime]:
    # 14:30 UTC is the regular open before the March DST switch.
    open_ = datetime(day.year, day.month, day.day, 14, 30, tzinfo=UTC)
    return [open_ + timedelta(minutes=offset) for offset in range(minutes)]


@pytest.fixture()
def three_day_store(bar_store: DuckDBBarStore, bar_factory) -> DuckDBBarStore:
    stamps = _session(date(2024, 3, 5), 390) + _session(date(2024, 3, 6), 390) + _session(date(2024, 3, 7), 220)
    bar_store.upsert_batch(bar_factory("AAPL", stamps))
    return bar_store


def _violations(count: int) -> list[Bar]:
    start = datetime(2024, 3, 5, 14, 30, tzinfo=UTC)
    return [
        Bar("AAPL", start + timedelta(minutes=offset), Decimal("100"), Decimal("99"), Decimal("98"), Decimal("99"), 1)
        for offset in range(count)
    ]


def test_coverage_against_calendar(three_day_store: DuckDBBarStore) -> None:
    verifier = QualityVerifier(three_day_store, StaticMarketCalendar())

    report = verifier.verify_symbol("AAPL")

    assert report.total_bars == 1000
    assert report.regular_session_bars == 1000
    assert report.expected_bars == 1170
    assert report.coverage_pct == round(1000 / 1170 * 100, 2)
    assert report.missing_pct == 14.53
    assert report.status is QualityStatus.FAIL
    assert report.issues[0] == "FAIL: 14.53% of expected regular-session bars missing (1000/1170)"
    assert report.ohlc_violation_count == 0
    assert report.duplicate_count == 0
    assert report.unavailable_checks == {}


def test_market_hours_filter_hides_overnight_gaps(three_day_store: DuckDBBarStore) -> None:
    verifier = QualityVerifier(three_day_store, StaticMarketCalendar())

    filtered = verifier.verify_symbol("AAPL", filter_market_hours=True)
    unfiltered = verifier.verify_symbol("AAPL", filter_market_hours=False)

    assert filtered.gap_count == 0
    assert filtered.largest_gap is None
    assert unfiltered.gap_count == 2
    assert unfiltered.largest_gap is not None
    assert unfiltered.largest_gap.start == datetime(2024, 3, 5, 20, 59, tzinfo=UTC)
    assert any(issue.startswith("2 gaps, largest") for issue in unfiltered.issues)


def test_intraday_gap_is_reported(bar_store: DuckDBBarStore, bar_factory) -> None:
    stamps = _session(date(2024, 3, 5), 390)
    del stamps[100:105]
    bar_store.upsert_batch(bar_factory("AAPL", stamps))

    report = QualityVerifier(bar_store, StaticMarketCalendar()).verify_symbol("AAPL")

    assert report.gap_count == 1
    assert report.largest_gap is not None
    assert report.largest_gap.missing_minutes == 5
    assert report.coverage_pct == round(385 / 390 * 100, 2)
    assert report.status is QualityStatus.FAIL


def test_complete_day_passes(bar_store: DuckDBBarStore, bar_factory) -> None:
    bar_store.upsert_batch(bar_factory("AAPL", _session(date(2024, 3, 5), 390)))

    report = QualityVerifier(bar_store, StaticMarketCalendar()).verify_symbol("AAPL")

    assert report.coverage_pct == 100.0
    assert report.status is QualityStatus.PASS
    assert report.issues == ()


def test_ohlc_violations_warn_then_fail(bar_store: DuckDBBarStore, bar_factory) -> None:
    bar_store.upsert_batch(bar_factory("AAPL", _session(date(2024, 3, 5), 390)))
    bar_store.upsert_batch(_violations(3))
    verifier = QualityVerifier(bar_store, StaticMarketCalendar())

    warned = verifier.verify_symbol("AAPL")
    assert warned.ohlc_violation_count == 3
    assert warned.status is QualityStatus.WARN
    assert "WARN: 3 OHLC violations" in warned.issues
    assert len(warned.ohlc_violation_samples) == 3

    bar_store.upsert_batch(_violations(11))
    failed = verifier.verify_symbol("AAPL")
    assert failed.ohlc_violation_count == 11
    assert failed.status is QualityStatus.FAIL
    assert len(failed.ohlc_violation_samples) == 5


def test_no_bars_fails(bar_store: DuckDBBarStore) -> None:
    report = QualityVerifier(bar_store, StaticMarketCalendar()).verify_symbol("NONE")

    assert report.total_bars == 0
    assert report.status is QualityStatus.FAIL
    assert report.issues == ("No bars stored",)
    assert report.coverage_pct is None
    assert report.gap_count is None


def test_unavailable_calendar_degrades_coverage_only(
    duckdb_connection: duckdb.DuckDBPyConnection, three_day_store: DuckDBBarStore
) -> None:
    verifier = QualityVerifier(three_day_store, DuckDBMarketCalendar(duckdb_connection))

    report = verifier.verify_symbol("AAPL", filter_market_hours=False)

    assert report.coverage_pct is None
    assert report.expected_bars is None
    assert "coverage" in report.unavailable_checks
    assert report.ohlc_violation_count == 0
    assert report.duplicate_count == 0
    assert report.gap_count == 2
    assert report.status is QualityStatus.PASS
    assert any(issue.startswith("coverage check unavailable") for issue in report.issues)


def test_missing_calendar_with_market_hours_filter(three_day_store: DuckDBBarStore) -> None:
    report = QualityVerifier(three_day_store).verify_symbol("AAPL", filter_market_hours=True)

    assert set(report.unavailable_checks) == {"gaps", "coverage"}
    assert report.ohlc_violation_count == 0
    assert report.total_bars == 1000


def test_verify_summarizes(bar_store: DuckDBBarStore, bar_factory) -> None:
    bar_store.upsert_batch(bar_factory("AAPL", _session(date(2024, 3, 5), 390)))
    bar_store.upsert_batch(bar_factory("MSFT", _session(date(2024, 3, 5), 200)))

    run = QualityVerifier(bar_store, StaticMarketCalendar()).verify(["AAPL", "MSFT", "AAPL"])

    assert list(run.reports) == ["AAPL", "MSFT"]
    assert run.summary.total_symbols == 2
    assert run.summary.passed == 1
    assert run.summary.failed == 1
    assert run.summary.overall_status is QualityStatus.FAIL
