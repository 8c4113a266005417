"""Tests for year and day coverage analysis."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from barvault.core.data.storage import DuckDBBarStore
from barvault.core.services.calendars import StaticMarketCalendar
from barvault.core.services.coverage import CoverageAnalyzer


def _session(day: date, minutes: int) -> list[datetime]:
    # 14:30 UTC is the regular open in winter.
    open_ = datetime(day.year, day.month, day.day, 14, 30, tzinfo=UTC)
    return [open_ + timedelta(minutes=offset) for offset in range(minutes)]


def test_check_coverage_splits_years(bar_store: DuckDBBarStore, bar_factory) -> None:
    bar_store.upsert_batch(bar_factory("AAPL", _session(date(2021, 3, 2), 3) + _session(date(2023, 2, 1), 2)))

    report = CoverageAnalyzer(bar_store).check_coverage("AAPL", date(2020, 1, 1), date(2023, 12, 31))

    assert report.years_with_data == (2021, 2023)
    assert report.missing_years == (2020, 2022)
    assert report.bars_count == 5
    assert report.coverage_pct == 50.0
    assert report.total_years == 4
    assert not report.is_complete


def test_check_coverage_rounds_to_one_decimal(bar_store: DuckDBBarStore, bar_factory) -> None:
    bar_store.upsert_batch(bar_factory("AAPL", _session(date(2022, 3, 1), 1)))

    report = CoverageAnalyzer(bar_store).check_coverage("AAPL", date(2022, 1, 1), date(2024, 12, 31))

    assert report.coverage_pct == 33.3


def test_check_coverage_empty_and_reversed(bar_store: DuckDBBarStore) -> None:
    analyzer = CoverageAnalyzer(bar_store)

    empty = analyzer.check_coverage("AAPL", date(2024, 1, 1), date(2024, 12, 31))
    assert empty.missing_years == (2024,)
    assert empty.coverage_pct == 0.0

    reversed_range = analyzer.check_coverage("AAPL", date(2024, 12, 31), date(2024, 1, 1))
    assert reversed_range.total_years == 0
    assert reversed_range.coverage_pct == 0.0


def test_find_incomplete_days(bar_store: DuckDBBarStore, bar_factory) -> None:
    calendar = StaticMarketCalendar()
    # Tue full, Wed 50%, Thu 96%, Fri empty.
    bar_store.upsert_batch(
        bar_factory(
            "AAPL",
            _session(date(2024, 3, 5), 390) + _session(date(2024, 3, 6), 195) + _session(date(2024, 3, 7), 375),
        )
    )

    days = CoverageAnalyzer(bar_store, calendar).find_incomplete_days("AAPL", date(2024, 3, 5), date(2024, 3, 10))

    assert days == [date(2024, 3, 6), date(2024, 3, 8)]


def test_find_incomplete_days_requires_calendar(bar_store: DuckDBBarStore) -> None:
    with pytest.raises(ValueError):
        CoverageAnalyzer(bar_store).find_incomplete_days("AAPL", date(2024, 3, 5), date(2024, 3, 8))
