"""Tests for the static and DuckDB-backed market calendars."""

from __future__ import annotations

from datetime import UTC, date, datetime, time

import duckdb
import pytest

from barvault.core.data.providers import CalendarDay
from barvault.core.exceptions import CalendarUnavailableError
from barvault.core.services.calendars import DuckDBMarketCalendar, StaticMarketCalendar, session_bounds_utc

BLACK_FRIDAY = date(2024, 11, 29)
THANKSGIVING = date(2024, 11, 28)


@pytest.fixture()
def holiday_calendar() -> StaticMarketCalendar:
    return StaticMarketCalendar(holidays=frozenset({THANKSGIVING}), early_closes={BLACK_FRIDAY: time(13, 0)})


def test_static_calendar_minutes(holiday_calendar: StaticMarketCalendar) -> None:
    assert holiday_calendar.expected_minutes(date(2024, 11, 27)) == 390
    assert holiday_calendar.expected_minutes(THANKSGIVING) == 0
    assert holiday_calendar.expected_minutes(BLACK_FRIDAY) == 210
    assert holiday_calendar.expected_minutes(date(2024, 11, 30)) == 0
    assert holiday_calendar.total_expected_minutes(date(2024, 11, 25), date(2024, 12, 1)) == 390 * 3 + 210


def test_static_calendar_trading_days(holiday_calendar: StaticMarketCalendar) -> None:
    days = holiday_calendar.trading_days(date(2024, 11, 27), date(2024, 12, 2))

    assert days == [date(2024, 11, 27), BLACK_FRIDAY, date(2024, 12, 2)]
    with pytest.raises(ValueError):
        holiday_calendar.trading_days(date(2024, 12, 2), date(2024, 11, 27))


def test_session_bounds_utc_follows_daylight_saving(holiday_calendar: StaticMarketCalendar) -> None:
    assert session_bounds_utc(holiday_calendar, date(2024, 7, 1)) == (
        datetime(2024, 7, 1, 13, 30, tzinfo=UTC),
        datetime(2024, 7, 1, 20, 0, tzinfo=UTC),
    )
    assert session_bounds_utc(holiday_calendar, BLACK_FRIDAY) == (
        datetime(2024, 11, 29, 14, 30, tzinfo=UTC),
        datetime(2024, 11, 29, 18, 0, tzinfo=UTC),
    )
    assert session_bounds_utc(holiday_calendar, THANKSGIVING) is None


def test_duckdb_calendar_empty_table_is_unavailable(duckdb_connection: duckdb.DuckDBPyConnection) -> None:
    calendar = DuckDBMarketCalendar(duckdb_connection)

    with pytest.raises(CalendarUnavailableError):
        calendar.total_expected_minutes(date(2024, 11, 25), date(2024, 11, 29))
    with pytest.raises(CalendarUnavailableError):
        calendar.is_trading_day(BLACK_FRIDAY)


def test_duckdb_calendar_reads_rows(duckdb_connection: duckdb.DuckDBPyConnection) -> None:
    calendar = DuckDBMarketCalendar(duckdb_connection)
    written = calendar.upsert_days(
        [
            CalendarDay(date(2024, 11, 27), time(9, 30), time(16, 0)),
            CalendarDay(BLACK_FRIDAY, time(9, 30), time(16, 0)),
        ]
    )
    # Re-sync corrects the early close.
    calendar.upsert_days([CalendarDay(BLACK_FRIDAY, time(9, 30), time(13, 0))])

    assert written == 2
    assert calendar.is_trading_day(date(2024, 11, 27))
    assert not calendar.is_trading_day(THANKSGIVING)
    assert calendar.session_hours(BLACK_FRIDAY) == (time(9, 30), time(13, 0))
    assert calendar.expected_minutes(BLACK_FRIDAY) == 210
    assert calendar.total_expected_minutes(date(2024, 11, 25), date(2024, 11, 30)) == 600
    assert calendar.trading_days(date(2024, 11, 25), date(2024, 11, 30)) == [date(2024, 11, 27), BLACK_FRIDAY]


def test_duckdb_calendar_query_failure(duckdb_connection: duckdb.DuckDBPyConnection) -> None:
    calendar = DuckDBMarketCalendar(duckdb_connection)
    duckdb_connection.execute("DROP TABLE market_calendar")

    with pytest.raises(CalendarUnavailableError):
        calendar.expected_minutes(BLACK_FRIDAY)


class _CalendarClient:
    def __init__(self) -> None:
        self.requested: list[tuple[date, date]] = []

    async def get_calendar(self, start: date, end: date) -> list[CalendarDay]:
        self.requested.append((start, end))
        return [CalendarDay(date(2024, 12, 2), time(9, 30), time(16, 0))]


@pytest.mark.asyncio
async def test_sync_stores_provider_days(duckdb_connection: duckdb.DuckDBPyConnection) -> None:
    calendar = DuckDBMarketCalendar(duckdb_connection)
    client = _CalendarClient()

    written = await calendar.sync(client, date(2024, 12, 1), date(2024, 12, 3))

    assert written == 1
    assert client.requested == [(date(2024, 12, 1), date(2024, 12, 3))]
    assert calendar.expected_minutes(date(2024, 12, 2)) == 390
