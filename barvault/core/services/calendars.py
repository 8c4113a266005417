"""Trading calendar oracles: a rule-based calendar and a DuckDB-backed one."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING, Protocol

import duckdb

from barvault.core.data.schema import MARKET_CALENDAR_TABLE
from barvault.core.exceptions import CalendarUnavailableError
from barvault.core.logging import logger
from barvault.core.models import MARKET_TIMEZONE
from barvault.core.models.bars import REGULAR_CLOSE, REGULAR_OPEN

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

    from barvault.core.data.providers.alpaca import AlpacaBarsClient
    from barvault.core.data.providers.base import CalendarDay

default_weekend = frozenset({5, 6})


class MarketCalendar(Protocol):
    """Answers which days trade, during which hours and for how many minutes."""

    def is_trading_day(self, day: date) -> bool: ...

    def session_hours(self, day: date) -> tuple[time, time] | None: ...

    def expected_minutes(self, day: date) -> int: ...

    def total_expected_minutes(self, start: date, end: date) -> int: ...

    def trading_days(self, start: date, end: date) -> list[date]: ...


def _minutes_between(open_: time, close: time) -> int:
    anchor = date(2000, 1, 1)
    delta = datetime.combine(anchor, close) - datetime.combine(anchor, open_)
    return max(int(delta.total_seconds() // 60), 0)


def _days(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def session_bounds_utc(calendar: MarketCalendar, day: date) -> tuple[datetime, datetime] | None:
    """Regular session open and close of ``day`` as UTC instants."""

    hours = calendar.session_hours(day)
    if hours is None:
        return None
    open_, close = hours
    return (
        datetime.combine(day, open_, tzinfo=MARKET_TIMEZONE).astimezone(UTC),
        datetime.combine(day, close, tzinfo=MARKET_TIMEZONE).astimezone(UTC),
    )


@dataclass(frozen=True)
class StaticMarketCalendar:
    """Rule-based US equity calendar: weekends, explicit holidays and early closes."""

    weekend_days: frozenset[int] = default_weekend
    holidays: frozenset[date] = frozenset()
    early_closes: Mapping[date, time] = field(default_factory=dict)
    regular_open: time = REGULAR_OPEN
    regular_close: time = REGULAR_CLOSE

    def is_trading_day(self, day: date) -> bool:
        return day.weekday() not in self.weekend_days and day not in self.holidays

    def session_hours(self, day: date) -> tuple[time, time] | None:
        if not self.is_trading_day(day):
            return None
        return (self.regular_open, self.early_closes.get(day, self.regular_close))

    def expected_minutes(self, day: date) -> int:
        hours = self.session_hours(day)
        return _minutes_between(*hours) if hours else 0

    def total_expected_minutes(self, start: date, end: date) -> int:
        return sum(self.expected_minutes(day) for day in _days(start, end))

    def trading_days(self, start: date, end: date) -> list[date]:
        """Return trading days between the provided bounds inclusive."""

        if end < start:
            raise ValueError("end must be on or after start")
        return [day for day in _days(start, end) if self.is_trading_day(day)]


class DuckDBMarketCalendar:
    """Calendar backed by the ``market_calendar`` table.

    Rows hold exchange local open/close times; a date without a row is not a
    trading day. An empty table raises :class:`CalendarUnavailableError`.
    """

    def __init__(self, conn: DuckDBPyConnection, *, ensure_table: bool = True) -> None:
        self.conn = conn
        if ensure_table:
            MARKET_CALENDAR_TABLE.ensure(conn)

    def _rows(self, start: date, end: date) -> dict[date, tuple[time, time]]:
        try:
            count_row = self.conn.execute(f"SELECT COUNT(*) FROM {MARKET_CALENDAR_TABLE.name}").fetchone()
            if not count_row or not count_row[0]:
                raise CalendarUnavailableError("Market calendar table is empty; run `barvault calendar sync`")
            rows = self.conn.execute(
                f"SELECT date, open, close FROM {MARKET_CALENDAR_TABLE.name} WHERE date BETWEEN ? AND ? ORDER BY date",
                [start, end],
            ).fetchall()
        except duckdb.Error as exc:
            raise CalendarUnavailableError(f"Market calendar query failed: {exc}") from exc
        return {row[0]: (row[1], row[2]) for row in rows}

    def is_trading_day(self, day: date) -> bool:
        return day in self._rows(day, day)

    def session_hours(self, day: date) -> tuple[time, time] | None:
        return self._rows(day, day).get(day)

    def expected_minutes(self, day: date) -> int:
        hours = self.session_hours(day)
        return _minutes_between(*hours) if hours else 0

    def total_expected_minutes(self, start: date, end: date) -> int:
        return sum(_minutes_between(open_, close) for open_, close in self._rows(start, end).values())

    def trading_days(self, start: date, end: date) -> list[date]:
        if end < start:
            raise ValueError("end must be on or after start")
        return list(self._rows(start, end))

    def upsert_days(self, days: Iterable[CalendarDay]) -> int:
        rows = [[day.date, day.open, day.close] for day in days]
        if not rows:
            return 0
        self.conn.executemany(
            f"INSERT INTO {MARKET_CALENDAR_TABLE.name} (date, open, close) VALUES (?, ?, ?) "
            f"ON CONFLICT (date) DO UPDATE SET open = EXCLUDED.open, close = EXCLUDED.close",
            rows,
        )
        return len(rows)

    async def sync(self, client: AlpacaBarsClient, start: date, end: date) -> int:
        """Refresh ``[start, end]`` from the provider's calendar endpoint."""

        days = await client.get_calendar(start, end)
        written = self.upsert_days(days)
        logger.info("[Calendar] synced {} trading days between {} and {}", written, start, end)
        return written


__all__ = [
    "DuckDBMarketCalendar",
    "MarketCalendar",
    "StaticMarketCalendar",
    "default_weekend",
    "session_bounds_utc",
]
