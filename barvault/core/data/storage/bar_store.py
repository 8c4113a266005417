"""Bar store protocol and its DuckDB implementation."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

import duckdb

from barvault.core.data.schema import MARKET_BARS_TABLE
from barvault.core.exceptions import StorageError
from barvault.core.logging import logger
from barvault.core.models import Bar, BarRange, MarketSession, ensure_utc

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


class BarPredicate(str, Enum):
    """Named row filters accepted by :meth:`BarStore.count_where`."""

    OHLC_VIOLATION = "ohlc_violation"
    REGULAR_SESSION = "regular_session"


_PREDICATE_SQL: dict[BarPredicate, str] = {
    BarPredicate.OHLC_VIOLATION: "(high < open OR high < close OR low > open OR low > close)",
    BarPredicate.REGULAR_SESSION: f"session = '{MarketSession.REGULAR.value}'",
}


class BarStore(Protocol):
    """Persistence contract for minute bars keyed by ``(symbol, timestamp)``."""

    def upsert_batch(self, bars: Sequence[Bar]) -> int: ...

    def query_timestamps(
        self, symbol: str, start: datetime | None = None, end: datetime | None = None
    ) -> list[datetime]: ...

    def count_and_range(self, symbol: str) -> BarRange: ...

    def count_where(
        self,
        symbol: str,
        predicate: BarPredicate,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> int: ...

    def sample_ohlc_violations(self, symbol: str, limit: int = 5) -> list[Bar]: ...

    def duplicate_keys(self, symbol: str) -> list[tuple[datetime, int]]: ...

    def year_counts(self, symbol: str, start_date: date, end_date: date) -> dict[int, int]: ...

    def daily_session_counts(
        self, symbol: str, start_date: date, end_date: date, session: MarketSession = MarketSession.REGULAR
    ) -> dict[date, int]: ...

    def last_bar_time(self, symbol: str) -> datetime | None: ...


def to_db_timestamp(value: datetime) -> datetime:
    """Bars are stored as naive UTC ``TIMESTAMP`` values."""

    return ensure_utc(value).replace(tzinfo=None)


def from_db_timestamp(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=UTC)


def _day_start(day: date) -> datetime:
    return datetime(day.year, day.month, day.day)


class DuckDBBarStore:
    """``market_bars`` table access.

    Writes are ``INSERT ... ON CONFLICT DO UPDATE`` so that re-fetching a
    minute replaces its OHLCV values instead of adding a row.
    """

    _COLUMNS = (
        "symbol",
        "bar_time",
        "open",
        "high",
        "low",
        "close",
        "volume",
        "vwap",
        "trade_count",
        "session",
        "trade_date",
        "updated_at",
    )
    _UPDATED = ("open", "high", "low", "close", "volume", "vwap", "trade_count", "session", "trade_date", "updated_at")

    def __init__(self, conn: DuckDBPyConnection, *, ensure_table: bool = True) -> None:
        self.conn = conn
        if ensure_table:
            MARKET_BARS_TABLE.ensure(conn)

    def upsert_batch(self, bars: Sequence[Bar]) -> int:
        """Insert or replace ``bars``; the last bar wins for a repeated key."""

        if not bars:
            return 0

        unique: dict[tuple[str, datetime], Bar] = {}
        for bar in bars:
            unique[bar.key] = bar

        updated_at = to_db_timestamp(datetime.now(UTC))
        rows = [self._row(bar, updated_at) for bar in unique.values()]
        placeholders = ", ".join("?" for _ in self._COLUMNS)
        assignments = ", ".join(f"{column} = EXCLUDED.{column}" for column in self._UPDATED)
        sql = (
            f"INSERT INTO {MARKET_BARS_TABLE.name} ({', '.join(self._COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT (symbol, bar_time) DO UPDATE SET {assignments}"
        )

        try:
            self.conn.execute("BEGIN TRANSACTION")
            self.conn.executemany(sql, rows)
            self.conn.execute("COMMIT")
        except duckdb.Error as exc:
            self.conn.execute("ROLLBACK")
            raise StorageError(f"Failed to upsert {len(rows)} bars: {exc}", MARKET_BARS_TABLE.name) from exc

        logger.debug("[BarStore] upserted {} bars", len(rows))
        return len(rows)

    def query_timestamps(
        self, symbol: str, start: datetime | None = None, end: datetime | None = None
    ) -> list[datetime]:
        """Stored timestamps for ``symbol`` within ``[start, end]``, ascending."""

        where, params = self._where(symbol, start, end)
        rows = self.conn.execute(
            f"SELECT bar_time FROM {MARKET_BARS_TABLE.name} WHERE {where} ORDER BY bar_time",
            params,
        ).fetchall()
        return [row[0].replace(tzinfo=UTC) for row in rows]

    def count_and_range(self, symbol: str) -> BarRange:
        row = self.conn.execute(
            f"SELECT COUNT(*), MIN(bar_time), MAX(bar_time) FROM {MARKET_BARS_TABLE.name} WHERE symbol = ?",
            [symbol],
        ).fetchone()
        total, earliest, latest = row if row else (0, None, None)
        return BarRange(
            total=int(total or 0),
            earliest=from_db_timestamp(earliest),
            latest=from_db_timestamp(latest),
        )

    def count_where(
        self,
        symbol: str,
        predicate: BarPredicate,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> int:
        where, params = self._where(symbol, start, end)
        row = self.conn.execute(
            f"SELECT COUNT(*) FROM {MARKET_BARS_TABLE.name} WHERE {where} AND {_PREDICATE_SQL[predicate]}",
            params,
        ).fetchone()
        return int(row[0]) if row else 0

    def sample_ohlc_violations(self, symbol: str, limit: int = 5) -> list[Bar]:
        rows = self.conn.execute(
            f"SELECT symbol, bar_time, open, high, low, close, volume, vwap, trade_count "
            f"FROM {MARKET_BARS_TABLE.name} "
            f"WHERE symbol = ? AND {_PREDICATE_SQL[BarPredicate.OHLC_VIOLATION]} "
            f"ORDER BY bar_time LIMIT ?",
            [symbol, limit],
        ).fetchall()
        return [self._bar_from_row(row) for row in rows]

    def duplicate_keys(self, symbol: str) -> list[tuple[datetime, int]]:
        rows = self.conn.execute(
            f"SELECT bar_time, COUNT(*) AS n FROM {MARKET_BARS_TABLE.name} "
            f"WHERE symbol = ? GROUP BY bar_time HAVING COUNT(*) > 1 ORDER BY bar_time",
            [symbol],
        ).fetchall()
        return [(row[0].replace(tzinfo=UTC), int(row[1])) for row in rows]

    def year_counts(self, symbol: str, start_date: date, end_date: date) -> dict[int, int]:
        """Bar counts per UTC calendar year for ``start_date`` through ``end_date``."""

        rows = self.conn.execute(
            f"SELECT EXTRACT(year FROM bar_time) AS year, COUNT(*) FROM {MARKET_BARS_TABLE.name} "
            f"WHERE symbol = ? AND bar_time >= ? AND bar_time < ? GROUP BY year ORDER BY year",
            [symbol, _day_start(start_date), _day_start(end_date + timedelta(days=1))],
        ).fetchall()
        return {int(year): int(count) for year, count in rows}

    def daily_session_counts(
        self, symbol: str, start_date: date, end_date: date, session: MarketSession = MarketSession.REGULAR
    ) -> dict[date, int]:
        rows = self.conn.execute(
            f"SELECT trade_date, COUNT(*) FROM {MARKET_BARS_TABLE.name} "
            f"WHERE symbol = ? AND session = ? AND trade_date BETWEEN ? AND ? "
            f"GROUP BY trade_date ORDER BY trade_date",
            [symbol, session.value, start_date, end_date],
        ).fetchall()
        return {row[0]: int(row[1]) for row in rows}

    def last_bar_time(self, symbol: str) -> datetime | None:
        row = self.conn.execute(
            f"SELECT MAX(bar_time) FROM {MARKET_BARS_TABLE.name} WHERE symbol = ?",
            [symbol],
        ).fetchone()
        return from_db_timestamp(row[0]) if row else None

    def symbols(self) -> list[str]:
        rows = self.conn.execute(f"SELECT DISTINCT symbol FROM {MARKET_BARS_TABLE.name} ORDER BY symbol").fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def _where(symbol: str, start: datetime | None, end: datetime | None) -> tuple[str, list[Any]]:
        clauses = ["symbol = ?"]
        params: list[Any] = [symbol]
        if start is not None:
            clauses.append("bar_time >= ?")
            params.append(to_db_timestamp(start))
        if end is not None:
            clauses.append("bar_time <= ?")
            params.append(to_db_timestamp(end))
        return " AND ".join(clauses), params

    @staticmethod
    def _row(bar: Bar, updated_at: datetime) -> list[Any]:
        return [
            bar.symbol,
            to_db_timestamp(bar.timestamp),
            bar.open,
            bar.high,
            bar.low,
            bar.close,
            bar.volume,
            bar.vwap,
            bar.trade_count,
            bar.session.value,
            bar.trade_date,
            updated_at,
        ]

    @staticmethod
    def _bar_from_row(row: Iterable[Any]) -> Bar:
        symbol, bar_time, open_, high, low, close, volume, vwap, trade_count = row
        return Bar(
            symbol=symbol,
            timestamp=bar_time.replace(tzinfo=UTC),
            open=open_,
            high=high,
            low=low,
            close=close,
            volume=int(volume),
            vwap=vwap,
            trade_count=None if trade_count is None else int(trade_count),
        )


__all__ = ["BarPredicate", "BarStore", "DuckDBBarStore", "from_db_timestamp", "to_db_timestamp"]
