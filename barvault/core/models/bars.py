"""Minute bar records and market-session helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

MARKET_TIMEZONE = ZoneInfo("America/New_York")

PRE_MARKET_OPEN = time(4, 0)
REGULAR_OPEN = time(9, 30)
REGULAR_CLOSE = time(16, 0)

ONE_MINUTE = timedelta(minutes=1)


class MarketSession(str, Enum):
    """Trading-hours classification of a bar."""

    PRE_MARKET = "pre_market"
    REGULAR = "regular"
    AFTER_HOURS = "after_hours"


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime, treating naive values as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def floor_minute(value: datetime) -> datetime:
    return ensure_utc(value).replace(second=0, microsecond=0)


def to_market_time(value: datetime) -> datetime:
    """Convert a timestamp to exchange local time (America/New_York)."""

    return ensure_utc(value).astimezone(MARKET_TIMEZONE)


def classify_session(timestamp: datetime) -> MarketSession:
    local_time = to_market_time(timestamp).time()
    if REGULAR_OPEN <= local_time < REGULAR_CLOSE:
        return MarketSession.REGULAR
    if PRE_MARKET_OPEN <= local_time < REGULAR_OPEN:
        return MarketSession.PRE_MARKET
    return MarketSession.AFTER_HOURS


def to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(slots=True, frozen=True)
class RawBar:
    """Provider record for one minute, prior to validation."""

    timestamp: datetime
    open: Decimal | float | None
    high: Decimal | float | None
    low: Decimal | float | None
    close: Decimal | float | None
    volume: int | None
    vwap: Decimal | float | None = None
    trade_count: int | None = None


@dataclass(slots=True, frozen=True)
class Bar:
    """One minute of OHLCV trading for one symbol.

    ``session`` and ``trade_date`` are derived from ``timestamp``.
    """

    symbol: str
    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int
    vwap: Decimal | None = None
    trade_count: int | None = None
    session: MarketSession = field(init=False)
    trade_date: date = field(init=False)

    def __post_init__(self) -> None:
        timestamp = floor_minute(self.timestamp)
        object.__setattr__(self, "timestamp", timestamp)
        object.__setattr__(self, "session", classify_session(timestamp))
        object.__setattr__(self, "trade_date", to_market_time(timestamp).date())

    @classmethod
    def from_raw(cls, symbol: str, raw: RawBar) -> Bar:
        return cls(
            symbol=symbol,
            timestamp=raw.timestamp,
            open=to_decimal(raw.open),  # type: ignore[arg-type]
            high=to_decimal(raw.high),  # type: ignore[arg-type]
            low=to_decimal(raw.low),  # type: ignore[arg-type]
            close=to_decimal(raw.close),  # type: ignore[arg-type]
            volume=raw.volume,  # type: ignore[arg-type]
            vwap=to_decimal(raw.vwap),
            trade_count=raw.trade_count,
        )

    @property
    def key(self) -> tuple[str, datetime]:
        return (self.symbol, self.timestamp)


@dataclass(slots=True, frozen=True)
class Gap:
    """A hole between two stored bar timestamps (or the last bar and now)."""

    start: datetime
    end: datetime

    @property
    def span_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def missing_minutes(self) -> int:
        return max(self.span_minutes - 1, 0)


@dataclass(slots=True, frozen=True)
class BarRange:
    """Row count and time bounds of a symbol's stored bars."""

    total: int
    earliest: datetime | None
    latest: datetime | None


__all__ = [
    "MARKET_TIMEZONE",
    "ONE_MINUTE",
    "PRE_MARKET_OPEN",
    "REGULAR_CLOSE",
    "REGULAR_OPEN",
    "Bar",
    "BarRange",
    "Gap",
    "MarketSession",
    "RawBar",
    "classify_session",
    "ensure_utc",
    "floor_minute",
    "to_decimal",
    "to_market_time",
]
