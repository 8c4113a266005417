"""Pytest configuration and shared fixtures for the barvault test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator, Sequence
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import duckdb
import pytest

from barvault.core.data.providers import CalendarDay
from barvault.core.data.storage import BarVaultDuckDBFactory, DuckDBBarStore
from barvault.core.exceptions import FetchError
from barvault.core.models import Bar, RawBar
from barvault.core.services.jobs import JobTracker


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--barvault-run-integration",
        action="store_true",
        default=False,
        help="Run barvault integration tests that require external services.",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the integration marker for barvault tests."""

    config.addinivalue_line(
        "markers",
        "integration: marks barvault tests requiring network or external services",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--barvault-run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="integration tests require --barvault-run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def make_raw_bars(start: datetime, count: int, *, price: str = "100") -> list[RawBar]:
    base = Decimal(price)
    return [
        RawBar(
            timestamp=start + timedelta(minutes=offset),
            open=base,
            high=base + 1,
            low=base - 1,
            close=base + Decimal("0.5"),
            volume=1_000 + offset,
            vwap=base + Decimal("0.25"),
            trade_count=10,
        )
        for offset in range(count)
    ]


def make_bars(symbol: str, timestamps: Sequence[datetime], *, price: str = "100") -> list[Bar]:
    base = Decimal(price)
    return [
        Bar(
            symbol=symbol,
            timestamp=ts,
            open=base,
            high=base + 1,
            low=base - 1,
            close=base + Decimal("0.5"),
            volume=500,
        )
        for ts in timestamps
    ]


class StubFetchClient:
    """In-memory fetch client serving the bars inside each requested window.

    ``inclusive_end`` also serves bars stamped exactly at ``end``, the way Alpaca
    does; ``delay`` makes every call sleep first.
    """

    name = "stub"

    def __init__(self) -> None:
        self.bars: dict[str, list[RawBar]] = {}
        self.calls: list[tuple[tuple[str, ...], datetime, datetime]] = []
        self.always_fail: set[str] = set()
        self.fail_times: dict[str, int] = {}
        self.calendar_days: list[CalendarDay] = []
        self.inclusive_end = False
        self.delay = 0.0

    async def get_bars(
        self,
        symbols: str | Sequence[str],
        start: datetime,
        end: datetime,
        timeframe: str = "1Min",
    ) -> dict[str, list[RawBar]]:
        requested = (symbols,) if isinstance(symbols, str) else tuple(symbols)
        self.calls.append((requested, start, end))
        if self.delay:
            await asyncio.sleep(self.delay)
        for symbol in requested:
            if symbol in self.always_fail:
                raise FetchError(f"upstream unavailable for {symbol}", self.name, status_code=503)
            if self.fail_times.get(symbol, 0) > 0:
                self.fail_times[symbol] -= 1
                raise FetchError(f"transient failure for {symbol}", self.name, status_code=502)
        return {
            symbol: [bar for bar in self.bars.get(symbol, []) if start <= bar.timestamp and self._before(bar, end)]
            for symbol in requested
        }

    def _before(self, bar: RawBar, end: datetime) -> bool:
        return bar.timestamp <= end if self.inclusive_end else bar.timestamp < end

    async def get_calendar(self, start: date, end: date) -> list[CalendarDay]:
        return [day for day in self.calendar_days if start <= day.date <= end]


async def no_sleep(_: float) -> None:
    return None


@pytest.fixture()
def duckdb_connection() -> Iterator[duckdb.DuckDBPyConnection]:
    connection = BarVaultDuckDBFactory().create_connection()
    try:
        yield connection
    finally:
        connection.close()


@pytest.fixture()
def bar_store(duckdb_connection: duckdb.DuckDBPyConnection) -> DuckDBBarStore:
    return DuckDBBarStore(duckdb_connection)


@pytest.fixture()
def job_tracker(duckdb_connection: duckdb.DuckDBPyConnection) -> JobTracker:
    return JobTracker(duckdb_connection)


@pytest.fixture()
def stub_client() -> StubFetchClient:
    return StubFetchClient()


@pytest.fixture()
def raw_bar_factory() -> Callable[..., list[RawBar]]:
    return make_raw_bars


@pytest.fixture()
def bar_factory() -> Callable[..., list[Bar]]:
    return make_bars


@pytest.fixture()
def instant_sleep() -> Callable[[float], object]:
    return no_sleep
