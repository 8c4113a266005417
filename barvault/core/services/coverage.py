"""Coverage analysis: which years and trading days a symbol already has."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from barvault.core.logging import logger
from barvault.core.models import MarketSession

if TYPE_CHECKING:
    from barvault.core.data.storage import BarStore
    from barvault.core.services.calendars import MarketCalendar

DEFAULT_MIN_DAY_COVERAGE_PCT = 95.0


@dataclass(frozen=True)
class CoverageReport:
    """Year-level view of stored bars for one symbol and date range."""

    symbol: str
    start_date: date
    end_date: date
    bars_count: int
    years_with_data: tuple[int, ...]
    missing_years: tuple[int, ...]
    coverage_pct: float

    @property
    def total_years(self) -> int:
        return len(self.years_with_data) + len(self.missing_years)

    @property
    def is_complete(self) -> bool:
        return not self.missing_years


class CoverageAnalyzer:
    """Compares what the bar store holds against the requested range."""

    def __init__(self, store: BarStore, calendar: MarketCalendar | None = None) -> None:
        self.store = store
        self.calendar = calendar

    def check_coverage(self, symbol: str, start_date: date, end_date: date) -> CoverageReport:
        """Split ``start_date..end_date`` into years with and without stored bars."""

        if end_date < start_date:
            return CoverageReport(symbol, start_date, end_date, 0, (), (), 0.0)

        counts = self.store.year_counts(symbol, start_date, end_date)
        years = range(start_date.year, end_date.year + 1)
        with_data = tuple(year for year in years if counts.get(year, 0) > 0)
        missing = tuple(year for year in years if counts.get(year, 0) == 0)
        coverage_pct = round(len(with_data) / len(years) * 100, 1) if len(years) else 0.0

        report = CoverageReport(
            symbol=symbol,
            start_date=start_date,
            end_date=end_date,
            bars_count=sum(counts.values()),
            years_with_data=with_data,
            missing_years=missing,
            coverage_pct=coverage_pct,
        )
        logger.debug(
            "[Coverage] {}: {} bars, {}% of years covered, missing {}",
            symbol,
            report.bars_count,
            report.coverage_pct,
            list(report.missing_years),
        )
        return report

    def find_incomplete_days(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        min_coverage_pct: float = DEFAULT_MIN_DAY_COVERAGE_PCT,
    ) -> list[date]:
        """Trading days whose regular-session bar count is below ``min_coverage_pct`` of expected."""

        if self.calendar is None:
            raise ValueError("find_incomplete_days requires a market calendar")
        if end_date < start_date:
            return []

        counts = self.store.daily_session_counts(symbol, start_date, end_date, MarketSession.REGULAR)
        incomplete: list[date] = []
        for day in self.calendar.trading_days(start_date, end_date):
            expected = self.calendar.expected_minutes(day)
            if expected <= 0:
                continue
            if counts.get(day, 0) / expected * 100 < min_coverage_pct:
                incomplete.append(day)
        return incomplete


__all__ = ["DEFAULT_MIN_DAY_COVERAGE_PCT", "CoverageAnalyzer", "CoverageReport"]
