"""Quality verification of stored bars: OHLC sanity, duplicates, gaps and coverage."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, TypeVar

from barvault.core.data.storage import BarPredicate
from barvault.core.logging import log_context, logger
from barvault.core.models import Bar, BarRange, Gap, to_market_time
from barvault.core.services.gaps import detect_gaps, filter_fillable_gaps
from barvault.core.services.quality.thresholds import (
    DEFAULT_THRESHOLDS,
    MISSING_PCT,
    OHLC_VIOLATIONS,
    MetricThresholds,
    QualityStatus,
    worst_status,
)

if TYPE_CHECKING:
    from barvault.core.data.storage import BarStore
    from barvault.core.services.calendars import MarketCalendar

T = TypeVar("T")

DEFAULT_GAP_LOOKBACK_DAYS = 30
OHLC_SAMPLE_SIZE = 5

RANGE_CHECK = "range"
OHLC_CHECK = "ohlc"
DUPLICATE_CHECK = "duplicates"
GAP_CHECK = "gaps"
COVERAGE_CHECK = "coverage"


@dataclass(frozen=True)
class QualityReport:
    """Combined result of the independent checks for one symbol."""

    symbol: str
    total_bars: int = 0
    regular_session_bars: int | None = None
    expected_bars: int | None = None
    coverage_pct: float | None = None
    ohlc_violation_count: int | None = None
    ohlc_violation_samples: tuple[Bar, ...] = ()
    duplicate_count: int | None = None
    gap_count: int | None = None
    largest_gap: Gap | None = None
    earliest: datetime | None = None
    latest: datetime | None = None
    status: QualityStatus = QualityStatus.PASS
    issues: tuple[str, ...] = ()
    unavailable_checks: Mapping[str, str] = field(default_factory=dict)

    @property
    def missing_pct(self) -> float | None:
        if self.coverage_pct is None:
            return None
        return round(max(100.0 - self.coverage_pct, 0.0), 2)


@dataclass(frozen=True)
class QualitySummary:
    total_symbols: int
    passed: int
    warned: int
    failed: int
    overall_status: QualityStatus


@dataclass(frozen=True)
class QualityRun:
    reports: dict[str, QualityReport]
    summary: QualitySummary


def summarize(reports: Iterable[QualityReport]) -> QualitySummary:
    statuses = [report.status for report in reports]
    return QualitySummary(
        total_symbols=len(statuses),
        passed=statuses.count(QualityStatus.PASS),
        warned=statuses.count(QualityStatus.WARN),
        failed=statuses.count(QualityStatus.FAIL),
        overall_status=worst_status(statuses),
    )


class _Checks:
    """Runs each check behind its own error boundary and records what failed."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        self.unavailable: dict[str, str] = {}

    def run(self, name: str, check: Callable[[], T]) -> T | None:
        try:
            return check()
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            self.unavailable[name] = reason
            logger.warning("[QualityVerifier] {}: {} check unavailable: {}", self.symbol, name, reason)
            return None


class QualityVerifier:
    """Read-only verification of a symbol's stored bars.

    Every check is isolated: a failing calendar still yields OHLC and
    duplicate results, and :meth:`verify_symbol` never raises.
    """

    def __init__(
        self,
        store: BarStore,
        calendar: MarketCalendar | None = None,
        *,
        thresholds: Mapping[str, MetricThresholds] | None = None,
        gap_lookback_days: int = DEFAULT_GAP_LOOKBACK_DAYS,
    ) -> None:
        self.store = store
        self.calendar = calendar
        self.thresholds = dict(DEFAULT_THRESHOLDS)
        if thresholds:
            self.thresholds.update(thresholds)
        self.gap_lookback_days = gap_lookback_days

    def verify_symbol(self, symbol: str, filter_market_hours: bool = True) -> QualityReport:
        with log_context(symbol=symbol, operation="verify"):
            checks = _Checks(symbol)
            bar_range = checks.run(RANGE_CHECK, lambda: self.store.count_and_range(symbol))
            total = bar_range.total if bar_range else 0

            ohlc_count = checks.run(
                OHLC_CHECK, lambda: self.store.count_where(symbol, BarPredicate.OHLC_VIOLATION)
            )
            samples: list[Bar] = []
            if ohlc_count:
                samples = checks.run(
                    OHLC_CHECK, lambda: self.store.sample_ohlc_violations(symbol, OHLC_SAMPLE_SIZE)
                ) or []
            duplicates = checks.run(DUPLICATE_CHECK, lambda: len(self.store.duplicate_keys(symbol)))
            regular = checks.run(
                COVERAGE_CHECK, lambda: self.store.count_where(symbol, BarPredicate.REGULAR_SESSION)
            )

            gaps: list[Gap] | None = None
            expected: int | None = None
            if bar_range is not None and bar_range.latest is not None:
                gaps = checks.run(GAP_CHECK, lambda: self._gaps(symbol, bar_range, filter_market_hours))
                if regular is not None:
                    expected = checks.run(COVERAGE_CHECK, lambda: self._expected_minutes(bar_range))

            coverage_pct = round(regular / expected * 100, 2) if regular is not None and expected else None
            largest = max(gaps, key=lambda gap: gap.missing_minutes) if gaps else None

            report = QualityReport(
                symbol=symbol,
                total_bars=total,
                regular_session_bars=regular,
                expected_bars=expected,
                coverage_pct=coverage_pct,
                ohlc_violation_count=ohlc_count,
                ohlc_violation_samples=tuple(samples),
                duplicate_count=duplicates,
                gap_count=len(gaps) if gaps is not None else None,
                largest_gap=largest,
                earliest=bar_range.earliest if bar_range else None,
                latest=bar_range.latest if bar_range else None,
                unavailable_checks=checks.unavailable,
            )
            status, issues = self._assess(report, bar_range)
            logger.info("[QualityVerifier] {}: {} ({} issues)", symbol, status.value, len(issues))
            return replace(report, status=status, issues=tuple(issues))

    def verify(self, symbols: Iterable[str], filter_market_hours: bool = True) -> QualityRun:
        reports = {symbol: self.verify_symbol(symbol, filter_market_hours) for symbol in dict.fromkeys(symbols)}
        return QualityRun(reports=reports, summary=summarize(reports.values()))

    def _gaps(self, symbol: str, bar_range: BarRange, filter_market_hours: bool) -> list[Gap]:
        latest = bar_range.latest
        assert latest is not None
        timestamps = self.store.query_timestamps(symbol, latest - timedelta(days=self.gap_lookback_days), latest)
        gaps = detect_gaps(timestamps)
        if not filter_market_hours:
            return gaps
        if self.calendar is None:
            raise ValueError("market-hours gap filter needs a market calendar")
        return filter_fillable_gaps(gaps, calendar=self.calendar)

    def _expected_minutes(self, bar_range: BarRange) -> int:
        if self.calendar is None:
            raise ValueError("no market calendar configured")
        assert bar_range.earliest is not None and bar_range.latest is not None
        expected = self.calendar.total_expected_minutes(
            to_market_time(bar_range.earliest).date(), to_market_time(bar_range.latest).date()
        )
        if expected <= 0:
            raise ValueError("calendar expects no trading minutes for the stored range")
        return expected

    def _assess(self, report: QualityReport, bar_range: BarRange | None) -> tuple[QualityStatus, list[str]]:
        statuses: list[QualityStatus] = []
        issues: list[str] = []

        if bar_range is not None and bar_range.total == 0:
            statuses.append(QualityStatus.FAIL)
            issues.append("No bars stored")

        missing_pct = report.missing_pct
        if missing_pct is not None:
            missing_status = self.thresholds[MISSING_PCT].classify(missing_pct)
            statuses.append(missing_status)
            if missing_status is not QualityStatus.PASS:
                issues.append(
                    f"{missing_status.value}: {missing_pct}% of expected regular-session bars missing "
                    f"({report.regular_session_bars}/{report.expected_bars})"
                )

        if report.ohlc_violation_count is not None:
            ohlc_status = self.thresholds[OHLC_VIOLATIONS].classify(report.ohlc_violation_count)
            statuses.append(ohlc_status)
            if ohlc_status is not QualityStatus.PASS:
                issues.append(f"{ohlc_status.value}: {report.ohlc_violation_count} OHLC violations")

        if report.duplicate_count:
            issues.append(f"{report.duplicate_count} duplicate (symbol, timestamp) keys")

        if report.largest_gap is not None:
            issues.append(
                f"{report.gap_count} gaps, largest {report.largest_gap.missing_minutes} minutes "
                f"after {report.largest_gap.start.isoformat()}"
            )

        for check, reason in report.unavailable_checks.items():
            issues.append(f"{check} check unavailable: {reason}")

        return worst_status(statuses), issues


__all__ = [
    "DEFAULT_GAP_LOOKBACK_DAYS",
    "OHLC_SAMPLE_SIZE",
    "QualityReport",
    "QualityRun",
    "QualitySummary",
    "QualityVerifier",
    "summarize",
]
