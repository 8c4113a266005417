"""Gap detection over stored bar timestamps and repair through the batch loader."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING

from barvault.core.exceptions import BarVaultError
from barvault.core.logging import logger
from barvault.core.models import MARKET_TIMEZONE, ONE_MINUTE, Gap, ensure_utc, to_market_time
from barvault.core.models.bars import floor_minute
from barvault.core.services.calendars import session_bounds_utc

if TYPE_CHECKING:
    from barvault.core.data.storage import BarStore
    from barvault.core.services.calendars import MarketCalendar
    from barvault.core.services.loader import BatchLoader

DEFAULT_LOOKBACK_HOURS = 24
DEFAULT_MAX_GAP_MINUTES = 1440


@dataclass(frozen=True)
class GapFillOptions:
    """Knobs for one gap check run."""

    lookback_hours: int = DEFAULT_LOOKBACK_HOURS
    max_gap_minutes: int = DEFAULT_MAX_GAP_MINUTES
    filter_market_hours: bool = False


@dataclass(frozen=True)
class FillProgress:
    """Progress snapshot handed to day-fill callbacks after each range."""

    symbol: str
    completed: int
    total: int
    bars_filled: int
    current_range: tuple[date, date]


ProgressCallback = Callable[[FillProgress], None]


def detect_gaps(timestamps: Iterable[datetime], now: datetime | None = None) -> list[Gap]:
    """Return holes between consecutive timestamps more than a minute apart.

    When ``now`` is given, the stretch from the last timestamp to ``now`` is
    reported as a trailing gap if it exceeds one minute. No timestamps means
    no gaps.
    """

    ordered = sorted({ensure_utc(ts) for ts in timestamps})
    if not ordered:
        return []

    gaps = [
        Gap(start=previous, end=current)
        for previous, current in zip(ordered, ordered[1:], strict=False)
        if current - previous > ONE_MINUTE
    ]
    if now is not None:
        current = floor_minute(now)
        if current - ordered[-1] > ONE_MINUTE:
            gaps.append(Gap(start=ordered[-1], end=current))
    return gaps


def _within_one_session(gap: Gap, calendar: MarketCalendar) -> bool:
    day = to_market_time(gap.start).date()
    if to_market_time(gap.end).date() != day:
        return False
    bounds = session_bounds_utc(calendar, day)
    if bounds is None:
        return False
    session_open, session_close = bounds
    return session_open <= gap.start and gap.end <= session_close


def filter_fillable_gaps(
    gaps: Iterable[Gap],
    max_gap_minutes: int = DEFAULT_MAX_GAP_MINUTES,
    calendar: MarketCalendar | None = None,
) -> list[Gap]:
    """Keep the gaps worth fetching.

    Without a calendar: spans above one minute and up to ``max_gap_minutes``.
    With a calendar: only gaps that start and end inside the same trading
    day's regular session, whatever their size.
    """

    if calendar is not None:
        return [gap for gap in gaps if _within_one_session(gap, calendar)]
    return [gap for gap in gaps if 1 < gap.span_minutes <= max_gap_minutes]


def group_contiguous_days(days: Iterable[date]) -> list[tuple[date, date]]:
    """Collapse dates into inclusive ``(first, last)`` runs of consecutive days."""

    ranges: list[tuple[date, date]] = []
    for day in sorted(set(days)):
        if ranges and day - ranges[-1][1] == timedelta(days=1):
            ranges[-1] = (ranges[-1][0], day)
        else:
            ranges.append((day, day))
    return ranges


def _market_midnight(day: date) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=MARKET_TIMEZONE).astimezone(UTC)


class GapFiller:
    """Finds gaps in recently stored bars for one symbol and refetches them."""

    def __init__(
        self,
        store: BarStore,
        loader: BatchLoader,
        calendar: MarketCalendar | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.loader = loader
        self.calendar = calendar
        self._clock = clock or (lambda: datetime.now(UTC))

    def detect(self, symbol: str, lookback_hours: int = DEFAULT_LOOKBACK_HOURS) -> list[Gap]:
        now = self._clock()
        timestamps = self.store.query_timestamps(symbol, now - timedelta(hours=lookback_hours), now)
        return detect_gaps(timestamps, now=now)

    def fillable_gaps(self, symbol: str, options: GapFillOptions | None = None) -> list[Gap]:
        options = options or GapFillOptions()
        gaps = self.detect(symbol, options.lookback_hours)
        calendar = self.calendar if options.filter_market_hours else None
        if options.filter_market_hours and calendar is None:
            raise ValueError("filter_market_hours requires a market calendar")
        fillable = filter_fillable_gaps(gaps, options.max_gap_minutes, calendar)
        logger.info("[GapFiller] {}: {} gaps detected, {} fillable", symbol, len(gaps), len(fillable))
        return fillable

    async def check_and_fill(self, symbol: str, options: GapFillOptions | None = None) -> int:
        """Fill every fillable gap; a gap that fails counts zero and the rest continue."""

        filled = 0
        for gap in self.fillable_gaps(symbol, options):
            try:
                result = await self.loader.load(symbol, gap.start + ONE_MINUTE, gap.end)
            except BarVaultError as exc:
                logger.error("[GapFiller] {}: failed to fill {} -> {}: {}", symbol, gap.start, gap.end, exc.message)
                continue
            filled += result.bars_loaded
        if filled:
            logger.info("[GapFiller] {}: filled {} bars", symbol, filled)
        return filled

    async def fill_days(
        self,
        symbol: str,
        days: Sequence[date],
        progress: ProgressCallback | None = None,
    ) -> int:
        """Fetch whole exchange days, one request run per contiguous range."""

        ranges = group_contiguous_days(days)
        now = floor_minute(self._clock())
        filled = 0
        for index, (first, last) in enumerate(ranges, start=1):
            start = _market_midnight(first)
            end = min(_market_midnight(last + timedelta(days=1)), now)
            try:
                result = await self.loader.load(symbol, start, end)
                filled += result.bars_loaded
            except BarVaultError as exc:
                logger.error("[GapFiller] {}: failed to fill days {} -> {}: {}", symbol, first, last, exc.message)
            if progress is not None:
                progress(FillProgress(symbol, index, len(ranges), filled, (first, last)))
        return filled


__all__ = [
    "DEFAULT_LOOKBACK_HOURS",
    "DEFAULT_MAX_GAP_MINUTES",
    "FillProgress",
    "GapFillOptions",
    "GapFiller",
    "ProgressCallback",
    "detect_gaps",
    "filter_fillable_gaps",
    "group_contiguous_days",
]
