"""Typed records for bars, gaps and backfill jobs."""

from barvault.core.models.bars import (
    MARKET_TIMEZONE,
    ONE_MINUTE,
    Bar,
    BarRange,
    Gap,
    MarketSession,
    RawBar,
    classify_session,
    ensure_utc,
    to_market_time,
)
from barvault.core.models.jobs import INCOMPLETE_STATUSES, FetchJob, JobStatus

__all__ = [
    "INCOMPLETE_STATUSES",
    "MARKET_TIMEZONE",
    "ONE_MINUTE",
    "Bar",
    "BarRange",
    "FetchJob",
    "Gap",
    "JobStatus",
    "MarketSession",
    "RawBar",
    "classify_session",
    "ensure_utc",
    "to_market_time",
]
