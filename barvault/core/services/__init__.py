"""Pipeline services: coverage, jobs, loading, gaps, quality and orchestration."""

from barvault.core.services.calendars import DuckDBMarketCalendar, MarketCalendar, StaticMarketCalendar
from barvault.core.services.coverage import CoverageAnalyzer, CoverageReport
from barvault.core.services.gaps import (
    FillProgress,
    GapFiller,
    GapFillOptions,
    detect_gaps,
    filter_fillable_gaps,
    group_contiguous_days,
)
from barvault.core.services.jobs import JobTracker
from barvault.core.services.loader import BatchLoader, LoadResult
from barvault.core.services.orchestrator import MarketDataOrchestrator
from barvault.core.services.quality import QualityReport, QualityRun, QualityStatus, QualityVerifier

__all__ = [
    "BatchLoader",
    "CoverageAnalyzer",
    "CoverageReport",
    "DuckDBMarketCalendar",
    "FillProgress",
    "GapFillOptions",
    "GapFiller",
    "JobTracker",
    "LoadResult",
    "MarketCalendar",
    "MarketDataOrchestrator",
    "QualityReport",
    "QualityRun",
    "QualityStatus",
    "QualityVerifier",
    "StaticMarketCalendar",
    "detect_gaps",
    "filter_fillable_gaps",
    "group_contiguous_days",
]
