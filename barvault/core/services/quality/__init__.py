"""Quality thresholds and verification."""

from barvault.core.services.quality.thresholds import (
    DEFAULT_THRESHOLDS,
    MetricThresholds,
    QualityStatus,
    thresholds_from_config,
    worst_status,
)
from barvault.core.services.quality.verifier import QualityReport, QualityRun, QualitySummary, QualityVerifier

__all__ = [
    "DEFAULT_THRESHOLDS",
    "MetricThresholds",
    "QualityReport",
    "QualityRun",
    "QualityStatus",
    "QualitySummary",
    "QualityVerifier",
    "thresholds_from_config",
    "worst_status",
]
