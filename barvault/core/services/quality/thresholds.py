"""Threshold utilities for quality metrics."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, SupportsFloat, TypedDict

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from barvault.core.config import QualityThresholdConfig

MISSING_PCT = "missing_pct"
OHLC_VIOLATIONS = "ohlc_violations"


class QualityStatus(str, Enum):
    """Outcome of a quality check, ordered from best to worst."""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {QualityStatus.PASS: 0, QualityStatus.WARN: 1, QualityStatus.FAIL: 2}


def worst_status(statuses: Iterable[QualityStatus]) -> QualityStatus:
    """Return the most severe status, ``PASS`` for an empty input."""

    return max(statuses, key=lambda status: status.severity, default=QualityStatus.PASS)


class ThresholdOverride(TypedDict, total=False):
    """Typed mapping describing override payloads for thresholds."""

    warn: SupportsFloat
    fail: SupportsFloat


@dataclass(frozen=True)
class MetricThresholds:
    """Warn/fail thresholds for one metric; a value must strictly exceed a threshold to reach that tier."""

    warn: float
    fail: float

    def classify(self, value: float) -> QualityStatus:
        """Classify a value according to the configured thresholds."""

        if value > self.fail:
            return QualityStatus.FAIL
        if value > self.warn:
            return QualityStatus.WARN
        return QualityStatus.PASS


DEFAULT_THRESHOLDS: dict[str, MetricThresholds] = {
    MISSING_PCT: MetricThresholds(warn=0.5, fail=1.0),
    OHLC_VIOLATIONS: MetricThresholds(warn=0.0, fail=10.0),
}


def merge_threshold_overrides(
    defaults: Mapping[str, MetricThresholds],
    overrides: Mapping[str, ThresholdOverride] | None = None,
) -> dict[str, MetricThresholds]:
    """Merge overrides into default metric thresholds; unknown metric names are rejected."""

    merged: dict[str, MetricThresholds] = dict(defaults)
    if not overrides:
        return merged

    for metric_name, override in overrides.items():
        base = merged.get(metric_name)
        if base is None:
            raise ValueError(f"unknown quality metric '{metric_name}'")

        updated = base
        warn_override = override.get("warn")
        if warn_override is not None:
            updated = replace(updated, warn=float(warn_override))
        fail_override = override.get("fail")
        if fail_override is not None:
            updated = replace(updated, fail=float(fail_override))
        if updated.warn > updated.fail:
            raise ValueError(f"{metric_name}: warn threshold {updated.warn} exceeds fail threshold {updated.fail}")
        merged[metric_name] = updated

    return merged


def thresholds_from_config(config: QualityThresholdConfig) -> dict[str, MetricThresholds]:
    return merge_threshold_overrides(
        DEFAULT_THRESHOLDS,
        {
            MISSING_PCT: {"warn": config.missing_pct_warn, "fail": config.missing_pct_fail},
            OHLC_VIOLATIONS: {"warn": config.ohlc_violations_warn, "fail": config.ohlc_violations_fail},
        },
    )


__all__ = [
    "DEFAULT_THRESHOLDS",
    "MISSING_PCT",
    "OHLC_VIOLATIONS",
    "MetricThresholds",
    "QualityStatus",
    "ThresholdOverride",
    "merge_threshold_overrides",
    "thresholds_from_config",
    "worst_status",
]
