"""Prometheus metrics helpers for the ingestion pipeline."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

_ALLOWED_OUTCOMES = {"success", "retry", "exhausted"}
_ALLOWED_OPERATIONS = {"backfill", "gap_check", "gap_fill", "day_fill", "catch_up", "resume", "verify"}


class PipelineMetrics:
    """Collects fetch, write and per-symbol metrics for pipeline runs."""

    def __init__(self, *, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.fetch_attempts_total = Counter(
            "barvault_fetch_attempts_total",
            "Upstream bar fetch attempts grouped by outcome.",
            ("outcome",),
            registry=self.registry,
        )
        self.bars_written_total = Counter(
            "barvault_bars_written_total",
            "Bars upserted into the bar store.",
            registry=self.registry,
        )
        self.bars_rejected_total = Counter(
            "barvault_bars_rejected_total",
            "Provider bars rejected by validation before persistence.",
            registry=self.registry,
        )
        self.symbol_failures_total = Counter(
            "barvault_symbol_failures_total",
            "Per-symbol failures captured during multi-symbol runs.",
            ("operation",),
            registry=self.registry,
        )
        self.symbol_duration_seconds = Histogram(
            "barvault_symbol_duration_seconds",
            "Wall-clock duration of one symbol's work within a run.",
            ("operation",),
            buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 300.0, 900.0, float("inf")),
            registry=self.registry,
        )

    def record_fetch(self, outcome: str) -> None:
        label = outcome if outcome in _ALLOWED_OUTCOMES else "__other__"
        self.fetch_attempts_total.labels(outcome=label).inc()

    def record_written(self, count: int) -> None:
        if count > 0:
            self.bars_written_total.inc(count)

    def record_rejected(self, count: int) -> None:
        if count > 0:
            self.bars_rejected_total.inc(count)

    def record_failure(self, operation: str) -> None:
        self.symbol_failures_total.labels(operation=_operation_label(operation)).inc()

    def observe_symbol(self, operation: str, seconds: float) -> None:
        self.symbol_duration_seconds.labels(operation=_operation_label(operation)).observe(seconds)

    def render(self) -> bytes:
        """Render metrics in Prometheus exposition format."""

        return generate_latest(self.registry)


def _operation_label(operation: str) -> str:
    return operation if operation in _ALLOWED_OPERATIONS else "__other__"


_DEFAULT_METRICS: PipelineMetrics | None = None


def get_pipeline_metrics() -> PipelineMetrics:
    """Return the process-wide metrics instance."""

    global _DEFAULT_METRICS
    if _DEFAULT_METRICS is None:
        _DEFAULT_METRICS = PipelineMetrics()
    return _DEFAULT_METRICS


def configure_pipeline_metrics(metrics: PipelineMetrics | None) -> None:
    """Override the process-wide metrics instance for application wiring or tests."""

    global _DEFAULT_METRICS
    _DEFAULT_METRICS = metrics


__all__ = ["PipelineMetrics", "configure_pipeline_metrics", "get_pipeline_metrics"]
