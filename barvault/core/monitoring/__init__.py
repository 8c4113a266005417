"""Pipeline metrics."""

from barvault.core.monitoring.metrics import PipelineMetrics, configure_pipeline_metrics, get_pipeline_metrics

__all__ = ["PipelineMetrics", "configure_pipeline_metrics", "get_pipeline_metrics"]
