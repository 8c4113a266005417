"""Logging utilities for pipeline monitoring and debugging."""

from barvault.core.logging.config import LOG_LEVELS, LogConfig
from barvault.core.logging.logger import (
    apply_log_config,
    configure_logging,
    current_trace_id,
    log_context,
    logger,
)

__all__ = [
    "LOG_LEVELS",
    "LogConfig",
    "apply_log_config",
    "configure_logging",
    "current_trace_id",
    "log_context",
    "logger",
]
