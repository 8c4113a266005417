"""Resilience and concurrency primitives."""

from barvault.core.patterns.pool import DEFAULT_MAX_CONCURRENCY, BoundedWorkerPool, SymbolFailure
from barvault.core.patterns.retry import FixedDelayRetry, RetryConfig, RetryState

__all__ = [
    "DEFAULT_MAX_CONCURRENCY",
    "BoundedWorkerPool",
    "FixedDelayRetry",
    "RetryConfig",
    "RetryState",
    "SymbolFailure",
]
