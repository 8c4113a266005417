"""Bar validation at the persistence boundary."""

from barvault.core.data.ingestion.validator import (
    ValidationIssue,
    ohlc_issues,
    validate_bar,
    validate_raw_bars,
)

__all__ = ["ValidationIssue", "ohlc_issues", "validate_bar", "validate_raw_bars"]
