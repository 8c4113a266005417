"""Validation of provider minute bars before they reach the bar store."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from barvault.core.models import Bar, RawBar
from barvault.core.models.bars import to_decimal

_PRICE_FIELDS = ("open", "high", "low", "close")


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    """Represents a single validation issue detected for one provider record."""

    index: int
    field: str
    code: str
    message: str
    fatal: bool = True

    def __str__(self) -> str:
        return f"[{self.index}] {self.field}: {self.message}"


def ohlc_issues(
    open_: Decimal, high: Decimal, low: Decimal, close: Decimal, *, index: int = 0
) -> list[ValidationIssue]:
    """Check ``high >= max(open, close)`` and ``low <= min(open, close)``."""

    issues: list[ValidationIssue] = []
    if high < open_ or high < close:
        issues.append(
            ValidationIssue(
                index=index,
                field="high",
                code="HIGH_BELOW_BODY",
                message=f"high {high} is below max(open {open_}, close {close})",
            )
        )
    if low > open_ or low > close:
        issues.append(
            ValidationIssue(
                index=index,
                field="low",
                code="LOW_ABOVE_BODY",
                message=f"low {low} is above min(open {open_}, close {close})",
            )
        )
    return issues


def validate_bar(bar: Bar, *, index: int = 0) -> list[ValidationIssue]:
    """Return every invariant the typed ``bar`` breaks (empty when valid)."""

    issues = ohlc_issues(bar.open, bar.high, bar.low, bar.close, index=index)
    if bar.volume < 0:
        issues.append(
            ValidationIssue(index=index, field="volume", code="NEGATIVE_VALUE", message="volume must be non-negative")
        )
    if bar.trade_count is not None and bar.trade_count < 0:
        issues.append(
            ValidationIssue(
                index=index, field="trade_count", code="NEGATIVE_VALUE", message="trade_count must be non-negative"
            )
        )
    return issues


def _price(raw: RawBar, field: str, index: int, issues: list[ValidationIssue]) -> Decimal | None:
    value = getattr(raw, field)
    if value is None:
        issues.append(ValidationIssue(index=index, field=field, code="MISSING_FIELD", message=f"{field} is required"))
        return None
    try:
        price = to_decimal(value)
    except (InvalidOperation, ValueError):
        price = None
    if price is None or not price.is_finite():
        issues.append(
            ValidationIssue(index=index, field=field, code="NON_FINITE_VALUE", message=f"{field} must be finite")
        )
        return None
    return price


def validate_raw_bars(symbol: str, records: Sequence[RawBar]) -> tuple[list[Bar], list[ValidationIssue]]:
    """Convert provider records into bars, splitting off the ones that cannot be stored."""

    bars: list[Bar] = []
    issues: list[ValidationIssue] = []

    for index, raw in enumerate(records):
        record_issues: list[ValidationIssue] = []
        if raw.timestamp is None:
            record_issues.append(
                ValidationIssue(index=index, field="timestamp", code="MISSING_FIELD", message="timestamp is required")
            )
        prices = [_price(raw, field, index, record_issues) for field in _PRICE_FIELDS]
        if raw.volume is None:
            record_issues.append(
                ValidationIssue(index=index, field="volume", code="MISSING_FIELD", message="volume is required")
            )

        if record_issues:
            issues.extend(record_issues)
            continue

        vwap = _price(raw, "vwap", index, record_issues) if raw.vwap is not None else None
        if record_issues:
            issues.extend(record_issues)
            continue

        open_, high, low, close = prices
        bar = Bar(
            symbol=symbol,
            timestamp=raw.timestamp,
            open=open_,  # type: ignore[arg-type]
            high=high,  # type: ignore[arg-type]
            low=low,  # type: ignore[arg-type]
            close=close,  # type: ignore[arg-type]
            volume=int(raw.volume),  # type: ignore[arg-type]
            vwap=vwap,
            trade_count=None if raw.trade_count is None else int(raw.trade_count),
        )
        bar_issues = validate_bar(bar, index=index)
        if bar_issues:
            issues.extend(bar_issues)
            continue
        bars.append(bar)

    return bars, issues


__all__ = ["ValidationIssue", "ohlc_issues", "validate_bar", "validate_raw_bars"]
