"""Tests for provider bar validation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from barvault.core.data.ingestion import ohlc_issues, validate_bar, validate_raw_bars
from barvault.core.models import Bar, RawBar

TS = datetime(2024, 3, 5, 15, 0, tzinfo=UTC)


def _raw(**overrides) -> RawBar:
    values = {
        "timestamp": TS,
        "open": Decimal("100"),
        "high": Decimal("101"),
        "low": Decimal("99"),
        "close": Decimal("100.5"),
        "volume": 1200,
    }
    values.update(overrides)
    return RawBar(**values)


def test_valid_bar_passes() -> None:
    bars, issues = validate_raw_bars("AAPL", [_raw()])

    assert issues == []
    assert len(bars) == 1
    assert bars[0].symbol == "AAPL"
    assert bars[0].close == Decimal("100.5")


def test_high_below_open_is_rejected() -> None:
    bars, issues = validate_raw_bars(
        "AAPL", [_raw(open=Decimal("100"), high=Decimal("99"), low=Decimal("98"), close=Decimal("99.5"))]
    )

    assert bars == []
    assert [issue.code for issue in issues] == ["HIGH_BELOW_BODY"]
    assert issues[0].field == "high"


def test_low_above_close_is_rejected() -> None:
    issues = ohlc_issues(Decimal("100"), Decimal("102"), Decimal("100.2"), Decimal("101"))

    assert [issue.code for issue in issues] == ["LOW_ABOVE_BODY"]


def test_open_equal_to_high_and_low_is_valid() -> None:
    assert ohlc_issues(Decimal("100"), Decimal("100"), Decimal("100"), Decimal("100")) == []


def test_invalid_records_do_not_block_valid_ones() -> None:
    records = [
        _raw(),
        _raw(timestamp=TS + timedelta(minutes=1), close=None),
        _raw(timestamp=TS + timedelta(minutes=2), high=float("nan")),
        _raw(timestamp=TS + timedelta(minutes=3), volume=None),
        _raw(timestamp=TS + timedelta(minutes=4)),
    ]

    bars, issues = validate_raw_bars("AAPL", records)

    assert [bar.timestamp for bar in bars] == [TS, TS + timedelta(minutes=4)]
    assert {(issue.index, issue.code) for issue in issues} == {
        (1, "MISSING_FIELD"),
        (2, "NON_FINITE_VALUE"),
        (3, "MISSING_FIELD"),
    }


def test_float_prices_are_converted() -> None:
    bars, issues = validate_raw_bars("AAPL", [_raw(open=100.25, high=101.0, low=99.0, close=100.5, vwap=100.3)])

    assert issues == []
    assert bars[0].open == Decimal("100.25")
    assert bars[0].vwap == Decimal("100.3")


def test_non_finite_vwap_is_rejected() -> None:
    bars, issues = validate_raw_bars("AAPL", [_raw(vwap=float("inf"))])

    assert bars == []
    assert issues[0].field == "vwap"


def test_negative_volume_is_rejected() -> None:
    bar = Bar("AAPL", TS, Decimal("100"), Decimal("101"), Decimal("99"), Decimal("100"), -1)

    assert [issue.field for issue in validate_bar(bar)] == ["volume"]
