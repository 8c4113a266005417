"""Tests for the bounded per-symbol worker pool."""

from __future__ import annotations

import asyncio

import pytest

from barvault.core.exceptions import FetchError
from barvault.core.patterns import BoundedWorkerPool, SymbolFailure


@pytest.mark.asyncio
async def test_results_follow_input_order_and_dedupe() -> None:
    pool = BoundedWorkerPool(max_concurrency=2)

    async def worker(symbol: str) -> str:
        await asyncio.sleep(0.01 if symbol == "AAPL" else 0)
        return symbol.lower()

    results = await pool.run(["AAPL", "MSFT", "AAPL", "NVDA"], worker)

    assert list(results) == ["AAPL", "MSFT", "NVDA"]
    assert results == {"AAPL": "aapl", "MSFT": "msft", "NVDA": "nvda"}


@pytest.mark.asyncio
async def test_failures_are_isolated_per_symbol() -> None:
    pool = BoundedWorkerPool(max_concurrency=3)
    failed: list[str] = []

    async def worker(symbol: str) -> int:
        if symbol == "BAD":
            raise FetchError("upstream down", "stub", details={"bars_loaded": 7})
        return 100

    results = await pool.run(
        ["AAPL", "BAD", "MSFT"],
        worker,
        operation="backfill",
        on_failure=lambda key, exc: failed.append(key),
    )

    assert results["AAPL"] == 100
    assert results["MSFT"] == 100
    failure = results["BAD"]
    assert isinstance(failure, SymbolFailure)
    assert failure.error_code == "FETCH_ERROR"
    assert failure.error == "upstream down"
    assert failure.bars == 7
    assert failed == ["BAD"]


@pytest.mark.asyncio
async def test_timeout_becomes_failure() -> None:
    pool = BoundedWorkerPool(max_concurrency=2, timeout=0.05)

    async def worker(symbol: str) -> str:
        if symbol == "SLOW":
            await asyncio.sleep(5)
        return "done"

    results = await pool.run(["SLOW", "FAST"], worker)

    assert results["FAST"] == "done"
    assert results["SLOW"] == SymbolFailure(error="timed out", error_code="TIMEOUT")


@pytest.mark.asyncio
async def test_per_run_timeout_override() -> None:
    pool = BoundedWorkerPool(max_concurrency=1, timeout=0.01)

    async def worker(symbol: str) -> str:
        await asyncio.sleep(0.05)
        return symbol

    results = await pool.run(["AAPL"], worker, timeout=None)

    assert results == {"AAPL": "AAPL"}


@pytest.mark.asyncio
async def test_concurrency_bound_is_respected_across_runs() -> None:
    pool = BoundedWorkerPool(max_concurrency=2)
    in_flight = 0
    peak = 0

    async def worker(symbol: str) -> None:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1

    await asyncio.gather(
        pool.run([f"A{i}" for i in range(5)], worker),
        pool.run([f"B{i}" for i in range(5)], worker),
    )

    assert peak == 2


@pytest.mark.asyncio
async def test_unexpected_exception_maps_to_type_name() -> None:
    pool = BoundedWorkerPool(max_concurrency=1)

    async def worker(symbol: str) -> None:
        raise KeyError(symbol)

    failure = (await pool.run(["AAPL"], worker))["AAPL"]

    assert isinstance(failure, SymbolFailure)
    assert failure.error_code == "KeyError"


@pytest.mark.asyncio
async def test_empty_input() -> None:
    pool = BoundedWorkerPool()

    async def worker(symbol: str) -> None:
        raise AssertionError("should not run")

    assert await pool.run([], worker) == {}


def test_rejects_non_positive_concurrency() -> None:
    with pytest.raises(ValueError):
        BoundedWorkerPool(max_concurrency=0)
