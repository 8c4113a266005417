"""Bounded-concurrency worker pool used for per-symbol fan-out."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from barvault.core.exceptions import BarVaultError
from barvault.core.logging import log_context, logger

T = TypeVar("T")

DEFAULT_MAX_CONCURRENCY = 5

_UNSET: Any = object()


@dataclass(slots=True, frozen=True)
class SymbolFailure:
    """A per-symbol error captured by the pool instead of being raised.

    ``bars`` holds whatever was written before the failure.
    """

    error: str
    error_code: str
    bars: int = 0

    @classmethod
    def from_exception(cls, exc: BaseException, *, bars: int = 0) -> SymbolFailure:
        if isinstance(exc, BarVaultError):
            partial = bars or int(exc.details.get("bars_loaded", 0))
            return cls(error=exc.message, error_code=exc.error_code, bars=partial)
        if isinstance(exc, TimeoutError):
            return cls(error="timed out", error_code="TIMEOUT", bars=bars)
        return cls(error=str(exc) or type(exc).__name__, error_code=type(exc).__name__, bars=bars)


@dataclass(slots=True)
class _WorkItem(Generic[T]):
    key: str
    factory: Callable[[], Awaitable[T]]


class BoundedWorkerPool:
    """Runs keyed coroutines with at most ``max_concurrency`` in flight.

    Items are queued and drained by a fixed number of worker tasks. The bound
    is shared by every :meth:`run` on the same pool, so concurrent runs never
    exceed it together. Each item runs under its own timeout; a failure or
    timeout is recorded for that key only and never cancels the other items.
    """

    def __init__(self, max_concurrency: int = DEFAULT_MAX_CONCURRENCY, *, timeout: float | None = None) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self.max_concurrency = max_concurrency
        self.timeout = timeout
        self._slots = asyncio.Semaphore(max_concurrency)

    async def run(
        self,
        keys: Iterable[str],
        worker: Callable[[str], Awaitable[T]],
        *,
        operation: str = "task",
        timeout: float | None = _UNSET,
        on_failure: Callable[[str, BaseException], Any] | None = None,
    ) -> dict[str, T | SymbolFailure]:
        """Run ``worker(key)`` for each key and return results in input order."""

        ordered = list(dict.fromkeys(keys))
        if not ordered:
            return {}
        item_timeout = self.timeout if timeout is _UNSET else timeout

        queue: asyncio.Queue[_WorkItem[T]] = asyncio.Queue()
        for key in ordered:
            queue.put_nowait(_WorkItem(key=key, factory=lambda key=key: worker(key)))

        results: dict[str, T | SymbolFailure] = {}

        async def _consume() -> None:
            while True:
                try:
                    item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    async with self._slots:
                        results[item.key] = await self._run_item(item, operation, item_timeout, on_failure)
                finally:
                    queue.task_done()

        workers = [asyncio.create_task(_consume()) for _ in range(min(self.max_concurrency, len(ordered)))]
        await asyncio.gather(*workers)
        return {key: results[key] for key in ordered}

    async def _run_item(
        self,
        item: _WorkItem[T],
        operation: str,
        timeout: float | None,
        on_failure: Callable[[str, BaseException], Any] | None,
    ) -> T | SymbolFailure:
        with log_context(symbol=item.key, operation=operation):
            try:
                if timeout is None:
                    return await item.factory()
                return await asyncio.wait_for(item.factory(), timeout=timeout)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if isinstance(exc, TimeoutError):
                    logger.error("[Pool] {}: {} timed out after {}s", item.key, operation, timeout)
                else:
                    logger.error("[Pool] {}: {} failed: {}", item.key, operation, exc)
                if on_failure is not None:
                    on_failure(item.key, exc)
                return SymbolFailure.from_exception(exc)


__all__ = ["DEFAULT_MAX_CONCURRENCY", "BoundedWorkerPool", "SymbolFailure"]
