"""Fetch client contract consumed by the loader and gap filler."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Protocol

from barvault.core.models import RawBar

DEFAULT_TIMEFRAME = "1Min"


class FetchClient(Protocol):
    """Upstream minute-bar source.

    ``get_bars`` returns one list per requested symbol; an empty list is a
    valid answer. Failures raise :class:`~barvault.core.exceptions.FetchError`
    and are always treated as retriable.
    """

    name: str

    async def get_bars(
        self,
        symbols: str | Sequence[str],
        start: datetime,
        end: datetime,
        timeframe: str = DEFAULT_TIMEFRAME,
    ) -> dict[str, list[RawBar]]: ...


@dataclass(slots=True, frozen=True)
class CalendarDay:
    """One trading day as published by the provider (exchange local times)."""

    date: date
    open: time
    close: time


@dataclass
class HttpConfig:
    """Configuration for HTTP client behavior."""

    base_url: str
    timeout: float = 30.0
    user_agent: str = "barvault/0.1.0"
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url cannot be empty")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


def normalize_symbols(symbols: str | Sequence[str]) -> list[str]:
    if isinstance(symbols, str):
        symbols = [symbols]
    return [symbol.strip().upper() for symbol in symbols if symbol and symbol.strip()]


__all__ = ["DEFAULT_TIMEFRAME", "CalendarDay", "FetchClient", "HttpConfig", "normalize_symbols"]
