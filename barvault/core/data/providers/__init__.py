"""Upstream market-data clients."""

from barvault.core.data.providers.alpaca import AlpacaBarsClient
from barvault.core.data.providers.base import DEFAULT_TIMEFRAME, CalendarDay, FetchClient, HttpConfig

__all__ = ["DEFAULT_TIMEFRAME", "AlpacaBarsClient", "CalendarDay", "FetchClient", "HttpConfig"]
