"""httpx client for Alpaca market data bars and the trading calendar."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx

from barvault.core.data.providers.base import (
    DEFAULT_TIMEFRAME,
    CalendarDay,
    HttpConfig,
    normalize_symbols,
)
from barvault.core.exceptions import FetchError
from barvault.core.logging import logger
from barvault.core.models import RawBar, ensure_utc

if TYPE_CHECKING:
    from barvault.core.config import ProviderConfig

PROVIDER_NAME = "alpaca"
MAX_PAGES = 100
PAGE_LIMIT = 10_000


def _isoformat(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_bar(payload: dict[str, Any]) -> RawBar:
    return RawBar(
        timestamp=datetime.fromisoformat(payload["t"]),
        open=payload.get("o"),
        high=payload.get("h"),
        low=payload.get("l"),
        close=payload.get("c"),
        volume=payload.get("v"),
        vwap=payload.get("vw"),
        trade_count=payload.get("n"),
    )


class AlpacaBarsClient:
    """Pages through ``/v2/stocks/bars`` and reads ``/v2/calendar``.

    Use as an async context manager, or call :meth:`close` when done. A
    custom ``transport`` may be injected (``httpx.MockTransport`` in tests).
    """

    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str | None,
        api_secret: str | None,
        *,
        data_url: str = "https://data.alpaca.markets",
        api_url: str = "https://paper-api.alpaca.markets",
        feed: str = "iex",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {}
        if api_key:
            headers["APCA-API-KEY-ID"] = api_key
        if api_secret:
            headers["APCA-API-SECRET-KEY"] = api_secret
        self.data_config = HttpConfig(base_url=data_url, timeout=timeout, headers=headers)
        self.api_config = HttpConfig(base_url=api_url, timeout=timeout, headers=headers)
        self.feed = feed
        self._transport = transport
        self._data_client: httpx.AsyncClient | None = None
        self._api_client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: ProviderConfig, **kwargs: Any) -> AlpacaBarsClient:
        return cls(
            config.api_key,
            config.api_secret,
            data_url=config.data_url,
            api_url=config.api_url,
            feed=config.feed,
            timeout=config.timeout,
            **kwargs,
        )

    async def __aenter__(self) -> AlpacaBarsClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _build_client(self, config: HttpConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout),
            headers={"User-Agent": config.user_agent, **config.headers},
            transport=self._transport,
        )

    def _data(self) -> httpx.AsyncClient:
        if self._data_client is None:
            self._data_client = self._build_client(self.data_config)
        return self._data_client

    def _api(self) -> httpx.AsyncClient:
        if self._api_client is None:
            self._api_client = self._build_client(self.api_config)
        return self._api_client

    async def close(self) -> None:
        """Close HTTP clients and cleanup resources."""
        for client in (self._data_client, self._api_client):
            if client is not None:
                await client.aclose()
        self._data_client = None
        self._api_client = None

    async def _get_json(self, client: httpx.AsyncClient, path: str, params: dict[str, Any]) -> Any:
        try:
            response = await client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise FetchError(f"Alpaca request to {path} failed: {exc}", PROVIDER_NAME) from exc

        if response.status_code >= 400:
            raise FetchError(
                f"Alpaca request to {path} returned HTTP {response.status_code}: {response.text[:200]}",
                PROVIDER_NAME,
                status_code=response.status_code,
            )
        try:
            return response.json(parse_float=Decimal)
        except ValueError as exc:
            raise FetchError(f"Alpaca returned invalid JSON for {path}", PROVIDER_NAME) from exc

    async def get_bars(
        self,
        symbols: str | Sequence[str],
        start: datetime,
        end: datetime,
        timeframe: str = DEFAULT_TIMEFRAME,
    ) -> dict[str, list[RawBar]]:
        """Fetch bars for ``[start, end)`` following ``next_page_token`` up to ``MAX_PAGES`` pages."""

        requested = normalize_symbols(symbols)
        result: dict[str, list[RawBar]] = {symbol: [] for symbol in requested}
        if not requested:
            return result

        params: dict[str, Any] = {
            "symbols": ",".join(requested),
            "timeframe": timeframe,
            "start": _isoformat(start),
            "end": _isoformat(end),
            "limit": PAGE_LIMIT,
            "adjustment": "raw",
            "feed": self.feed,
        }

        page_token: str | None = None
        for page in range(MAX_PAGES):
            if page_token:
                params["page_token"] = page_token
            payload = await self._get_json(self._data(), "/v2/stocks/bars", params)
            for symbol, bars in (payload.get("bars") or {}).items():
                result.setdefault(symbol, []).extend(_parse_bar(bar) for bar in bars or [])
            page_token = payload.get("next_page_token")
            if not page_token:
                break
        else:
            logger.warning("[Alpaca] stopped after {} pages for {}", MAX_PAGES, ",".join(requested))

        return result

    async def get_calendar(self, start: date, end: date) -> list[CalendarDay]:
        payload = await self._get_json(
            self._api(), "/v2/calendar", {"start": start.isoformat(), "end": end.isoformat()}
        )
        return [
            CalendarDay(
                date=date.fromisoformat(entry["date"]),
                open=time.fromisoformat(entry["open"]),
                close=time.fromisoformat(entry["close"]),
            )
            for entry in payload or []
        ]


__all__ = ["MAX_PAGES", "PAGE_LIMIT", "PROVIDER_NAME", "AlpacaBarsClient"]
