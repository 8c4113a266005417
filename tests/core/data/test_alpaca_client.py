"""Tests for the Alpaca bars client using httpx.MockTransport."""

from __future__ import annotations

import json
from datetime import UTC, date, datetime, time
from decimal import Decimal

import httpx
import pytest

from barvault.core.config import ProviderConfig
from barvault.core.data.providers import AlpacaBarsClient, CalendarDay, HttpConfig
from barvault.core.exceptions import FetchError

START = datetime(2024, 3, 5, 14, 30, tzinfo=UTC)
END = datetime(2024, 3, 5, 14, 33, tzinfo=UTC)


def _bar(ts: str, close: float = 100.5) -> dict[str, object]:
    return {"t": ts, "o": 100.0, "h": 101.0, "l": 99.0, "c": close, "v": 1500, "n": 12, "vw": 100.25}


def _client(handler) -> AlpacaBarsClient:
    return AlpacaBarsClient("key", "secret", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_get_bars_follows_page_tokens() -> None:
    requests: list[httpx.Request] = []
    pages = [
        {"bars": {"AAPL": [_bar("2024-03-05T14:30:00Z")]}, "next_page_token": "p2"},
        {
            "bars": {"AAPL": [_bar("2024-03-05T14:31:00Z")], "MSFT": [_bar("2024-03-05T14:30:00Z")]},
            "next_page_token": None,
        },
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=pages[len(requests) - 1])

    async with _client(handler) as client:
        result = await client.get_bars(["aapl", "MSFT", "NVDA"], START, END)

    assert list(result) == ["AAPL", "MSFT", "NVDA"]
    assert [bar.timestamp for bar in result["AAPL"]] == [START, datetime(2024, 3, 5, 14, 31, tzinfo=UTC)]
    assert result["NVDA"] == []
    assert result["AAPL"][0].close == Decimal("100.5")
    assert result["AAPL"][0].trade_count == 12

    first, second = requests
    assert first.url.path == "/v2/stocks/bars"
    assert first.url.params["symbols"] == "AAPL,MSFT,NVDA"
    assert first.url.params["timeframe"] == "1Min"
    assert first.url.params["start"] == "2024-03-05T14:30:00Z"
    assert first.url.params["end"] == "2024-03-05T14:33:00Z"
    assert first.url.params["adjustment"] == "raw"
    assert first.url.params["feed"] == "iex"
    assert "page_token" not in first.url.params
    assert second.url.params["page_token"] == "p2"
    assert first.headers["APCA-API-KEY-ID"] == "key"
    assert first.headers["APCA-API-SECRET-KEY"] == "secret"


@pytest.mark.asyncio
async def test_empty_bars_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"bars": None, "next_page_token": None})

    async with _client(handler) as client:
        assert await client.get_bars("AAPL", START, END) == {"AAPL": []}


@pytest.mark.asyncio
async def test_http_error_status_raises_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="too many requests")

    async with _client(handler) as client:
        with pytest.raises(FetchError) as exc_info:
            await client.get_bars("AAPL", START, END)

    assert exc_info.value.status_code == 429
    assert exc_info.value.provider == "alpaca"


@pytest.mark.asyncio
async def test_transport_error_raises_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(FetchError) as exc_info:
            await client.get_bars("AAPL", START, END)

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_invalid_json_raises_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"not json")

    async with _client(handler) as client:
        with pytest.raises(FetchError):
            await client.get_bars("AAPL", START, END)


@pytest.mark.asyncio
async def test_get_calendar_parses_days() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        payload = [
            {"date": "2024-11-29", "open": "09:30", "close": "13:00"},
            {"date": "2024-12-02", "open": "09:30", "close": "16:00"},
        ]
        return httpx.Response(200, content=json.dumps(payload).encode())

    async with _client(handler) as client:
        days = await client.get_calendar(date(2024, 11, 29), date(2024, 12, 2))

    assert days == [
        CalendarDay(date(2024, 11, 29), time(9, 30), time(13, 0)),
        CalendarDay(date(2024, 12, 2), time(9, 30), time(16, 0)),
    ]
    assert seen[0].url.host == "paper-api.alpaca.markets"
    assert seen[0].url.path == "/v2/calendar"
    assert seen[0].url.params["start"] == "2024-11-29"


def test_from_config() -> None:
    config = ProviderConfig(api_key="k", api_secret="s", feed="sip", data_url="https://data.example.test")

    client = AlpacaBarsClient.from_config(config)

    assert client.feed == "sip"
    assert client.data_config.base_url == "https://data.example.test"
    assert client.data_config.headers == {"APCA-API-KEY-ID": "k", "APCA-API-SECRET-KEY": "s"}


def test_http_config_validation() -> None:
    with pytest.raises(ValueError):
        HttpConfig(base_url="")
    with pytest.raises(ValueError):
        HttpConfig(base_url="https://example.test", timeout=0)
