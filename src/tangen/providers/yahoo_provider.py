from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from tangen.errors import ProviderError
from tangen.providers.base import MarketDataProvider
from tangen.providers.http import build_client, request_json

LOGGER = logging.getLogger(__name__)

CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart"
SEARCH_URL = "https://query1.finance.yahoo.com/v1/finance/search"
MOVERS_URL = "https://query1.finance.yahoo.com/v1/finance/screener/predefined/saved"
HOT_STOCKS_LIMIT = 15


@dataclass(slots=True)
class QuoteSnapshot:
    symbol: str
    name: str
    price: float | None
    change_percent: float | None
    volume: float | None = None


@dataclass(slots=True)
class SearchResult:
    symbol: str
    name: str
    quote_type: str


def _raw(value: Any) -> float | None:
    # Screener payloads wrap numbers as {"raw": ..., "fmt": ...} when formatted=true.
    if isinstance(value, dict):
        value = value.get("raw")
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _chart_result(payload: Any, symbol: str) -> dict[str, Any]:
    try:
        result = payload["chart"]["result"][0]
    except (KeyError, IndexError, TypeError) as exc:
        raise ProviderError(f"Malformed chart payload for {symbol}") from exc
    if not isinstance(result, dict):
        raise ProviderError(f"Malformed chart payload for {symbol}")
    return result


class YahooChartMarketDataProvider(MarketDataProvider):
    def __init__(
        self,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def get_closes(self, symbol: str, period: str) -> list[float | None]:
        async with build_client(self.timeout_seconds, self.transport) as client:
            payload = await request_json(
                client,
                "GET",
                f"{CHART_URL}/{symbol}",
                params={"interval": "1d", "range": period},
            )
        result = _chart_result(payload, symbol)
        try:
            closes = result["indicators"]["quote"][0]["close"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(f"Chart payload for {symbol} has no close series") from exc
        if not isinstance(closes, list):
            raise ProviderError(f"Chart payload for {symbol} has no close series")
        return [_raw(v) for v in closes]


class YahooQuoteService:
    """Quote lookups used by the watchlist and explore screens."""

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def get_stock_data(self, symbol: str) -> QuoteSnapshot | None:
        try:
            async with build_client(self.timeout_seconds, self.transport) as client:
                payload = await request_json(client, "GET", f"{CHART_URL}/{symbol}")
            meta = _chart_result(payload, symbol).get("meta") or {}
        except ProviderError as exc:
            LOGGER.warning("Quote fetch failed for %s: %s", symbol, exc)
            return None
        return QuoteSnapshot(
            symbol=symbol,
            name=str(meta.get("shortName") or symbol),
            price=_raw(meta.get("regularMarketPrice")),
            change_percent=_raw(meta.get("regularMarketChangePercent")),
            volume=_raw(meta.get("regularMarketVolume")),
        )

    async def get_realtime_update(self, symbol: str) -> QuoteSnapshot | None:
        try:
            async with build_client(self.timeout_seconds, self.transport) as client:
                payload = await request_json(
                    client,
                    "GET",
                    f"{CHART_URL}/{symbol}",
                    params={"interval": "1m", "range": "1d"},
                )
            meta = _chart_result(payload, symbol).get("meta") or {}
        except ProviderError as exc:
            LOGGER.warning("Realtime update failed for %s: %s", symbol, exc)
            return None
        return QuoteSnapshot(
            symbol=symbol,
            name=str(meta.get("shortName") or symbol),
            price=_raw(meta.get("regularMarketPrice")),
            change_percent=_raw(meta.get("regularMarketChangePercent")),
        )

    async def search_stocks(self, query: str) -> list[SearchResult]:
        try:
            async with build_client(self.timeout_seconds, self.transport) as client:
                payload = await request_json(
                    client,
                    "GET",
                    SEARCH_URL,
                    params={"q": query, "quotesCount": 10, "lang": "en-US"},
                )
        except ProviderError as exc:
            LOGGER.warning("Stock search failed for %r: %s", query, exc)
            return []

        quotes = payload.get("quotes", []) if isinstance(payload, dict) else []
        out: list[SearchResult] = []
        for quote in quotes:
            if not isinstance(quote, dict) or quote.get("quoteType") != "EQUITY":
                continue
            symbol = str(quote.get("symbol") or "").strip()
            if not symbol:
                continue
            out.append(
                SearchResult(
                    symbol=symbol,
                    name=str(quote.get("shortname") or quote.get("longname") or symbol),
                    quote_type="EQUITY",
                )
            )
        return out

    async def _screener(self, client: httpx.AsyncClient, scr_id: str) -> list[dict[str, Any]]:
        payload = await request_json(
            client,
            "GET",
            MOVERS_URL,
            params={"formatted": "true", "scrIds": scr_id, "count": 10},
        )
        try:
            quotes = payload["finance"]["result"][0]["quotes"]
        except (KeyError, IndexError, TypeError):
            return []
        return [q for q in quotes if isinstance(q, dict)] if isinstance(quotes, list) else []

    async def get_market_movers(self, kind: str) -> list[QuoteSnapshot]:
        scr_id = "day_gainers" if kind == "gainers" else "day_losers"
        try:
            async with build_client(self.timeout_seconds, self.transport) as client:
                quotes = await self._screener(client, scr_id)
        except ProviderError as exc:
            LOGGER.warning("Market movers (%s) failed: %s", kind, exc)
            return []
        return [_to_snapshot(q) for q in quotes if q.get("symbol")]

    async def get_hot_stocks(self) -> list[QuoteSnapshot]:
        try:
            async with build_client(self.timeout_seconds, self.transport) as client:
                batches = await asyncio.gather(
                    self._screener(client, "day_gainers"),
                    self._screener(client, "day_losers"),
                    self._screener(client, "most_actives"),
                )
        except ProviderError as exc:
            LOGGER.warning("Hot stocks fetch failed: %s", exc)
            return []

        by_symbol: dict[str, dict[str, Any]] = {}
        for batch in batches:
            for quote in batch:
                symbol = quote.get("symbol")
                if symbol:
                    by_symbol[str(symbol)] = quote

        ranked = sorted(
            by_symbol.values(),
            key=lambda q: abs(_raw(q.get("regularMarketChangePercent")) or 0.0),
            reverse=True,
        )
        return [_to_snapshot(q) for q in ranked[:HOT_STOCKS_LIMIT]]


def _to_snapshot(quote: dict[str, Any]) -> QuoteSnapshot:
    symbol = str(quote.get("symbol"))
    return QuoteSnapshot(
        symbol=symbol,
        name=str(quote.get("shortName") or symbol),
        price=_raw(quote.get("regularMarketPrice")),
        change_percent=_raw(quote.get("regularMarketChangePercent")),
        volume=_raw(quote.get("regularMarketVolume")),
    )
