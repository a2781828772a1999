from __future__ import annotations

import asyncio

from tangen.errors import ProviderError
from tangen.providers.base import MarketDataProvider


class YFinanceMarketDataProvider(MarketDataProvider):
    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self.timeout_seconds = timeout_seconds

    def _history_closes(self, symbol: str, period: str) -> list[float | None]:
        try:
            import yfinance as yf
        except Exception as e:
            raise ProviderError("yfinance is not installed.") from e

        try:
            hist = yf.Ticker(symbol).history(period=period, interval="1d", auto_adjust=True)
        except Exception as e:
            raise ProviderError(f"yfinance history failed for {symbol}: {type(e).__name__}: {e}") from e

        if hist is None or hist.empty or "Close" not in hist.columns:
            raise ProviderError(f"yfinance returned no close column for {symbol}")
        return [None if v != v else float(v) for v in hist["Close"].tolist()]

    async def get_closes(self, symbol: str, period: str) -> list[float | None]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._history_closes, symbol, period),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"yfinance history timed out for {symbol}") from e
