from __future__ import annotations

import logging
import math
from typing import Sequence

from tangen.config import SHORT_TERM, RetryPolicy
from tangen.models import StockStatistics
from tangen.providers.base import MarketDataProvider
from tangen.retry import with_retry
from tangen.storage import CacheStore, cache_key

LOGGER = logging.getLogger(__name__)

MIN_DATA_POINTS = 5
RECENT_LOOKBACK = 5
TRADING_DAYS_PER_YEAR = 252


def horizon_range(horizon: str) -> str:
    return "1mo" if horizon == SHORT_TERM else "5y"


def _valid_closes(closes: Sequence[float | None]) -> list[float]:
    out: list[float] = []
    for v in closes:
        if v is None or isinstance(v, bool):
            continue
        price = float(v)
        # NaN and non-positive prints cannot anchor a return.
        if math.isnan(price) or math.isinf(price) or price <= 0:
            continue
        out.append(price)
    return out


def annualized_volatility(closes: Sequence[float]) -> float:
    """Population standard deviation of simple daily returns, scaled by sqrt(252)."""
    returns = [(closes[i] - closes[i - 1]) / closes[i - 1] for i in range(1, len(closes))]
    if not returns:
        return 0.0
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    return math.sqrt(variance) * math.sqrt(TRADING_DAYS_PER_YEAR)


def compute_statistics(closes: Sequence[float | None]) -> StockStatistics | None:
    prices = _valid_closes(closes)
    if len(prices) < MIN_DATA_POINTS:
        return None

    lookback = min(RECENT_LOOKBACK, len(prices) - 1)
    return StockStatistics(
        recent_growth=(prices[-1] / prices[-1 - lookback] - 1) * 100,
        historical_growth=(prices[-1] / prices[0] - 1) * 100,
        volatility=annualized_volatility(prices),
        data_points=len(prices),
    )


class MarketDataFetcher:
    def __init__(
        self,
        provider: MarketDataProvider,
        cache: CacheStore,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.retry = retry or RetryPolicy()

    async def fetch_market_stats(self, symbol: str, horizon: str) -> StockStatistics | None:
        key = cache_key("stock", f"{symbol}_{horizon}")
        cached = self.cache.get(key)
        if cached is not None:
            try:
                return StockStatistics.from_dict(cached)
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Discarding malformed cached stats for %s: %s", symbol, exc)

        period = horizon_range(horizon)
        try:
            closes = await with_retry(
                lambda: self.provider.get_closes(symbol, period),
                self.retry,
                label=f"market data {symbol}",
            )
        except Exception as exc:
            LOGGER.warning("Market data unavailable for %s (%s): %s", symbol, period, exc)
            return None

        stats = compute_statistics(closes)
        if stats is None:
            LOGGER.info("Not enough price history for %s (%s)", symbol, period)
            return None

        self.cache.put(key, stats.to_dict())
        return stats
