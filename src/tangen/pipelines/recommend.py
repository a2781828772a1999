from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from tangen.config import SHORT_TERM, AppConfig
from tangen.models import Recommendation, RecommendationResponse, SentimentAggregate, StockStatistics, TextItem
from tangen.providers.factory import (
    build_market_provider,
    build_rationale_generator,
    build_sentiment_analyzer,
    build_signal_providers,
)
from tangen.skills.market_data import MarketDataFetcher
from tangen.skills.ranker import rank_recommendations
from tangen.skills.rationale import (
    NO_CONTENT_RATIONALE,
    RationaleGenerator,
    TemplateRationaleGenerator,
    fallback_rationale,
    source_counts,
)
from tangen.skills.scoring import score
from tangen.skills.sentiment import LexiconSentimentAnalyzer, SentimentAnalyzer
from tangen.skills.signals import SignalFetcher
from tangen.storage import CacheStore

LOGGER = logging.getLogger(__name__)

NO_VALID_COMPANIES = "No valid companies provided"
NO_RESULTS = "No recommendations could be generated for the requested companies"


def normalize_companies(companies: Any) -> list[str]:
    """Uppercased, stripped, de-duplicated symbols; anything that is not a string is dropped."""
    if not isinstance(companies, (list, tuple)):
        return []
    out: list[str] = []
    seen: set[str] = set()
    for raw in companies:
        if not isinstance(raw, str):
            continue
        symbol = raw.strip().upper()
        if not symbol or symbol in seen:
            continue
        seen.add(symbol)
        out.append(symbol)
    return out


class RecommendationPipeline:
    def __init__(
        self,
        config: AppConfig,
        market: MarketDataFetcher,
        signals: list[SignalFetcher],
        analyzer: SentimentAnalyzer | None = None,
        rationale: RationaleGenerator | None = None,
    ) -> None:
        self.config = config
        self.market = market
        self.signals = signals
        self.analyzer = analyzer or LexiconSentimentAnalyzer(market.cache)
        self.rationale = rationale or TemplateRationaleGenerator()

    async def run(self, companies: list[str], horizon: str = SHORT_TERM) -> RecommendationResponse:
        symbols = normalize_companies(companies)
        if not symbols:
            return RecommendationResponse.error(NO_VALID_COMPANIES)

        started_at = time.perf_counter()
        results: list[Recommendation | None] = []
        batch_size = max(1, self.config.fetch.batch_size)
        limiter = asyncio.Semaphore(max(1, self.config.fetch.max_concurrency))

        async def _limited(symbol: str) -> Recommendation | None:
            async with limiter:
                return await self._guarded(symbol, horizon)

        for start in range(0, len(symbols), batch_size):
            chunk = symbols[start : start + batch_size]
            results.extend(await asyncio.gather(*(_limited(s) for s in chunk)))

        ranked = rank_recommendations(results)
        LOGGER.info(
            "Scored %d/%d companies (%s) in %.0f ms",
            len(ranked),
            len(symbols),
            horizon,
            (time.perf_counter() - started_at) * 1000,
        )
        if not ranked:
            return RecommendationResponse.error(NO_RESULTS, horizon=horizon)
        return RecommendationResponse(status="success", recommendations=ranked, horizon=horizon)

    async def _guarded(self, symbol: str, horizon: str) -> Recommendation | None:
        try:
            return await self.recommend_company(symbol, horizon)
        except Exception:
            LOGGER.exception("Error processing %s", symbol)
            return None

    async def _fetch(self, symbol: str, horizon: str) -> tuple[StockStatistics | None, list[TextItem]]:
        results = await asyncio.gather(
            self.market.fetch_market_stats(symbol, horizon),
            *(fetcher.fetch_signal(symbol) for fetcher in self.signals),
            return_exceptions=True,
        )
        stats_result, *signal_results = results
        if isinstance(stats_result, BaseException):
            LOGGER.warning("Market stats failed for %s: %s", symbol, stats_result)
            stats_result = None

        items: list[TextItem] = []
        for fetcher, result in zip(self.signals, signal_results):
            if isinstance(result, BaseException):
                LOGGER.warning("%s signal failed for %s: %s", fetcher.signal_type, symbol, result)
                continue
            items.extend(result)
        return stats_result, items

    async def recommend_company(self, symbol: str, horizon: str) -> Recommendation | None:
        stats, items = await self._fetch(symbol, horizon)
        if stats is None:
            LOGGER.info("Dropping %s: no market statistics", symbol)
            return None

        max_chars = self.config.fetch.snippet_max_chars
        snippets = [item.text[:max_chars] for item in items if item.text and item.text.strip()]
        if not snippets:
            sentiment = SentimentAggregate.neutral_default()
            result = score(stats, sentiment, horizon, self.config.weights)
            rationale = NO_CONTENT_RATIONALE
        else:
            sentiment = await self.analyzer.analyze(snippets)
            result = score(stats, sentiment, horizon, self.config.weights)
            rationale = await self._explain(symbol, items, result.components.sentiment_score)

        return Recommendation(
            company=symbol,
            score=result.score,
            stock_data=stats,
            sentiment=sentiment,
            components=result.components,
            rationale=rationale,
            sources=source_counts(items),
        )

    async def _explain(self, symbol: str, items: list[TextItem], sentiment_component: float) -> str:
        try:
            return await self.rationale.explain(symbol, items, sentiment_component)
        except Exception as exc:
            LOGGER.warning("Rationale unavailable for %s: %s", symbol, exc)
            return fallback_rationale(symbol, items, sentiment_component)


def build_pipeline(config: AppConfig, cache: CacheStore | None = None) -> RecommendationPipeline:
    settings = config.providers
    cache = cache or CacheStore(config.cache.path, ttl_ms=config.cache.ttl_ms)
    market = MarketDataFetcher(build_market_provider(settings.market, config), cache, config.retry)
    signals = [SignalFetcher(p, cache) for p in build_signal_providers(settings.signals, config)]
    return RecommendationPipeline(
        config,
        market,
        signals,
        analyzer=build_sentiment_analyzer(settings.sentiment, config, cache),
        rationale=build_rationale_generator(settings.rationale, config),
    )


async def get_stock_recommendation(
    companies: list[str],
    horizon: str = SHORT_TERM,
    *,
    pipeline: RecommendationPipeline | None = None,
) -> dict[str, Any]:
    """Score and rank ``companies`` for ``horizon``.

    Always returns a response envelope; errors are reported through
    ``status``/``message`` rather than raised.
    """
    owned_cache: CacheStore | None = None
    try:
        if not normalize_companies(companies):
            return RecommendationResponse.error(NO_VALID_COMPANIES).to_dict()
        active = pipeline
        if active is None:
            config = AppConfig.from_env()
            owned_cache = CacheStore(config.cache.path, ttl_ms=config.cache.ttl_ms)
            active = build_pipeline(config, owned_cache)
        response = await active.run(companies, horizon)
        return response.to_dict()
    except Exception as exc:
        LOGGER.exception("Recommendation service error")
        return RecommendationResponse.error(str(exc) or type(exc).__name__, horizon=horizon).to_dict()
    finally:
        if owned_cache is not None:
            owned_cache.close()
