from __future__ import annotations

from tangen.config import AppConfig
from tangen.models import ARTICLES, NEWS, SOCIAL_POSTS
from tangen.providers.articles_provider import NewsApiArticlesProvider
from tangen.providers.base import MarketDataProvider, SignalProvider
from tangen.providers.bluesky_provider import BlueskySocialProvider
from tangen.providers.finnhub_provider import FinnhubNewsProvider
from tangen.providers.mock_provider import MockMarketDataProvider, MockSignalProvider
from tangen.providers.yahoo_provider import YahooChartMarketDataProvider
from tangen.providers.yfinance_provider import YFinanceMarketDataProvider
from tangen.skills.rationale import LLMRationaleGenerator, RationaleGenerator, TemplateRationaleGenerator
from tangen.skills.sentiment import HuggingFaceSentimentAnalyzer, LexiconSentimentAnalyzer, SentimentAnalyzer
from tangen.storage import CacheStore

SIGNAL_KINDS = ("news", "articles", "social")


def build_market_provider(kind: str, config: AppConfig) -> MarketDataProvider:
    mode = kind.strip().lower()
    timeout = config.fetch.timeout_seconds
    if mode == "mock":
        return MockMarketDataProvider()
    if mode == "yfinance":
        return YFinanceMarketDataProvider(timeout_seconds=timeout)
    if mode == "yahoo":
        return YahooChartMarketDataProvider(timeout_seconds=timeout)
    raise ValueError(f"Unsupported market provider: {kind}")


def build_signal_providers(kinds: list[str], config: AppConfig) -> list[SignalProvider]:
    modes = [k.strip().lower() for k in kinds if k.strip()]
    if modes == ["none"]:
        return []
    if modes == ["mock"]:
        return [MockSignalProvider(NEWS), MockSignalProvider(ARTICLES), MockSignalProvider(SOCIAL_POSTS)]

    settings = config.providers
    fetch = config.fetch
    out: list[SignalProvider] = []
    for mode in modes:
        if mode == "news":
            out.append(
                FinnhubNewsProvider(
                    settings.finnhub_api_key,
                    lookback_days=fetch.news_lookback_days,
                    max_items=fetch.max_items_per_source,
                    timeout_seconds=fetch.timeout_seconds,
                    retry=config.retry,
                )
            )
        elif mode == "articles":
            out.append(
                NewsApiArticlesProvider(
                    settings.newsapi_api_key,
                    max_items=fetch.max_items_per_source,
                    timeout_seconds=fetch.timeout_seconds,
                )
            )
        elif mode == "social":
            out.append(
                BlueskySocialProvider(
                    settings.bluesky_handle,
                    settings.bluesky_app_password,
                    max_items=fetch.max_items_per_source,
                    timeout_seconds=fetch.timeout_seconds,
                )
            )
        else:
            raise ValueError(f"Unsupported signal provider: {mode} (expected one of {SIGNAL_KINDS}, mock, none)")
    return out


def build_sentiment_analyzer(kind: str, config: AppConfig, cache: CacheStore) -> SentimentAnalyzer:
    mode = kind.strip().lower()
    if mode == "lexicon":
        return LexiconSentimentAnalyzer(cache)
    if mode == "huggingface":
        return HuggingFaceSentimentAnalyzer(
            config.providers.hf_api_key,
            cache,
            model=config.providers.hf_model,
            chunk_chars=config.fetch.sentiment_chunk_chars,
            chunk_delay=config.fetch.sentiment_chunk_delay,
            timeout_seconds=max(config.fetch.timeout_seconds, 15.0),
        )
    raise ValueError(f"Unsupported sentiment analyzer: {kind}")


def build_rationale_generator(kind: str, config: AppConfig) -> RationaleGenerator:
    mode = kind.strip().lower()
    if mode == "template":
        return TemplateRationaleGenerator()
    if mode == "llm":
        return LLMRationaleGenerator(config.providers.llm_provider, timeout_seconds=max(config.fetch.timeout_seconds, 15.0))
    raise ValueError(f"Unsupported rationale generator: {kind}")
