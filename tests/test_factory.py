import asyncio

import pytest

from tangen.config import AppConfig
from tangen.models import ARTICLES, NEWS, SOCIAL_POSTS
from tangen.pipelines.recommend import build_pipeline, get_stock_recommendation
from tangen.providers.articles_provider import NewsApiArticlesProvider
from tangen.providers.bluesky_provider import BlueskySocialProvider
from tangen.providers.factory import (
    build_market_provider,
    build_rationale_generator,
    build_sentiment_analyzer,
    build_signal_providers,
)
from tangen.providers.finnhub_provider import FinnhubNewsProvider
from tangen.providers.yahoo_provider import YahooChartMarketDataProvider
from tangen.skills.rationale import LLMRationaleGenerator
from tangen.skills.sentiment import HuggingFaceSentimentAnalyzer
from tangen.storage import CacheStore


def test_signal_provider_selection():
    config = AppConfig()
    providers = build_signal_providers(["news", "articles", "social"], config)
    assert [type(p) for p in providers] == [FinnhubNewsProvider, NewsApiArticlesProvider, BlueskySocialProvider]
    assert [p.signal_type for p in build_signal_providers(["mock"], config)] == [NEWS, ARTICLES, SOCIAL_POSTS]
    assert build_signal_providers(["none"], config) == []
    with pytest.raises(ValueError):
        build_signal_providers(["twitter"], config)


def test_component_selection():
    config = AppConfig()
    assert isinstance(build_market_provider("yahoo", config), YahooChartMarketDataProvider)
    assert isinstance(build_sentiment_analyzer("huggingface", config, CacheStore()), HuggingFaceSentimentAnalyzer)
    assert isinstance(build_rationale_generator("llm", config), LLMRationaleGenerator)
    with pytest.raises(ValueError):
        build_market_provider("bloomberg", config)


def test_mock_stack_end_to_end():
    config = AppConfig()
    config.providers.market = "mock"
    config.providers.signals = ["mock"]
    pipeline = build_pipeline(config, CacheStore())

    result = asyncio.run(get_stock_recommendation(["AAPL", "MSFT", "TSLA"], "short-term", pipeline=pipeline))

    assert result["status"] == "success"
    assert len(result["recommendations"]) == 3
    for rec in result["recommendations"]:
        assert 0 <= rec["score"] <= 100
        assert rec["details"]["sentiment"]["total"] == 6
        assert rec["details"]["sources"] == {NEWS: 2, ARTICLES: 2, SOCIAL_POSTS: 2}


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("TANGEN_SIGNAL_PROVIDERS", "News, social")
    monkeypatch.setenv("TANGEN_BATCH_SIZE", "50")
    monkeypatch.setenv("TANGEN_CACHE_TTL_MS", "not-a-number")
    monkeypatch.setenv("FINNHUB_API_KEY", " fh ")

    config = AppConfig.from_env()

    assert config.providers.signals == ["news", "social"]
    assert config.fetch.batch_size == 15
    assert config.cache.ttl_ms == 5 * 60 * 1000
    assert config.providers.finnhub_api_key == "fh"
