from __future__ import annotations

import os
from dataclasses import dataclass, field

SHORT_TERM = "short-term"
LONG_TERM = "long-term"


@dataclass(slots=True)
class HorizonWeights:
    recent_performance: float
    historical_growth: float
    sentiment_score: float
    risk_factor: float


@dataclass(slots=True)
class ScoreWeights:
    short_term: HorizonWeights = field(
        default_factory=lambda: HorizonWeights(
            recent_performance=0.4,
            historical_growth=0.2,
            sentiment_score=0.3,
            risk_factor=0.1,
        )
    )
    long_term: HorizonWeights = field(
        default_factory=lambda: HorizonWeights(
            recent_performance=0.2,
            historical_growth=0.4,
            sentiment_score=0.2,
            risk_factor=0.2,
        )
    )

    def for_horizon(self, horizon: str) -> HorizonWeights:
        # Anything that is not short-term scores with the long-term profile.
        return self.short_term if horizon == SHORT_TERM else self.long_term


@dataclass(slots=True)
class CachePolicy:
    path: str = "data/tangen_cache.db"
    ttl_ms: int = 5 * 60 * 1000


@dataclass(slots=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0


@dataclass(slots=True)
class FetchPolicy:
    timeout_seconds: float = 10.0
    batch_size: int = 10
    max_concurrency: int = 5
    snippet_max_chars: int = 100
    news_lookback_days: int = 30
    max_items_per_source: int = 20
    sentiment_chunk_chars: int = 450
    sentiment_chunk_delay: float = 1.0


@dataclass(slots=True)
class ProviderSettings:
    market: str = "yfinance"
    signals: list[str] = field(default_factory=lambda: ["news", "articles", "social"])
    sentiment: str = "lexicon"
    rationale: str = "template"
    finnhub_api_key: str = ""
    newsapi_api_key: str = ""
    bluesky_handle: str = ""
    bluesky_app_password: str = ""
    hf_api_key: str = ""
    hf_model: str = "ProsusAI/finbert"
    llm_provider: str = "openai"

    @classmethod
    def from_env(cls) -> ProviderSettings:
        default = cls()
        raw_signals = os.getenv("TANGEN_SIGNAL_PROVIDERS", "").strip()
        signals = (
            [s.strip().lower() for s in raw_signals.split(",") if s.strip()]
            if raw_signals
            else default.signals
        )
        return cls(
            market=_env("TANGEN_MARKET_PROVIDER", default.market).lower(),
            signals=signals,
            sentiment=_env("TANGEN_SENTIMENT", default.sentiment).lower(),
            rationale=_env("TANGEN_RATIONALE", default.rationale).lower(),
            finnhub_api_key=_env("FINNHUB_API_KEY"),
            newsapi_api_key=_env("NEWSAPI_API_KEY"),
            bluesky_handle=_env("BLUESKY_HANDLE"),
            bluesky_app_password=_env("BLUESKY_APP_PASSWORD"),
            hf_api_key=_env("HF_API_KEY"),
            hf_model=_env("HF_SENTIMENT_MODEL", default.hf_model),
            llm_provider=_env("LLM_PROVIDER", default.llm_provider).lower(),
        )


@dataclass(slots=True)
class AppConfig:
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    cache: CachePolicy = field(default_factory=CachePolicy)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    fetch: FetchPolicy = field(default_factory=FetchPolicy)
    providers: ProviderSettings = field(default_factory=ProviderSettings)

    @classmethod
    def from_env(cls) -> AppConfig:
        cfg = cls(providers=ProviderSettings.from_env())
        cfg.cache.path = _env("TANGEN_CACHE_PATH", cfg.cache.path)
        cfg.cache.ttl_ms = _read_int_env(
            "TANGEN_CACHE_TTL_MS", default=cfg.cache.ttl_ms, minimum=0, maximum=24 * 3600 * 1000
        )
        cfg.fetch.timeout_seconds = float(
            _read_int_env("TANGEN_TIMEOUT_SECONDS", default=int(cfg.fetch.timeout_seconds), minimum=3, maximum=15)
        )
        cfg.fetch.batch_size = _read_int_env("TANGEN_BATCH_SIZE", default=cfg.fetch.batch_size, minimum=5, maximum=15)
        return cfg


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, "").strip() or default


def _read_int_env(name: str, *, default: int, minimum: int, maximum: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))
