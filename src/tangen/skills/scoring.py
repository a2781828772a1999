from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from tangen.config import ScoreWeights
from tangen.models import ComponentScores, SentimentAggregate, StockStatistics


@dataclass(slots=True)
class ScoreResult:
    components: ComponentScores
    score: float


def _clamp(v: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, v))


def round_score(value: float) -> float:
    """Round to one decimal, half away from zero, on the float's shortest repr."""
    return float(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def recent_performance(stats: StockStatistics) -> float:
    return _clamp((stats.recent_growth + 20) / 40 * 100)


def historical_growth(stats: StockStatistics) -> float:
    return _clamp((stats.historical_growth + 50) / 100 * 100)


def sentiment_score(sentiment: SentimentAggregate) -> float:
    if sentiment.total <= 0:
        return 50.0
    net = sentiment.positive / sentiment.total - sentiment.negative / sentiment.total
    return _clamp(50 + net * 50)


def risk_factor(stats: StockStatistics) -> float:
    # Higher volatility reads as higher risk; the weight table is applied to it as-is.
    return max(0.0, stats.volatility * 100)


def component_scores(stats: StockStatistics, sentiment: SentimentAggregate) -> ComponentScores:
    return ComponentScores(
        recent_performance=recent_performance(stats),
        historical_growth=historical_growth(stats),
        sentiment_score=sentiment_score(sentiment),
        risk_factor=risk_factor(stats),
    )


def composite_score(components: ComponentScores, horizon: str, weights: ScoreWeights | None = None) -> float:
    w = (weights or ScoreWeights()).for_horizon(horizon)
    total = (
        components.recent_performance * w.recent_performance
        + components.historical_growth * w.historical_growth
        + components.sentiment_score * w.sentiment_score
        + components.risk_factor * w.risk_factor
    )
    return round_score(total)


def score(
    stats: StockStatistics,
    sentiment: SentimentAggregate,
    horizon: str,
    weights: ScoreWeights | None = None,
) -> ScoreResult:
    components = component_scores(stats, sentiment)
    return ScoreResult(components=components, score=composite_score(components, horizon, weights))
