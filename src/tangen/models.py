from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

NEWS = "news"
ARTICLES = "articles"
SOCIAL_POSTS = "socialPosts"


@dataclass(slots=True)
class StockStatistics:
    recent_growth: float
    historical_growth: float
    volatility: float
    data_points: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "recentGrowth": self.recent_growth,
            "historicalGrowth": self.historical_growth,
            "volatility": self.volatility,
            "dataPoints": self.data_points,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StockStatistics:
        return cls(
            recent_growth=float(data["recentGrowth"]),
            historical_growth=float(data["historicalGrowth"]),
            volatility=float(data["volatility"]),
            data_points=int(data["dataPoints"]),
        )


@dataclass(slots=True)
class SentimentAggregate:
    score: float
    positive: int
    negative: int
    neutral: int
    total: int

    @classmethod
    def neutral_default(cls) -> SentimentAggregate:
        return cls(score=0.5, positive=0, negative=0, neutral=1, total=1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "positive": self.positive,
            "negative": self.negative,
            "neutral": self.neutral,
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SentimentAggregate:
        return cls(
            score=float(data["score"]),
            positive=int(data["positive"]),
            negative=int(data["negative"]),
            neutral=int(data["neutral"]),
            total=int(data["total"]),
        )


@dataclass(slots=True)
class ComponentScores:
    recent_performance: float
    historical_growth: float
    sentiment_score: float
    risk_factor: float

    def to_dict(self) -> dict[str, float]:
        return {
            "recentPerformance": self.recent_performance,
            "historicalGrowth": self.historical_growth,
            "sentimentScore": self.sentiment_score,
            "riskFactor": self.risk_factor,
        }


@dataclass(slots=True)
class TextItem:
    text: str
    source: str = NEWS
    title: str | None = None
    url: str | None = None
    datetime: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "source": self.source,
            "title": self.title,
            "url": self.url,
            "datetime": self.datetime,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TextItem:
        return cls(
            text=str(data.get("text") or ""),
            source=str(data.get("source") or NEWS),
            title=data.get("title"),
            url=data.get("url"),
            datetime=data.get("datetime"),
        )


@dataclass(slots=True)
class Recommendation:
    company: str
    score: float
    stock_data: StockStatistics
    sentiment: SentimentAggregate
    components: ComponentScores
    rationale: str | None = None
    sources: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        details: dict[str, Any] = {
            "stockData": self.stock_data.to_dict(),
            "sentiment": self.sentiment.to_dict(),
            "components": self.components.to_dict(),
        }
        if self.rationale is not None:
            details["rationale"] = self.rationale
        if self.sources:
            details["sources"] = dict(self.sources)
        return {"company": self.company, "score": self.score, "details": details}


@dataclass(slots=True)
class RecommendationResponse:
    status: str
    recommendations: list[Recommendation] = field(default_factory=list)
    horizon: str | None = None
    message: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def error(cls, message: str, horizon: str | None = None) -> RecommendationResponse:
        return cls(status="error", message=message, horizon=horizon)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "status": self.status,
            "recommendations": [r.to_dict() for r in self.recommendations],
        }
        if self.horizon is not None:
            out["metadata"] = {
                "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
                "horizon": self.horizon,
            }
        if self.status == "error":
            out["message"] = self.message or "Unknown error"
        return out
