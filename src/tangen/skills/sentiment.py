from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx

from tangen.errors import ProviderError
from tangen.models import SentimentAggregate
from tangen.providers.http import build_client, request_json
from tangen.storage import CacheStore, cache_key

LOGGER = logging.getLogger(__name__)

POSITIVE_WORDS = frozenset(
    {
        "increase", "profit", "growth", "gain", "positive", "up", "high", "rising",
        "success", "strong", "better", "improved", "growing", "good", "promising",
    }
)

NEGATIVE_WORDS = frozenset(
    {
        "decrease", "loss", "decline", "down", "negative", "low", "falling",
        "fail", "weak", "worse", "reduced", "poor", "bad", "risk",
    }
)

POSITIVE_THRESHOLD = 0.6
NEGATIVE_THRESHOLD = 0.4

HF_INFERENCE_URL = "https://api-inference.huggingface.co/models"


def snippet_set_key(snippets: list[str]) -> str:
    return "|".join(sorted(snippets))


def classify_snippet(text: str) -> SentimentAggregate:
    """One snippet contributes exactly one unit to exactly one bucket."""
    words = re.split(r"\W+", text.lower())
    positive = sum(1 for w in words if w in POSITIVE_WORDS)
    negative = sum(1 for w in words if w in NEGATIVE_WORDS)
    hits = positive + negative
    if hits == 0:
        return SentimentAggregate.neutral_default()

    score = positive / hits
    return SentimentAggregate(
        score=score,
        positive=1 if score > POSITIVE_THRESHOLD else 0,
        negative=1 if score < NEGATIVE_THRESHOLD else 0,
        neutral=1 if NEGATIVE_THRESHOLD <= score <= POSITIVE_THRESHOLD else 0,
        total=1,
    )


def aggregate(units: list[SentimentAggregate]) -> SentimentAggregate:
    # The aggregate score is the mean of per-unit scores, not a value derived from bucket counts.
    if not units:
        return SentimentAggregate.neutral_default()
    return SentimentAggregate(
        score=sum(u.score for u in units) / len(units),
        positive=sum(u.positive for u in units),
        negative=sum(u.negative for u in units),
        neutral=sum(u.neutral for u in units),
        total=sum(u.total for u in units),
    )


class SentimentAnalyzer(ABC):
    cache_namespace = "sentiment"

    def __init__(self, cache: CacheStore | None = None) -> None:
        self.cache = cache

    async def analyze(self, snippets: list[str]) -> SentimentAggregate:
        texts = [s for s in snippets if s and s.strip()]
        if not texts:
            return SentimentAggregate.neutral_default()

        key = cache_key(self.cache_namespace, snippet_set_key(texts))
        if self.cache is not None:
            cached = self.cache.get(key)
            if isinstance(cached, dict):
                try:
                    return SentimentAggregate.from_dict(cached)
                except (KeyError, TypeError, ValueError) as exc:
                    LOGGER.warning("Discarding malformed cached sentiment: %s", exc)

        result = await self._analyze(texts)
        if self.cache is not None:
            self.cache.put(key, result.to_dict())
        return result

    @abstractmethod
    async def _analyze(self, texts: list[str]) -> SentimentAggregate:
        raise NotImplementedError


class LexiconSentimentAnalyzer(SentimentAnalyzer):
    async def _analyze(self, texts: list[str]) -> SentimentAggregate:
        return aggregate([classify_snippet(t) for t in texts])


def chunk_snippets(texts: list[str], max_chars: int = 450) -> list[str]:
    """Pack snippets into request-sized chunks; an oversized snippet is truncated."""
    chunks: list[str] = []
    current = ""
    for text in texts:
        piece = text.strip()[:max_chars]
        if not piece:
            continue
        candidate = f"{current} {piece}" if current else piece
        if len(candidate) <= max_chars:
            current = candidate
            continue
        chunks.append(current)
        current = piece
    if current:
        chunks.append(current)
    return chunks


def _label_scores(payload: Any) -> dict[str, float]:
    # Inference API answers [[{label, score}, ...]] for a single input.
    rows = payload[0] if isinstance(payload, list) and payload and isinstance(payload[0], list) else payload
    if not isinstance(rows, list):
        raise ProviderError("Unexpected classification payload")
    scores: dict[str, float] = {}
    for row in rows:
        if isinstance(row, dict) and "label" in row and "score" in row:
            try:
                scores[str(row["label"]).lower()] = float(row["score"])
            except (TypeError, ValueError) as exc:
                raise ProviderError(f"Classification score is not a number: {row['score']!r}") from exc
    if not scores:
        raise ProviderError("Classification payload has no labels")
    return scores


class HuggingFaceSentimentAnalyzer(SentimentAnalyzer):
    """Delegates classification to a hosted text-classification model.

    Any failure falls back to the neutral default aggregate.
    """

    cache_namespace = "sentiment_hf"

    def __init__(
        self,
        api_key: str,
        cache: CacheStore | None = None,
        *,
        model: str = "ProsusAI/finbert",
        chunk_chars: int = 450,
        chunk_delay: float = 1.0,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(cache)
        self.api_key = api_key
        self.model = model
        self.chunk_chars = chunk_chars
        self.chunk_delay = chunk_delay
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def analyze(self, snippets: list[str]) -> SentimentAggregate:
        try:
            return await super().analyze(snippets)
        except ProviderError as exc:
            LOGGER.warning("Sentiment classification failed, using neutral default: %s", exc)
            return SentimentAggregate.neutral_default()

    async def _analyze(self, texts: list[str]) -> SentimentAggregate:
        if not self.api_key:
            raise ProviderError("Hugging Face API key is missing. Set HF_API_KEY.")

        units: list[SentimentAggregate] = []
        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with build_client(self.timeout_seconds, self.transport, headers) as client:
            for i, chunk in enumerate(chunk_snippets(texts, self.chunk_chars)):
                if i > 0 and self.chunk_delay > 0:
                    await asyncio.sleep(self.chunk_delay)
                payload = await request_json(
                    client,
                    "POST",
                    f"{HF_INFERENCE_URL}/{self.model}",
                    json_body={"inputs": chunk},
                )
                units.append(_classification_unit(_label_scores(payload)))
        return aggregate(units)


def _classification_unit(scores: dict[str, float]) -> SentimentAggregate:
    top = max(scores, key=scores.get)
    return SentimentAggregate(
        score=scores.get("positive", 0.0) + 0.5 * scores.get("neutral", 0.0),
        positive=1 if top == "positive" else 0,
        negative=1 if top == "negative" else 0,
        neutral=1 if top not in {"positive", "negative"} else 0,
        total=1,
    )
