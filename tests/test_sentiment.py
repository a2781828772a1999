import asyncio
import json

import httpx
import pytest

from tangen.models import SentimentAggregate
from tangen.skills.sentiment import (
    HuggingFaceSentimentAnalyzer,
    LexiconSentimentAnalyzer,
    chunk_snippets,
    classify_snippet,
)
from tangen.storage import CacheStore

NEUTRAL = SentimentAggregate(score=0.5, positive=0, negative=0, neutral=1, total=1)


def test_empty_input_is_neutral_default():
    assert asyncio.run(LexiconSentimentAnalyzer().analyze([])) == NEUTRAL


def test_snippet_without_hits_is_neutral_unit():
    assert classify_snippet("The company held its annual meeting") == NEUTRAL


def test_snippet_buckets():
    assert classify_snippet("Strong profit growth").positive == 1
    assert classify_snippet("Weak outlook, falling margins and loss").negative == 1
    # one positive, one negative: score 0.5 sits inside the neutral band
    mixed = classify_snippet("growth offset by risk")
    assert (mixed.score, mixed.positive, mixed.negative, mixed.neutral) == (0.5, 0, 0, 1)


def test_aggregate_averages_per_snippet_scores():
    snippets = [
        "strong profit growth",  # 3/3 -> 1.0 positive
        "gain but loss and risk",  # 1/3 -> negative
        "quarterly meeting held",  # no hits -> 0.5 neutral
    ]
    result = asyncio.run(LexiconSentimentAnalyzer().analyze(snippets))

    assert result.positive == 1
    assert result.negative == 1
    assert result.neutral == 1
    assert result.total == 3
    assert result.score == pytest.approx((1.0 + 1 / 3 + 0.5) / 3)


def test_lexicon_is_deterministic():
    snippets = ["Shares rising on better guidance", "Sales decline, outlook poor"]
    analyzer = LexiconSentimentAnalyzer()
    first = asyncio.run(analyzer.analyze(snippets))
    assert all(asyncio.run(analyzer.analyze(snippets)) == first for _ in range(3))


def test_aggregate_is_cached_per_snippet_set():
    cache = CacheStore()
    analyzer = LexiconSentimentAnalyzer(cache)
    first = asyncio.run(analyzer.analyze(["profit up", "loss down"]))
    # same set, different order hits the same entry
    second = asyncio.run(analyzer.analyze(["loss down", "profit up"]))
    entries = cache._conn().execute("SELECT key FROM cache_entries").fetchall()

    assert second == first
    assert len(entries) == 1


def test_chunk_snippets_respects_limit():
    chunks = chunk_snippets(["a" * 300, "b" * 100, "c" * 200, "d" * 600], max_chars=450)
    assert all(len(c) <= 450 for c in chunks)
    assert len(chunks) == 3


def _hf_transport(calls, status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        if status != 200:
            return httpx.Response(status, json={"error": "loading"})
        return httpx.Response(
            200,
            json=[[
                {"label": "positive", "score": 0.8},
                {"label": "neutral", "score": 0.15},
                {"label": "negative", "score": 0.05},
            ]],
        )

    return httpx.MockTransport(handler)


def test_huggingface_analyzer_classifies_chunks():
    calls = []
    analyzer = HuggingFaceSentimentAnalyzer("hf-key", chunk_delay=0, transport=_hf_transport(calls))

    result = asyncio.run(analyzer.analyze(["Apple beats estimates", "iPhone demand holds"]))

    assert len(calls) == 1
    assert result.positive == 1
    assert result.total == 1
    assert result.score == pytest.approx(0.875)


def test_huggingface_analyzer_falls_back_to_neutral():
    calls = []
    analyzer = HuggingFaceSentimentAnalyzer("hf-key", chunk_delay=0, transport=_hf_transport(calls, status=503))
    assert asyncio.run(analyzer.analyze(["Apple beats estimates"])) == NEUTRAL


def test_huggingface_analyzer_without_key_is_neutral():
    assert asyncio.run(HuggingFaceSentimentAnalyzer("").analyze(["text"])) == NEUTRAL


def test_huggingface_analyzer_treats_bad_score_as_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[[{"label": "positive", "score": None}]])

    analyzer = HuggingFaceSentimentAnalyzer("hf-key", chunk_delay=0, transport=httpx.MockTransport(handler))
    assert asyncio.run(analyzer.analyze(["Apple beats"])) == NEUTRAL
