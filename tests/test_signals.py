import asyncio
from datetime import date

import httpx

from fakes import NO_WAIT, FakeSignalProvider
from tangen.errors import ProviderError
from tangen.models import ARTICLES, NEWS, SOCIAL_POSTS
from tangen.providers.articles_provider import NewsApiArticlesProvider
from tangen.providers.bluesky_provider import BlueskySocialProvider
from tangen.providers.finnhub_provider import FinnhubNewsProvider
from tangen.skills.signals import SignalFetcher
from tangen.storage import CacheStore


def test_fetcher_serves_repeat_calls_from_cache():
    provider = FakeSignalProvider({"AAPL": ["Apple beats estimates", "Services revenue grows"]})
    fetcher = SignalFetcher(provider, CacheStore())

    first = asyncio.run(fetcher.fetch_signal("AAPL"))
    second = asyncio.run(fetcher.fetch_signal("AAPL"))

    assert [item.text for item in second] == [item.text for item in first]
    assert second[0].source == NEWS
    assert provider.calls == ["AAPL"]


def test_fetcher_turns_failures_into_empty_list():
    provider = FakeSignalProvider(error=ProviderError("rate limited"))
    fetcher = SignalFetcher(provider, CacheStore())
    assert asyncio.run(fetcher.fetch_signal("AAPL")) == []


def test_fetcher_does_not_cache_empty_results():
    provider = FakeSignalProvider({}, signal_type=SOCIAL_POSTS)
    fetcher = SignalFetcher(provider, CacheStore())

    assert asyncio.run(fetcher.fetch_signal("ZZZZ")) == []
    assert asyncio.run(fetcher.fetch_signal("ZZZZ")) == []
    assert provider.calls == ["ZZZZ", "ZZZZ"]


def test_signal_types_have_separate_cache_entries():
    cache = CacheStore()
    news = SignalFetcher(FakeSignalProvider({"AAPL": ["news text"]}, signal_type=NEWS), cache)
    articles = SignalFetcher(FakeSignalProvider({"AAPL": ["article text"]}, signal_type=ARTICLES), cache)

    assert asyncio.run(news.fetch_signal("AAPL"))[0].text == "news text"
    assert asyncio.run(articles.fetch_signal("AAPL"))[0].text == "article text"


def test_finnhub_filters_dedupes_and_retries():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if len(requests) == 1:
            return httpx.Response(500, text="upstream error")
        return httpx.Response(
            200,
            json=[
                {"headline": "Apple beats", "summary": "Apple beats estimates", "url": "https://n.test/1", "datetime": 1711929600},
                {"headline": "Apple beats (dup)", "summary": "Apple beats estimates", "url": "https://n.test/1", "datetime": 1711929600},
                {"headline": "No body", "summary": "", "url": "https://n.test/2"},
                {"headline": "iPhone", "summary": "iPhone demand holds", "url": "https://n.test/3"},
            ],
        )

    provider = FinnhubNewsProvider(
        "fh-key", retry=NO_WAIT, transport=httpx.MockTransport(handler), today=date(2024, 3, 31)
    )
    items = asyncio.run(provider.fetch_items("AAPL"))

    assert len(requests) == 2
    params = requests[-1].url.params
    assert params["symbol"] == "AAPL"
    assert params["from"] == "2024-03-01"
    assert params["to"] == "2024-03-31"
    assert [item.text for item in items] == ["Apple beats estimates", "iPhone demand holds"]
    assert items[0].title == "Apple beats"
    assert items[0].datetime == "2024-03-31T00:00:00Z"


def test_finnhub_without_key_fails_through_fetcher():
    fetcher = SignalFetcher(FinnhubNewsProvider(""), CacheStore())
    assert asyncio.run(fetcher.fetch_signal("AAPL")) == []


def test_articles_keep_relevant_unique_results():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["X-Api-Key"] == "news-key"
        return httpx.Response(
            200,
            json={
                "articles": [
                    {"title": "AAPL rallies", "description": "Shares of AAPL rise on upgrade", "url": "https://a.test/1"},
                    {"title": "Markets wrap", "description": "Stocks drift lower", "url": "https://a.test/2"},
                    {"title": "Why AAPL?", "description": "", "content": "Analysts weigh in", "url": "https://a.test/3"},
                ]
            },
        )

    provider = NewsApiArticlesProvider("news-key", transport=httpx.MockTransport(handler))
    items = asyncio.run(provider.fetch_items("AAPL"))

    # both query variants return the same rows
    assert [item.url for item in items] == ["https://a.test/1", "https://a.test/3"]
    assert items[1].text == "Analysts weigh in"
    assert all(item.source == ARTICLES for item in items)


def test_articles_survive_one_failed_query():
    def handler(request: httpx.Request) -> httpx.Response:
        if "earnings" in request.url.params["q"]:
            return httpx.Response(429, json={"message": "rate limited"})
        return httpx.Response(200, json={"articles": [{"title": "MSFT up", "description": "MSFT gains", "url": "https://a.test/m"}]})

    provider = NewsApiArticlesProvider("news-key", transport=httpx.MockTransport(handler))
    assert len(asyncio.run(provider.fetch_items("MSFT"))) == 1


def _bluesky_handler(seen, login_status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("createSession"):
            if login_status != 200:
                return httpx.Response(login_status, json={"error": "AuthenticationRequired"})
            return httpx.Response(200, json={"accessJwt": "jwt-token"})
        assert request.headers["Authorization"] == "Bearer jwt-token"
        return httpx.Response(
            200,
            json={
                "posts": [
                    {
                        "uri": "at://post/1",
                        "author": {"handle": "trader.bsky.social"},
                        "record": {"text": "Loading up on $AAPL\nbefore earnings", "createdAt": "2024-03-30T12:00:00Z"},
                    },
                    {"uri": "at://post/2", "author": {"handle": "x"}, "record": {"text": "unrelated chatter"}},
                ]
            },
        )

    return handler


def test_bluesky_logs_in_and_dedupes_posts():
    seen = []
    provider = BlueskySocialProvider("me.bsky.social", "app-pass", transport=httpx.MockTransport(_bluesky_handler(seen)))

    items = asyncio.run(provider.fetch_items("AAPL"))

    assert len(items) == 1
    assert items[0].text == "Loading up on $AAPL before earnings"
    assert items[0].title == "trader.bsky.social"
    assert items[0].source == SOCIAL_POSTS
    assert sum(r.url.path.endswith("createSession") for r in seen) == 1


def test_bluesky_reuses_session_token():
    seen = []
    provider = BlueskySocialProvider("me.bsky.social", "app-pass", transport=httpx.MockTransport(_bluesky_handler(seen)))

    asyncio.run(provider.fetch_items("AAPL"))
    asyncio.run(provider.fetch_items("AAPL"))

    assert sum(r.url.path.endswith("createSession") for r in seen) == 1


def test_bluesky_login_failure_yields_no_posts():
    seen = []
    provider = BlueskySocialProvider(
        "me.bsky.social", "wrong", transport=httpx.MockTransport(_bluesky_handler(seen, login_status=401))
    )
    assert asyncio.run(provider.fetch_items("AAPL")) == []
    assert len(seen) == 1


def test_bluesky_without_credentials_makes_no_requests():
    seen = []
    provider = BlueskySocialProvider("", "", transport=httpx.MockTransport(_bluesky_handler(seen)))
    assert asyncio.run(provider.fetch_items("AAPL")) == []
    assert seen == []


def test_finnhub_keeps_rows_with_unusable_timestamps():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[
                {"summary": "Apple profit growth strong", "url": "https://n.test/a", "datetime": 1700000000},
                {"summary": "Apple gains", "url": "https://n.test/b", "datetime": 10**20},
            ],
        )

    provider = FinnhubNewsProvider("fh-key", retry=NO_WAIT, transport=httpx.MockTransport(handler))
    items = asyncio.run(SignalFetcher(provider, CacheStore()).fetch_signal("AAPL"))

    assert [item.text for item in items] == ["Apple profit growth strong", "Apple gains"]
    assert items[0].datetime == "2023-11-14T22:13:20Z"
    assert items[1].datetime is None
