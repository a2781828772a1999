from __future__ import annotations

import asyncio
import re
from typing import Any

import httpx

from tangen.errors import ProviderError
from tangen.models import ARTICLES, TextItem
from tangen.providers.base import SignalProvider
from tangen.providers.http import build_client, request_json

NEWSAPI_URL = "https://newsapi.org/v2/everything"
QUERY_TEMPLATES = ("{symbol} stock", "{symbol} earnings")


def _mentions(symbol: str, *texts: str | None) -> bool:
    pattern = re.compile(rf"(?<![A-Za-z0-9]){re.escape(symbol)}(?![A-Za-z0-9])", re.IGNORECASE)
    return any(text and pattern.search(text) for text in texts)


class NewsApiArticlesProvider(SignalProvider):
    """Long-form article search; a small fan-out of query variants widens recall."""

    signal_type = ARTICLES

    def __init__(
        self,
        api_key: str,
        *,
        max_items: int = 20,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.max_items = max_items
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def fetch_items(self, symbol: str) -> list[TextItem]:
        if not self.api_key:
            raise ProviderError("NewsAPI key is missing. Set NEWSAPI_API_KEY.")

        queries = [t.format(symbol=symbol) for t in QUERY_TEMPLATES]
        async with build_client(self.timeout_seconds, self.transport, {"X-Api-Key": self.api_key}) as client:
            results = await asyncio.gather(
                *(self._search(client, q) for q in queries),
                return_exceptions=True,
            )

        rows: list[dict[str, Any]] = []
        errors: list[BaseException] = []
        for result in results:
            if isinstance(result, BaseException):
                errors.append(result)
            else:
                rows.extend(result)
        if errors and not rows:
            raise ProviderError(f"Article search failed for {symbol}: {errors[0]}") from errors[0]

        items: list[TextItem] = []
        seen_urls: set[str] = set()
        for row in rows:
            url = str(row.get("url") or "").strip()
            if not url or url in seen_urls:
                continue
            title = str(row.get("title") or "").strip()
            description = str(row.get("description") or "").strip()
            content = str(row.get("content") or "").strip()
            if not _mentions(symbol, title, description, content):
                continue
            text = description or content or title
            if not text:
                continue
            seen_urls.add(url)
            items.append(
                TextItem(
                    text=text,
                    source=ARTICLES,
                    title=title or None,
                    url=url,
                    datetime=row.get("publishedAt"),
                )
            )
            if len(items) >= self.max_items:
                break
        return items

    async def _search(self, client: httpx.AsyncClient, query: str) -> list[dict[str, Any]]:
        payload = await request_json(
            client,
            "GET",
            NEWSAPI_URL,
            params={"q": query, "language": "en", "sortBy": "publishedAt", "pageSize": self.max_items},
        )
        articles = payload.get("articles") if isinstance(payload, dict) else None
        if not isinstance(articles, list):
            raise ProviderError(f"Unexpected article payload for query {query!r}")
        return [a for a in articles if isinstance(a, dict)]
