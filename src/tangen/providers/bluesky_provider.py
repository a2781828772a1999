from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any

import httpx

from tangen.errors import AuthenticationError, ProviderError
from tangen.models import SOCIAL_POSTS, TextItem
from tangen.providers.base import SignalProvider
from tangen.providers.http import build_client, request_json

LOGGER = logging.getLogger(__name__)

BLUESKY_API_URL = "https://bsky.social/xrpc"
QUERY_TEMPLATES = ("${symbol}", "{symbol} stock")
SESSION_MAX_AGE_SECONDS = 5 * 60


class BlueskySocialProvider(SignalProvider):
    """Market discussion posts from Bluesky.

    Searching requires a session token obtained by logging in with a handle and
    an app password. If no token can be obtained the provider yields no posts.
    """

    signal_type = SOCIAL_POSTS

    def __init__(
        self,
        handle: str,
        app_password: str,
        *,
        max_items: int = 20,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.handle = handle
        self.app_password = app_password
        self.max_items = max_items
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._token: str | None = None
        self._token_at = 0.0

    async def _login(self, client: httpx.AsyncClient) -> str:
        if self._token and time.monotonic() - self._token_at < SESSION_MAX_AGE_SECONDS:
            return self._token
        if not self.handle or not self.app_password:
            raise AuthenticationError("Bluesky credentials are missing. Set BLUESKY_HANDLE and BLUESKY_APP_PASSWORD.")
        try:
            payload = await request_json(
                client,
                "POST",
                f"{BLUESKY_API_URL}/com.atproto.server.createSession",
                json_body={"identifier": self.handle, "password": self.app_password},
            )
        except ProviderError as exc:
            raise AuthenticationError(f"Bluesky login failed: {exc}") from exc

        token = payload.get("accessJwt") if isinstance(payload, dict) else None
        if not token:
            raise AuthenticationError("Bluesky login returned no access token")
        self._token = str(token)
        self._token_at = time.monotonic()
        return self._token

    async def fetch_items(self, symbol: str) -> list[TextItem]:
        async with build_client(self.timeout_seconds, self.transport) as client:
            try:
                token = await self._login(client)
            except AuthenticationError as exc:
                LOGGER.warning("Skipping social posts for %s: %s", symbol, exc)
                return []

            queries = [t.format(symbol=symbol) for t in QUERY_TEMPLATES]
            results = await asyncio.gather(
                *(self._search(client, token, q) for q in queries),
                return_exceptions=True,
            )

        posts: list[dict[str, Any]] = []
        errors: list[BaseException] = []
        for result in results:
            if isinstance(result, BaseException):
                errors.append(result)
            else:
                posts.extend(result)
        if errors and not posts:
            raise ProviderError(f"Bluesky search failed for {symbol}: {errors[0]}") from errors[0]
        return self._to_items(symbol, posts)

    async def _search(self, client: httpx.AsyncClient, token: str, query: str) -> list[dict[str, Any]]:
        payload = await request_json(
            client,
            "GET",
            f"{BLUESKY_API_URL}/app.bsky.feed.searchPosts",
            params={"q": query, "limit": self.max_items, "sort": "latest"},
            headers={"Authorization": f"Bearer {token}"},
        )
        found = payload.get("posts") if isinstance(payload, dict) else None
        if not isinstance(found, list):
            raise ProviderError(f"Unexpected Bluesky search payload for {query!r}")
        return [p for p in found if isinstance(p, dict)]

    def _to_items(self, symbol: str, posts: list[dict[str, Any]]) -> list[TextItem]:
        pattern = re.compile(rf"(?<![A-Za-z0-9]){re.escape(symbol)}(?![A-Za-z0-9])", re.IGNORECASE)
        items: list[TextItem] = []
        seen_uris: set[str] = set()
        for post in posts:
            uri = str(post.get("uri") or "").strip()
            if not uri or uri in seen_uris:
                continue
            record = post.get("record") if isinstance(post.get("record"), dict) else {}
            text = re.sub(r"\s+", " ", str(record.get("text") or "")).strip()
            if not text or not pattern.search(text):
                continue
            seen_uris.add(uri)
            author = post.get("author") if isinstance(post.get("author"), dict) else {}
            items.append(
                TextItem(
                    text=text,
                    source=SOCIAL_POSTS,
                    title=str(author.get("handle") or "") or None,
                    url=uri,
                    datetime=post.get("indexedAt") or record.get("createdAt"),
                )
            )
            if len(items) >= self.max_items:
                break
        return items
