from __future__ import annotations

import logging

from tangen.models import TextItem
from tangen.providers.base import SignalProvider
from tangen.storage import CacheStore, cache_key

LOGGER = logging.getLogger(__name__)


class SignalFetcher:
    """Cache-first wrapper around one signal provider.

    A provider failure is never fatal: it is logged and turned into an empty
    list. Non-empty results are cached so repeat calls inside the TTL do not
    touch the network.
    """

    def __init__(self, provider: SignalProvider, cache: CacheStore, signal_type: str | None = None) -> None:
        self.provider = provider
        self.cache = cache
        self.signal_type = signal_type or provider.signal_type

    async def fetch_signal(self, symbol: str) -> list[TextItem]:
        key = cache_key(self.signal_type, symbol)
        cached = self.cache.get(key)
        if isinstance(cached, list):
            return [TextItem.from_dict(row) for row in cached if isinstance(row, dict)]

        try:
            items = await self.provider.fetch_items(symbol)
        except Exception as exc:
            LOGGER.warning("%s signal failed for %s: %s", self.signal_type, symbol, exc)
            return []

        if items:
            self.cache.put(key, [item.to_dict() for item in items])
        return items
