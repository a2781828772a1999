from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx

from tangen.config import RetryPolicy
from tangen.errors import ProviderError
from tangen.models import NEWS, TextItem
from tangen.providers.base import SignalProvider
from tangen.providers.http import build_client, request_json
from tangen.retry import with_retry

FINNHUB_API_URL = "https://finnhub.io/api/v1"


class FinnhubNewsProvider(SignalProvider):
    """Company news from Finnhub over a trailing window."""

    signal_type = NEWS

    def __init__(
        self,
        api_key: str,
        *,
        lookback_days: int = 30,
        max_items: int = 20,
        timeout_seconds: float = 10.0,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        today: date | None = None,
    ) -> None:
        self.api_key = api_key
        self.lookback_days = lookback_days
        self.max_items = max_items
        self.timeout_seconds = timeout_seconds
        self.retry = retry or RetryPolicy()
        self.transport = transport
        self.today = today

    async def fetch_items(self, symbol: str) -> list[TextItem]:
        if not self.api_key:
            raise ProviderError("Finnhub API key is missing. Set FINNHUB_API_KEY.")

        end = self.today or datetime.now(timezone.utc).date()
        start = end - timedelta(days=self.lookback_days)
        params = {
            "symbol": symbol,
            "from": start.isoformat(),
            "to": end.isoformat(),
            "token": self.api_key,
        }

        async def _call() -> Any:
            async with build_client(self.timeout_seconds, self.transport) as client:
                return await request_json(client, "GET", f"{FINNHUB_API_URL}/company-news", params=params)

        payload = await with_retry(_call, self.retry, label=f"finnhub news {symbol}", retry_on=(ProviderError,))
        if not isinstance(payload, list):
            raise ProviderError(f"Unexpected Finnhub news payload for {symbol}")
        return _to_items(payload)[: self.max_items]


def _to_items(rows: list[Any]) -> list[TextItem]:
    items: list[TextItem] = []
    seen: set[str] = set()
    for row in rows:
        if not isinstance(row, dict):
            continue
        summary = str(row.get("summary") or "").strip()
        if not summary:
            continue
        url = str(row.get("url") or "").strip() or None
        identity = url or summary
        if identity in seen:
            continue
        seen.add(identity)
        items.append(
            TextItem(
                text=summary,
                source=NEWS,
                title=str(row.get("headline") or "").strip() or None,
                url=url,
                datetime=_epoch_to_iso(row.get("datetime")),
            )
        )
    return items


def _epoch_to_iso(value: Any) -> str | None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        return None
    try:
        stamp = datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return stamp.isoformat().replace("+00:00", "Z")
