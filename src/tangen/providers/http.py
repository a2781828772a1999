from __future__ import annotations

from typing import Any

import httpx

from tangen.errors import ProviderError

USER_AGENT = "tangen/0.1 (stock-recommendation-pipeline)"


def build_client(
    timeout_seconds: float,
    transport: httpx.AsyncBaseTransport | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    merged = {"User-Agent": USER_AGENT}
    merged.update(headers or {})
    return httpx.AsyncClient(timeout=timeout_seconds, transport=transport, headers=merged)


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    json_body: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> Any:
    try:
        response = await client.request(method, url, params=params, json=json_body, headers=headers)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        raise ProviderError(
            f"{method} {url} failed ({exc.response.status_code}): {exc.response.text[:200]}"
        ) from exc
    except httpx.HTTPError as exc:
        raise ProviderError(f"{method} {url} failed: {type(exc).__name__}: {exc}") from exc
    except ValueError as exc:
        raise ProviderError(f"{method} {url} returned invalid JSON") from exc
