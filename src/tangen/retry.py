from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tangen.config import RetryPolicy

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    return min(policy.base_delay * (2 ** attempt), policy.max_delay)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str = "call",
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """Await ``fn()`` up to ``policy.attempts`` times with capped exponential backoff.

    The last exception is re-raised once every attempt has failed.
    """
    attempts = max(1, policy.attempts)
    for attempt in range(attempts):
        try:
            return await fn()
        except retry_on as exc:
            if attempt >= attempts - 1:
                raise
            wait_s = backoff_delay(attempt, policy)
            LOGGER.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.2fs.",
                label,
                attempt + 1,
                attempts,
                exc,
                wait_s,
            )
            await asyncio.sleep(wait_s)
    raise AssertionError("unreachable")
