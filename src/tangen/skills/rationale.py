from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any

from tangen.errors import ProviderError
from tangen.models import ARTICLES, NEWS, SOCIAL_POSTS, TextItem

LOGGER = logging.getLogger(__name__)

NO_CONTENT_RATIONALE = "No recent content available; scored on technical indicators only."
SUPPORTED_LLM_PROVIDERS = {"openai", "azure", "deepseek"}
MAX_PROMPT_ITEMS = 15


def source_counts(items: list[TextItem]) -> dict[str, int]:
    counts = Counter(item.source for item in items)
    return {NEWS: counts.get(NEWS, 0), ARTICLES: counts.get(ARTICLES, 0), SOCIAL_POSTS: counts.get(SOCIAL_POSTS, 0)}


def _leaning(score: float) -> str:
    if score >= 60:
        return "leans positive"
    if score <= 40:
        return "leans negative"
    return "is broadly neutral"


def fallback_rationale(company: str, items: list[TextItem], score: float) -> str:
    counts = source_counts(items)
    return (
        f"Sentiment for {company} {_leaning(score)} at {score:.1f}, based on "
        f"{counts[NEWS]} news items, {counts[ARTICLES]} articles and "
        f"{counts[SOCIAL_POSTS]} social posts."
    )


class RationaleGenerator(ABC):
    @abstractmethod
    async def explain(self, company: str, items: list[TextItem], score: float) -> str:
        raise NotImplementedError


class TemplateRationaleGenerator(RationaleGenerator):
    async def explain(self, company: str, items: list[TextItem], score: float) -> str:
        return fallback_rationale(company, items, score)


def build_prompt(company: str, items: list[TextItem], score: float) -> str:
    blocks = "\n".join(
        f"Title: {item.title or 'N/A'}\nSummary: {item.text or 'N/A'}\nDate: {item.datetime or 'N/A'}\n"
        for item in items[:MAX_PROMPT_ITEMS]
    )
    return (
        f"Analyze the following news articles and posts about {company} and provide a concise "
        f"rationale for the sentiment score of {score:.1f}.\n"
        "Focus on the most significant factors mentioned that influenced this sentiment.\n\n"
        f"Articles:\n{blocks}\n"
        "Provide a brief, factual explanation (2-3 sentences) of why the sentiment score is "
        "what it is, based on the content."
    )


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ProviderError(f"Missing environment variable: {name}")
    return value


def create_client_and_model(
    provider: str,
    *,
    timeout_seconds: float | None = None,
    max_retries: int = 2,
) -> tuple[Any, str]:
    """Build an OpenAI-compatible client and model name from the environment."""
    limits: dict[str, Any] = {"max_retries": max_retries}
    if timeout_seconds is not None:
        limits["timeout"] = timeout_seconds
    provider = provider.strip().lower()
    if provider not in SUPPORTED_LLM_PROVIDERS:
        raise ProviderError(f"LLM_PROVIDER must be one of {sorted(SUPPORTED_LLM_PROVIDERS)}, got: {provider}")

    try:
        from openai import AzureOpenAI, OpenAI
    except Exception as e:
        raise ProviderError("openai is not installed.") from e

    if provider == "azure":
        client = AzureOpenAI(
            azure_endpoint=_require_env("AZURE_OPENAI_ENDPOINT"),
            api_key=_require_env("AZURE_OPENAI_API_KEY"),
            api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-10-21"),
            **limits,
        )
        return client, _require_env("AZURE_OPENAI_DEPLOYMENT")

    if provider == "deepseek":
        client = OpenAI(
            base_url=os.getenv("DEEPSEEK_BASE_URL", "https://api.deepseek.com/v1"),
            api_key=_require_env("DEEPSEEK_API_KEY"),
            **limits,
        )
        return client, os.getenv("DEEPSEEK_MODEL", "deepseek-chat")

    client = OpenAI(
        api_key=_require_env("OPENAI_API_KEY"),
        base_url=os.getenv("OPENAI_BASE_URL") or None,
        **limits,
    )
    return client, os.getenv("OPENAI_MODEL", "gpt-4o-mini")


class LLMRationaleGenerator(RationaleGenerator):
    """Best-effort narrative from an OpenAI-compatible chat model."""

    def __init__(
        self,
        provider: str = "openai",
        *,
        timeout_seconds: float = 15.0,
        max_tokens: int = 300,
        client: Any | None = None,
        model: str | None = None,
    ) -> None:
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self._client = client
        self._model = model

    def _ensure_client(self) -> tuple[Any, str]:
        if self._client is None or self._model is None:
            self._client, self._model = create_client_and_model(
                self.provider, timeout_seconds=self.timeout_seconds, max_retries=0
            )
        return self._client, self._model

    def _complete(self, prompt: str) -> str:
        client, model = self._ensure_client()
        response = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            max_completion_tokens=self.max_tokens,
        )
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise ProviderError("Model returned an empty rationale")
        return content.strip()

    async def explain(self, company: str, items: list[TextItem], score: float) -> str:
        prompt = build_prompt(company, items, score)
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._complete, prompt), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Rationale generation timed out for {company}") from e
