from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aisuite as ai  # type: ignore

from pawpath.core.response_cache import ResponseCache
from pawpath.core.settings import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()
response_cache = ResponseCache(
    ttl_seconds=_settings.llm_cache_ttl_seconds,
    max_entries=_settings.llm_cache_max_entries,
)


class LLMProvider:
    def __init__(self, model: str, cache: ResponseCache | None = None) -> None:
        self.model = model
        self.cache = cache if cache is not None else response_cache
        try:
            self._client = ai.Client()
        except Exception as exc:  # fail fast if aisuite cannot initialize
            raise RuntimeError("Failed to initialize aisuite client") from exc

    def _cache_key(self, messages: list[dict[str, Any]], temperature: float) -> str:
        return json.dumps(
            {"model": self.model, "temperature": temperature, "messages": messages},
            sort_keys=True,
        )

    def chat(
        self,
        messages: list[dict[str, Any]],
        temperature: float = 1.0,
        use_cache: bool = False,
    ) -> str:
        """Send a chat completion request. messages: list of dicts with keys: role (system|user|assistant), content (str)"""
        key = self._cache_key(messages, temperature) if use_cache else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("[LLM] Cache hit for %s", self.model)
                return cached

        resp = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
        )
        content = resp.choices[0].message.content or ""

        if key is not None and content:
            self.cache.set(key, content)
        return content

    async def chat_async(
        self,
        messages: list[dict[str, Any]],
        temperature: float = 1.0,
        use_cache: bool = False,
    ) -> str:
        """Async version of chat completion request. Runs the sync call in a worker thread so many calls can overlap."""
        return await asyncio.to_thread(self.chat, messages, temperature, use_cache)
