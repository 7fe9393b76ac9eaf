"""
Response caching decorator.

Caches complete chat responses for deterministic requests (effective
temperature of exactly 0). Entries are keyed by a SHA-256 hash of the
canonical request and expire after a TTL. Concurrent identical requests share
a single in-flight call to the inner adapter; that call runs as its own task,
so cancelling one caller never cancels the others.
"""

import asyncio
import hashlib
import json
import time
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import aclosing
from typing import Any, Protocol

import redis.asyncio as redis

from models.base import BaseLLM
from models.decorators.base import DelegatingLLM
from models.types import ChatOptions, LLMResponse, Message
from utils.logging import get_agent_logger

logger = get_agent_logger("llm_cache")


class ResponseCache(Protocol):
    """Storage handle for cached responses."""

    async def get(self, key: str) -> LLMResponse | None: ...

    async def set(self, key: str, response: LLMResponse, ttl_seconds: int) -> None: ...


class InMemoryResponseCache:
    """
    Process-local response cache.

    Returns the stored LLMResponse object itself (responses are immutable).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, tuple[float, LLMResponse]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: str) -> LLMResponse | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, response = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return response

    async def set(self, key: str, response: LLMResponse, ttl_seconds: int) -> None:
        async with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, response)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisResponseCache:
    """Shared response cache stored in Redis (JSON payloads with SETEX)."""

    def __init__(self, client: redis.Redis, prefix: str = "llm:cache:"):
        """
        Args:
            client: Async Redis client (decode_responses=True)
            prefix: Key namespace
        """
        self._client = client
        self._prefix = prefix

    async def get(self, key: str) -> LLMResponse | None:
        data = await self._client.get(self._prefix + key)
        if data is None:
            return None
        return LLMResponse.model_validate_json(data)

    async def set(self, key: str, response: LLMResponse, ttl_seconds: int) -> None:
        await self._client.setex(self._prefix + key, ttl_seconds, response.model_dump_json())


def cache_key(
    messages: Sequence[Message], options: ChatOptions, model: str, provider: str
) -> str:
    """Deterministic hash of everything that shapes the response."""
    payload: dict[str, Any] = {
        "provider": provider,
        "model": options.model or model,
        "messages": [message.model_dump(mode="json") for message in messages],
        "options": options.model_dump(mode="json", exclude={"model"}),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


class CachingLLM(DelegatingLLM):
    """
    Serves identical deterministic chat requests from a cache.

    Requests with an effective temperature above 0 always reach the inner
    adapter. Embeddings and describe() pass through.
    """

    def __init__(self, inner: BaseLLM, cache: ResponseCache, ttl_seconds: int = 3600):
        super().__init__(inner)
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self._inflight: dict[str, asyncio.Task[LLMResponse]] = {}

    def _is_cacheable(self, options: ChatOptions) -> bool:
        return self.effective_temperature(options) == 0

    async def chat(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> LLMResponse:
        options = options or ChatOptions()
        if not self._is_cacheable(options):
            return await self.inner.chat(messages, options)

        key = cache_key(messages, options, self.model, self.provider_name)

        cached = await self.cache.get(key)
        if cached is not None:
            logger.logger.debug("Cache hit", extra={"cache_key": key[:16]})
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._fill(key, list(messages), options))
            task.add_done_callback(lambda done: self._settle(key, done))
            self._inflight[key] = task
        else:
            logger.logger.debug("Joining in-flight request", extra={"cache_key": key[:16]})
        return await asyncio.shield(task)

    async def _fill(
        self, key: str, messages: Sequence[Message], options: ChatOptions
    ) -> LLMResponse:
        response = await self.inner.chat(messages, options)
        await self.cache.set(key, response, self.ttl_seconds)
        return response

    def _settle(self, key: str, task: asyncio.Task[LLMResponse]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Retrieve the outcome so an abandoned failure is not reported as unhandled
            task.exception()

    async def stream(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> AsyncIterator[str]:
        options = options or ChatOptions()
        if self._is_cacheable(options):
            cached = await self.cache.get(
                cache_key(messages, options, self.model, self.provider_name)
            )
            if cached is not None:
                yield cached.content
                return

        async with aclosing(self.inner.stream(messages, options)) as fragments:
            async for fragment in fragments:
                yield fragment
