"""
Rate-limiting decorator.

Counts calls per caller identity in fixed windows and fails fast once the
budget is spent. Never queues or delays.
"""

import asyncio
import math
import time
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import aclosing
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis

from models.base import BaseLLM
from models.decorators.base import DelegatingLLM
from models.errors import RateLimitExceededError
from models.types import ChatOptions, LLMResponse, Message
from utils.logging import get_agent_logger

logger = get_agent_logger("llm_rate_limit")


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one counted hit."""

    allowed: bool
    count: int
    retry_after_seconds: float


class RateLimiter(Protocol):
    """Atomic check-and-increment counter shared by all callers."""

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision: ...


class InMemoryRateLimiter:
    """Process-local fixed-window counter."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._windows: dict[str, tuple[int, int]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        async with self._lock:
            now = self._clock()
            window = int(now // window_seconds)
            current_window, count = self._windows.get(key, (window, 0))
            if current_window != window:
                count = 0

            retry_after = (window + 1) * window_seconds - now
            if count >= limit:
                self._windows[key] = (window, count)
                return RateLimitDecision(False, count, retry_after)

            self._windows[key] = (window, count + 1)
            return RateLimitDecision(True, count + 1, retry_after)


class RedisRateLimiter:
    """
    Fixed-window counter in Redis, shared across gateway instances.

    INCR and EXPIRE run in one MULTI/EXEC transaction per hit.
    """

    def __init__(
        self,
        client: redis.Redis,
        prefix: str = "llm:ratelimit:",
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self._prefix = prefix
        self._clock = clock

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        now = self._clock()
        window = int(now // window_seconds)
        redis_key = f"{self._prefix}{key}:{window}"

        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.expire(redis_key, window_seconds)
            count, _ = await pipe.execute()

        retry_after = (window + 1) * window_seconds - now
        return RateLimitDecision(count <= limit, count, retry_after)


class RateLimitedLLM(DelegatingLLM):
    """
    Rejects calls beyond ``max_per_minute`` for one caller identity.

    The identity (user id or "global") is fixed at construction; build one
    decorator per caller over a shared RateLimiter.
    """

    WINDOW_SECONDS = 60

    def __init__(
        self,
        inner: BaseLLM,
        limiter: RateLimiter,
        max_per_minute: int,
        identity: str = "global",
    ):
        super().__init__(inner)
        if max_per_minute < 1:
            raise ValueError(f"max_per_minute must be positive, got {max_per_minute}")
        self.limiter = limiter
        self.max_per_minute = max_per_minute
        self.identity = identity

    async def _acquire(self) -> None:
        decision = await self.limiter.hit(
            f"{self.provider_name}:{self.identity}", self.max_per_minute, self.WINDOW_SECONDS
        )
        if not decision.allowed:
            retry_after = max(1, math.ceil(decision.retry_after_seconds))
            logger.logger.warning(
                "Rate limit exceeded",
                extra={"identity": self.identity, "retry_after_seconds": retry_after},
            )
            raise RateLimitExceededError(retry_after, identity=self.identity)

    async def chat(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> LLMResponse:
        await self._acquire()
        return await self.inner.chat(messages, options)

    async def stream(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> AsyncIterator[str]:
        await self._acquire()
        async with aclosing(self.inner.stream(messages, options)) as fragments:
            async for fragment in fragments:
                yield fragment

    async def embed(self, text: str) -> list[float]:
        await self._acquire()
        return await self.inner.embed(text)
