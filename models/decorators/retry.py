"""
Retry decorator with exponential backoff and jitter.

Only transient failures are retried: provider errors flagged retryable
(timeouts, connection drops, 408/409/429/5xx), plain TimeoutError and
ConnectionError. Authentication and malformed-request errors, and the
gateway's own RateLimitExceededError, propagate after a single call.
"""

import asyncio
import random
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import aclosing

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from models.base import BaseLLM
from models.decorators.base import DelegatingLLM
from models.errors import ProviderError, RateLimitExceededError
from models.types import ChatOptions, LLMResponse, Message
from utils.logging import get_agent_logger

logger = get_agent_logger("llm_retry")


def is_retryable(error: BaseException) -> bool:
    """Classify a failure as transient (retry) or fatal (propagate)."""
    if isinstance(error, RateLimitExceededError):
        return False
    if isinstance(error, ProviderError):
        return error.retryable
    return isinstance(error, (TimeoutError, ConnectionError))


class RetryingLLM(DelegatingLLM):
    """
    Retries transient failures of the inner adapter.

    Delay before retry n (n = 1 after the first failure) is
    ``base_delay * 2**(n-1)`` plus uniform jitter of up to 10% of that delay.
    After ``max_attempts`` total calls the last failure is re-raised.
    """

    def __init__(
        self,
        inner: BaseLLM,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            inner: Adapter to wrap
            max_attempts: Total attempts including the first call
            base_delay: Delay before the first retry, in seconds
            sleep: Awaitable sleep used between attempts
        """
        super().__init__(inner)
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def backoff(self, retry_state: RetryCallState) -> float:
        """Exponential backoff with up to 10% jitter."""
        delay = self.base_delay * 2 ** (retry_state.attempt_number - 1)
        return delay + random.uniform(0, 0.1 * delay)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.logger.warning(
            f"Retrying {self.provider_name} call after attempt {retry_state.attempt_number}",
            extra={
                "model": self.model,
                "attempt": retry_state.attempt_number,
                "max_attempts": self.max_attempts,
                "delay_seconds": retry_state.upcoming_sleep,
                "error": str(error),
            },
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.backoff,
            retry=retry_if_exception(is_retryable),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

    async def chat(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> LLMResponse:
        async for attempt in self._retrying():
            with attempt:
                response = await self.inner.chat(messages, options)
        return response

    async def embed(self, text: str) -> list[float]:
        async for attempt in self._retrying():
            with attempt:
                vector = await self.inner.embed(text)
        return vector

    async def stream(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> AsyncIterator[str]:
        """
        Retries opening the stream until its first fragment arrives.

        Once a fragment has been yielded to the caller, failures propagate:
        replaying would duplicate text the caller already consumed.
        """
        async for attempt in self._retrying():
            with attempt:
                fragments = self.inner.stream(messages, options)
                try:
                    first = await anext(fragments)
                except StopAsyncIteration:
                    await fragments.aclose()
                    return
                except BaseException:
                    await fragments.aclose()
                    raise

        async with aclosing(fragments):
            yield first
            async for fragment in fragments:
                yield fragment
