"""
Structured call logging decorator.

Records provider, model, operation, token counts, duration and outcome for
every call. Never changes what the call returns or raises.
"""

import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any

from models.base import BaseLLM
from models.decorators.base import DelegatingLLM
from models.types import ChatOptions, LLMResponse, Message
from utils.logging import AgentLogger, get_agent_logger

logger = logging.getLogger(__name__)


class LoggingLLM(DelegatingLLM):
    """Logs one structured entry per call via the agent logger."""

    def __init__(self, inner: BaseLLM, call_logger: AgentLogger | None = None):
        super().__init__(inner)
        self.call_logger = call_logger or get_agent_logger("llm_gateway")

    def _record(
        self,
        operation: str,
        started: float,
        outcome: str,
        response: LLMResponse | None = None,
        **extra: Any,
    ) -> None:
        try:
            self.call_logger.llm_call(
                model=response.model if response else self.model,
                prompt_tokens=response.input_tokens if response else None,
                completion_tokens=response.output_tokens if response else None,
                latency_ms=(time.perf_counter() - started) * 1000,
                outcome=outcome,
                provider=self.provider_name,
                operation=operation,
                **extra,
            )
        except Exception:
            # Logging never changes the call outcome
            logger.exception("Failed to record LLM call", extra={"operation": operation})

    async def chat(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> LLMResponse:
        started = time.perf_counter()
        try:
            response = await self.inner.chat(messages, options)
        except Exception as e:
            self._record("chat", started, "error", error_type=type(e).__name__, error=str(e))
            raise
        self._record(
            "chat",
            started,
            "success",
            response,
            tool_calls_count=len(response.tool_calls),
            finish_reason=response.finish_reason,
        )
        return response

    async def stream(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> AsyncIterator[str]:
        started = time.perf_counter()
        fragments_count = 0
        characters = 0
        outcome = "cancelled"
        extra: dict[str, Any] = {}
        try:
            async with aclosing(self.inner.stream(messages, options)) as fragments:
                async for fragment in fragments:
                    fragments_count += 1
                    characters += len(fragment)
                    yield fragment
            outcome = "success"
        except Exception as e:
            outcome = "error"
            extra = {"error_type": type(e).__name__, "error": str(e)}
            raise
        finally:
            self._record(
                "stream",
                started,
                outcome,
                fragments=fragments_count,
                characters=characters,
                **extra,
            )

    async def embed(self, text: str) -> list[float]:
        started = time.perf_counter()
        try:
            vector = await self.inner.embed(text)
        except Exception as e:
            self._record("embed", started, "error", error_type=type(e).__name__, error=str(e))
            raise
        self._record("embed", started, "success", dimensions=len(vector))
        return vector
