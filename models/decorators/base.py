"""
Delegating base for LLM decorators.

A decorator implements the full BaseLLM contract, forwards every operation to
``inner`` and changes behavior around exactly one concern. Decorators nest in
any order; callers cannot tell how deep the wrapping goes.
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing

from models.base import BaseLLM
from models.types import ChatOptions, LLMResponse, Message, ModelInfo


class DelegatingLLM(BaseLLM):
    """Forwards every call to the wrapped adapter unchanged."""

    def __init__(self, inner: BaseLLM):
        # Attributes are proxied from inner; BaseLLM.__init__ is not re-run.
        self.inner = inner

    @property
    def provider_name(self) -> str:
        return self.inner.provider_name

    @property
    def model(self) -> str:
        return self.inner.model

    @property
    def temperature(self) -> float:
        return self.inner.temperature

    @property
    def timeout(self) -> float:
        return self.inner.timeout

    @property
    def max_tokens(self) -> int | None:
        return self.inner.max_tokens

    async def chat(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> LLMResponse:
        return await self.inner.chat(messages, options)

    async def stream(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> AsyncIterator[str]:
        async with aclosing(self.inner.stream(messages, options)) as fragments:
            async for fragment in fragments:
                yield fragment

    async def embed(self, text: str) -> list[float]:
        return await self.inner.embed(text)

    def describe(self) -> ModelInfo:
        return self.inner.describe()

    def describe_for(self, model: str) -> ModelInfo:
        return self.inner.describe_for(model)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.inner!r})"
