"""
Base interface for LLM providers.

Defines the common interface that all LLM providers (OpenAI, Anthropic, Google)
and all decorators (caching, rate limiting, retry, logging, metrics) implement,
plus the shared machinery for providers backed by LangChain chat models.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any, ClassVar

import httpx
from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.runnables import Runnable

from models.errors import ProviderError, ProviderTimeoutError, UnsupportedOperationError
from models.types import (
    CHAT,
    EMBED,
    STREAM,
    TOOLS,
    ChatOptions,
    LLMResponse,
    Message,
    ModelInfo,
    ToolCall,
    validate_conversation,
)
from utils.logging import get_agent_logger

logger = get_agent_logger("llm_provider")

# HTTP statuses that signal a transient backend condition
RETRYABLE_STATUS_CODES = frozenset({408, 409, 425, 429, 500, 502, 503, 504, 529})


class BaseLLM(ABC):
    """
    Abstract base class for LLM providers and the decorators that wrap them.

    All implementations expose the same async contract:
    - chat: full response for a message history
    - stream: lazy, finite, non-restartable sequence of text fragments
    - embed: fixed-length embedding vector
    - describe: static model metadata
    """

    MAX_TEMPERATURE: ClassVar[float] = 2.0

    def __init__(
        self,
        model: str,
        temperature: float = 0.2,
        timeout: float = 30,
        max_tokens: int | None = None,
    ):
        """
        Initialize base LLM provider.

        Args:
            model: Model name (provider-specific, e.g., "gpt-4o", "claude-sonnet-4")
            temperature: Default sampling temperature (0.0-2.0, 0 = deterministic)
            timeout: Per-call transport timeout in seconds
            max_tokens: Default cap on generated tokens (None = provider default)
        """
        self.model = model
        self.temperature = self._validate_temperature(temperature)
        self.timeout = timeout
        self.max_tokens = max_tokens

    def _validate_temperature(self, temperature: float) -> float:
        """Validate temperature is within this provider's range."""
        if not (0.0 <= temperature <= self.MAX_TEMPERATURE):
            raise ValueError(
                f"temperature must be between 0.0 and {self.MAX_TEMPERATURE}, got {temperature}"
            )
        return temperature

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'openai', 'anthropic', 'google')."""
        pass

    @abstractmethod
    async def chat(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> LLMResponse:
        """
        Send the full message history and wait for the complete response.

        Raises:
            ProviderError: On transport or authentication failure
            UnsupportedOperationError: If a requested capability is missing
        """
        pass

    @abstractmethod
    def stream(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> AsyncIterator[str]:
        """
        Yield content deltas as they arrive.

        Draining the iterator produces the same text ``chat`` would return.
        Close it (``aclose()``) to abandon the stream early.
        """
        pass

    async def embed(self, text: str) -> list[float]:
        """
        Embed a text into a fixed-length vector.

        Raises:
            UnsupportedOperationError: If the provider has no embedding model
        """
        raise UnsupportedOperationError(self.provider_name, "embed")

    @abstractmethod
    def describe(self) -> ModelInfo:
        """Return static metadata about the model. Pure."""
        pass

    def describe_for(self, model: str) -> ModelInfo:
        """
        Metadata for a per-call model override.

        Models this adapter knows nothing about report no pricing.
        """
        info = self.describe()
        if model == info.id:
            return info
        return info.model_copy(
            update={"id": model, "input_cost_per_million": None, "output_cost_per_million": None}
        )

    def effective_temperature(self, options: ChatOptions | None) -> float:
        """Temperature a call with these options will actually use."""
        if options is not None and options.temperature is not None:
            return options.temperature
        return self.temperature

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"model={self.model}, "
            f"temperature={self.temperature}, "
            f"timeout={self.timeout})"
        )


def to_langchain_messages(messages: Sequence[Message]) -> list[BaseMessage]:
    """Convert gateway messages to LangChain messages, preserving order."""
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "user":
            converted.append(HumanMessage(content=message.content))
        elif message.role == "assistant":
            converted.append(
                AIMessage(
                    content=message.content,
                    tool_calls=[
                        {"id": call.id, "name": call.name, "args": dict(call.arguments)}
                        for call in message.tool_calls
                    ],
                )
            )
        else:
            converted.append(
                ToolMessage(content=message.content, tool_call_id=message.tool_call_id or "")
            )
    return converted


def content_text(content: Any) -> str:
    """Extract plain text from a LangChain message content (str or content blocks)."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def status_code_of(exc: BaseException) -> int | None:
    """Best-effort HTTP status extraction from SDK exceptions."""
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


class LangChainLLM(BaseLLM):
    """
    Shared implementation for providers backed by a LangChain chat model.

    Subclasses build ``self._client`` and declare their catalogue, capability
    set and the client field names used for per-call overrides.
    """

    # model -> (max_context_tokens, max_output_tokens, input $/1M, output $/1M)
    MODEL_CATALOGUE: ClassVar[dict[str, tuple[int, int, float | None, float | None]]] = {}
    DEFAULT_LIMITS: ClassVar[tuple[int, int, float | None, float | None]] = (
        128_000,
        4_096,
        None,
        None,
    )
    CAPABILITIES: ClassVar[frozenset[str]] = frozenset({CHAT, STREAM, TOOLS})
    # ChatOptions key -> client field name
    OVERRIDE_FIELDS: ClassVar[dict[str, str]] = {
        "model": "model",
        "temperature": "temperature",
        "max_tokens": "max_tokens",
    }
    FINISH_REASON_KEYS: ClassVar[tuple[str, ...]] = ("finish_reason", "stop_reason")
    # SDK exception types that signal a dropped or refused connection
    TRANSIENT_ERRORS: ClassVar[tuple[type[BaseException], ...]] = ()

    _client: BaseChatModel

    def __init__(
        self,
        model: str,
        temperature: float = 0.2,
        timeout: float = 30,
        max_tokens: int | None = None,
        api_key: str | None = None,
        embedding_model: str | None = None,
    ):
        super().__init__(model, temperature, timeout, max_tokens)
        self._api_key = api_key
        self.embedding_model = embedding_model
        self._embeddings: Embeddings | None = None

    # --- Contract ---

    async def chat(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> LLMResponse:
        """
        Generate a completion for the message history.

        Args:
            messages: Conversation history (never mutated)
            options: Per-call overrides (temperature, max_tokens, model, tools)

        Returns:
            LLMResponse: Provider-neutral response with token accounting
        """
        options = options or ChatOptions()
        validate_conversation(messages)
        runnable = self._runnable(options)
        lc_messages = self._shape_messages(to_langchain_messages(messages))

        try:
            async with asyncio.timeout(self.timeout):
                result = await runnable.ainvoke(lc_messages)
        except TimeoutError as e:
            raise ProviderTimeoutError(
                f"{self.provider_name} call timed out after {self.timeout}s",
                provider=self.provider_name,
            ) from e
        except Exception as e:
            logger.error(e, context="chat_failed", model=self.model)
            raise self._classify_error(e) from e

        return self._to_llm_response(result)

    async def stream(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> AsyncIterator[str]:
        """
        Stream content deltas.

        Each fragment waits at most ``timeout`` seconds. Closing the generator
        closes the underlying LangChain stream (and its HTTP response).
        """
        options = options or ChatOptions()
        validate_conversation(messages)
        runnable = self._runnable(options)
        lc_messages = self._shape_messages(to_langchain_messages(messages))

        async with aclosing(runnable.astream(lc_messages)) as chunks:
            while True:
                try:
                    async with asyncio.timeout(self.timeout):
                        chunk = await anext(chunks)
                except StopAsyncIteration:
                    return
                except TimeoutError as e:
                    raise ProviderTimeoutError(
                        f"{self.provider_name} stream stalled for {self.timeout}s",
                        provider=self.provider_name,
                    ) from e
                except Exception as e:
                    logger.error(e, context="stream_failed", model=self.model)
                    raise self._classify_error(e) from e

                text = content_text(chunk.content)
                if text:
                    yield text

    async def embed(self, text: str) -> list[float]:
        if EMBED not in self.CAPABILITIES:
            raise UnsupportedOperationError(self.provider_name, "embed")

        if self._embeddings is None:
            self._embeddings = self._create_embeddings()

        try:
            async with asyncio.timeout(self.timeout):
                vector = await self._embeddings.aembed_query(text)
        except TimeoutError as e:
            raise ProviderTimeoutError(
                f"{self.provider_name} embedding timed out after {self.timeout}s",
                provider=self.provider_name,
            ) from e
        except Exception as e:
            logger.error(e, context="embed_failed", model=self.embedding_model)
            raise self._classify_error(e) from e

        return list(vector)

    def describe(self) -> ModelInfo:
        return self.describe_for(self.model)

    def describe_for(self, model: str) -> ModelInfo:
        context, output, input_price, output_price = self.MODEL_CATALOGUE.get(
            model, self.DEFAULT_LIMITS
        )
        return ModelInfo(
            id=model,
            provider=self.provider_name,
            max_context_tokens=context,
            max_output_tokens=self.max_tokens or output,
            capabilities=self.CAPABILITIES,
            input_cost_per_million=input_price,
            output_cost_per_million=output_price,
        )

    # --- Provider hooks ---

    def _create_embeddings(self) -> Embeddings:
        """Build the LangChain embeddings client (providers with EMBED only)."""
        raise UnsupportedOperationError(self.provider_name, "embed")

    def _shape_messages(self, messages: list[BaseMessage]) -> list[BaseMessage]:
        """Backend-specific request shaping. Identity by default."""
        return messages

    # --- Helpers ---

    def _runnable(self, options: ChatOptions) -> Runnable:
        """Apply per-call overrides and tool bindings to the client."""
        if options.temperature is not None:
            self._validate_temperature(options.temperature)
        update: dict[str, Any] = {}
        for key in ("model", "temperature", "max_tokens"):
            value = getattr(options, key)
            if value is not None:
                update[self.OVERRIDE_FIELDS[key]] = value

        client = self._client.model_copy(update=update) if update else self._client
        if options.tools:
            return client.bind_tools(options.tools)
        return client

    def _to_llm_response(self, message: AIMessage) -> LLMResponse:
        """Convert a LangChain AIMessage into an LLMResponse."""
        usage = message.usage_metadata or {}
        metadata = message.response_metadata or {}

        finish_reason = None
        for key in self.FINISH_REASON_KEYS:
            if metadata.get(key):
                finish_reason = str(metadata[key])
                break

        tool_calls = tuple(
            ToolCall(
                id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                name=call["name"],
                arguments=call.get("args") or {},
            )
            for call in message.tool_calls
        )

        return LLMResponse(
            content=content_text(message.content),
            input_tokens=usage.get("input_tokens") or 0,
            output_tokens=usage.get("output_tokens") or 0,
            model=metadata.get("model_name") or metadata.get("model") or self.model,
            finish_reason=finish_reason,
            tool_calls=tool_calls,
        )

    def _classify_error(self, error: Exception) -> ProviderError:
        """Map an SDK/transport exception onto ProviderError."""
        if isinstance(error, ProviderError):
            return error

        if isinstance(error, httpx.TimeoutException):
            return ProviderTimeoutError(str(error), provider=self.provider_name)

        status_code = status_code_of(error)
        if status_code is not None:
            retryable = status_code in RETRYABLE_STATUS_CODES
        else:
            retryable = isinstance(
                error, (ConnectionError, httpx.TransportError, *self.TRANSIENT_ERRORS)
            )

        return ProviderError(
            f"{self.provider_name} request failed: {error}",
            provider=self.provider_name,
            status_code=status_code,
            retryable=retryable,
        )
