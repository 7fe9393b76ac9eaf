"""
Anthropic LLM provider implementation.

Supports Claude models via LangChain.
"""

import anthropic
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import BaseMessage, SystemMessage

from models.base import LangChainLLM, content_text
from models.types import CHAT, STREAM, TOOLS
from utils.logging import get_agent_logger

logger = get_agent_logger("anthropic_provider")


class AnthropicLLM(LangChainLLM):
    """
    Anthropic (Claude) provider implementation.

    Supports models: claude-sonnet-4, claude-opus-4, claude-haiku-4.
    Anthropic has no embedding endpoint, so embed() is unsupported.
    """

    # Pricing per 1M tokens
    MODEL_CATALOGUE = {
        "claude-sonnet-4-20250514": (200_000, 64_000, 3.00, 15.00),
        "claude-opus-4-20250514": (200_000, 32_000, 15.00, 75.00),
        "claude-haiku-4-20250514": (200_000, 8_192, 0.25, 1.25),
        "claude-3-5-sonnet-20241022": (200_000, 8_192, 3.00, 15.00),
        "claude-3-haiku-20240307": (200_000, 4_096, 0.25, 1.25),
    }
    DEFAULT_LIMITS = (200_000, 8_192, 3.00, 15.00)
    CAPABILITIES = frozenset({CHAT, STREAM, TOOLS})
    MAX_TEMPERATURE = 1.0
    OVERRIDE_FIELDS = {
        "model": "model",
        "temperature": "temperature",
        "max_tokens": "max_tokens",
    }
    FINISH_REASON_KEYS = ("stop_reason",)
    TRANSIENT_ERRORS = (anthropic.APIConnectionError,)

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        temperature: float = 0.2,
        timeout: float = 30,
        max_tokens: int | None = 4096,
        api_key: str | None = None,
        max_retries: int = 0,
    ):
        """
        Initialize Anthropic LLM provider.

        Args:
            model: Claude model name
            temperature: Sampling temperature (0.0-1.0 for Claude)
            timeout: Request timeout in seconds
            max_tokens: Maximum tokens to generate (required by the Messages API)
            api_key: Anthropic API key
            max_retries: SDK-level retries (retries normally belong to RetryingLLM)
        """
        super().__init__(model, temperature, timeout, max_tokens, api_key)

        if not api_key:
            raise ValueError(
                "Anthropic API key is required. Set ANTHROPIC_API_KEY env var or pass api_key parameter."
            )

        self._client = ChatAnthropic(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens or 4096,
            anthropic_api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
        )

        logger.logger.debug(
            f"Initialized Anthropic provider: model={model}, temperature={temperature}"
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def _shape_messages(self, messages: list[BaseMessage]) -> list[BaseMessage]:
        """
        Anthropic takes the system prompt separately from the turn history:
        every system message is folded into one leading system instruction,
        the remaining turns keep their relative order.
        """
        system_parts = [
            content_text(msg.content) for msg in messages if isinstance(msg, SystemMessage)
        ]
        turns = [msg for msg in messages if not isinstance(msg, SystemMessage)]

        if not system_parts:
            return turns
        return [SystemMessage(content="\n\n".join(system_parts)), *turns]
