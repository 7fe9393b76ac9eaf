"""
OpenAI LLM provider implementation.

Supports GPT-5, GPT-4o, and other OpenAI models via LangChain.
"""

import openai
from langchain_core.embeddings import Embeddings
from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from models.base import LangChainLLM
from models.types import CHAT, EMBED, STREAM, TOOLS
from utils.logging import get_agent_logger

logger = get_agent_logger("openai_provider")


class OpenAILLM(LangChainLLM):
    """
    OpenAI provider implementation.

    Supports models: gpt-5, gpt-5-mini (default), gpt-5-nano, gpt-4o, gpt-4o-mini
    """

    # Pricing per 1M tokens (as of Dec 2025)
    MODEL_CATALOGUE = {
        # GPT-5 models (2025)
        "gpt-5": (400_000, 128_000, 1.25, 10.00),
        "gpt-5-mini": (400_000, 128_000, 0.25, 2.00),
        "gpt-5-nano": (400_000, 128_000, 0.05, 0.40),
        # GPT-4o models (legacy)
        "gpt-4o": (128_000, 16_384, 2.50, 10.00),
        "gpt-4o-mini": (128_000, 16_384, 0.15, 0.60),
        # Older models
        "gpt-4-turbo": (128_000, 4_096, 10.00, 30.00),
        "gpt-3.5-turbo": (16_385, 4_096, 0.50, 1.50),
    }
    DEFAULT_LIMITS = (128_000, 16_384, 0.25, 2.00)
    CAPABILITIES = frozenset({CHAT, STREAM, EMBED, TOOLS})
    OVERRIDE_FIELDS = {
        "model": "model_name",
        "temperature": "temperature",
        "max_tokens": "max_tokens",
    }
    FINISH_REASON_KEYS = ("finish_reason",)
    TRANSIENT_ERRORS = (openai.APIConnectionError,)

    def __init__(
        self,
        model: str = "gpt-5-mini",
        temperature: float = 0.2,
        timeout: float = 30,
        max_tokens: int | None = None,
        api_key: str | None = None,
        embedding_model: str = "text-embedding-3-small",
        max_retries: int = 0,
    ):
        """
        Initialize OpenAI LLM provider.

        Args:
            model: OpenAI model name
            temperature: Sampling temperature (0.0-2.0)
            timeout: Request timeout in seconds
            max_tokens: Default completion token cap
            api_key: OpenAI API key
            embedding_model: Model used by embed()
            max_retries: SDK-level retries (retries normally belong to RetryingLLM)
        """
        super().__init__(model, temperature, timeout, max_tokens, api_key, embedding_model)

        if not api_key:
            raise ValueError(
                "OpenAI API key is required. Set OPENAI_API_KEY env var or pass api_key parameter."
            )

        self._client = ChatOpenAI(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
            stream_usage=True,
        )
        self._max_retries = max_retries

        logger.logger.debug(
            f"Initialized OpenAI provider: model={model}, temperature={temperature}"
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    def _create_embeddings(self) -> Embeddings:
        return OpenAIEmbeddings(
            model=self.embedding_model,
            api_key=self._api_key,
            timeout=self.timeout,
            max_retries=self._max_retries,
        )
