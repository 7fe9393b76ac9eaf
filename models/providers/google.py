"""
Google AI LLM provider implementation.

Supports Gemini models via LangChain.
"""

from langchain_core.embeddings import Embeddings
from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings

from models.base import LangChainLLM
from models.types import CHAT, EMBED, STREAM, TOOLS
from utils.logging import get_agent_logger

logger = get_agent_logger("google_provider")


class GoogleLLM(LangChainLLM):
    """
    Google AI (Gemini) provider implementation.

    Supports models: gemini-2.0-flash, gemini-1.5-pro, gemini-1.5-flash
    """

    # Pricing per 1M tokens (up to 128k context)
    MODEL_CATALOGUE = {
        "gemini-2.0-flash": (1_048_576, 8_192, 0.075, 0.30),
        "gemini-2.0-flash-exp": (1_048_576, 8_192, 0.075, 0.30),
        "gemini-1.5-pro": (2_097_152, 8_192, 1.25, 5.00),
        "gemini-1.5-flash": (1_048_576, 8_192, 0.075, 0.30),
    }
    DEFAULT_LIMITS = (1_048_576, 8_192, 0.075, 0.30)
    CAPABILITIES = frozenset({CHAT, STREAM, EMBED, TOOLS})
    OVERRIDE_FIELDS = {
        "model": "model",
        "temperature": "temperature",
        "max_tokens": "max_output_tokens",
    }
    FINISH_REASON_KEYS = ("finish_reason",)

    def __init__(
        self,
        model: str = "gemini-2.0-flash",
        temperature: float = 0.2,
        timeout: float = 30,
        max_tokens: int | None = None,
        api_key: str | None = None,
        embedding_model: str = "models/text-embedding-004",
        max_retries: int = 0,
    ):
        """
        Initialize Google AI LLM provider.

        Args:
            model: Gemini model name
            temperature: Sampling temperature (0.0-2.0)
            timeout: Request timeout in seconds
            max_tokens: Default output token cap
            api_key: Google API key
            embedding_model: Model used by embed()
            max_retries: SDK-level retries (retries normally belong to RetryingLLM)
        """
        super().__init__(model, temperature, timeout, max_tokens, api_key, embedding_model)

        if not api_key:
            raise ValueError(
                "Google API key is required. Set GOOGLE_API_KEY env var or pass api_key parameter."
            )

        self._client = ChatGoogleGenerativeAI(
            model=model,
            temperature=temperature,
            max_output_tokens=max_tokens,
            google_api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
        )

        logger.logger.debug(
            f"Initialized Google provider: model={model}, temperature={temperature}"
        )

    @property
    def provider_name(self) -> str:
        return "google"

    def _create_embeddings(self) -> Embeddings:
        return GoogleGenerativeAIEmbeddings(
            model=self.embedding_model,
            google_api_key=self._api_key,
        )
