"""
LLM factory for creating provider adapters and composing the decorator chain.

Provides:
- Adapter creation from a provider id and configuration
- A closed, read-only registry of provider classes
- Decorator chain composition from settings (cache, rate limit, retry,
  logging, metrics)
"""

from types import MappingProxyType

from pydantic import BaseModel, Field, SecretStr

from config import Settings, get_settings
from models.base import BaseLLM
from models.decorators import (
    CachingLLM,
    GatewayMetrics,
    LoggingLLM,
    MetricsLLM,
    RateLimitedLLM,
    RateLimiter,
    ResponseCache,
    RetryingLLM,
)
from models.errors import ConfigurationError
from models.providers.anthropic import AnthropicLLM
from models.providers.google import GoogleLLM
from models.providers.openai import OpenAILLM
from utils.logging import get_agent_logger
from utils.secrets import require_secret, secret_to_str

logger = get_agent_logger("llm_factory")

PROVIDERS: MappingProxyType[str, type[BaseLLM]] = MappingProxyType(
    {
        "openai": OpenAILLM,
        "anthropic": AnthropicLLM,
        "google": GoogleLLM,
    }
)

DEFAULT_MODELS: MappingProxyType[str, str] = MappingProxyType(
    {
        "openai": "gpt-5-mini",
        "anthropic": "claude-sonnet-4-20250514",
        "google": "gemini-2.0-flash",
    }
)

API_KEY_ENV_VARS: MappingProxyType[str, str] = MappingProxyType(
    {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "google": "GOOGLE_API_KEY",
    }
)


class ProviderConfig(BaseModel):
    """Per-adapter configuration. Unset fields fall back to settings."""

    model: str | None = None
    api_key: SecretStr | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    timeout_seconds: float | None = Field(default=None, gt=0)
    max_tokens: int | None = Field(default=None, gt=0)


class LLMFactory:
    """
    Factory for creating LLM instances across multiple providers.

    Handles:
    - Provider-specific initialization
    - API key management
    - Default model selection
    - Error handling for missing credentials
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize LLM factory.

        Args:
            settings: Application settings (if None, uses get_settings())
        """
        self.settings = settings or get_settings()

    def _api_key_candidates(self, provider: str) -> list[SecretStr | None]:
        candidates: list[SecretStr | None] = []
        if provider == self.settings.provider:
            candidates.append(self.settings.api_key)
        candidates.append(getattr(self.settings, f"{provider}_api_key"))
        return candidates

    def available_providers(self) -> list[str]:
        """Providers with a configured API key."""
        return [
            provider
            for provider in PROVIDERS
            if any(secret_to_str(c) for c in self._api_key_candidates(provider))
        ]

    def create(self, provider_id: str, config: ProviderConfig | None = None) -> BaseLLM:
        """
        Create an LLM instance for the specified provider.

        Pure construction: every call returns a new adapter.

        Args:
            provider_id: LLM provider ('openai', 'anthropic', 'google')
            config: Model, credentials and call defaults (None = settings only)

        Returns:
            BaseLLM: Configured LLM instance

        Raises:
            ConfigurationError: If the provider is unknown or its API key is missing
        """
        provider_cls = PROVIDERS.get(provider_id)
        if provider_cls is None:
            raise ConfigurationError(
                f"Unknown provider: {provider_id}. Must be one of: {', '.join(PROVIDERS)}"
            )

        config = config or ProviderConfig()
        api_key = require_secret(
            config.api_key,
            *self._api_key_candidates(provider_id),
            env_var=API_KEY_ENV_VARS[provider_id],
        )

        if config.model:
            model = config.model
        elif provider_id == self.settings.provider and self.settings.model:
            model = self.settings.model
        else:
            model = DEFAULT_MODELS[provider_id]

        temperature = (
            config.temperature if config.temperature is not None else self.settings.llm_temperature
        )

        try:
            llm = provider_cls(
                model=model,
                temperature=temperature,
                timeout=config.timeout_seconds or self.settings.llm_timeout_seconds,
                max_tokens=config.max_tokens or self.settings.llm_max_tokens,
                api_key=api_key,
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        logger.logger.info(f"Created {provider_id} adapter", extra={"model": model})
        return llm

    def create_default(self) -> BaseLLM:
        """
        Create LLM using the provider and model from settings.

        Returns:
            BaseLLM: Configured LLM with default settings
        """
        return self.create(self.settings.provider)


def build_core_llm(
    settings: Settings,
    llm: BaseLLM,
    cache: ResponseCache | None = None,
) -> BaseLLM:
    """
    Wrap an adapter with the caller-independent decorators.

    Order (outermost first): Caching -> Retrying -> adapter. Build once per
    process so concurrent identical requests share the cache's in-flight table.
    """
    core: BaseLLM = RetryingLLM(
        llm,
        max_attempts=settings.retry.max_attempts,
        base_delay=settings.retry.base_delay_seconds,
    )
    if settings.cache.enabled and cache is not None:
        core = CachingLLM(core, cache, ttl_seconds=settings.cache.ttl_seconds)
    return core


def wrap_for_caller(
    settings: Settings,
    core: BaseLLM,
    rate_limiter: RateLimiter | None = None,
    identity: str = "global",
    metrics: GatewayMetrics | None = None,
) -> BaseLLM:
    """
    Wrap the core chain with the per-caller decorators.

    Order (outermost first): Logging -> Metrics -> RateLimited -> core.
    """
    llm = core
    if settings.rate_limit.enabled and rate_limiter is not None:
        llm = RateLimitedLLM(
            llm,
            rate_limiter,
            max_per_minute=settings.rate_limit.max_per_minute,
            identity=identity,
        )
    if settings.metrics_enabled:
        llm = MetricsLLM(llm, metrics)
    return LoggingLLM(llm)


def build_llm(
    settings: Settings | None = None,
    llm: BaseLLM | None = None,
    cache: ResponseCache | None = None,
    rate_limiter: RateLimiter | None = None,
    identity: str = "global",
    metrics: GatewayMetrics | None = None,
) -> BaseLLM:
    """
    Build a fully decorated adapter in one step.

    Args:
        settings: Application settings (if None, uses get_settings())
        llm: Adapter to wrap (if None, the default provider is created)
        cache: Response cache handle (None disables caching)
        rate_limiter: Rate limiter handle (None disables rate limiting)
        identity: Caller identity counted by the rate limiter
        metrics: Metrics collectors (None = default registry)
    """
    settings = settings or get_settings()
    llm = llm or LLMFactory(settings).create_default()
    core = build_core_llm(settings, llm, cache)
    return wrap_for_caller(settings, core, rate_limiter, identity, metrics)
