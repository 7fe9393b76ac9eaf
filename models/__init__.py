"""
Model abstraction layer for LLM providers.

Provides a unified interface for OpenAI, Anthropic and Google models, the
decorator chain around it, and the provider factory.
"""

from models.base import BaseLLM
from models.errors import (
    ConfigurationError,
    GatewayError,
    MaxIterationsExceededError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitExceededError,
    ToolError,
    UnknownToolError,
    UnsupportedOperationError,
)
from models.factory import LLMFactory, ProviderConfig, build_llm
from models.types import ChatOptions, ChatRequest, LLMResponse, Message, ModelInfo, ToolCall

__all__ = [
    "BaseLLM",
    "LLMFactory",
    "ProviderConfig",
    "build_llm",
    "ChatOptions",
    "ChatRequest",
    "LLMResponse",
    "Message",
    "ModelInfo",
    "ToolCall",
    "GatewayError",
    "ConfigurationError",
    "ProviderError",
    "ProviderTimeoutError",
    "UnsupportedOperationError",
    "RateLimitExceededError",
    "ToolError",
    "UnknownToolError",
    "MaxIterationsExceededError",
]
