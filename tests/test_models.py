"""Tests for LLM model factory and providers.

Tests model factory, provider initialization, message conversion and the
shared LangChain adapter behavior (responses, streaming, timeouts, errors).
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from langchain_core.language_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from config import Settings
from models.base import BaseLLM, content_text, status_code_of, to_langchain_messages
from models.errors import (
    ConfigurationError,
    ProviderError,
    ProviderTimeoutError,
    UnsupportedOperationError,
)
from models.factory import PROVIDERS, LLMFactory, ProviderConfig
from models.providers.anthropic import AnthropicLLM
from models.providers.google import GoogleLLM
from models.providers.openai import OpenAILLM
from models.types import EMBED, TOOLS, ChatOptions, Message, ToolCall


class StatusError(Exception):
    """SDK-style exception carrying an HTTP status."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def openai_llm(**kwargs) -> OpenAILLM:
    return OpenAILLM(api_key="test-openai-key", **kwargs)


def with_fake_client(llm: OpenAILLM, *messages: AIMessage) -> OpenAILLM:
    llm._client = GenericFakeChatModel(messages=iter(messages))
    return llm


def with_failing_client(llm: OpenAILLM, error: BaseException) -> OpenAILLM:
    client = MagicMock()
    client.ainvoke = AsyncMock(side_effect=error)
    llm._client = client
    return llm


class TestLLMFactory:
    """Test LLM factory functionality."""

    def test_create_factory(self, test_settings):
        """Test creating an LLM factory instance."""
        factory = LLMFactory(test_settings)
        assert factory.settings == test_settings

    def test_create_anthropic_provider(self, test_settings):
        """Test creating Anthropic provider."""
        factory = LLMFactory(test_settings)
        llm = factory.create("anthropic", ProviderConfig(model="claude-3-5-sonnet-20241022"))

        assert isinstance(llm, AnthropicLLM)
        assert isinstance(llm, BaseLLM)
        assert llm.model == "claude-3-5-sonnet-20241022"
        assert llm.provider_name == "anthropic"

    def test_create_openai_provider(self, test_settings):
        """Test creating OpenAI provider."""
        factory = LLMFactory(test_settings)
        llm = factory.create("openai", ProviderConfig(model="gpt-4o"))

        assert isinstance(llm, OpenAILLM)
        assert llm.model == "gpt-4o"
        assert llm.provider_name == "openai"

    def test_create_google_provider(self, test_settings):
        """Test creating Google provider."""
        factory = LLMFactory(test_settings)
        llm = factory.create("google", ProviderConfig(model="gemini-2.0-flash-exp"))

        assert isinstance(llm, GoogleLLM)
        assert llm.model == "gemini-2.0-flash-exp"
        assert llm.provider_name == "google"

    def test_default_models(self, test_settings):
        factory = LLMFactory(test_settings)
        assert factory.create("openai").model == "gpt-5-mini"
        assert factory.create("google").model == "gemini-2.0-flash"
        assert factory.create_default().model == "claude-sonnet-4-20250514"

    def test_settings_model_applies_to_configured_provider(self, test_settings):
        settings = test_settings.model_copy(update={"model": "claude-opus-4-20250514"})
        factory = LLMFactory(settings)

        assert factory.create_default().model == "claude-opus-4-20250514"
        assert factory.create("openai").model == "gpt-5-mini"

    def test_create_with_custom_temperature_and_timeout(self, test_settings):
        """Test creating LLM with custom temperature and timeout."""
        factory = LLMFactory(test_settings)
        llm = factory.create("anthropic", ProviderConfig(temperature=0.7, timeout_seconds=60))

        assert llm.temperature == 0.7
        assert llm.timeout == 60

    def test_settings_defaults_applied(self, test_settings):
        llm = LLMFactory(test_settings).create("openai")

        assert llm.temperature == test_settings.llm_temperature
        assert llm.timeout == test_settings.llm_timeout_seconds

    def test_unknown_provider(self, test_settings):
        factory = LLMFactory(test_settings)

        with pytest.raises(ConfigurationError, match="Unknown provider: mistral"):
            factory.create("mistral")

    @pytest.fixture
    def clean_env(self, monkeypatch):
        """Hide provider keys that may be set in the environment."""
        for name in ("API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "MODEL"):
            monkeypatch.delenv(name, raising=False)

    def test_missing_api_key(self, clean_env):
        settings = Settings(_env_file=None, app_env="test", provider="openai")
        factory = LLMFactory(settings)

        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY is not set"):
            factory.create("openai")

    def test_generic_api_key_used_for_configured_provider(self, clean_env):
        settings = Settings(_env_file=None, app_env="test", provider="openai", api_key="sk-x")
        factory = LLMFactory(settings)

        assert isinstance(factory.create_default(), OpenAILLM)
        assert factory.available_providers() == ["openai"]

    def test_explicit_key_wins(self, clean_env):
        settings = Settings(_env_file=None, app_env="test", provider="google")
        llm = LLMFactory(settings).create("google", ProviderConfig(api_key="g-key"))

        assert isinstance(llm, GoogleLLM)

    def test_available_providers(self, test_settings):
        factory = LLMFactory(test_settings)
        assert set(factory.available_providers()) == {"openai", "anthropic", "google"}

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            PROVIDERS["custom"] = OpenAILLM  # type: ignore[index]


class TestProviders:
    """Test provider construction and metadata."""

    def test_missing_key_rejected(self):
        with pytest.raises(ValueError, match="API key is required"):
            OpenAILLM(api_key=None)

    def test_invalid_temperature(self):
        with pytest.raises(ValueError, match="temperature must be between"):
            openai_llm(temperature=2.5)

    def test_anthropic_temperature_capped_at_one(self):
        assert AnthropicLLM(api_key="k", temperature=1.0).temperature == 1.0
        with pytest.raises(ValueError, match="between 0.0 and 1.0"):
            AnthropicLLM(api_key="k", temperature=1.5)

    def test_per_call_temperature_checked_against_provider_range(self):
        llm = AnthropicLLM(api_key="k")

        with pytest.raises(ValueError, match="between 0.0 and 1.0"):
            llm._runnable(ChatOptions(temperature=1.5))
        assert openai_llm(model="gpt-4o")._runnable(ChatOptions(temperature=1.5)).temperature == 1.5

    def test_factory_rejects_out_of_range_temperature(self, test_settings):
        factory = LLMFactory(test_settings)

        with pytest.raises(ConfigurationError, match="temperature"):
            factory.create("anthropic", ProviderConfig(temperature=1.5))

    def test_describe_for_override_uses_its_catalogue_entry(self):
        llm = openai_llm(model="gpt-4o")

        info = llm.describe_for("gpt-4o-mini")

        assert info.id == "gpt-4o-mini"
        assert info.input_cost_per_million == 0.15
        assert llm.describe().input_cost_per_million == 2.50

    def test_describe_known_model(self):
        info = openai_llm(model="gpt-4o").describe()

        assert info.id == "gpt-4o"
        assert info.provider == "openai"
        assert info.max_context_tokens == 128_000
        assert info.supports(EMBED)
        assert info.input_cost_per_million == 2.50

    def test_describe_unknown_model_uses_defaults(self):
        info = AnthropicLLM(api_key="k", model="claude-next").describe()

        assert info.id == "claude-next"
        assert info.max_context_tokens == 200_000
        assert info.supports(TOOLS)
        assert not info.supports(EMBED)

    @pytest.mark.asyncio
    async def test_anthropic_embed_unsupported(self):
        llm = AnthropicLLM(api_key="k")

        with pytest.raises(UnsupportedOperationError):
            await llm.embed("hello")

    def test_anthropic_folds_system_messages(self):
        llm = AnthropicLLM(api_key="k")
        shaped = llm._shape_messages(
            [
                SystemMessage(content="Be brief."),
                HumanMessage(content="hi"),
                SystemMessage(content="Answer in English."),
            ]
        )

        assert isinstance(shaped[0], SystemMessage)
        assert shaped[0].content == "Be brief.\n\nAnswer in English."
        assert [type(m) for m in shaped[1:]] == [HumanMessage]

    def test_per_call_overrides_use_provider_field_names(self):
        llm = openai_llm(model="gpt-4o", temperature=0.2)

        runnable = llm._runnable(ChatOptions(model="gpt-4o-mini", temperature=0, max_tokens=50))

        assert runnable.model_name == "gpt-4o-mini"
        assert runnable.temperature == 0
        assert runnable.max_tokens == 50
        assert llm._client.model_name == "gpt-4o"


class TestConversion:
    """Test conversion between gateway and LangChain messages."""

    def test_roles_map_in_order(self):
        call = ToolCall(id="call_1", name="get_weather", arguments={"city": "Lisbon"})
        converted = to_langchain_messages(
            [
                Message.system("sys"),
                Message.user("weather?"),
                Message.assistant("", [call]),
                Message.tool('{"temperature": 21}', tool_call_id="call_1"),
            ]
        )

        assert [type(m) for m in converted] == [SystemMessage, HumanMessage, AIMessage, ToolMessage]
        assert converted[2].tool_calls[0]["args"] == {"city": "Lisbon"}
        assert converted[3].tool_call_id == "call_1"

    def test_content_text_from_blocks(self):
        blocks = [{"type": "text", "text": "Hel"}, {"type": "tool_use"}, "lo"]
        assert content_text(blocks) == "Hello"
        assert content_text("plain") == "plain"

    def test_status_code_of(self):
        assert status_code_of(StatusError(429)) == 429
        response = httpx.Response(503, request=httpx.Request("POST", "https://api.test"))
        error = httpx.HTTPStatusError("busy", request=response.request, response=response)
        assert status_code_of(error) == 503
        assert status_code_of(ValueError()) is None


class TestLangChainAdapter:
    """Test the shared adapter over fake LangChain chat models."""

    @pytest.mark.asyncio
    async def test_chat_normalizes_response(self):
        llm = with_fake_client(
            openai_llm(),
            AIMessage(
                content="4",
                usage_metadata={"input_tokens": 5, "output_tokens": 1, "total_tokens": 6},
                response_metadata={"finish_reason": "stop", "model_name": "gpt-5-mini-2025"},
            ),
        )

        response = await llm.chat([Message.user("2+2?")])

        assert response.content == "4"
        assert response.input_tokens == 5
        assert response.output_tokens == 1
        assert response.total_tokens() == 6
        assert response.finish_reason == "stop"
        assert response.model == "gpt-5-mini-2025"

    @pytest.mark.asyncio
    async def test_chat_returns_tool_calls(self):
        llm = with_fake_client(
            openai_llm(),
            AIMessage(
                content="",
                tool_calls=[{"id": "call_1", "name": "get_weather", "args": {"city": "Lisbon"}}],
            ),
        )

        response = await llm.chat([Message.user("weather in Lisbon?")])

        assert response.tool_calls == (
            ToolCall(id="call_1", name="get_weather", arguments={"city": "Lisbon"}),
        )
        assert response.input_tokens == 0

    @pytest.mark.asyncio
    async def test_chat_rejects_invalid_history(self):
        llm = with_fake_client(openai_llm(), AIMessage(content="unused"))

        with pytest.raises(ValueError):
            await llm.chat([])

    @pytest.mark.asyncio
    async def test_stream_concatenates_to_full_text(self):
        llm = with_fake_client(openai_llm(), AIMessage(content="Hello streaming world"))

        fragments = [fragment async for fragment in llm.stream([Message.user("hi")])]

        assert len(fragments) > 1
        assert "".join(fragments) == "Hello streaming world"

    @pytest.mark.asyncio
    async def test_timeout_becomes_retryable_error(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        llm = with_failing_client(openai_llm(timeout=0.01), RuntimeError())
        llm._client.ainvoke = AsyncMock(side_effect=slow)

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await llm.chat([Message.user("hi")])

        assert exc_info.value.retryable
        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "retryable", "status_code"),
        [
            (StatusError(503), True, 503),
            (StatusError(429), True, 429),
            (StatusError(401), False, 401),
            (StatusError(400), False, 400),
            (httpx.ConnectError("refused"), True, None),
            (ConnectionResetError(), True, None),
            (RuntimeError("bug"), False, None),
        ],
    )
    async def test_error_classification(self, error, retryable, status_code):
        llm = with_failing_client(openai_llm(), error)

        with pytest.raises(ProviderError) as exc_info:
            await llm.chat([Message.user("hi")])

        assert exc_info.value.retryable is retryable
        assert exc_info.value.status_code == status_code
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_transport_timeout_is_provider_timeout(self):
        llm = with_failing_client(openai_llm(), httpx.ReadTimeout("read timed out"))

        with pytest.raises(ProviderTimeoutError):
            await llm.chat([Message.user("hi")])

    @pytest.mark.asyncio
    async def test_embed_uses_embeddings_client(self):
        llm = openai_llm()
        embeddings = MagicMock()
        embeddings.aembed_query = AsyncMock(return_value=[0.5, 0.25])
        llm._embeddings = embeddings

        assert await llm.embed("hello") == [0.5, 0.25]
        embeddings.aembed_query.assert_awaited_once_with("hello")
