"""Pytest configuration and shared fixtures.

Provides a scripted fake adapter, test settings and an in-memory document
store used across test modules.
"""

from collections.abc import AsyncGenerator, AsyncIterator, Sequence

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import Settings
from db.base import Base
from models.base import BaseLLM
from models.types import CHAT, STREAM, TOOLS, ChatOptions, LLMResponse, Message, ModelInfo


class FakeLLM(BaseLLM):
    """
    Scripted adapter for tests.

    ``script`` items are consumed one per chat call: an LLMResponse is
    returned, an exception is raised. The last item repeats once the script
    is exhausted.
    """

    def __init__(
        self,
        script: Sequence[LLMResponse | BaseException] | None = None,
        fragments: Sequence[str | BaseException] = ("Hel", "lo"),
        model: str = "fake-model",
        temperature: float = 0.0,
    ):
        super().__init__(model=model, temperature=temperature)
        self.script = list(script or [LLMResponse(content="ok", model=model)])
        self.fragments = list(fragments)
        self.calls: list[tuple[list[Message], ChatOptions | None]] = []
        self.stream_calls = 0
        self.embed_calls = 0

    @property
    def provider_name(self) -> str:
        return "fake"

    def _next(self) -> LLMResponse:
        index = min(len(self.calls) - 1, len(self.script) - 1)
        item = self.script[index]
        if isinstance(item, BaseException):
            raise item
        return item

    async def chat(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> LLMResponse:
        self.calls.append((list(messages), options))
        return self._next()

    async def stream(
        self, messages: Sequence[Message], options: ChatOptions | None = None
    ) -> AsyncIterator[str]:
        self.stream_calls += 1
        for fragment in self.fragments:
            if isinstance(fragment, BaseException):
                raise fragment
            yield fragment

    async def embed(self, text: str) -> list[float]:
        self.embed_calls += 1
        return [0.1, 0.2, 0.3]

    def describe(self) -> ModelInfo:
        return ModelInfo(
            id=self.model,
            provider=self.provider_name,
            max_context_tokens=8_000,
            max_output_tokens=1_000,
            capabilities=frozenset({CHAT, STREAM, TOOLS}),
            input_cost_per_million=1.0,
            output_cost_per_million=2.0,
        )


@pytest.fixture
def fake_llm() -> FakeLLM:
    """Fake adapter answering "4" with 5 input and 1 output tokens."""
    return FakeLLM(
        script=[LLMResponse(content="4", input_tokens=5, output_tokens=1, model="fake-model")]
    )


@pytest.fixture
def test_settings() -> Settings:
    """Create test-specific settings."""
    return Settings(
        _env_file=None,
        app_env="test",
        log_level="ERROR",  # Reduce noise in tests
        provider="anthropic",
        openai_api_key="test-openai-key",
        anthropic_api_key="test-anthropic-key",
        google_api_key="test-google-key",
        database_url="sqlite+aiosqlite:///:memory:",
        retry={"max_attempts": 3, "base_delay_ms": 0},
    )


@pytest_asyncio.fixture
async def async_engine():
    """Create an in-memory async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()
