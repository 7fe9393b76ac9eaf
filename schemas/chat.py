"""
Request and response schemas for the chat and agent endpoints.

Messages and options reuse the provider-neutral types from models.types.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.types import ChatOptions, LLMResponse, Message, ModelInfo, ToolCall


class ChatRequest(BaseModel):
    """Direct model call: a full history plus per-call options."""

    messages: list[Message] = Field(min_length=1, description="Conversation history")
    options: ChatOptions = Field(default_factory=ChatOptions)
    user_id: str | None = Field(
        default=None, description="Caller identity for rate limiting (default: global)"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "messages": [{"role": "user", "content": "What is 2+2?"}],
                    "options": {"temperature": 0},
                    "user_id": "user_123",
                }
            ]
        }
    )


class ChatResponse(BaseModel):
    """Normalized model response."""

    content: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    model: str
    finish_reason: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @classmethod
    def from_llm_response(cls, response: LLMResponse) -> "ChatResponse":
        return cls(
            content=response.content,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            total_tokens=response.total_tokens(),
            model=response.model,
            finish_reason=response.finish_reason,
            tool_calls=list(response.tool_calls),
        )


class AgentRequest(BaseModel):
    """User query answered by the tool-calling agent."""

    message: str = Field(max_length=50000, examples=["What's the weather in Lisbon?"])
    user_id: str | None = Field(default=None)
    history: list[Message] = Field(
        default_factory=list, description="Prior user/assistant turns"
    )

    @field_validator("message")
    @classmethod
    def message_not_empty(cls, v: str) -> str:
        """Ensure message is not empty or whitespace only."""
        if not v or not v.strip():
            raise ValueError("Message cannot be empty")
        return v


class AgentResponse(BaseModel):
    """Final answer of an agent run plus what it took to get there."""

    content: str
    state: str
    iterations: int
    tool_calls: list[ToolCall] = Field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    model: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ModelInfoResponse(BaseModel):
    """Description of the configured model."""

    id: str
    provider: str
    max_context_tokens: int
    max_output_tokens: int
    capabilities: list[str]
    input_cost_per_million: float | None = None
    output_cost_per_million: float | None = None

    @classmethod
    def from_model_info(cls, info: ModelInfo) -> "ModelInfoResponse":
        return cls(
            id=info.id,
            provider=info.provider,
            max_context_tokens=info.max_context_tokens,
            max_output_tokens=info.max_output_tokens,
            capabilities=sorted(info.capabilities),
            input_cost_per_million=info.input_cost_per_million,
            output_cost_per_million=info.output_cost_per_million,
        )
