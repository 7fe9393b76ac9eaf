"""
Type definitions for LLM interactions.

Provides the provider-neutral types every adapter converts to and from.
All types are immutable once constructed.
"""

from collections.abc import Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant", "tool"]

# Capability names reported by ModelInfo.capabilities
CHAT = "chat"
STREAM = "stream"
EMBED = "embed"
TOOLS = "tools"


class ToolCall(BaseModel):
    """
    Tool call made by the LLM.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique tool call ID")
    name: str = Field(description="Tool name")
    arguments: dict[str, Any] = Field(
        default_factory=dict, description="Tool input arguments"
    )


class Message(BaseModel):
    """
    Standard message format for LLM conversations.

    All providers convert to/from this format.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_call_id: str | None = None  # For tool response messages
    tool_calls: tuple[ToolCall, ...] = ()  # For assistant turns requesting tools

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Sequence[ToolCall] = ()) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, content: str, tool_call_id: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


class ChatOptions(BaseModel):
    """
    Per-call options. ``None`` means "use the adapter default".
    """

    model_config = ConfigDict(frozen=True)

    temperature: float | None = Field(default=None, ge=0.0)
    max_tokens: int | None = Field(default=None, gt=0)
    model: str | None = Field(default=None, description="Model override for this call")
    tools: list[dict[str, Any]] = Field(
        default_factory=list, description="Function schemas the model may call"
    )


class ChatRequest(BaseModel):
    """A complete chat request: a non-empty history plus options."""

    model_config = ConfigDict(frozen=True)

    messages: list[Message] = Field(min_length=1)
    options: ChatOptions = Field(default_factory=ChatOptions)


class LLMResponse(BaseModel):
    """
    Standard response format from LLM.

    All providers convert their response to this format.
    """

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="Response text content")
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    model: str = Field(description="Model name used")
    finish_reason: str | None = Field(
        default=None,
        description="Why generation stopped: 'stop', 'length', 'tool_calls', ...",
    )
    tool_calls: tuple[ToolCall, ...] = Field(
        default=(), description="Tools the LLM wants to call"
    )

    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ModelInfo(BaseModel):
    """
    Static description of the model behind an adapter.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    provider: str
    max_context_tokens: int
    max_output_tokens: int
    capabilities: frozenset[str]
    input_cost_per_million: float | None = None
    output_cost_per_million: float | None = None

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float | None:
        """Rough cost estimate in USD, or None when pricing is unknown."""
        if self.input_cost_per_million is None or self.output_cost_per_million is None:
            return None
        return (
            input_tokens / 1_000_000 * self.input_cost_per_million
            + output_tokens / 1_000_000 * self.output_cost_per_million
        )


def validate_conversation(messages: Sequence[Message]) -> None:
    """
    Check the structural invariants of a conversation history.

    - The history is not empty.
    - Each tool message answers a tool call issued by the assistant turn
      immediately before the run of tool messages it belongs to.

    Raises:
        ValueError: If an invariant does not hold
    """
    if not messages:
        raise ValueError("messages must not be empty")

    open_call_ids: set[str] = set()
    previous: Message | None = None

    for index, message in enumerate(messages):
        if message.role == "assistant":
            open_call_ids = {call.id for call in message.tool_calls}
        elif message.role == "tool":
            if previous is None or previous.role not in ("assistant", "tool"):
                raise ValueError(
                    f"Tool message at position {index} does not follow an assistant turn"
                )
            if message.tool_call_id not in open_call_ids:
                raise ValueError(
                    f"Tool message at position {index} references unknown "
                    f"tool_call_id {message.tool_call_id!r}"
                )
        else:
            open_call_ids = set()
        previous = message
