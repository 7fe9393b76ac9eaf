"""
Pydantic schemas for the LLM gateway API.

Provides request and response models for the chat, streaming, agent and
model-info endpoints.
"""

from schemas.chat import (
    AgentRequest,
    AgentResponse,
    ChatRequest,
    ChatResponse,
    ModelInfoResponse,
)

__all__ = [
    "AgentRequest",
    "AgentResponse",
    "ChatRequest",
    "ChatResponse",
    "ModelInfoResponse",
]
