"""
Chat API endpoints.

Provides direct model calls (POST /chat, POST /chat/stream), the tool-calling
agent (POST /agent) and model metadata (GET /models/current).

The decorated core model and the shared handles (rate limiter, metrics, tool
executor) are created once in the application lifespan and read from
``app.state``; per-caller decorators are applied on every request.
"""

import json
from collections.abc import AsyncIterator
from contextlib import aclosing

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from agents import AgentLoop
from config import Settings
from models.base import BaseLLM
from models.errors import GatewayError
from models.factory import wrap_for_caller
from schemas.chat import (
    AgentRequest,
    AgentResponse,
    ChatRequest,
    ChatResponse,
    ModelInfoResponse,
)
from tools.registry import ToolExecutor
from utils.logging import get_agent_logger

logger = get_agent_logger("chat_api")

router = APIRouter(tags=["chat"])

STREAM_DONE = "data: [DONE]\n\n"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_core_llm(request: Request) -> BaseLLM:
    """Core model chain built at startup."""
    return request.app.state.core_llm


def get_tool_executor(request: Request) -> ToolExecutor:
    return request.app.state.tool_executor


def caller_llm(request: Request, settings: Settings, user_id: str | None) -> BaseLLM:
    """Wrap the core chain with the decorators scoped to this caller."""
    return wrap_for_caller(
        settings,
        get_core_llm(request),
        rate_limiter=getattr(request.app.state, "rate_limiter", None),
        identity=user_id or "global",
        metrics=getattr(request.app.state, "metrics", None),
    )


def sse_event(payload: dict, event: str | None = None) -> str:
    """Format one server-sent event."""
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {json.dumps(payload)}\n\n"


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> ChatResponse:
    """
    Send a conversation to the configured model.

    Gateway errors propagate to the application's exception handler, which
    maps them to HTTP statuses.
    """
    logger.logger.info(
        "Processing chat request",
        extra={"user_id": body.user_id, "message_count": len(body.messages)},
    )

    llm = caller_llm(request, settings, body.user_id)
    response = await llm.chat(body.messages, body.options)
    return ChatResponse.from_llm_response(response)


@router.post("/chat/stream")
async def chat_stream(
    body: ChatRequest,
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> StreamingResponse:
    """
    Stream the model's answer as server-sent events.

    Each fragment is one ``data: {"delta": ...}`` event and the stream ends with
    ``data: [DONE]``. Errors before the first fragment are returned as regular
    HTTP errors; errors after it arrive as an ``event: error`` event.
    """
    llm = caller_llm(request, settings, body.user_id)
    fragments = llm.stream(body.messages, body.options)

    try:
        first = await anext(fragments)
    except StopAsyncIteration:
        first = None
    except BaseException:
        await fragments.aclose()
        raise

    async def events() -> AsyncIterator[str]:
        async with aclosing(fragments):
            if first is None:
                yield STREAM_DONE
                return
            try:
                yield sse_event({"delta": first})
                async for fragment in fragments:
                    yield sse_event({"delta": fragment})
            except GatewayError as e:
                logger.error(e, context="stream_failed", user_id=body.user_id)
                yield sse_event(e.to_dict(), event="error")
            yield STREAM_DONE

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/agent", response_model=AgentResponse)
async def agent(
    body: AgentRequest,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    tool_executor: ToolExecutor = Depends(get_tool_executor),
) -> AgentResponse:
    """
    Answer a query with the tool-calling agent.

    Raises MaxIterationsExceededError (422) when the model keeps requesting tools.
    """
    logger.logger.info(
        "Processing agent request",
        extra={"user_id": body.user_id, "history_length": len(body.history)},
    )

    loop = AgentLoop(
        llm=caller_llm(request, settings, body.user_id),
        tool_executor=tool_executor,
        prompts_dir=settings.assistant_prompts_dir,
        max_iterations=settings.agent_max_iterations,
    )
    result = await loop.run(body.message, history=body.history)

    return AgentResponse(
        content=result.content,
        state=result.state.value,
        iterations=result.iterations,
        tool_calls=result.tool_calls,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
        total_tokens=result.total_tokens(),
        model=result.model,
        metadata={"tools_available": len(tool_executor)},
    )


@router.get("/models/current", response_model=ModelInfoResponse)
async def current_model(request: Request) -> ModelInfoResponse:
    """Describe the model behind the configured adapter."""
    return ModelInfoResponse.from_model_info(get_core_llm(request).describe())
