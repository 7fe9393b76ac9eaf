"""
Logging utilities for the LLM gateway.

Provides:
- Request ID tracking across async contexts (contextvar + middleware)
- A formatter that renders structured ``extra`` fields as key=value pairs
- AgentLogger: agent steps and per-call LLM records
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from config import Settings, get_settings

REQUEST_ID_HEADER = "X-Request-ID"

# Context variable to track request_id across async contexts
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "request_id", "taskName"}


class RequestIdFilter(logging.Filter):
    """Stamp every record with the current request id ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id to the logging context for the duration of a request.

    The caller's X-Request-ID is reused when present so ids correlate across
    services; the id is echoed back on the response.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        try:
            response: Response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class StructuredFormatter(logging.Formatter):
    """Appends the record's ``extra`` fields to the message as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and value is not None
        }
        if not fields:
            return line
        return line + " | " + " ".join(f"{key}={value}" for key, value in fields.items())


def configure_logging(settings: Settings | None = None) -> None:
    """
    Install a single stdout handler on the root logger.

    Format: timestamp, level, logger.function, request id, message, then any
    structured fields. Level comes from settings; HTTP client and SDK loggers
    are capped at WARNING.
    """
    settings = settings or get_settings()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        StructuredFormatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s.%(funcName)s | %(request_id)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()  # Avoid duplicate handlers on reload
    root.setLevel(settings.log_level_int)
    root.addHandler(handler)

    for noisy in ("httpx", "httpcore", "urllib3", "openai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class AgentLogger:
    """
    Logger for agent reasoning steps and LLM calls.

    Steps (thought, action, observation) and successful LLM calls are traced
    only when ``enable_llm_tracing`` is on. Final responses, errors and failed
    calls are always logged.

    Example:
        logger = get_agent_logger("assistant")
        logger.thought("User asks about the weather")
        logger.action("call_tool", {"tool": "get_weather", "arguments": {"city": "Lisbon"}})
        logger.observation("Tool get_weather returned 96 chars")
        logger.response("It's 21C and sunny in Lisbon.")
    """

    def __init__(self, agent_name: str):
        self.agent_name = agent_name
        self.logger = logging.getLogger(f"agent.{agent_name}")
        self.settings = get_settings()

    def _step(
        self,
        step: str,
        message: str,
        level: int = logging.INFO,
        traced: bool = True,
        **extra: Any,
    ) -> None:
        if traced and not self.settings.enable_llm_tracing:
            return
        self.logger.log(
            level,
            f"[{step.upper()}] {message}",
            extra={"agent": self.agent_name, "step": step, **extra},
            stacklevel=3,
        )

    def thought(self, content: str, **extra):
        """Reasoning or planning step."""
        self._step("thought", content, **extra)

    def action(self, action_type: str, details: dict[str, Any] | None = None, **extra):
        """Tool call or other action taken by the agent."""
        self._step("action", action_type, action_type=action_type, details=details or {}, **extra)

    def observation(self, content: str, **extra):
        """Result of an action."""
        self._step("observation", content, **extra)

    def response(self, content: str, **extra):
        """Final answer, truncated to 100 characters."""
        preview = content if len(content) <= 100 else content[:100] + "..."
        self._step("response", preview, traced=False, **extra)

    def error(self, error: Exception, context: str = "", **extra):
        """Failure with traceback."""
        self.logger.error(
            f"[ERROR] {context}: {error}",
            exc_info=error,
            extra={"agent": self.agent_name, "step": "error", **extra},
            stacklevel=2,
        )

    def llm_call(
        self,
        model: str,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        latency_ms: float | None = None,
        outcome: str = "success",
        **extra,
    ):
        """
        One record per LLM call.

        Failed and cancelled calls are logged as warnings regardless of the
        tracing flag.
        """
        failed = outcome != "success"
        self._step(
            "llm_call",
            f"model={model} outcome={outcome}",
            level=logging.WARNING if failed else logging.INFO,
            traced=not failed,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=round(latency_ms, 1) if latency_ms is not None else None,
            outcome=outcome,
            **extra,
        )


def get_agent_logger(agent_name: str) -> AgentLogger:
    """
    Create an AgentLogger for a component.

    Args:
        agent_name: Component name (e.g., "assistant", "llm_gateway")
    """
    return AgentLogger(agent_name)
