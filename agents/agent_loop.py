"""
Agent loop - tool-calling conversation driver.

Alternates between asking the model for the next step and running the tools it
requests, until the model answers without tool calls or the iteration limit is
reached.
"""

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from models.base import BaseLLM
from models.errors import MaxIterationsExceededError, ToolError
from models.types import ChatOptions, Message, ToolCall
from tools.registry import ToolExecutor
from utils.logging import get_agent_logger

logger = get_agent_logger("assistant")

DEFAULT_PROMPTS_DIR = Path(__file__).parent / "prompts" / "assistant"


class AgentState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AgentResult:
    """Outcome of a completed agent run."""

    content: str
    state: AgentState
    iterations: int
    tool_calls: list[ToolCall] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    model: str | None = None

    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def default_is_fatal(error: ToolError) -> bool:
    return error.fatal


def load_system_prompt(prompts_dir: Path) -> str:
    """
    Load the active system prompt version.

    Reads ``active.json`` for the version name, then ``<version>_system.txt``.

    Raises:
        FileNotFoundError: If prompt files don't exist
    """
    active_path = prompts_dir / "active.json"
    with open(active_path) as f:
        active_config = json.load(f)

    version = active_config["version"]
    logger.logger.debug(f"Loading prompt version: {version}")

    prompt_path = prompts_dir / f"{version}_system.txt"
    with open(prompt_path) as f:
        return f.read().strip()


class AgentLoop:
    """
    Tool-calling agent over any BaseLLM.

    Each run is independent: state lives in the run, not on the instance, so a
    single AgentLoop can serve concurrent requests.
    """

    def __init__(
        self,
        llm: BaseLLM,
        tool_executor: ToolExecutor,
        system_prompt: str | None = None,
        prompts_dir: Path | None = None,
        max_iterations: int = 5,
        options: ChatOptions | None = None,
        is_fatal_tool_error: Callable[[ToolError], bool] | None = None,
    ):
        """
        Initialize the agent loop.

        Args:
            llm: LLM (usually a decorated chain) used for every model step
            tool_executor: Tools the model may call
            system_prompt: Explicit system prompt (skips loading from disk)
            prompts_dir: Directory with active.json and versioned prompts
                (defaults to agents/prompts/assistant)
            max_iterations: Maximum number of tool rounds before failing
            options: Base per-call options; tool schemas are added to them
            is_fatal_tool_error: Policy deciding which tool errors abort the run
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.llm = llm
        self.tool_executor = tool_executor
        self.max_iterations = max_iterations
        self.is_fatal_tool_error = is_fatal_tool_error or default_is_fatal

        if system_prompt is None:
            system_prompt = load_system_prompt(prompts_dir or DEFAULT_PROMPTS_DIR)
        self.system_prompt = system_prompt

        base_options = options or ChatOptions()
        schemas = tool_executor.to_function_schemas()
        self.options = base_options.model_copy(update={"tools": schemas}) if schemas else base_options

        logger.logger.info(f"Initialized AgentLoop with {len(tool_executor)} tools")

    async def run(self, query: str, history: Sequence[Message] | None = None) -> AgentResult:
        """
        Answer a user query, calling tools as the model requests them.

        Args:
            query: The user's message
            history: Prior conversation turns (without a system prompt)

        Returns:
            AgentResult in state DONE

        Raises:
            MaxIterationsExceededError: If the model keeps requesting tools
            ToolError: If a tool fails in a way the fatal-error policy rejects
            GatewayError: Any model error that the chain did not resolve
        """
        messages: list[Message] = [Message.system(self.system_prompt)]
        if history:
            messages.extend(m for m in history if m.role != "system")
        messages.append(Message.user(query))

        state = AgentState.AWAITING_MODEL
        iterations = 0
        input_tokens = 0
        output_tokens = 0
        calls_made: list[ToolCall] = []

        logger.thought("Processing user query", query=query[:200])

        while True:
            response = await self.llm.chat(messages, self.options)
            input_tokens += response.input_tokens
            output_tokens += response.output_tokens

            if not response.tool_calls:
                state = AgentState.DONE
                messages.append(Message.assistant(response.content))
                logger.response(response.content, iterations=iterations)
                return AgentResult(
                    content=response.content,
                    state=state,
                    iterations=iterations,
                    tool_calls=calls_made,
                    messages=messages,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    model=response.model,
                )

            state = AgentState.EXECUTING_TOOLS
            messages.append(Message.assistant(response.content, response.tool_calls))
            for call in response.tool_calls:
                calls_made.append(call)
                messages.append(await self._run_tool(call))

            iterations += 1
            if iterations >= self.max_iterations:
                state = AgentState.FAILED
                logger.logger.warning(
                    f"Max tool calling iterations ({self.max_iterations}) reached",
                    extra={"state": state.value},
                )
                raise MaxIterationsExceededError(self.max_iterations)

            state = AgentState.AWAITING_MODEL

    async def _run_tool(self, call: ToolCall) -> Message:
        """Execute one tool call and turn its outcome into a tool message."""
        logger.action("call_tool", {"tool": call.name, "arguments": call.arguments})

        try:
            result: Any = await self.tool_executor.execute(call.name, call.arguments)
        except ToolError as e:
            if self.is_fatal_tool_error(e):
                logger.error(e, context=f"Fatal error in tool {call.name}")
                raise
            logger.observation(f"Tool {call.name} failed: {e}", tool_call_id=call.id)
            return Message.tool(json.dumps(e.to_dict()), tool_call_id=call.id)

        content = json.dumps(result, default=str)
        logger.observation(f"Tool {call.name} returned {len(content)} chars", tool_call_id=call.id)
        return Message.tool(content, tool_call_id=call.id)
