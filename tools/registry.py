"""
Tool registry and executor for LLM function calling.

Provides:
- Tool registration with JSON-Schema parameter descriptions
- Tool specs in the function-calling format bound to chat models
- Exact-name dispatch of tool calls
"""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from models.errors import ToolError, UnknownToolError
from utils.logging import get_agent_logger

logger = get_agent_logger("tool_executor")

ToolFunction = Callable[[Mapping[str, Any]], Awaitable[Any]]


class ToolDefinition(BaseModel):
    """
    Definition of a tool that can be called by LLMs.
    """

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    name: str = Field(description="Tool name (must be unique)")
    description: str = Field(
        description="Human-readable description of what the tool does"
    )
    parameters_schema: dict[str, Any] = Field(
        description="JSON Schema for tool parameters"
    )
    function: ToolFunction = Field(
        description="Async function receiving the call arguments", exclude=True
    )

    def to_function_schema(self) -> dict[str, Any]:
        """Tool spec in the OpenAI function-calling format (accepted by all providers)."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema,
            },
        }


class ToolExecutor:
    """
    Registry and dispatcher for LLM-callable tools.

    Tools validate their own arguments and raise ToolError on bad input or
    failure. Any other exception escaping a tool is wrapped in ToolError so
    the agent loop can report it back to the model.
    """

    def __init__(self):
        """Initialize empty tool executor."""
        self._tools: dict[str, ToolDefinition] = {}
        logger.logger.debug("Initialized ToolExecutor")

    def register(
        self,
        name: str,
        description: str,
        parameters_schema: dict[str, Any],
        function: ToolFunction,
    ) -> None:
        """
        Register a new tool.

        Args:
            name: Unique tool name (used by LLM to call the tool)
            description: Description of what the tool does
            parameters_schema: JSON Schema defining tool parameters
            function: Async function called with the argument mapping

        Raises:
            ValueError: If a tool with this name already exists
        """
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered")

        self._tools[name] = ToolDefinition(
            name=name,
            description=description,
            parameters_schema=parameters_schema,
            function=function,
        )
        logger.logger.debug(f"Registered tool: {name}")

    def get_tool(self, name: str) -> ToolDefinition | None:
        """Get a tool by name, or None."""
        return self._tools.get(name)

    def get_all_tools(self) -> list[ToolDefinition]:
        """Get all registered tools in registration order."""
        return list(self._tools.values())

    def to_function_schemas(self) -> list[dict[str, Any]]:
        """Tool specs for ChatOptions.tools."""
        return [tool.to_function_schema() for tool in self._tools.values()]

    async def execute(self, tool_name: str, arguments: Mapping[str, Any]) -> Any:
        """
        Execute a registered tool by exact name.

        Args:
            tool_name: Tool name
            arguments: Tool arguments as produced by the model

        Returns:
            Tool execution result (JSON-serializable)

        Raises:
            UnknownToolError: If no tool has this name
            ToolError: If the tool rejects its arguments or fails
        """
        tool = self.get_tool(tool_name)
        if tool is None:
            raise UnknownToolError(tool_name)

        logger.logger.info(f"Executing tool: {tool_name}", extra={"tool_args": dict(arguments)})

        try:
            result = await tool.function(arguments)
        except ToolError:
            raise
        except Exception as e:
            logger.error(
                e, context="tool_execution_failed", tool_name=tool_name, tool_args=dict(arguments)
            )
            raise ToolError(f"Tool '{tool_name}' failed: {e}", tool_name=tool_name) from e

        logger.logger.debug(f"Tool {tool_name} executed successfully", extra={"result": result})
        return result

    def __len__(self) -> int:
        """Return number of registered tools."""
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools
