"""
Tools module for LLM function calling.

Provides the tool executor plus weather and document search tools.
"""

from tools.registry import ToolDefinition, ToolExecutor
from tools.search import SearchRepository, register_search_tools
from tools.weather import HttpWeatherService, WeatherService, register_weather_tools


def create_tool_executor(
    weather_service: WeatherService | None = None,
    search_repository: SearchRepository | None = None,
) -> ToolExecutor:
    """
    Build an executor with the tools whose backing services are available.

    Args:
        weather_service: Source for get_weather (None = tool not registered)
        search_repository: Store for search_documents (None = tool not registered)
    """
    executor = ToolExecutor()
    if weather_service is not None:
        register_weather_tools(executor, weather_service)
    if search_repository is not None:
        register_search_tools(executor, search_repository)
    return executor


__all__ = [
    "ToolExecutor",
    "ToolDefinition",
    "WeatherService",
    "HttpWeatherService",
    "SearchRepository",
    "create_tool_executor",
    "register_weather_tools",
    "register_search_tools",
]
