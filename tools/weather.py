"""
Weather tool for LLM function calling.

Looks up current conditions for a city through a WeatherService.
"""

from collections.abc import Mapping
from typing import Any, Literal, Protocol
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, ValidationError

from models.errors import ToolError
from tools.registry import ToolExecutor
from utils.logging import get_agent_logger

logger = get_agent_logger("weather_tools")


class WeatherArguments(BaseModel):
    """Validated arguments of the get_weather tool."""

    city: str = Field(min_length=1, max_length=100)
    units: Literal["metric", "imperial"] = "metric"


class WeatherService(Protocol):
    """Source of current weather conditions."""

    async def get_current_weather(
        self, city: str, units: str = "metric"
    ) -> dict[str, Any]: ...


class HttpWeatherService:
    """
    Weather lookups against the wttr.in JSON API (``/{city}?format=j1``).
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str = "https://wttr.in"):
        """
        Args:
            client: Shared async HTTP client (owned by the caller)
            base_url: API base URL
        """
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def get_current_weather(self, city: str, units: str = "metric") -> dict[str, Any]:
        """
        Fetch current conditions for a city.

        Returns:
            {city, temperature, condition, humidity, units}

        Raises:
            ToolError: If the city is unknown or the API is unavailable
        """
        try:
            response = await self._client.get(
                f"{self._base_url}/{quote(city, safe='')}", params={"format": "j1"}
            )
            response.raise_for_status()
            current = response.json()["current_condition"][0]
        except httpx.HTTPStatusError as e:
            raise ToolError(
                f"Weather lookup for '{city}' failed with HTTP {e.response.status_code}",
                tool_name="get_weather",
            ) from e
        except httpx.HTTPError as e:
            raise ToolError(f"Weather service unavailable: {e}", tool_name="get_weather") from e
        except (KeyError, IndexError, ValueError) as e:
            raise ToolError(
                f"No weather data available for '{city}'", tool_name="get_weather"
            ) from e

        temperature_key = "temp_C" if units == "metric" else "temp_F"
        return {
            "city": city,
            "temperature": float(current[temperature_key]),
            "condition": current["weatherDesc"][0]["value"],
            "humidity": int(current["humidity"]),
            "units": units,
        }


def make_get_weather(service: WeatherService):
    """Bind the get_weather tool function to a weather service."""

    async def get_weather(arguments: Mapping[str, Any]) -> dict[str, Any]:
        try:
            args = WeatherArguments.model_validate(arguments)
        except ValidationError as e:
            raise ToolError(f"Invalid arguments for get_weather: {e}", tool_name="get_weather") from e

        logger.logger.info(f"Fetching weather for {args.city}")
        return await service.get_current_weather(args.city, args.units)

    return get_weather


def register_weather_tools(executor: ToolExecutor, service: WeatherService) -> None:
    """
    Register weather tools in the executor.

    Args:
        executor: ToolExecutor instance
        service: Weather data source
    """
    executor.register(
        name="get_weather",
        description=(
            "Get the current weather for a city. Returns temperature, "
            "a short condition description and relative humidity."
        ),
        parameters_schema={
            "type": "object",
            "properties": {
                "city": {
                    "type": "string",
                    "description": "City name, e.g. 'Lisbon'",
                },
                "units": {
                    "type": "string",
                    "description": "Temperature units",
                    "enum": ["metric", "imperial"],
                },
            },
            "required": ["city"],
        },
        function=make_get_weather(service),
    )

    logger.logger.info("Registered weather tools in executor")
