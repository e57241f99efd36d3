"""
Built-in Tools — the capabilities every Toolsmith session starts with.

Only two ship with the agent:

- weather: a mock weather lookup, useful for exercising the loop end to end
  without any external service
- request_tool_creation: the synthesis meta-capability. The model calls it
  like any other tool to create a new capability or update an existing one.

Each tool is a plain handler wrapped in a FunctionTool, which handles JSON
parsing, schema validation and result serialization. register_builtin_tools()
adds them to a session's registry at startup.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from toolsmith.tools.base import FunctionTool
from toolsmith.tools.registry import ToolRegistry

logger = structlog.get_logger(__name__)


# Ordered: the first entry matching the criteria wins.
MOCK_WEATHER_DATA: tuple[dict[str, Any], ...] = (
    {
        "location": "New York",
        "units": "imperial",
        "time": "2025-05-15T00:00:00Z",
        "weather": "sunny",
        "temperature": 60,
    },
    {
        "location": "Paris",
        "units": "metric",
        "time": "2025-05-15T00:00:00Z",
        "weather": "cloudy",
        "temperature": 15,
    },
    {
        # No time: this entry is "current" weather
        "location": "London",
        "units": "metric",
        "weather": "rainy",
        "temperature": 10,
    },
)

WEATHER_NOT_FOUND = {"error": "Weather data not found for the specified criteria."}


def get_weather(location: str, units: Optional[str] = None, time: Optional[str] = None) -> dict[str, Any]:
    """
    Look up mock weather for a location.

    A mock entry matches when its location appears in ``location``
    (case-insensitive) and any given units and time agree. Without a time,
    entries with no time of their own are preferred; failing that the first
    location match is returned as current weather, with its time dropped.
    """
    wanted = location.lower()

    def _location_matches(entry: dict[str, Any]) -> bool:
        return entry["location"].lower() in wanted

    def _units_match(entry: dict[str, Any]) -> bool:
        return not units or entry.get("units") == units

    for entry in MOCK_WEATHER_DATA:
        if not (_location_matches(entry) and _units_match(entry)):
            continue
        if time and entry.get("time") == time:
            return dict(entry)
        if not time and "time" not in entry:
            return dict(entry)

    if not time:
        for entry in MOCK_WEATHER_DATA:
            if _location_matches(entry) and _units_match(entry):
                current = dict(entry)
                current.pop("time", None)
                return current

    logger.info("weather.not_found", location=location, units=units, time=time)
    return dict(WEATHER_NOT_FOUND)


WEATHER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "location": {
            "type": "string",
            "description": "The city and state, e.g. San Francisco, CA",
        },
        "units": {
            "type": "string",
            "description": (
                "The units for temperature, either 'metric' (Celsius) or 'imperial' "
                "(Fahrenheit)."
            ),
            "enum": ["metric", "imperial"],
        },
        "time": {
            "type": "string",
            "description": (
                "The ISO 8601 date-time string for which to get the weather. "
                "If not provided, current weather is assumed."
            ),
            "format": "date-time",
        },
    },
    "required": ["location"],
}


TOOL_CREATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "tool_name": {
            "type": "string",
            "description": (
                "A descriptive, unique name for the tool (e.g., 'currency_converter'). "
                "Use snake_case. For updates, the exact name of the existing tool."
            ),
        },
        "tool_requirements_free_text": {
            "type": "string",
            "description": (
                "Describe in natural language what the tool does, its inputs (and their "
                "types/format if known), and its expected output. This description will "
                "be used to generate the tool."
            ),
        },
        "operation": {
            "type": "string",
            "enum": ["create", "update"],
            "description": "Whether to create a new tool or update an existing one. Defaults to create.",
        },
        "update_requirements": {
            "type": "string",
            "description": "For updates: what to add or change in the existing tool.",
        },
        "preserve_functionality": {
            "type": "array",
            "items": {"type": "string"},
            "description": "For updates: behaviours of the existing tool that must keep working.",
        },
        "input_parameters_schema": {
            "type": "object",
            "description": (
                "Optional JSON Schema (type 'object') the tool must accept. When omitted "
                "the schema is designed from the requirements."
            ),
        },
        "output_description": {
            "type": "string",
            "description": "Optional description of what the tool returns.",
        },
    },
    "required": ["tool_name", "tool_requirements_free_text"],
}

TOOL_CREATION_DESCRIPTION = (
    "Call this function to request the creation of a new tool, or an update to an existing "
    "one. Provide the tool name and a free-text description of its requirements. The tool "
    "is generated, loaded and registered immediately, so you can call it right after a "
    "successful result. Prefer updating an existing similar tool (operation=\"update\") "
    "over creating a near-duplicate."
)


def make_tool_creation_tool(synthesizer: Any) -> FunctionTool:
    """Wrap a CapabilitySynthesizer as the request_tool_creation capability."""

    async def request_tool_creation(
        tool_name: str,
        tool_requirements_free_text: str,
        operation: str = "create",
        update_requirements: Optional[str] = None,
        preserve_functionality: Optional[list[str]] = None,
        input_parameters_schema: Optional[dict[str, Any]] = None,
        output_description: Optional[str] = None,
    ) -> dict[str, Any]:
        result = await synthesizer.synthesize(
            tool_name,
            tool_requirements_free_text,
            operation=operation,
            update_requirements=update_requirements,
            preserve_functionality=preserve_functionality,
            input_parameters_schema=input_parameters_schema,
            output_description=output_description,
        )
        return result.to_dict()

    return FunctionTool(
        name="request_tool_creation",
        description=TOOL_CREATION_DESCRIPTION,
        parameter_schema=TOOL_CREATION_SCHEMA,
        handler=request_tool_creation,
        category="synthesis",
    )


def register_builtin_tools(registry: ToolRegistry, synthesizer: Optional[Any] = None) -> None:
    """Register all built-in tools with the registry.

    request_tool_creation is only registered when a synthesizer is given.
    """
    registry.register(
        FunctionTool(
            name="weather",
            description=(
                "Get the weather for a specific location. Can optionally specify units "
                "and a time (ISO 8601 format)."
            ),
            parameter_schema=WEATHER_SCHEMA,
            handler=get_weather,
            category="information",
        )
    )

    if synthesizer is not None:
        registry.register(make_tool_creation_tool(synthesizer))
