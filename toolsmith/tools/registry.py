"""
Tool Registry — Toolsmith's Catalog of Capabilities.

Every capability the agent can use is registered here under its name. The
registry serves two purposes:

1. DISCOVERY: When building the tools array for an LLM request, the registry
   provides all capability declarations in the function-calling shape.

2. DISPATCH: When the model returns a tool call, the registry maps the name
   to the capability and awaits its execute() coroutine.

Unlike a static catalog, this registry is mutated at runtime: the synthesis
pipeline registers brand-new capabilities and replaces existing ones while the
session is running. Each agent session owns its own registry instance.
"""

from __future__ import annotations

import inspect
from typing import Any, Optional

import structlog

from toolsmith.errors import ToolNameMismatchError, ToolNotFoundError
from toolsmith.tools.base import Capability, to_api_format

logger = structlog.get_logger(__name__)


class ToolRegistry:
    """
    Central registry for all capabilities available to one agent session.

    The registry supports:
    - Registering capabilities (overwriting on name collision, with a warning)
    - Replacing an existing capability under the same name
    - Dispatching tool calls to the correct capability
    - Generating the tools array for LLM calls

    Results and exceptions from a capability's execute() propagate unchanged;
    the agentic loop decides how to surface failures.
    """

    def __init__(self):
        self._tools: dict[str, Capability] = {}
        logger.info("tool_registry.initialized")

    def register(self, tool: Capability) -> None:
        """Register a capability. A name collision overwrites the old entry."""
        existing = self._tools.get(tool.name)
        if existing is not None:
            logger.warning(
                "tool_registry.overwritten",
                name=tool.name,
                existing_origin=getattr(existing, "origin", "unknown"),
                new_origin=getattr(tool, "origin", "unknown"),
            )

        self._tools[tool.name] = tool
        logger.info(
            "tool_registry.registered",
            name=tool.name,
            category=getattr(tool, "category", "general"),
            origin=getattr(tool, "origin", "unknown"),
        )

    def update(self, name: str, new_tool: Capability) -> None:
        """
        Replace the capability registered under ``name``.

        Both checks run before any mutation, so a failed update leaves the
        registry exactly as it was.
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        if new_tool.name != name:
            raise ToolNameMismatchError(expected=name, actual=new_tool.name)

        self._tools[name] = new_tool
        logger.info(
            "tool_registry.updated",
            name=name,
            origin=getattr(new_tool, "origin", "unknown"),
        )

    def get(self, name: str) -> Optional[Capability]:
        """Look up a capability by name."""
        return self._tools.get(name)

    def get_all(self) -> list[Capability]:
        """All registered capabilities, in registration order."""
        return list(self._tools.values())

    def has(self, name: str) -> bool:
        return name in self._tools

    async def execute(self, name: str, args_json: str) -> str:
        """Dispatch a call to the named capability and return its JSON result."""
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        result = tool.execute(args_json)
        if inspect.isawaitable(result):
            result = await result
        return result

    def format_for_llm(self) -> list[dict[str, Any]]:
        """
        Generate the tools array for an LLM call.

        This is called before every dispatch so the model always sees the
        current capability set, including anything synthesized earlier in the
        same turn.
        """
        return [to_api_format(tool) for tool in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def list_tools(self) -> list[dict[str, Any]]:
        """List all registered capabilities with metadata."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "category": getattr(tool, "category", "general"),
                "origin": getattr(tool, "origin", "unknown"),
            }
            for tool in self._tools.values()
        ]

    @property
    def count(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
