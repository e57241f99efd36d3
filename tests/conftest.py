"""
Shared fixtures for the Toolsmith test suite.

Provides a scripted LLM stand-in, simple capabilities, and sample generated
tool sources so individual test modules can focus on behavior rather than
setup. Nothing here touches the network.
"""

from __future__ import annotations

from typing import Any, Optional

import pytest

from toolsmith.logging_setup import configure_logging
from toolsmith.tools.base import FunctionTool
from toolsmith.tools.registry import ToolRegistry
from toolsmith.types import Message, ToolCall


@pytest.fixture(autouse=True, scope="session")
def _structlog_through_stdlib():
    """Route structlog through stdlib logging so pytest captures it."""
    configure_logging()


# ---------------------------------------------------------------------------
# ScriptedLLM: pre-scripted replies for deterministic testing
# ---------------------------------------------------------------------------

class ScriptedLLM:
    """
    A fake LLM client that returns pre-scripted replies in order.

    Each call to chat() pops the next reply. A reply may be a Message, None
    (an empty/invalid response) or an exception instance, which is raised.
    Every request is recorded in ``calls`` for later inspection.
    """

    def __init__(self, replies: Optional[list[Any]] = None):
        self._replies = list(replies or [])
        self.calls: list[dict[str, Any]] = []

    async def chat(
        self,
        messages: Any,
        tools: Optional[list[dict[str, Any]]] = None,
        max_tokens: Optional[int] = None,
    ) -> Optional[Message]:
        self.calls.append(
            {"messages": list(messages), "tools": tools, "max_tokens": max_tokens}
        )
        if not self._replies:
            return Message.assistant("[no more scripted replies]")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def call_count(self) -> int:
        return len(self.calls)


def tool_call_reply(*calls: tuple[str, str, str]) -> Message:
    """An assistant message carrying tool calls given as (id, name, arguments)."""
    return Message.assistant(None, tool_calls=tuple(ToolCall(i, n, a) for i, n, a in calls))


# ---------------------------------------------------------------------------
# Capability fixtures
# ---------------------------------------------------------------------------

def _echo(text: str) -> dict[str, Any]:
    return {"echo": text}


@pytest.fixture()
def echo_tool() -> FunctionTool:
    return FunctionTool(
        name="echo",
        description="Echo the given text back",
        parameter_schema={
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
        handler=_echo,
    )


@pytest.fixture()
def weather_stub() -> FunctionTool:
    return FunctionTool(
        name="weather",
        description="Get weather information for a location",
        parameter_schema={"type": "object", "properties": {"location": {"type": "string"}}},
        handler=lambda location: {"location": location, "weather": "sunny"},
    )


@pytest.fixture()
def calculator_stub() -> FunctionTool:
    return FunctionTool(
        name="calculator",
        description="Perform mathematical calculations",
        parameter_schema={"type": "object", "properties": {"expression": {"type": "string"}}},
        handler=lambda expression: {"expression": expression},
    )


@pytest.fixture()
def registry(echo_tool) -> ToolRegistry:
    reg = ToolRegistry()
    reg.register(echo_tool)
    return reg


# ---------------------------------------------------------------------------
# Generated source samples
# ---------------------------------------------------------------------------

CURRENCY_CONVERTER_SOURCE = '''import json

from toolsmith.tools.base import Capability, error_result, parse_arguments

RATES = {"USD": 1.0, "EUR": 0.5}


class CurrencyConverter(Capability):
    name = "currency_converter"
    description = "Convert an amount from one currency to another."
    parameter_schema = {
        "type": "object",
        "properties": {
            "amount": {"type": "number"},
            "source": {"type": "string"},
            "target": {"type": "string"},
        },
        "required": ["amount", "source", "target"],
    }

    async def execute(self, args_json: str) -> str:
        try:
            args = parse_arguments(args_json)
        except ValueError as e:
            return error_result(str(e))
        try:
            usd = args["amount"] / RATES[args["source"]]
            return json.dumps({"amount": usd * RATES[args["target"]], "currency": args["target"]})
        except Exception as e:
            return error_result(f"Conversion failed: {e}")
'''


def fenced(source: str, language: str = "python") -> str:
    return f"Here is the tool:\n```{language}\n{source}```\n"
