"""
Tests for the capability contract and the ToolRegistry.

Covers registration and overwrite, update validation (a failed update must
leave the registry untouched), dispatch, the function-calling declaration
shape, and FunctionTool's argument parsing and validation.
"""

from __future__ import annotations

import json

import pytest

from toolsmith.errors import ToolNameMismatchError, ToolNotFoundError
from toolsmith.tools.base import (
    Capability,
    FunctionTool,
    conformance_errors,
    parse_arguments,
    serialize_result,
    validate_arguments,
)
from toolsmith.tools.registry import ToolRegistry


class Greeter(Capability):
    name = "greeter"
    description = "Say hello to someone"
    parameter_schema = {
        "type": "object",
        "properties": {"who": {"type": "string"}},
        "required": ["who"],
    }

    async def execute(self, args_json: str) -> str:
        args = parse_arguments(args_json)
        return json.dumps({"greeting": f"Hello, {args['who']}!"})


class Exploding(Capability):
    name = "exploding"
    description = "Always fails"

    async def execute(self, args_json: str) -> str:
        raise RuntimeError("boom")


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class TestRegistration:
    def test_get_returns_the_registered_instance(self, echo_tool):
        registry = ToolRegistry()
        registry.register(echo_tool)
        assert registry.get("echo") is echo_tool
        assert registry.has("echo")
        assert "echo" in registry
        assert registry.count == 1

    def test_get_unknown_returns_none(self):
        assert ToolRegistry().get("missing") is None

    def test_register_same_name_overwrites(self, echo_tool):
        registry = ToolRegistry()
        registry.register(echo_tool)
        replacement = FunctionTool("echo", "Another echo", {"type": "object"}, lambda: "x")
        registry.register(replacement)
        assert registry.get("echo") is replacement
        assert len(registry) == 1

    def test_get_all_keeps_registration_order(self, echo_tool):
        registry = ToolRegistry()
        registry.register(Greeter())
        registry.register(echo_tool)
        assert [t.name for t in registry.get_all()] == ["greeter", "echo"]
        assert registry.names() == ["greeter", "echo"]

    def test_list_tools_reports_metadata(self, registry):
        listing = registry.list_tools()
        assert listing == [
            {
                "name": "echo",
                "description": "Echo the given text back",
                "category": "general",
                "origin": "builtin",
            }
        ]


class TestUpdate:
    def test_update_replaces_existing(self, registry):
        new_echo = FunctionTool("echo", "Louder echo", {"type": "object"}, lambda: "ECHO")
        registry.update("echo", new_echo)
        assert registry.get("echo") is new_echo

    def test_update_unknown_raises_and_leaves_registry_unchanged(self, registry, echo_tool):
        with pytest.raises(ToolNotFoundError) as exc_info:
            registry.update("missing", Greeter())
        assert exc_info.value.name == "missing"
        assert registry.names() == ["echo"]

    def test_update_name_mismatch_raises_and_leaves_registry_unchanged(self, registry):
        original = registry.get("echo")
        with pytest.raises(ToolNameMismatchError) as exc_info:
            registry.update("echo", Greeter())
        assert exc_info.value.expected == "echo"
        assert exc_info.value.actual == "greeter"
        assert registry.get("echo") is original
        assert "greeter" not in registry


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestExecute:
    @pytest.mark.asyncio
    async def test_execute_dispatches_to_capability(self):
        registry = ToolRegistry()
        registry.register(Greeter())
        result = await registry.execute("greeter", '{"who": "Ada"}')
        assert json.loads(result) == {"greeting": "Hello, Ada!"}

    @pytest.mark.asyncio
    async def test_execute_unknown_raises(self, registry):
        with pytest.raises(ToolNotFoundError) as exc_info:
            await registry.execute("nope", "{}")
        assert "Tool 'nope' not found." in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_capability_exceptions_propagate(self):
        registry = ToolRegistry()
        registry.register(Exploding())
        with pytest.raises(RuntimeError, match="boom"):
            await registry.execute("exploding", "{}")


class TestFormatForLLM:
    def test_function_declaration_shape(self, registry):
        declarations = registry.format_for_llm()
        assert declarations == [
            {
                "type": "function",
                "function": {
                    "name": "echo",
                    "description": "Echo the given text back",
                    "parameters": {
                        "type": "object",
                        "properties": {"text": {"type": "string"}},
                        "required": ["text"],
                    },
                },
            }
        ]

    def test_reflects_registrations_made_later(self, registry):
        registry.register(Greeter())
        names = [d["function"]["name"] for d in registry.format_for_llm()]
        assert names == ["echo", "greeter"]

    def test_capability_default_schema_is_object(self):
        assert Exploding().to_api_format()["function"]["parameters"] == {
            "type": "object",
            "properties": {},
        }


# ---------------------------------------------------------------------------
# Contract helpers
# ---------------------------------------------------------------------------

class TestContract:
    def test_conforming_capability_has_no_errors(self):
        assert conformance_errors(Greeter()) == []

    def test_missing_description_and_bad_schema_reported(self):
        class Broken:
            name = "broken"
            description = ""
            parameter_schema = {"type": "string"}

            async def execute(self, args_json):
                return "{}"

        problems = conformance_errors(Broken())
        assert len(problems) == 2
        assert any("description" in p for p in problems)
        assert any("parameter_schema" in p for p in problems)

    def test_parse_arguments_empty_means_no_arguments(self):
        assert parse_arguments("") == {}
        assert parse_arguments("   ") == {}

    def test_parse_arguments_rejects_non_object(self):
        with pytest.raises(ValueError):
            parse_arguments("[1, 2]")

    def test_validate_arguments_rejects_bool_for_number(self):
        schema = {"type": "object", "properties": {"n": {"type": "number"}}}
        assert "boolean" in validate_arguments(schema, {"n": True})
        assert validate_arguments(schema, {"n": 3}) is None

    def test_validate_arguments_enum(self):
        schema = {"type": "object", "properties": {"u": {"type": "string", "enum": ["a", "b"]}}}
        assert validate_arguments(schema, {"u": "c"}) is not None

    def test_serialize_result_wraps_plain_strings(self):
        assert json.loads(serialize_result("done")) == {"result": "done"}
        assert json.loads(serialize_result({"a": 1})) == {"a": 1}


class TestFunctionTool:
    @pytest.mark.asyncio
    async def test_malformed_json_becomes_error_result(self, echo_tool):
        result = json.loads(await echo_tool.execute("{not json"))
        assert "error" in result
        assert "not valid JSON" in result["error"]

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self, echo_tool):
        result = json.loads(await echo_tool.execute("{}"))
        assert result == {"error": "Missing required parameter(s): text"}

    @pytest.mark.asyncio
    async def test_wrong_type(self, echo_tool):
        result = json.loads(await echo_tool.execute('{"text": 5}'))
        assert "expected string" in result["error"]

    @pytest.mark.asyncio
    async def test_undeclared_arguments_are_dropped(self, echo_tool):
        result = json.loads(await echo_tool.execute('{"text": "hi", "extra": 1}'))
        assert result == {"echo": "hi"}

    @pytest.mark.asyncio
    async def test_async_handler_is_awaited(self):
        async def handler(n: int) -> dict:
            return {"double": n * 2}

        tool = FunctionTool(
            "double",
            "Double a number",
            {"type": "object", "properties": {"n": {"type": "integer"}}, "required": ["n"]},
            handler,
        )
        assert json.loads(await tool.execute('{"n": 21}')) == {"double": 42}

    @pytest.mark.asyncio
    async def test_handler_exception_propagates(self):
        def handler() -> None:
            raise ValueError("bad state")

        tool = FunctionTool("broken", "Broken tool", {"type": "object"}, handler)
        with pytest.raises(ValueError, match="bad state"):
            await tool.execute("{}")
