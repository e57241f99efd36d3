"""
End-to-end tests for the Agent session object.

The scripted LLM serves both the agentic loop and the synthesis pipeline, so
a single script can walk through: the model asks for a new tool, the
pipeline generates and registers it, the model calls it, and answers.
"""

from __future__ import annotations

import json

import pytest

from tests.conftest import CURRENCY_CONVERTER_SOURCE, ScriptedLLM, fenced, tool_call_reply
from toolsmith.agent import Agent
from toolsmith.config import ToolsmithConfig
from toolsmith.types import Message


QUITTER_SOURCE = '''import sys

from toolsmith.tools.base import Capability


class Quitter(Capability):
    name = "quitter"
    description = "Stop the running program."
    parameter_schema = {"type": "object", "properties": {}}

    async def execute(self, args_json: str) -> str:
        sys.exit(4)
'''


def _agent(llm, tmp_path, **kwargs) -> Agent:
    return Agent(llm, generated_dir=tmp_path / "generated", **kwargs)


class TestAgentSetup:
    def test_builtin_tools_registered(self, tmp_path):
        agent = _agent(ScriptedLLM(), tmp_path)
        assert agent.registry.names() == ["weather", "request_tool_creation"]
        assert '"name": "request_tool_creation"' in agent.conversation.system_prompt

    def test_synthesis_disabled_hides_creation_tool(self, tmp_path):
        agent = _agent(ScriptedLLM(), tmp_path, synthesis_enabled=False)
        assert agent.registry.names() == ["weather"]
        assert agent.synthesizer is None

    def test_intent_hints_disabled(self, tmp_path):
        agent = _agent(ScriptedLLM(), tmp_path, intent_hints=False)
        assert agent.analyzer is None

    def test_agents_do_not_share_registries(self, tmp_path):
        first = _agent(ScriptedLLM(), tmp_path)
        second = _agent(ScriptedLLM(), tmp_path)
        assert first.registry is not second.registry
        assert first.conversation is not second.conversation

    def test_from_config_uses_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        monkeypatch.setenv("TOOLSMITH_MAX_TOOL_CYCLES", "3")
        monkeypatch.setenv("TOOLSMITH_SYNTHESIS_ENABLED", "false")
        monkeypatch.setenv("TOOLSMITH_GENERATED_DIR", str(tmp_path / "gen"))
        llm = ScriptedLLM()

        agent = Agent.from_config(ToolsmithConfig(), llm=llm)

        assert agent.loop.max_tool_cycles == 3
        assert agent.synthesizer is None


class TestProcessUserInput:
    @pytest.mark.asyncio
    async def test_weather_lookup(self, tmp_path):
        llm = ScriptedLLM([
            tool_call_reply(("c1", "weather", '{"location": "Paris, France"}')),
            Message.assistant("It's cloudy in Paris, 15°C."),
        ])
        agent = _agent(llm, tmp_path)

        reply = await agent.process_user_input("What's the weather in Paris?")

        assert reply.content == "It's cloudy in Paris, 15°C."
        tool_msg = [m for m in agent.history if m.role == "tool"][0]
        assert json.loads(tool_msg.content) == {
            "location": "Paris",
            "units": "metric",
            "weather": "cloudy",
            "temperature": 15,
        }
        assert agent.last_result.tool_names_used == ["weather"]

    @pytest.mark.asyncio
    async def test_create_then_use_generated_tool(self, tmp_path):
        creation_args = json.dumps({
            "tool_name": "currency_converter",
            "tool_requirements_free_text": "Convert an amount between currencies",
        })
        llm = ScriptedLLM([
            tool_call_reply(("c1", "request_tool_creation", creation_args)),
            # Consumed by the synthesis pipeline's code generation request
            Message.assistant(fenced(CURRENCY_CONVERTER_SOURCE)),
            tool_call_reply(("c2", "currency_converter", '{"amount": 100, "source": "USD", "target": "EUR"}')),
            Message.assistant("100 USD is 50 EUR."),
        ])
        agent = _agent(llm, tmp_path)

        reply = await agent.process_user_input("I want to convert 100 USD to EUR")

        assert reply.content == "100 USD is 50 EUR."
        assert "currency_converter" in agent.registry
        assert (tmp_path / "generated" / "currency_converter.py").exists()

        tool_messages = [m for m in agent.history if m.role == "tool"]
        creation = json.loads(tool_messages[0].content)
        assert creation["success"] is True
        assert creation["toolName"] == "currency_converter"
        assert json.loads(tool_messages[1].content) == {"amount": 50.0, "currency": "EUR"}

        # The dispatch after creation offers the new tool
        offered = [t["function"]["name"] for t in llm.calls[2]["tools"]]
        assert "currency_converter" in offered
        # and the system prompt was regenerated with it
        assert '"name": "currency_converter"' in agent.history[0].content
        assert agent.stats["synthesis"]["total_succeeded"] == 1

    @pytest.mark.asyncio
    async def test_failed_creation_is_reported_to_model(self, tmp_path):
        creation_args = json.dumps({
            "tool_name": "currency_converter",
            "tool_requirements_free_text": "Convert an amount between currencies",
        })
        llm = ScriptedLLM([
            tool_call_reply(("c1", "request_tool_creation", creation_args)),
            Message.assistant(fenced("def broken(:\n")),
            Message.assistant("Sorry, I couldn't build that tool."),
        ])
        agent = _agent(llm, tmp_path)

        reply = await agent.process_user_input("Build a currency converter tool")

        assert reply.content == "Sorry, I couldn't build that tool."
        creation = json.loads([m for m in agent.history if m.role == "tool"][0].content)
        assert creation["success"] is False
        assert creation["failedStep"] == "compile"
        assert "currency_converter" not in agent.registry

    @pytest.mark.asyncio
    async def test_generated_module_exiting_at_import_is_a_failed_creation(self, tmp_path):
        creation_args = json.dumps({
            "tool_name": "quitter",
            "tool_requirements_free_text": "Stop the program",
        })
        llm = ScriptedLLM([
            tool_call_reply(("c1", "request_tool_creation", creation_args)),
            Message.assistant(fenced("import sys\n\nsys.exit(3)\n")),
            Message.assistant("That tool could not be loaded."),
        ])
        agent = _agent(llm, tmp_path)

        reply = await agent.process_user_input("Create a tool that stops the program")

        assert reply.content == "That tool could not be loaded."
        creation = json.loads([m for m in agent.history if m.role == "tool"][0].content)
        assert creation["success"] is False
        assert creation["failedStep"] == "load"
        assert "quitter" not in agent.registry
        assert not (tmp_path / "generated" / "quitter.py").exists()

    @pytest.mark.asyncio
    async def test_generated_tool_calling_sys_exit_keeps_session_alive(self, tmp_path):
        creation_args = json.dumps({
            "tool_name": "quitter",
            "tool_requirements_free_text": "Stop the program",
        })
        llm = ScriptedLLM([
            tool_call_reply(("c1", "request_tool_creation", creation_args)),
            Message.assistant(fenced(QUITTER_SOURCE)),
            tool_call_reply(("c2", "quitter", "{}")),
            Message.assistant("The tool tried to stop the program."),
            Message.assistant("Still here."),
        ])
        agent = _agent(llm, tmp_path)

        reply = await agent.process_user_input("Create a tool that stops the program and run it")

        assert reply.content == "The tool tried to stop the program."
        tool_messages = [m for m in agent.history if m.role == "tool"]
        assert json.loads(tool_messages[1].content) == {"error": "SystemExit: 4"}

        follow_up = await agent.process_user_input("Are you still there?")
        assert follow_up.content == "Still here."

    @pytest.mark.asyncio
    async def test_clear_history(self, tmp_path):
        agent = _agent(ScriptedLLM([Message.assistant("hi")]), tmp_path)
        await agent.process_user_input("hello")
        assert len(agent.history) == 3

        agent.clear_history()

        assert len(agent.history) == 1
        assert agent.history[0].role == "system"
