"""Tests for toolsmith.types — messages, tool calls and conversation snapshots."""

from __future__ import annotations

import dataclasses

import pytest

from toolsmith.types import Conversation, Message, ToolCall


class TestToolCall:
    def test_default_arguments_are_empty_object(self):
        call = ToolCall(id="c1", name="weather")
        assert call.arguments == "{}"

    def test_to_dict_uses_function_shape(self):
        call = ToolCall(id="c1", name="weather", arguments='{"location": "Paris"}')
        assert call.to_dict() == {
            "id": "c1",
            "type": "function",
            "function": {"name": "weather", "arguments": '{"location": "Paris"}'},
        }

    def test_from_dict_tolerates_missing_arguments(self):
        call = ToolCall.from_dict({"id": "c2", "function": {"name": "echo"}})
        assert call == ToolCall(id="c2", name="echo", arguments="{}")


class TestMessage:
    def test_invalid_role_rejected(self):
        with pytest.raises(ValueError):
            Message(role="narrator", content="hi")

    def test_tool_message_requires_call_id(self):
        with pytest.raises(ValueError):
            Message(role="tool", content="{}", name="weather")

    def test_tool_calls_list_is_coerced_to_tuple(self):
        msg = Message(role="assistant", tool_calls=[ToolCall("c1", "echo")])
        assert isinstance(msg.tool_calls, tuple)
        assert msg.has_tool_calls

    def test_messages_are_immutable(self):
        msg = Message.user("hello")
        with pytest.raises(dataclasses.FrozenInstanceError):
            msg.content = "changed"

    def test_assistant_with_tool_calls_has_no_content(self):
        msg = Message.assistant(None, tool_calls=(ToolCall("c1", "echo", '{"text": "x"}'),))
        data = msg.to_dict()
        assert data["content"] is None
        assert data["tool_calls"][0]["function"]["name"] == "echo"

    def test_tool_factory_sets_name_and_call_id(self):
        msg = Message.tool("c1", "weather", '{"weather": "sunny"}')
        assert msg.role == "tool"
        assert msg.name == "weather"
        assert msg.tool_call_id == "c1"

    def test_dict_round_trip_preserves_tool_calls(self):
        original = Message.assistant("Checking.", tool_calls=(ToolCall("c9", "weather", "{}"),))
        assert Message.from_dict(original.to_dict()) == original


class TestConversation:
    def test_with_message_returns_new_snapshot(self):
        base = Conversation(messages=(Message.system("sys"),))
        extended = base.with_message(Message.user("hi"))
        assert len(base) == 1
        assert len(extended) == 2
        assert [m.role for m in extended] == ["system", "user"]

    def test_to_dicts(self):
        conv = Conversation(messages=(Message.system("sys"), Message.user("hi")))
        assert conv.to_dicts() == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]
