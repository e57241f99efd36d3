"""
Core data types shared across Toolsmith subsystems.

This module defines the lightweight dialogue containers that cross subsystem
boundaries: messages, tool calls, and immutable conversation snapshots. They
live here rather than in a specific subsystem to avoid circular imports.

The shape follows the function-calling message model: assistant messages may
carry ``tool_calls`` instead of text, and every ``tool`` message answers one
of those calls through its ``tool_call_id``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

Role = Literal["system", "user", "assistant", "tool"]

VALID_ROLES = frozenset({"system", "user", "assistant", "tool"})


@dataclass(frozen=True)
class ToolCall:
    """A single function invocation requested by the assistant.

    ``arguments`` is the raw JSON string the model produced. It is parsed by
    the tool itself, never by the loop, so malformed JSON surfaces as a tool
    error rather than a crash.
    """

    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        return cls(
            id=str(data.get("id", "")),
            name=str(function.get("name", "")),
            arguments=function.get("arguments") or "{}",
        )


@dataclass(frozen=True)
class Message:
    """One dialogue turn.

    ``content`` is None only when an assistant message carries tool calls
    instead of text.
    """

    role: Role
    content: Optional[str] = None
    name: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: tuple[ToolCall, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.role not in VALID_ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("A tool message must carry a tool_call_id.")
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls or ()))

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the function-calling JSON message shape."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name is not None:
            data["name"] = self.name
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            data["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            role=data["role"],
            content=data.get("content"),
            name=data.get("name"),
            tool_call_id=data.get("tool_call_id"),
            tool_calls=tuple(ToolCall.from_dict(tc) for tc in data.get("tool_calls") or ()),
        )

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: Optional[str], tool_calls: tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, name: str, content: str) -> "Message":
        return cls(role="tool", content=content, name=name, tool_call_id=tool_call_id)


@dataclass(frozen=True)
class Conversation:
    """An immutable snapshot of the dialogue, system message first."""

    messages: tuple[Message, ...] = ()

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):
        return iter(self.messages)

    def with_message(self, message: Message) -> "Conversation":
        """Return a new snapshot with ``message`` appended."""
        return Conversation(messages=self.messages + (message,))

    def to_dicts(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self.messages]
