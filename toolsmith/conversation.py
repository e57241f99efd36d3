"""
Conversation Manager — owner of the canonical message history.

The manager keeps one mutable list of messages whose first element is always
the system prompt. Everyone else works on immutable Conversation snapshots
returned by get_context() / get_recent_context().

The system prompt describes the live capability set, so it must be rebuilt
after every registry mutation via update_system_prompt(). Nothing is cached:
each call regenerates the text from the capabilities it is given.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

import structlog

from toolsmith.errors import ConversationStateError
from toolsmith.prompts import generate_system_prompt
from toolsmith.types import Conversation, Message

logger = structlog.get_logger(__name__)


class ConversationManager:
    """Canonical dialogue history for one agent session."""

    def __init__(
        self,
        capabilities: Optional[Iterable[Any]] = None,
        prompt_builder: Callable[[list[Any]], str] = generate_system_prompt,
    ):
        self._prompt_builder = prompt_builder
        self._capabilities: list[Any] = list(capabilities or [])
        self._messages: list[Message] = [self._build_system_message()]

    def _build_system_message(self) -> Message:
        return Message.system(self._prompt_builder(list(self._capabilities)))

    def add_message(self, message: Message) -> None:
        """Append a message. No validation beyond what Message itself enforces."""
        self._messages.append(message)

    def get_context(self) -> Conversation:
        """Full immutable snapshot of the history."""
        return Conversation(messages=tuple(self._messages))

    def get_recent_context(self, limit: int = 10) -> Conversation:
        """The system message plus the last ``limit`` non-system messages."""
        system = next((m for m in self._messages if m.role == "system"), None)
        if system is None:
            raise ConversationStateError("No system message found in conversation history.")
        recent = [m for m in self._messages if m.role != "system"]
        recent = recent[-limit:] if limit > 0 else []
        return Conversation(messages=(system, *recent))

    def clear_history(self) -> None:
        """Truncate to the system message, regenerating it if it went missing."""
        system = next((m for m in self._messages if m.role == "system"), None)
        if system is None:
            logger.warning("conversation.system_message_regenerated")
            system = self._build_system_message()
        self._messages = [system]
        logger.info("conversation.cleared")

    def update_system_prompt(self, capabilities: Iterable[Any]) -> None:
        """Rebuild the system prompt from ``capabilities`` and put it at position 0."""
        self._capabilities = list(capabilities)
        message = self._build_system_message()
        if self._messages and self._messages[0].role == "system":
            self._messages[0] = message
        else:
            self._messages.insert(0, message)
        logger.info(
            "conversation.system_prompt_updated",
            capabilities=len(self._capabilities),
        )

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def system_prompt(self) -> str:
        return self._messages[0].content or ""

    def __len__(self) -> int:
        return len(self._messages)
