"""
Agent — the session object that wires Toolsmith's subsystems together.

Each Agent owns everything mutable in a session: its own ToolRegistry, its
own ConversationManager, its own intent analyzer and synthesis pipeline.
Nothing is shared between agents, so two sessions in one process never see
each other's generated tools or history.

Front ends (the REPL, the ``toolsmith ask`` command) talk to the agent through
a single operation, process_user_input(). Everything else here is wiring and
read-only inspection.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import structlog

from toolsmith.analysis.intent import IntentStrategy, KeywordIntentAnalyzer
from toolsmith.api.claude import ClaudeClient
from toolsmith.config import ToolsmithConfig
from toolsmith.conversation import ConversationManager
from toolsmith.harness.loop import AgenticLoop, LoopResult
from toolsmith.synthesis.pipeline import CapabilitySynthesizer
from toolsmith.tools.builtin import register_builtin_tools
from toolsmith.tools.registry import ToolRegistry
from toolsmith.types import Message

logger = structlog.get_logger(__name__)


class Agent:
    """
    One conversational session with a self-extending tool set.

    Args:
        llm: Anything with ``async chat(messages, tools=None, max_tokens=None)``
            returning an assistant Message or None. ClaudeClient in production,
            a scripted fake in tests.
        max_tool_cycles: LLM round trips allowed per user turn.
        intent_hints: Whether the intent analyzer may add a hint to the first
            dispatch of a turn.
        synthesis_enabled: Whether request_tool_creation is offered at all.
        generated_dir: Where generated capability sources are written.
        codegen_max_tokens: Output budget for code generation requests.
        analyzer: Intent strategy; defaults to KeywordIntentAnalyzer.
    """

    def __init__(
        self,
        llm: Any,
        *,
        max_tool_cycles: int = 10,
        intent_hints: bool = True,
        synthesis_enabled: bool = True,
        generated_dir: Path = Path("./generated_tools"),
        codegen_max_tokens: Optional[int] = None,
        analyzer: Optional[IntentStrategy] = None,
    ):
        self._llm = llm
        self.registry = ToolRegistry()
        self.conversation = ConversationManager()

        self.synthesizer: Optional[CapabilitySynthesizer] = None
        if synthesis_enabled:
            self.synthesizer = CapabilitySynthesizer(
                registry=self.registry,
                llm=llm,
                generated_dir=Path(generated_dir),
                conversation=self.conversation,
                codegen_max_tokens=codegen_max_tokens,
            )
        register_builtin_tools(self.registry, self.synthesizer)
        self.conversation.update_system_prompt(self.registry.get_all())

        self.analyzer: Optional[IntentStrategy] = None
        if intent_hints:
            self.analyzer = analyzer or KeywordIntentAnalyzer()

        self.loop = AgenticLoop(
            llm=llm,
            registry=self.registry,
            conversation=self.conversation,
            analyzer=self.analyzer,
            max_tool_cycles=max_tool_cycles,
        )
        self._last_result: Optional[LoopResult] = None

        logger.info(
            "agent.initialized",
            tools=self.registry.names(),
            synthesis=synthesis_enabled,
            intent_hints=intent_hints,
        )

    @classmethod
    def from_config(cls, config: ToolsmithConfig, llm: Optional[Any] = None) -> "Agent":
        """Build an agent (and, unless given, its Claude client) from configuration."""
        return cls(
            llm if llm is not None else ClaudeClient(config.claude),
            max_tool_cycles=config.agent.max_tool_cycles,
            intent_hints=config.agent.intent_hints,
            synthesis_enabled=config.synthesis.enabled,
            generated_dir=config.synthesis.generated_dir,
            codegen_max_tokens=config.synthesis.codegen_max_tokens,
        )

    async def process_user_input(self, text: str) -> Message:
        """Run one user turn and return the assistant message to display."""
        result = await self.loop.run(text)
        self._last_result = result
        return result.message

    def clear_history(self) -> None:
        self.conversation.clear_history()

    @property
    def history(self) -> tuple[Message, ...]:
        return self.conversation.messages

    @property
    def last_result(self) -> Optional[LoopResult]:
        return self._last_result

    @property
    def stats(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tools": self.registry.count,
            "messages": len(self.conversation),
            "loop": self.loop.stats,
        }
        if self.synthesizer is not None:
            data["synthesis"] = self.synthesizer.stats
        telemetry = getattr(self._llm, "telemetry", None)
        if isinstance(telemetry, dict):
            data["llm"] = telemetry
        return data
