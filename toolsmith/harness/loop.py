"""
The Agentic Loop — Toolsmith's Core Runtime Pattern.

One user turn runs through this loop. The pattern is a while loop with tools:

    append user message
    while True:
        reply = llm.chat(history, tools)
        append reply
        if reply has no tool calls:
            return reply
        for call in reply.tool_calls:        # strictly in order
            append tool result
        cycles -= 1
        if cycles == 0:
            append apology and return

Two details make it specific to a self-extending agent:

1. The tools array is rebuilt from the registry before every dispatch, so a
   capability synthesized by one tool call is callable by the model on the
   very next round trip.
2. Tool calls within one reply run sequentially, never concurrently. History
   order has to mirror causal order, and a later call must observe registry
   mutations made by an earlier request_tool_creation call.

The cycle counter is the only guard against runaway tool use. It is counted
per LLM round trip, not per tool call, so a turn issues at most
``max_tool_cycles`` LLM requests.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Optional

import structlog

from toolsmith.analysis.intent import IntentAnalysis, IntentStrategy
from toolsmith.conversation import ConversationManager
from toolsmith.errors import LLMServiceError, ToolNotFoundError
from toolsmith.prompts import CYCLE_BUDGET_APOLOGY, NO_RESPONSE_MESSAGE, generate_intent_hint
from toolsmith.tools.registry import ToolRegistry
from toolsmith.types import Message, ToolCall

logger = structlog.get_logger(__name__)


class AgenticLoop:
    """
    Drives one user turn from input to final assistant message.

    The loop owns no state of its own beyond telemetry: history lives in the
    ConversationManager and capabilities live in the ToolRegistry, both owned
    by the agent session.
    """

    def __init__(
        self,
        llm: Any,
        registry: ToolRegistry,
        conversation: ConversationManager,
        analyzer: Optional[IntentStrategy] = None,
        max_tool_cycles: int = 10,
    ):
        self._llm = llm
        self._registry = registry
        self._conversation = conversation
        self._analyzer = analyzer
        self._max_tool_cycles = max(1, int(max_tool_cycles))

        # Loop telemetry
        self._total_runs = 0
        self._total_cycles = 0
        self._total_tool_calls = 0
        self._total_truncated = 0

        logger.info("agentic_loop.initialized", max_tool_cycles=self._max_tool_cycles)

    @property
    def max_tool_cycles(self) -> int:
        return self._max_tool_cycles

    def build_hint(self, analysis: IntentAnalysis) -> Optional[Message]:
        """The transient system message for a create/update suggestion, if any."""
        operation = analysis.operation
        if operation is None:
            return None
        if operation == "update" and analysis.matching_existing_tool is not None:
            tool_name = analysis.matching_existing_tool.name
        else:
            tool_name = analysis.suggested_tool_name
        return Message.system(
            generate_intent_hint(operation, tool_name, analysis.suggested_requirements)
        )

    async def run(
        self,
        user_text: str,
        on_tool_call: Optional[Any] = None,
        on_tool_result: Optional[Any] = None,
    ) -> "LoopResult":
        """
        Process one user turn to completion.

        Args:
            user_text: What the user said.
            on_tool_call: Optional callback receiving each ToolCall before it runs.
            on_tool_result: Optional callback receiving (ToolCall, result_json).

        Returns:
            LoopResult whose ``message`` is the assistant message to show the user.
        """
        self._total_runs += 1
        start_time = time.monotonic()
        cycles_remaining = self._max_tool_cycles
        cycles_used = 0
        all_tool_calls: list[ToolCall] = []

        self._conversation.add_message(Message.user(user_text))

        hint: Optional[Message] = None
        analysis: Optional[IntentAnalysis] = None
        if self._analyzer is not None:
            analysis = self._analyzer.analyze(user_text, self._registry.get_all())
            hint = self.build_hint(analysis)
            if hint is not None:
                logger.info(
                    "agentic_loop.intent_hint",
                    operation=analysis.operation,
                    suggested_name=analysis.suggested_tool_name,
                )

        logger.info(
            "agentic_loop.starting",
            message_count=len(self._conversation),
            tool_count=self._registry.count,
        )

        while True:
            outgoing = list(self._conversation.get_context())
            if hint is not None:
                outgoing.append(hint)
                hint = None

            cycles_used += 1
            self._total_cycles += 1
            try:
                reply = await self._llm.chat(outgoing, tools=self._registry.format_for_llm())
            except LLMServiceError as e:
                logger.error("agentic_loop.llm_failed", error=str(e), cycle=cycles_used)
                reply = None

            if reply is None:
                message = Message.assistant(NO_RESPONSE_MESSAGE)
                self._conversation.add_message(message)
                return self._finish(message, all_tool_calls, cycles_used, start_time, analysis)

            self._conversation.add_message(reply)

            if not reply.has_tool_calls:
                logger.info(
                    "agentic_loop.complete",
                    cycles=cycles_used,
                    tool_calls=len(all_tool_calls),
                )
                return self._finish(reply, all_tool_calls, cycles_used, start_time, analysis)

            for call in reply.tool_calls:
                self._total_tool_calls += 1
                all_tool_calls.append(call)
                self._invoke_callback("on_tool_call", on_tool_call, call)
                result = await self._execute_tool_call(call)
                self._conversation.add_message(Message.tool(call.id, call.name, result))
                self._invoke_callback("on_tool_result", on_tool_result, call, result)

            cycles_remaining -= 1
            if cycles_remaining <= 0:
                self._total_truncated += 1
                logger.warning(
                    "agentic_loop.cycle_budget_exhausted",
                    max_tool_cycles=self._max_tool_cycles,
                    tool_calls=len(all_tool_calls),
                )
                message = Message.assistant(CYCLE_BUDGET_APOLOGY)
                self._conversation.add_message(message)
                return self._finish(
                    message, all_tool_calls, cycles_used, start_time, analysis, truncated=True
                )

    async def _execute_tool_call(self, call: ToolCall) -> str:
        """Run one tool call. Every failure becomes an ``{"error": ...}`` result."""
        try:
            result = await self._registry.execute(call.name, call.arguments)
        except ToolNotFoundError as e:
            logger.warning("agentic_loop.unknown_tool", tool=call.name)
            return json.dumps({"error": str(e)})
        except asyncio.CancelledError:
            raise
        except BaseException as e:
            # SystemExit and KeyboardInterrupt from a tool must not end the session
            message = str(e) if isinstance(e, Exception) else f"{type(e).__name__}: {e}".rstrip(": ")
            logger.error(
                "agentic_loop.tool_failed",
                tool=call.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return json.dumps({"error": message})

        logger.debug("agentic_loop.tool_executed", tool=call.name, arguments=call.arguments)
        return self._serialize_tool_result_content(result)

    def _finish(
        self,
        message: Message,
        tool_calls: list[ToolCall],
        cycles_used: int,
        start_time: float,
        analysis: Optional[IntentAnalysis],
        truncated: bool = False,
    ) -> "LoopResult":
        return LoopResult(
            message=message,
            tool_calls=tool_calls,
            cycles=cycles_used,
            elapsed_seconds=time.monotonic() - start_time,
            was_truncated=truncated,
            analysis=analysis,
        )

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "total_runs": self._total_runs,
            "total_cycles": self._total_cycles,
            "total_tool_calls": self._total_tool_calls,
            "total_truncated": self._total_truncated,
            "avg_cycles_per_run": self._total_cycles / max(1, self._total_runs),
        }

    @staticmethod
    def _serialize_tool_result_content(result: Any) -> str:
        """Serialize tool output for the tool message content."""
        if isinstance(result, str):
            return result
        if isinstance(result, (dict, list, tuple, int, float, bool)) or result is None:
            try:
                return json.dumps(result, ensure_ascii=False, default=str)
            except (TypeError, ValueError):
                pass
        return str(result)

    @staticmethod
    def _invoke_callback(name: str, callback: Optional[Any], *args: Any) -> None:
        """Run callback hooks without letting callback failures crash the loop."""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as callback_error:
            logger.warning(
                "agentic_loop.callback_failed",
                callback=name,
                error=str(callback_error),
            )


class LoopResult:
    """
    The complete result of one user turn.

    ``message`` is what the front end shows. The rest is telemetry: every
    tool call made, how many LLM round trips were used, and whether the turn
    ended on the cycle budget.
    """

    def __init__(
        self,
        message: Message,
        tool_calls: Optional[list[ToolCall]] = None,
        cycles: int = 0,
        elapsed_seconds: float = 0.0,
        was_truncated: bool = False,
        analysis: Optional[IntentAnalysis] = None,
    ):
        self.message = message
        self.tool_calls = tool_calls or []
        self.cycles = cycles
        self.elapsed_seconds = elapsed_seconds
        self.was_truncated = was_truncated
        self.analysis = analysis

    @property
    def text(self) -> str:
        return self.message.content or ""

    @property
    def used_tools(self) -> bool:
        return len(self.tool_calls) > 0

    @property
    def tool_names_used(self) -> list[str]:
        return list(dict.fromkeys(call.name for call in self.tool_calls))
