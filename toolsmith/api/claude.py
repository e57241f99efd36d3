"""
Claude API Client — the LLM service boundary.

Everything above this module speaks the function-calling message model from
toolsmith.types: assistant messages carry ``tool_calls`` with JSON-string
arguments, and each tool result is its own ``tool`` message. The Anthropic
Messages API speaks content blocks instead. This module translates in both
directions and owns the only network calls in the process.

Request side:
  - system messages are joined into the top-level ``system`` parameter
  - assistant tool calls become ``tool_use`` blocks
  - tool messages become ``tool_result`` blocks inside a user turn
  - consecutive turns with the same role are merged, as the API requires

Response side:
  - text blocks are joined into ``content``
  - ``tool_use`` blocks become ToolCall objects with JSON-encoded arguments
  - a response with neither is invalid and returned as None
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Iterable, Optional

import anthropic
import structlog

from toolsmith.config import ClaudeConfig
from toolsmith.errors import LLMClientInitError, LLMServiceError
from toolsmith.harness.retry import RetryConfig, with_retries
from toolsmith.types import Message, ToolCall

logger = structlog.get_logger(__name__)


# -----------------------------------------------------------------------------
# Message model → Anthropic request
# -----------------------------------------------------------------------------


def _parse_tool_input(arguments: str) -> dict[str, Any]:
    try:
        parsed = json.loads(arguments) if arguments else {}
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _to_blocks(message: Message) -> list[dict[str, Any]]:
    """Render one non-system message as a list of Anthropic content blocks."""
    if message.role == "tool":
        return [
            {
                "type": "tool_result",
                "tool_use_id": message.tool_call_id,
                "content": message.content or "",
            }
        ]

    blocks: list[dict[str, Any]] = []
    if message.content:
        blocks.append({"type": "text", "text": message.content})
    for call in message.tool_calls:
        blocks.append(
            {
                "type": "tool_use",
                "id": call.id,
                "name": call.name,
                "input": _parse_tool_input(call.arguments),
            }
        )
    return blocks


def to_anthropic_messages(messages: Iterable[Message]) -> tuple[str, list[dict[str, Any]]]:
    """
    Split a conversation into the ``system`` string and the Anthropic
    ``messages`` array.

    System messages anywhere in the sequence (the canonical prompt at position
    0, or a transient hint later on) are appended to the system text in order.
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []

    for message in messages:
        if message.role == "system":
            if message.content:
                system_parts.append(message.content)
            continue

        api_role = "assistant" if message.role == "assistant" else "user"
        blocks = _to_blocks(message)
        if not blocks:
            continue

        if converted and converted[-1]["role"] == api_role:
            converted[-1]["content"].extend(blocks)
        else:
            converted.append({"role": api_role, "content": blocks})

    return "\n\n".join(system_parts), converted


def to_anthropic_tools(tools: Optional[list[dict[str, Any]]]) -> list[dict[str, Any]]:
    """Convert function-calling declarations into Anthropic tool definitions."""
    converted = []
    for tool in tools or []:
        function = tool.get("function", tool)
        converted.append(
            {
                "name": function["name"],
                "description": function.get("description", ""),
                "input_schema": function.get("parameters") or {"type": "object", "properties": {}},
            }
        )
    return converted


# -----------------------------------------------------------------------------
# Anthropic response → message model
# -----------------------------------------------------------------------------


def from_anthropic_response(response: Any) -> Optional[Message]:
    """
    Convert an Anthropic Message into an assistant Message.

    Returns None when the response has neither text nor tool calls.
    """
    text_parts: list[str] = []
    tool_calls: list[ToolCall] = []

    for block in getattr(response, "content", None) or []:
        block_type = getattr(block, "type", None)
        if block_type == "text":
            if block.text:
                text_parts.append(block.text)
        elif block_type == "tool_use":
            tool_calls.append(
                ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=json.dumps(block.input or {}, ensure_ascii=False),
                )
            )

    content = "\n".join(text_parts) or None
    if content is None and not tool_calls:
        logger.warning(
            "claude_client.empty_response",
            stop_reason=getattr(response, "stop_reason", None),
        )
        return None

    return Message.assistant(content, tool_calls=tuple(tool_calls))


class ClaudeClient:
    """
    Wraps the Anthropic Messages API behind the single ``chat`` operation the
    agent needs.

    The client keeps no conversation state. It receives messages and tool
    declarations and returns one assistant message (or None).
    """

    def __init__(self, config: ClaudeConfig, client: Optional[Any] = None):
        try:
            if client is not None:
                self._async_client = client
                self._auth_method = "injected"
            elif config.api_key:
                self._async_client = anthropic.AsyncAnthropic(api_key=config.api_key)
                self._auth_method = "api_key"
            else:
                self._async_client = anthropic.AsyncAnthropic(auth_token=config.auth_token)
                self._auth_method = "auth_token"
            self._model = config.model
            self._max_tokens = config.max_tokens
            self._request_timeout_seconds = float(config.request_timeout_seconds)
            self._retry_config = RetryConfig.from_claude_config(config)

            # Telemetry
            self._total_input_tokens = 0
            self._total_output_tokens = 0
            self._total_calls = 0
            self._last_call_time: Optional[float] = None

            logger.info(
                "claude_client.initialized",
                model=self._model,
                auth_method=self._auth_method,
            )
        except Exception as exc:
            raise LLMClientInitError(f"Failed to initialize Claude client: {exc}") from exc

    @property
    def model(self) -> str:
        return self._model

    async def chat(
        self,
        messages: Iterable[Message],
        tools: Optional[list[dict[str, Any]]] = None,
        max_tokens: Optional[int] = None,
    ) -> Optional[Message]:
        """
        Send a conversation and return the assistant's reply.

        Args:
            messages: The outgoing context, system message(s) included.
            tools: Function-calling declarations; omitted from the request
                when empty, in which case the model cannot call tools.
            max_tokens: Override the configured output budget for this call.

        Returns:
            An assistant Message, or None if the response was empty.

        Raises:
            LLMServiceError: the API failed and retries did not help.
        """
        start_time = time.monotonic()
        system, api_messages = to_anthropic_messages(messages)

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "messages": api_messages,
        }
        if system:
            kwargs["system"] = system
        api_tools = to_anthropic_tools(tools)
        if api_tools:
            kwargs["tools"] = api_tools
            kwargs["tool_choice"] = {"type": "auto"}

        async def _create() -> Any:
            return await asyncio.wait_for(
                self._async_client.messages.create(**kwargs),
                timeout=self._request_timeout_seconds,
            )

        try:
            response = await with_retries(_create, config=self._retry_config)
        except anthropic.APIError as e:
            logger.error(
                "claude_client.api_error",
                error=str(e),
                error_type=type(e).__name__,
                status=getattr(e, "status_code", None),
            )
            raise LLMServiceError(f"LLM request failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error("claude_client.timeout", timeout=self._request_timeout_seconds)
            raise LLMServiceError("LLM request timed out.") from e

        elapsed = time.monotonic() - start_time
        usage = getattr(response, "usage", None)
        self._total_input_tokens += getattr(usage, "input_tokens", 0) or 0
        self._total_output_tokens += getattr(usage, "output_tokens", 0) or 0
        self._total_calls += 1
        self._last_call_time = elapsed

        logger.debug(
            "claude_client.response",
            elapsed_seconds=round(elapsed, 2),
            stop_reason=getattr(response, "stop_reason", None),
            tools_offered=len(api_tools),
        )

        return from_anthropic_response(response)

    @property
    def telemetry(self) -> dict[str, Any]:
        """Return current telemetry snapshot."""
        return {
            "total_calls": self._total_calls,
            "total_input_tokens": self._total_input_tokens,
            "total_output_tokens": self._total_output_tokens,
            "last_call_seconds": self._last_call_time if self._last_call_time is not None else 0.0,
        }
