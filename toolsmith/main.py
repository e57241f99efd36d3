"""
Main — Toolsmith's interactive session.

Running ``toolsmith`` with no subcommand lands here. This module:
  1. Configures logging
  2. Loads configuration from the environment
  3. Creates the Agent (Claude client, registry, built-in tools)
  4. Runs the read-eval-print loop until the user leaves

The REPL understands three commands besides ordinary chat:

    exit     leave the session
    history  print the conversation so far
    clear    reset the conversation to just the system prompt

Everything else is passed to Agent.process_user_input().
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import structlog
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape as markup_escape

from toolsmith.agent import Agent
from toolsmith.config import ToolsmithConfig
from toolsmith.errors import LLMClientInitError
from toolsmith.logging_setup import configure_logging
from toolsmith.types import Message

logger = structlog.get_logger(__name__)

console = Console()

_ROLE_STYLES = {
    "system": "magenta",
    "user": "green",
    "assistant": "cyan",
    "tool": "yellow",
}


def format_history_line(message: Message) -> str:
    """One rich-markup line for the ``history`` view."""
    style = _ROLE_STYLES.get(message.role, "white")
    label = message.role.upper()
    if message.role == "system":
        body = f"[dim]<system prompt, {len(message.content or '')} chars>[/dim]"
    elif message.role == "tool":
        body = f"[dim]{markup_escape(message.name or '?')}[/dim] → {markup_escape(message.content or '')}"
    elif message.has_tool_calls:
        calls = ", ".join(
            f"{markup_escape(call.name)}({markup_escape(call.arguments)})"
            for call in message.tool_calls
        )
        text = markup_escape(message.content) + " " if message.content else ""
        body = f"{text}[dim]calls: {calls}[/dim]"
    else:
        body = markup_escape(message.content or "")
    return f"[bold {style}]{label}[/bold {style}]: {body}"


class ToolsmithSession:
    """
    Manages a single interactive session.

    The agent and the input function are injectable so the loop can be driven
    without a terminal or an API key.
    """

    def __init__(
        self,
        agent: Optional[Agent] = None,
        config: Optional[ToolsmithConfig] = None,
        read_input: Optional[Callable[[str], str]] = None,
        out: Optional[Console] = None,
    ):
        self._agent = agent
        self._config = config
        self._read_input_fn = read_input or (lambda prompt: console.input(prompt))
        self._console = out or console

    def _ensure_agent(self) -> Agent:
        if self._agent is None:
            self._config = self._config or ToolsmithConfig()
            self._agent = Agent.from_config(self._config)
        return self._agent

    async def _read_input(self) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._read_input_fn, "[bold green]You[/bold green]: ")
        except (EOFError, KeyboardInterrupt):
            return None

    def show_history(self) -> None:
        agent = self._ensure_agent()
        self._console.print()
        for message in agent.history:
            self._console.print(format_history_line(message))
        self._console.print()

    async def handle_line(self, line: str) -> bool:
        """Handle one line of input. Returns False when the session should end."""
        stripped = line.strip()
        command = stripped.lower()
        if not stripped:
            return True
        if command == "exit":
            self._console.print("[dim]Goodbye.[/dim]")
            return False
        if command == "history":
            self.show_history()
            return True
        if command == "clear":
            self._ensure_agent().clear_history()
            self._console.print("[dim]Conversation history cleared.[/dim]")
            return True

        agent = self._ensure_agent()
        with self._console.status("[cyan]Thinking...[/cyan]"):
            reply = await agent.process_user_input(stripped)

        result = agent.last_result
        if result is not None and result.tool_names_used:
            self._console.print(
                f"[dim]tools used: {markup_escape(', '.join(result.tool_names_used))}[/dim]"
            )
        self._console.print("[bold cyan]Toolsmith[/bold cyan]:")
        self._console.print(Markdown(reply.content or ""))
        self._console.print()
        return True

    async def run(self) -> None:
        """The read-eval-print loop."""
        try:
            agent = self._ensure_agent()
        except LLMClientInitError as e:
            self._console.print(f"[red]Startup error: {markup_escape(str(e))}[/red]")
            return
        except ValueError as e:
            # pydantic validation errors (missing API key and the like)
            self._console.print(f"[red]Configuration error: {markup_escape(str(e))}[/red]")
            return

        self._console.print(
            f"[bold]Toolsmith[/bold] ready with {agent.registry.count} tools: "
            f"{markup_escape(', '.join(agent.registry.names()))}"
        )
        self._console.print("[dim]Commands: exit, history, clear[/dim]")
        self._console.print()

        while True:
            line = await self._read_input()
            if line is None:
                break
            if not await self.handle_line(line):
                break


def main() -> None:
    """Entry point for ``python -m toolsmith.main``."""
    configure_logging()
    session = ToolsmithSession()
    try:
        asyncio.run(session.run())
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted. Exiting.[/dim]")


if __name__ == "__main__":
    main()
