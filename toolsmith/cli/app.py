"""CLI application — Click-based command hierarchy for Toolsmith.

    toolsmith              interactive REPL (default)
    toolsmith ask TEXT     run a single turn and print the reply
    toolsmith tools        list the built-in tools
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from typing import Any

import click


def async_cmd(func):
    """Decorator to run an async Click command via asyncio.run()."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(func(*args, **kwargs))

    return wrapper


@click.group(invoke_without_command=True)
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output")
@click.option("--verbose", "-v", is_flag=True, help="Show info-level logs")
@click.pass_context
def cli(ctx: click.Context, json_output: bool, verbose: bool) -> None:
    """Toolsmith - a conversational agent that writes its own tools."""
    ctx.ensure_object(dict)
    ctx.obj["json"] = json_output
    ctx.obj["verbose"] = verbose

    from toolsmith.logging_setup import configure_logging

    configure_logging(logging.INFO if verbose else logging.WARNING)

    if ctx.invoked_subcommand is None:
        # Default: launch interactive REPL
        from toolsmith.cli.repl import run_repl

        run_repl(ctx.obj)


@cli.command("ask")
@click.argument("text", nargs=-1, required=True)
@click.pass_context
@async_cmd
async def ask_cmd(ctx: click.Context, text: tuple[str, ...]) -> None:
    """Send one message to a fresh agent and print the reply."""
    from toolsmith.agent import Agent
    from toolsmith.config import ToolsmithConfig

    try:
        agent = Agent.from_config(ToolsmithConfig())
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    reply = await agent.process_user_input(" ".join(text))
    result = agent.last_result

    if ctx.obj.get("json"):
        payload = {
            "reply": reply.content,
            "tools_used": result.tool_names_used if result else [],
            "cycles": result.cycles if result else 0,
        }
        click.echo(json.dumps(payload, ensure_ascii=False))
    else:
        click.echo(reply.content or "")


@cli.command("tools")
@click.pass_context
def tools_cmd(ctx: click.Context) -> None:
    """List the tools a new session starts with."""
    from toolsmith.config import SynthesisConfig
    from toolsmith.tools.builtin import make_tool_creation_tool, register_builtin_tools
    from toolsmith.tools.registry import ToolRegistry

    registry = ToolRegistry()
    register_builtin_tools(registry)
    if SynthesisConfig().enabled:
        # Listing only; the tool is never executed here
        registry.register(make_tool_creation_tool(synthesizer=None))

    listing = registry.list_tools()
    if ctx.obj.get("json"):
        click.echo(json.dumps(listing, ensure_ascii=False))
        return
    for entry in listing:
        click.echo(f"{entry['name']} [{entry['category']}]")
        click.echo(f"    {entry['description']}")
