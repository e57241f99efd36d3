"""REPL launcher — wraps ToolsmithSession from main.py.

The interactive REPL is the default mode when `toolsmith` is invoked without
a subcommand.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any


def run_repl(ctx_obj: dict[str, Any] | None = None) -> None:
    """Launch the interactive REPL, honouring the group's ``--verbose`` flag."""
    from toolsmith.main import ToolsmithSession, configure_logging

    verbose = bool((ctx_obj or {}).get("verbose"))
    configure_logging(logging.INFO if verbose else logging.WARNING)

    session = ToolsmithSession()
    try:
        asyncio.run(session.run())
    except KeyboardInterrupt:
        pass
