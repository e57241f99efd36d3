"""
Logging setup for Toolsmith entry points.

Every module logs through ``structlog.get_logger(__name__)`` with dotted event
names and key/value fields. This module wires structlog on top of standard
library logging exactly once per process.
"""

from __future__ import annotations

import logging

import structlog

# Free-text fields that can carry whole user messages or generated source.
_LONG_FIELDS = ("content", "query", "arguments", "source")
_MAX_DISPLAY_LEN = 120


def _truncate_long_fields(logger, method_name, event_dict):
    """
    Structlog processor that shortens free-text fields in log output.

    Generated source code and user messages would otherwise flood the
    console on every tool call.
    """
    for key in _LONG_FIELDS:
        if key in event_dict:
            val = event_dict[key]
            if isinstance(val, str) and len(val) > _MAX_DISPLAY_LEN:
                event_dict[key] = val[:_MAX_DISPLAY_LEN] + "... [truncated]"
    return event_dict


_logging_configured = False


def configure_logging(level: int = logging.WARNING) -> None:
    """Configure structlog and standard-library logging.

    Safe to call more than once; later calls only change the root level.
    """
    global _logging_configured  # noqa: PLW0603
    if _logging_configured:
        logging.getLogger().setLevel(level)
        return
    _logging_configured = True

    logging.basicConfig(format="%(message)s", level=level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            _truncate_long_fields,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
