"""
Error taxonomy shared across Toolsmith subsystems.

Failures local to one tool call or one synthesis step are absorbed and turned
into JSON data that flows back into the conversation. Only structural
invariant violations (see ConversationStateError) are meant to escape to the
caller of the agent.
"""

from __future__ import annotations


class ToolsmithError(Exception):
    """Base class for all Toolsmith errors."""


class ArgumentParseError(ToolsmithError, ValueError):
    """Tool arguments were not a JSON object."""


class ToolNotFoundError(ToolsmithError, KeyError):
    """Execute or update was attempted on a tool name that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Tool '{self.name}' not found."


class ToolNameMismatchError(ToolsmithError, ValueError):
    """An update tried to replace a tool with one registered under another name."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"New tool name '{actual}' does not match the tool being updated '{expected}'."
        )


class ConversationStateError(ToolsmithError, RuntimeError):
    """The conversation lost its system message."""


class LLMClientInitError(ToolsmithError, RuntimeError):
    """Raised when the LLM client cannot be initialized safely."""


class LLMServiceError(ToolsmithError, RuntimeError):
    """The LLM service failed after retries were exhausted (or was not retryable)."""


class SynthesisStepError(ToolsmithError):
    """One step of the synthesis pipeline failed.

    Never escapes the pipeline: CapabilitySynthesizer converts it into a
    ToolCreationResult with success=False.
    """

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(message)
