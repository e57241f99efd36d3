"""
Configuration for Toolsmith.

All configuration flows through this module. Values are loaded from environment
variables (and an optional project-root .env file) and validated with Pydantic.
Each subsystem gets its own settings class; ToolsmithConfig composes them and
is what the agent and the front ends receive.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import structlog
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)

# Resolve .env relative to the project root (one level above toolsmith/ package),
# so the config works regardless of the user's current working directory.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class ClaudeConfig(BaseSettings):
    """Configuration for the Claude API connection used for chat and code generation."""

    api_key: Optional[str] = Field(None, alias="ANTHROPIC_API_KEY")
    auth_token: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("ANTHROPIC_AUTH_TOKEN", "auth_token"),
    )
    model: str = Field("claude-sonnet-4-5-20250929", alias="TOOLSMITH_MODEL")
    max_tokens: int = Field(4096, alias="TOOLSMITH_MAX_TOKENS")
    request_timeout_seconds: float = Field(120.0, alias="TOOLSMITH_REQUEST_TIMEOUT_SECONDS")
    retry_max_retries: int = Field(3, alias="TOOLSMITH_RETRY_MAX_RETRIES")
    retry_base_delay: float = Field(0.5, alias="TOOLSMITH_RETRY_BASE_DELAY")
    retry_max_delay: float = Field(8.0, alias="TOOLSMITH_RETRY_MAX_DELAY")
    retry_exponential_base: float = Field(2.0, alias="TOOLSMITH_RETRY_EXPONENTIAL_BASE")
    retry_jitter_range: float = Field(0.25, alias="TOOLSMITH_RETRY_JITTER_RANGE")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def resolve_auth(self) -> "ClaudeConfig":
        if self.api_key or self.auth_token:
            return self
        raise ValueError(
            "No authentication configured. Set ANTHROPIC_API_KEY or ANTHROPIC_AUTH_TOKEN."
        )

    @model_validator(mode="after")
    def normalize_runtime_limits(self) -> "ClaudeConfig":
        self.max_tokens = max(1, int(self.max_tokens))
        self.request_timeout_seconds = max(1.0, float(self.request_timeout_seconds))
        self.retry_max_retries = max(0, int(self.retry_max_retries))
        self.retry_base_delay = max(0.05, float(self.retry_base_delay))
        self.retry_max_delay = max(self.retry_base_delay, float(self.retry_max_delay))
        self.retry_exponential_base = max(1.0, float(self.retry_exponential_base))
        self.retry_jitter_range = max(0.0, min(1.0, float(self.retry_jitter_range)))
        return self


class AgentConfig(BaseSettings):
    """Per-turn behaviour of the agentic loop."""

    max_tool_cycles: int = Field(10, alias="TOOLSMITH_MAX_TOOL_CYCLES")
    intent_hints: bool = Field(True, alias="TOOLSMITH_INTENT_HINTS")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_limits(self) -> "AgentConfig":
        self.max_tool_cycles = max(1, int(self.max_tool_cycles))
        return self


class SynthesisConfig(BaseSettings):
    """Configuration for runtime capability synthesis.

    Generated code is executed in-process without a sandbox. Setting
    TOOLSMITH_SYNTHESIS_ENABLED=false removes the request_tool_creation
    capability from new sessions entirely.
    """

    enabled: bool = Field(True, alias="TOOLSMITH_SYNTHESIS_ENABLED")
    generated_dir: Path = Field(Path("./generated_tools"), alias="TOOLSMITH_GENERATED_DIR")
    codegen_max_tokens: int = Field(4096, alias="TOOLSMITH_CODEGEN_MAX_TOKENS")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def normalize_limits(self) -> "SynthesisConfig":
        self.codegen_max_tokens = max(256, int(self.codegen_max_tokens))
        return self


class ToolsmithConfig:
    """
    Master configuration that composes all subsystem configs.

    Every component receives its config from here. Nothing reads the
    environment on its own.
    """

    def __init__(self):
        self.claude = ClaudeConfig()
        self.agent = AgentConfig()
        self.synthesis = SynthesisConfig()

        # Resolve all Path fields to absolute so CWD changes don't break them.
        self._resolve_paths()

    def _resolve_paths(self) -> None:
        """Resolve relative Path fields against the project root (where .env lives),
        not the current working directory, so ``toolsmith`` works from any directory."""
        def _resolve(p: Path) -> Path:
            if p.is_absolute():
                return p
            return (_PROJECT_ROOT / p).resolve()

        self.synthesis.generated_dir = _resolve(self.synthesis.generated_dir)

    def __repr__(self) -> str:
        return (
            f"ToolsmithConfig(model={self.claude.model}, "
            f"max_tool_cycles={self.agent.max_tool_cycles}, "
            f"synthesis={'on' if self.synthesis.enabled else 'off'})"
        )
