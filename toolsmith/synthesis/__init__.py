"""Capability synthesis — generate, load and register new tools at runtime."""
from toolsmith.synthesis.pipeline import (
    CapabilitySynthesizer,
    ToolCreationResult,
    ToolSpecification,
)

__all__ = ["CapabilitySynthesizer", "ToolCreationResult", "ToolSpecification"]
