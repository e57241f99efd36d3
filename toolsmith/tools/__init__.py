"""Tool system — Toolsmith's capabilities and the registry that holds them."""
from toolsmith.tools.base import Capability, FunctionTool
from toolsmith.tools.registry import ToolRegistry

__all__ = ["Capability", "FunctionTool", "ToolRegistry"]
