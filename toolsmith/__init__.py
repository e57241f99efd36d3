"""
Toolsmith — A Self-Extending Tool-Using Agent

This package contains a conversational agent built on Anthropic's Claude API
that answers requests directly or through named tools, and that can write,
compile, load and register brand-new tools for itself at runtime.

Architecture layers (bottom to top):
    1. Message model (conversation turns, tool calls)
    2. Tool registry (capabilities the model may call)
    3. Intent analysis (cheap heuristic hints before each turn)
    4. Conversation manager (history + regenerated system prompt)
    5. Claude API client (function-calling boundary)
    6. Synthesis pipeline (natural language -> loaded tool)
    7. Agentic loop (one user turn, bounded by a cycle budget)
"""

__version__ = "0.1.0"
__author__ = "Toolsmith Maintainers"
