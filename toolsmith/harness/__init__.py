"""Agent harness — the runtime infrastructure that makes Toolsmith an agent."""
from toolsmith.harness.loop import AgenticLoop, LoopResult
from toolsmith.harness.retry import RetryConfig, with_retries

__all__ = ["AgenticLoop", "LoopResult", "RetryConfig", "with_retries"]
