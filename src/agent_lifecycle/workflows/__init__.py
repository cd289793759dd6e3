"""Durable agent status processes."""

from agent_lifecycle.workflows.runtime import ProcessRuntime, get_runtime, set_runtime

__all__ = [
    "ProcessRuntime",
    "get_runtime",
    "set_runtime",
]
