"""API routers package."""

from agent_lifecycle.routers import agent_status, batch, licenses

__all__ = [
    "agent_status",
    "batch",
    "licenses",
]
