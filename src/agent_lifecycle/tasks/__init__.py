"""Background tasks package."""

from agent_lifecycle.tasks.scheduler import start_scheduler, stop_scheduler

__all__ = [
    "start_scheduler",
    "stop_scheduler",
]
