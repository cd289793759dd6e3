"""External collaborator clients."""

from agent_lifecycle.clients.base import (
    AgentContact,
    ClientBundle,
    CommissionClient,
    DocumentClient,
    NotificationClient,
    PortalClient,
)

__all__ = [
    "AgentContact",
    "ClientBundle",
    "CommissionClient",
    "DocumentClient",
    "NotificationClient",
    "PortalClient",
]
