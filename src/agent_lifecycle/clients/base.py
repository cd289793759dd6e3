"""Collaborator interfaces used by the status processes and reminders."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class AgentContact:
    """Agent details handed to collaborators."""

    agent_id: UUID
    agent_code: str
    full_name: str
    email: str | None = None
    mobile_number: str | None = None
    office_code: str | None = None

    @classmethod
    def from_profile(cls, agent: Any) -> "AgentContact":
        """Build a contact from an agent profile row."""
        return cls(
            agent_id=agent.id,
            agent_code=agent.agent_code,
            full_name=agent.full_name,
            email=agent.email,
            mobile_number=agent.mobile_number,
            office_code=agent.office_code,
        )


class PortalClient(ABC):
    """Agent self-service portal access."""

    @abstractmethod
    async def disable_access(self, agent: AgentContact) -> None:
        """Revoke the agent's portal login."""
        pass

    @abstractmethod
    async def restore_access(self, agent: AgentContact) -> None:
        """Re-enable the agent's portal login."""
        pass


class CommissionClient(ABC):
    """Commission and payout processing."""

    @abstractmethod
    async def stop_commission(self, agent: AgentContact, effective_date: date) -> None:
        """Stop payouts for the agent from the effective date."""
        pass


class DocumentClient(ABC):
    """Document rendering and storage."""

    @abstractmethod
    async def generate_termination_letter(
        self,
        agent: AgentContact,
        termination_id: UUID,
        effective_date: date,
        reason: str,
    ) -> str:
        """Render and store a termination letter.

        Returns:
            URL of the stored letter
        """
        pass


class NotificationClient(ABC):
    """Outbound notifications to agents and stakeholders."""

    @abstractmethod
    async def send_termination_notice(
        self, agent: AgentContact, effective_date: date, reason_code: str
    ) -> None:
        """Tell the agent and their office about the termination."""
        pass

    @abstractmethod
    async def send_approval_request(
        self, agent: AgentContact, reinstatement_id: UUID, reason: str
    ) -> None:
        """Ask an approver to decide on a reinstatement request."""
        pass

    @abstractmethod
    async def send_reinstatement_confirmation(
        self, agent: AgentContact, conditions: str | None
    ) -> None:
        """Confirm an approved reinstatement."""
        pass

    @abstractmethod
    async def send_reinstatement_rejection(self, agent: AgentContact, reason: str) -> None:
        """Tell the requester the reinstatement was rejected."""
        pass

    @abstractmethod
    async def send_renewal_reminder(
        self,
        agent: AgentContact,
        license_number: str,
        renewal_date: date,
        reminder_type: str,
    ) -> dict[str, Any]:
        """Send a license renewal reminder.

        Returns:
            Delivery dict with keys:
            - email_sent: bool
            - sms_sent: bool
        """
        pass


@dataclass(frozen=True)
class ClientBundle:
    """The set of collaborators one runtime talks to."""

    portal: PortalClient
    commission: CommissionClient
    documents: DocumentClient
    notifications: NotificationClient
