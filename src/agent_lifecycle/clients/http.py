"""HTTP implementations of the collaborator interfaces."""

import logging
from datetime import date
from typing import Any, ClassVar
from uuid import UUID

import httpx

from agent_lifecycle.clients.base import (
    AgentContact,
    ClientBundle,
    CommissionClient,
    DocumentClient,
    NotificationClient,
    PortalClient,
)
from agent_lifecycle.config import get_settings

logger = logging.getLogger(__name__)

# User-Agent per RFC 7231
USER_AGENT = "AgentLifecycle/1.0"


class CollaboratorHTTPClient:
    """Base for collaborator clients sharing one pooled connection."""

    # Shared HTTP client for connection reuse (class-level)
    _http_client: ClassVar[httpx.AsyncClient | None] = None

    def __init__(self, base_url: str) -> None:
        """Initialize client.

        Args:
            base_url: Collaborator service root URL
        """
        self.base_url = base_url.rstrip("/")

    @classmethod
    def _get_http_client(cls) -> httpx.AsyncClient:
        """Get or create shared HTTP client with connection pooling.

        Returns:
            Shared httpx.AsyncClient instance
        """
        if CollaboratorHTTPClient._http_client is None or CollaboratorHTTPClient._http_client.is_closed:
            settings = get_settings()
            CollaboratorHTTPClient._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.collaborator_timeout),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                headers={"User-Agent": USER_AGENT},
            )
        return CollaboratorHTTPClient._http_client

    @classmethod
    async def close_client(cls) -> None:
        """Close the shared HTTP client. Call on application shutdown."""
        client = CollaboratorHTTPClient._http_client
        if client and not client.is_closed:
            await client.aclose()
            CollaboratorHTTPClient._http_client = None

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload and return the JSON body.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx response
        """
        response = await self._get_http_client().post(f"{self.base_url}{path}", json=payload)
        response.raise_for_status()
        if not response.content:
            return {}
        return response.json()


def _agent_payload(agent: AgentContact) -> dict[str, Any]:
    return {
        "agent_id": str(agent.agent_id),
        "agent_code": agent.agent_code,
        "full_name": agent.full_name,
        "email": agent.email,
        "mobile_number": agent.mobile_number,
        "office_code": agent.office_code,
    }


class HTTPPortalClient(CollaboratorHTTPClient, PortalClient):
    """Portal access over HTTP."""

    async def disable_access(self, agent: AgentContact) -> None:
        await self._post(f"/agents/{agent.agent_id}/access/disable", _agent_payload(agent))

    async def restore_access(self, agent: AgentContact) -> None:
        await self._post(f"/agents/{agent.agent_id}/access/restore", _agent_payload(agent))


class HTTPCommissionClient(CollaboratorHTTPClient, CommissionClient):
    """Commission processing over HTTP."""

    async def stop_commission(self, agent: AgentContact, effective_date: date) -> None:
        await self._post(
            f"/agents/{agent.agent_id}/commission/stop",
            {"agent_code": agent.agent_code, "effective_date": effective_date.isoformat()},
        )


class HTTPDocumentClient(CollaboratorHTTPClient, DocumentClient):
    """Document generation over HTTP."""

    async def generate_termination_letter(
        self,
        agent: AgentContact,
        termination_id: UUID,
        effective_date: date,
        reason: str,
    ) -> str:
        body = await self._post(
            "/documents/termination-letters",
            {
                "agent": _agent_payload(agent),
                "termination_id": str(termination_id),
                "effective_date": effective_date.isoformat(),
                "reason": reason,
            },
        )
        url = body.get("url")
        if not url:
            raise ValueError("Document service returned no letter URL")
        return url


class HTTPNotificationClient(CollaboratorHTTPClient, NotificationClient):
    """Notifications over HTTP."""

    async def _notify(self, template: str, agent: AgentContact, data: dict[str, Any]) -> dict[str, Any]:
        return await self._post(
            "/notifications",
            {"template": template, "recipient": _agent_payload(agent), "data": data},
        )

    async def send_termination_notice(
        self, agent: AgentContact, effective_date: date, reason_code: str
    ) -> None:
        await self._notify(
            "agent_termination",
            agent,
            {"effective_date": effective_date.isoformat(), "reason_code": reason_code},
        )

    async def send_approval_request(
        self, agent: AgentContact, reinstatement_id: UUID, reason: str
    ) -> None:
        await self._notify(
            "reinstatement_approval_request",
            agent,
            {"reinstatement_id": str(reinstatement_id), "reason": reason},
        )

    async def send_reinstatement_confirmation(
        self, agent: AgentContact, conditions: str | None
    ) -> None:
        await self._notify("reinstatement_approved", agent, {"conditions": conditions})

    async def send_reinstatement_rejection(self, agent: AgentContact, reason: str) -> None:
        await self._notify("reinstatement_rejected", agent, {"reason": reason})

    async def send_renewal_reminder(
        self,
        agent: AgentContact,
        license_number: str,
        renewal_date: date,
        reminder_type: str,
    ) -> dict[str, Any]:
        body = await self._notify(
            "license_renewal_reminder",
            agent,
            {
                "license_number": license_number,
                "renewal_date": renewal_date.isoformat(),
                "reminder_type": reminder_type,
            },
        )
        return {
            "email_sent": bool(body.get("email_sent", agent.email is not None)),
            "sms_sent": bool(body.get("sms_sent", False)),
        }


def get_clients() -> ClientBundle:
    """Build the collaborator bundle from settings."""
    settings = get_settings()
    return ClientBundle(
        portal=HTTPPortalClient(settings.portal_service_url),
        commission=HTTPCommissionClient(settings.commission_service_url),
        documents=HTTPDocumentClient(settings.document_service_url),
        notifications=HTTPNotificationClient(settings.notification_service_url),
    )
