"""Audit log repository."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, func, select

from agent_lifecycle.models.orm.audit_log import AuditLogORM
from agent_lifecycle.repositories.base import BaseRepository


class AuditRepository(BaseRepository[AuditLogORM]):
    """Repository for the append-only audit log."""

    model = AuditLogORM

    async def log(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID | None = None,
        agent_id: UUID | None = None,
        actor: str | None = None,
        reason: str | None = None,
        changes: dict[str, Any] | None = None,
    ) -> AuditLogORM:
        """Create an audit log entry.

        Args:
            action: Action performed
            resource_type: Type of resource affected
            resource_id: ID of affected resource
            agent_id: Agent the resource belongs to
            actor: Who performed the action
            reason: Free-text reason supplied with the action
            changes: Dict of changes made

        Returns:
            Created AuditLogORM
        """
        log_entry = AuditLogORM(
            id=uuid4(),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            agent_id=agent_id,
            actor=actor,
            reason=reason,
            changes=changes,
        )
        self.session.add(log_entry)
        await self.session.flush()
        return log_entry

    async def log_many(self, entries: list[dict[str, Any]]) -> int:
        """Append several audit entries in one flush.

        Args:
            entries: Keyword dicts accepted by ``log``

        Returns:
            Number of entries written
        """
        self.session.add_all([AuditLogORM(id=uuid4(), **entry) for entry in entries])
        await self.session.flush()
        return len(entries)

    async def update(self, id: UUID, **kwargs: Any) -> AuditLogORM | None:
        """Audit entries are never modified."""
        raise NotImplementedError("Audit log entries are append-only")

    async def get_by_resource(
        self,
        resource_type: str,
        resource_id: UUID,
        actions: list[str] | None = None,
        limit: int = 50,
    ) -> list[AuditLogORM]:
        """Get audit logs for a specific resource, oldest first.

        Args:
            resource_type: Type of resource
            resource_id: ID of resource
            actions: Optional action filter
            limit: Maximum results

        Returns:
            List of audit logs
        """
        conditions = [
            AuditLogORM.resource_type == resource_type,
            AuditLogORM.resource_id == resource_id,
        ]
        if actions:
            conditions.append(AuditLogORM.action.in_(actions))

        result = await self.session.execute(
            select(AuditLogORM)
            .where(and_(*conditions))
            .order_by(AuditLogORM.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_by_agent(self, agent_id: UUID, limit: int = 500) -> list[AuditLogORM]:
        """Get audit logs for an agent, oldest first.

        Args:
            agent_id: Agent UUID
            limit: Maximum results

        Returns:
            List of audit logs
        """
        result = await self.session.execute(
            select(AuditLogORM)
            .where(AuditLogORM.agent_id == agent_id)
            .order_by(AuditLogORM.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_action(self, action: str, resource_id: UUID | None = None) -> int:
        """Count entries for an action, optionally for one resource.

        Args:
            action: Action to count
            resource_id: Optional resource filter

        Returns:
            Number of matching entries
        """
        query = select(func.count()).select_from(AuditLogORM).where(AuditLogORM.action == action)
        if resource_id is not None:
            query = query.where(AuditLogORM.resource_id == resource_id)
        result = await self.session.execute(query)
        return result.scalar_one()
