"""Agent data archive service."""

import hashlib
import json
import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.exceptions import AgentNotFoundError
from agent_lifecycle.models.domain.agent import ArchiveType
from agent_lifecycle.models.orm.base import Base
from agent_lifecycle.models.orm.data_archive import DataArchiveORM
from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.archive_repository import ArchiveRepository
from agent_lifecycle.repositories.audit_repository import AuditRepository
from agent_lifecycle.repositories.license_repository import LicenseRepository
from agent_lifecycle.services.audit_service import AuditAction, AuditService, ResourceType
from agent_lifecycle.services.license_rules import add_years

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = 1


def row_to_dict(row: Base) -> dict[str, Any]:
    """Serialize every mapped column of a row into JSON-safe values."""
    return {
        attr.key: AuditService._to_json_value(getattr(row, attr.key))
        for attr in row.__mapper__.column_attrs
    }


def canonical_json(data: dict[str, Any]) -> bytes:
    """Stable JSON encoding used for checksums."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")


class ArchiveService:
    """Takes immutable snapshots of an agent's records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session."""
        self.session = session
        self.agent_repo = AgentRepository(session)
        self.license_repo = LicenseRepository(session)
        self.audit_repo = AuditRepository(session)
        self.archive_repo = ArchiveRepository(session)
        self.audit_service = AuditService(session)

    async def build_snapshot(self, agent_id: UUID) -> dict[str, Any]:
        """Collect the agent profile, licenses and audit trail.

        Raises:
            AgentNotFoundError: If the agent does not exist
        """
        agent = await self.agent_repo.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)

        licenses = await self.license_repo.get_by_agent(agent_id)
        audit_logs = await self.audit_repo.get_by_agent(agent_id, limit=10_000)
        return {
            "format_version": SNAPSHOT_FORMAT_VERSION,
            "profile": row_to_dict(agent),
            "licenses": [row_to_dict(lic) for lic in licenses],
            "audit_logs": [row_to_dict(entry) for entry in audit_logs],
        }

    async def archive_agent(
        self,
        agent_id: UUID,
        source_id: UUID,
        archive_type: ArchiveType,
        archived_by: str,
        now: datetime,
        retention_years: int = 7,
    ) -> DataArchiveORM:
        """Create the archive for a source event, once.

        A second call for the same source returns the existing archive, so a
        retried or replayed step does not produce duplicates.

        Args:
            agent_id: Agent to snapshot
            source_id: Event the archive belongs to (e.g. termination ID)
            archive_type: Why the archive is taken
            archived_by: Actor recorded on the archive
            now: Archive timestamp
            retention_years: Years the archive must be kept

        Returns:
            DataArchiveORM
        """
        existing = await self.archive_repo.get_by_source(source_id)
        if existing is not None:
            return existing

        snapshot = await self.build_snapshot(agent_id)
        encoded = canonical_json(snapshot)

        archive = await self.archive_repo.create(
            agent_id=agent_id,
            source_id=source_id,
            archive_date=now,
            archive_type=archive_type,
            retention_until=add_years(now.date(), retention_years),
            data_snapshot=snapshot,
            data_checksum=hashlib.sha256(encoded).hexdigest(),
            storage_size_bytes=len(encoded),
            archived_by=archived_by,
        )
        await self.audit_service.record(
            action=AuditAction.DATA_ARCHIVE,
            resource_type=ResourceType.ARCHIVE,
            resource_id=archive.id,
            agent_id=agent_id,
            actor=archived_by,
            changes={
                "archive_type": archive_type,
                "source_id": source_id,
                "retention_until": archive.retention_until,
                "checksum": archive.data_checksum,
            },
        )
        logger.info(
            "Archived agent %s (%d bytes, retained until %s)",
            agent_id,
            archive.storage_size_bytes,
            archive.retention_until,
        )
        return archive

    @staticmethod
    def verify(archive: DataArchiveORM) -> bool:
        """Check the stored snapshot still matches its checksum."""
        digest = hashlib.sha256(canonical_json(archive.data_snapshot)).hexdigest()
        return digest == archive.data_checksum
