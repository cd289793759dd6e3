"""Agent data archive repository."""

from uuid import UUID

from sqlalchemy import select

from agent_lifecycle.models.orm.data_archive import DataArchiveORM
from agent_lifecycle.repositories.base import BaseRepository


class ArchiveRepository(BaseRepository[DataArchiveORM]):
    """Repository for immutable agent data archives."""

    model = DataArchiveORM

    async def get_by_source(self, source_id: UUID) -> DataArchiveORM | None:
        """Get the archive taken for a given termination (or other source)."""
        result = await self.session.execute(
            select(DataArchiveORM).where(DataArchiveORM.source_id == source_id)
        )
        return result.scalar_one_or_none()

    async def get_by_agent(self, agent_id: UUID) -> list[DataArchiveORM]:
        """Get all archives for an agent, newest first."""
        result = await self.session.execute(
            select(DataArchiveORM)
            .where(DataArchiveORM.agent_id == agent_id)
            .order_by(DataArchiveORM.archive_date.desc())
        )
        return list(result.scalars().all())
