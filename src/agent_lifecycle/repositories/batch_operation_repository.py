"""Batch operation log repository."""

from sqlalchemy import select

from agent_lifecycle.models.orm.batch_operation import BatchOperationLogORM
from agent_lifecycle.repositories.base import BaseRepository


class BatchOperationRepository(BaseRepository[BatchOperationLogORM]):
    """Repository for the append-only batch operation log."""

    model = BatchOperationLogORM

    async def get_recent(self, operation_type: str, limit: int = 20) -> list[BatchOperationLogORM]:
        """Get the most recent runs of an operation type.

        Args:
            operation_type: Operation type to filter on
            limit: Maximum results

        Returns:
            Batch logs, newest first
        """
        result = await self.session.execute(
            select(BatchOperationLogORM)
            .where(BatchOperationLogORM.operation_type == operation_type)
            .order_by(BatchOperationLogORM.started_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
