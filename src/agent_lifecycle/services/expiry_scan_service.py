"""Expiry sweep and batch deactivation.

Architecture Note:
    One run moves through SCANNING -> BATCHING -> DRY_RUN_DONE, or through
    SCANNING -> BATCHING -> COMMITTING -> DONE. Candidates are processed in
    chunks; each chunk is one bulk update plus one audit row per license and
    commits before the next chunk starts. If a chunk fails it is rolled back
    and retried license by license, so one bad row only fails itself. A
    batch operation log is written exactly once per run.

    Candidates are converted to immutable domain models up front because a
    rollback expires every ORM instance in the session.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.models.domain.agent import SYSTEM_ACTOR
from agent_lifecycle.models.domain.license import License, LicenseStatus
from agent_lifecycle.models.domain.process import BatchOperationType, ScanPhase
from agent_lifecycle.models.orm.base import utcnow
from agent_lifecycle.models.orm.batch_operation import BatchOperationLogORM
from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.batch_operation_repository import BatchOperationRepository
from agent_lifecycle.repositories.license_repository import LicenseRepository
from agent_lifecycle.services import license_rules
from agent_lifecycle.services.audit_service import AuditAction, AuditService, ResourceType

logger = logging.getLogger(__name__)

DEACTIVATION_REASON = "All licenses expired"


@dataclass
class _RunState:
    """Mutable tally for one sweep."""

    phase: ScanPhase = ScanPhase.SCANNING
    expired_ids: list[UUID] = field(default_factory=list)
    affected_agent_ids: dict[UUID, None] = field(default_factory=dict)
    deactivated_agent_ids: list[UUID] = field(default_factory=list)
    failed_ids: list[UUID] = field(default_factory=list)
    failed_agent_ids: dict[UUID, None] = field(default_factory=dict)
    chunks_processed: int = 0


def chunked(items: list[License], size: int) -> list[list[License]]:
    """Split items into consecutive chunks of at most ``size``."""
    return [items[i : i + size] for i in range(0, len(items), size)]


class ExpiryScanService:
    """Service running the nightly license expiry sweep."""

    def __init__(
        self,
        session: AsyncSession,
        batch_size: int = 100,
        actor: str = SYSTEM_ACTOR,
    ) -> None:
        """Initialize service.

        Args:
            session: Database session
            batch_size: Licenses per chunk
            actor: Actor recorded on rows and audit entries
        """
        self.session = session
        self.batch_size = batch_size
        self.actor = actor
        self.license_repo = LicenseRepository(session)
        self.agent_repo = AgentRepository(session)
        self.batch_repo = BatchOperationRepository(session)
        self.audit_service = AuditService(session)

    async def scan(self, today: date) -> list[License]:
        """Find ACTIVE licenses that have expired as of ``today``.

        Args:
            today: Reference date

        Returns:
            Expired licenses, oldest renewal date first
        """
        rows = await self.license_repo.find_expired_candidates(today)
        licenses = [License.model_validate(row) for row in rows]
        return [
            lic
            for lic in licenses
            if lic.status == LicenseStatus.ACTIVE and license_rules.is_expired(lic, today)
        ]

    async def run(
        self,
        today: date | None = None,
        dry_run: bool = False,
        triggered_by: str = "scheduler",
        batch_size: int | None = None,
    ) -> BatchOperationLogORM:
        """Run one sweep.

        Args:
            today: Reference date (defaults to the current date)
            dry_run: Report the affected set without changing anything
            triggered_by: Who started the run (scheduler, manual, cli)
            batch_size: Override for the configured chunk size

        Returns:
            The batch operation log written for this run
        """
        today = today or date.today()
        size = batch_size or self.batch_size
        started_at = utcnow()
        state = _RunState()

        logger.info("Expiry sweep started as of %s (dry_run=%s)", today, dry_run)
        candidates = await self.scan(today)

        state.phase = ScanPhase.BATCHING
        chunks = chunked(candidates, size)
        logger.info("Expiry sweep found %d licenses in %d chunks", len(candidates), len(chunks))

        if dry_run:
            state.expired_ids = [lic.id for lic in candidates]
            for lic in candidates:
                state.affected_agent_ids[lic.agent_id] = None
            state.chunks_processed = len(chunks)
            state.phase = ScanPhase.DRY_RUN_DONE
            return await self._write_log(state, candidates, size, dry_run, triggered_by, started_at)

        state.phase = ScanPhase.COMMITTING
        for index, chunk in enumerate(chunks, start=1):
            try:
                await self._commit_chunk(chunk, today, state)
            except Exception as e:
                await self.session.rollback()
                logger.warning(
                    "Expiry chunk %d/%d failed as a whole, retrying per license: %s",
                    index,
                    len(chunks),
                    e,
                )
                await self._commit_items(chunk, today, state)
            state.chunks_processed += 1

        state.phase = ScanPhase.DONE
        return await self._write_log(state, candidates, size, dry_run, triggered_by, started_at)

    async def _commit_chunk(self, chunk: list[License], today: date, state: _RunState) -> None:
        by_id = {lic.id: lic for lic in chunk}
        expired = await self.license_repo.bulk_mark_expired(list(by_id), updated_by=self.actor)

        await self.audit_service.audit_repo.log_many(
            [self._expiry_audit_entry(by_id[license_id]) for license_id in expired]
        )

        agents: dict[UUID, None] = {}
        for license_id in expired:
            agents[by_id[license_id].agent_id] = None

        deactivated = []
        for agent_id in agents:
            if await self._deactivate_if_unlicensed(agent_id, today):
                deactivated.append(agent_id)

        await self.session.commit()

        state.expired_ids.extend(expired)
        state.affected_agent_ids.update(agents)
        state.deactivated_agent_ids.extend(deactivated)

    async def _commit_items(self, chunk: list[License], today: date, state: _RunState) -> None:
        for lic in chunk:
            try:
                expired = await self.license_repo.mark_expired(lic.id, updated_by=self.actor)
                deactivated = False
                if expired:
                    await self.audit_service.audit_repo.log_many([self._expiry_audit_entry(lic)])
                    deactivated = await self._deactivate_if_unlicensed(lic.agent_id, today)
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                logger.error("Failed to expire license %s: %s", lic.id, e)
                state.failed_ids.append(lic.id)
                state.failed_agent_ids[lic.agent_id] = None
                continue

            if expired:
                state.expired_ids.append(lic.id)
                state.affected_agent_ids[lic.agent_id] = None
            if deactivated:
                state.deactivated_agent_ids.append(lic.agent_id)

    async def _deactivate_if_unlicensed(self, agent_id: UUID, today: date) -> bool:
        """Deactivate an ACTIVE agent once no license keeps them in force."""
        if await self.license_repo.count_in_force(agent_id, today) > 0:
            return False
        if not await self.agent_repo.mark_deactivated(agent_id, DEACTIVATION_REASON, utcnow()):
            return False
        await self.audit_service.record(
            action=AuditAction.AGENT_DEACTIVATE,
            resource_type=ResourceType.AGENT,
            resource_id=agent_id,
            agent_id=agent_id,
            actor=self.actor,
            reason=DEACTIVATION_REASON,
            changes=self.audit_service.change_set({"status": "ACTIVE"}, {"status": "DEACTIVATED"}),
        )
        return True

    def _expiry_audit_entry(self, lic: License) -> dict:
        return {
            "action": AuditAction.LICENSE_EXPIRE,
            "resource_type": ResourceType.LICENSE,
            "resource_id": lic.id,
            "agent_id": lic.agent_id,
            "actor": self.actor,
            "reason": "Renewal date passed",
            "changes": self.audit_service.change_set(
                {"status": lic.status, "version": lic.version, "renewal_date": lic.renewal_date},
                {"status": LicenseStatus.EXPIRED, "version": lic.version + 1},
            ),
        }

    async def _write_log(
        self,
        state: _RunState,
        candidates: list[License],
        size: int,
        dry_run: bool,
        triggered_by: str,
        started_at: datetime,
    ) -> BatchOperationLogORM:
        failed_agents = list(state.failed_agent_ids)
        batch_log = await self.batch_repo.create(
            operation_type=BatchOperationType.LICENSE_EXPIRY_DEACTIVATION,
            dry_run=dry_run,
            phase=state.phase,
            triggered_by=triggered_by,
            total_found=len(candidates),
            succeeded=0 if dry_run else len(state.expired_ids),
            failed=len(state.failed_ids),
            chunk_size=size,
            chunks_processed=state.chunks_processed,
            affected_license_ids=[str(i) for i in state.expired_ids],
            affected_agent_ids=[str(i) for i in state.affected_agent_ids],
            deactivated_agent_ids=[str(i) for i in state.deactivated_agent_ids],
            failed_ids=[str(i) for i in state.failed_ids],
            failed_agent_ids=[str(i) for i in failed_agents],
            started_at=started_at,
            finished_at=utcnow(),
        )
        await self.session.commit()

        logger.info(
            "Expiry sweep %s finished in phase %s: found=%d succeeded=%d failed=%d",
            batch_log.id,
            batch_log.phase,
            batch_log.total_found,
            batch_log.succeeded,
            batch_log.failed,
        )
        return batch_log

    async def get_batch_log(self, batch_id: UUID) -> BatchOperationLogORM | None:
        """Get one sweep's log."""
        return await self.batch_repo.get(batch_id)

    async def get_recent_runs(self, limit: int = 20) -> list[BatchOperationLogORM]:
        """Get the most recent sweep logs, newest first."""
        return await self.batch_repo.get_recent(
            BatchOperationType.LICENSE_EXPIRY_DEACTIVATION, limit=limit
        )
