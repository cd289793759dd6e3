"""Tests for the expiry sweep and batch deactivation."""

from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from agent_lifecycle.models.domain.process import ScanPhase
from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.audit_repository import AuditRepository
from agent_lifecycle.repositories.license_repository import LicenseRepository
from agent_lifecycle.services.audit_service import AuditAction
from agent_lifecycle.services.expiry_scan_service import ExpiryScanService, chunked

TODAY = date(2024, 6, 1)


async def status_of(session, license_id) -> str:
    return (await LicenseRepository(session).get(license_id)).status


async def agent_status_of(session, agent_id) -> str:
    return (await AgentRepository(session).get(agent_id)).status


class TestChunked:
    """Tests for chunk splitting."""

    def test_chunk_sizes(self) -> None:
        assert [len(c) for c in chunked(list(range(7)), 3)] == [3, 3, 1]
        assert chunked([], 3) == []


class TestScan:
    """Tests for candidate selection."""

    async def test_only_active_past_renewal_date(self, session, make_agent, make_license) -> None:
        agent_id = await make_agent()
        lapsed = await make_license(agent_id, renewal_date=date(2024, 5, 31))
        await make_license(agent_id, renewal_date=TODAY)
        await make_license(agent_id, renewal_date=date(2024, 1, 1), status="RENEWED")
        await make_license(agent_id, renewal_date=date(2024, 1, 1), status="SUSPENDED")
        await make_license(agent_id, renewal_date=date(2024, 1, 1), status="EXPIRED")

        candidates = await ExpiryScanService(session).scan(TODAY)

        assert [lic.id for lic in candidates] == [lapsed]


class TestRun:
    """Tests for a full sweep."""

    async def test_expires_and_logs_once(self, session, make_agent, make_license) -> None:
        agent_id = await make_agent()
        ids = [
            await make_license(agent_id, renewal_date=date(2024, 5, day)) for day in (1, 2, 3)
        ]

        batch_log = await ExpiryScanService(session, batch_size=2).run(
            today=TODAY, triggered_by="test"
        )

        assert batch_log.phase == ScanPhase.DONE
        assert batch_log.total_found == 3
        assert batch_log.succeeded == 3
        assert batch_log.failed == 0
        assert batch_log.chunks_processed == 2
        assert sorted(batch_log.affected_license_ids) == sorted(str(i) for i in ids)
        for license_id in ids:
            assert await status_of(session, license_id) == "EXPIRED"
        assert await AuditRepository(session).count_by_action(AuditAction.LICENSE_EXPIRE) == 3

    async def test_second_run_is_a_no_op(self, session, make_agent, make_license) -> None:
        agent_id = await make_agent()
        await make_license(agent_id, renewal_date=date(2024, 5, 1))
        service = ExpiryScanService(session)

        await service.run(today=TODAY)
        second = await service.run(today=TODAY)

        assert second.total_found == 0
        assert second.succeeded == 0
        assert await AuditRepository(session).count_by_action(AuditAction.LICENSE_EXPIRE) == 1
        assert len(await service.get_recent_runs()) == 2

    async def test_dry_run_changes_nothing(
        self, session, make_agent, make_license, monkeypatch
    ) -> None:
        agent_id = await make_agent()
        license_id = await make_license(agent_id, renewal_date=date(2024, 5, 1))
        writes: list[str] = []

        async def record_write(*args, **kwargs):
            writes.append("write")
            return []

        monkeypatch.setattr(LicenseRepository, "bulk_mark_expired", record_write)
        monkeypatch.setattr(LicenseRepository, "mark_expired", record_write)
        monkeypatch.setattr(AgentRepository, "mark_deactivated", record_write)

        batch_log = await ExpiryScanService(session).run(today=TODAY, dry_run=True)

        assert writes == []
        assert batch_log.dry_run is True
        assert batch_log.phase == ScanPhase.DRY_RUN_DONE
        assert batch_log.total_found == 1
        assert batch_log.succeeded == 0
        assert batch_log.affected_license_ids == [str(license_id)]
        assert await status_of(session, license_id) == "ACTIVE"
        assert await agent_status_of(session, agent_id) == "ACTIVE"
        assert await AuditRepository(session).count_by_action(AuditAction.LICENSE_EXPIRE) == 0

    async def test_failed_chunk_retried_per_license(
        self, session, make_agent, make_license, monkeypatch
    ) -> None:
        """One bad row fails only itself; the rest of its chunk still commits."""
        agent_id = await make_agent()
        good = await make_license(agent_id, renewal_date=date(2024, 5, 1))
        bad = await make_license(agent_id, renewal_date=date(2024, 5, 2))
        original_mark_expired = LicenseRepository.mark_expired

        async def failing_bulk(self, license_ids, updated_by):
            raise SQLAlchemyError("deadlock detected")

        async def flaky_mark_expired(self, license_id, updated_by):
            if license_id == bad:
                raise SQLAlchemyError("row is locked")
            return await original_mark_expired(self, license_id, updated_by=updated_by)

        monkeypatch.setattr(LicenseRepository, "bulk_mark_expired", failing_bulk)
        monkeypatch.setattr(LicenseRepository, "mark_expired", flaky_mark_expired)

        batch_log = await ExpiryScanService(session).run(today=TODAY)

        assert batch_log.phase == ScanPhase.DONE
        assert batch_log.succeeded == 1
        assert batch_log.failed == 1
        assert batch_log.failed_ids == [str(bad)]
        assert batch_log.failed_agent_ids == [str(agent_id)]
        assert await status_of(session, good) == "EXPIRED"
        assert await status_of(session, bad) == "ACTIVE"


class TestDeactivation:
    """Tests for deactivating agents left without a license in force."""

    async def test_agent_with_no_license_in_force_deactivated(
        self, session, make_agent, make_license
    ) -> None:
        agent_id = await make_agent()
        await make_license(agent_id, renewal_date=date(2024, 5, 1))
        await make_license(agent_id, renewal_date=date(2024, 1, 1), status="EXPIRED")

        batch_log = await ExpiryScanService(session).run(today=TODAY)

        assert batch_log.deactivated_agent_ids == [str(agent_id)]
        assert await agent_status_of(session, agent_id) == "DEACTIVATED"
        assert await AuditRepository(session).count_by_action(AuditAction.AGENT_DEACTIVATE) == 1

    async def test_agent_with_valid_license_stays_active(
        self, session, make_agent, make_license
    ) -> None:
        agent_id = await make_agent()
        await make_license(agent_id, renewal_date=date(2024, 5, 1))
        await make_license(agent_id, renewal_date=date(2024, 12, 1))

        batch_log = await ExpiryScanService(session).run(today=TODAY)

        assert batch_log.succeeded == 1
        assert batch_log.deactivated_agent_ids == []
        assert await agent_status_of(session, agent_id) == "ACTIVE"

    async def test_renewed_license_keeps_agent_active(
        self, session, make_agent, make_license
    ) -> None:
        agent_id = await make_agent()
        await make_license(agent_id, renewal_date=date(2024, 5, 1))
        await make_license(agent_id, renewal_date=date(2024, 2, 1), status="RENEWED")

        await ExpiryScanService(session).run(today=TODAY)

        assert await agent_status_of(session, agent_id) == "ACTIVE"

    async def test_terminated_agent_not_deactivated(
        self, session, make_agent, make_license
    ) -> None:
        agent_id = await make_agent(status="TERMINATED", commission_enabled=False)
        license_id = await make_license(agent_id, renewal_date=date(2024, 5, 1))

        batch_log = await ExpiryScanService(session).run(today=TODAY)

        assert await status_of(session, license_id) == "EXPIRED"
        assert batch_log.deactivated_agent_ids == []
        assert await agent_status_of(session, agent_id) == "TERMINATED"
