"""Tests for the license store: issuance, transitions, concurrency and audit."""

from datetime import date

import pytest

from agent_lifecycle.exceptions import (
    AgentNotFoundError,
    LicenseNotFoundError,
    LicenseNumberExistsError,
    LicenseVersionConflictError,
    RuleDeniedError,
)
from agent_lifecycle.models.domain.license import LicenseStatus, LicenseType
from agent_lifecycle.models.dto.license import LicenseCreate
from agent_lifecycle.services import license_rules
from agent_lifecycle.services.audit_service import AuditAction, AuditService
from agent_lifecycle.services.license_service import LicenseService


def license_create(**overrides) -> LicenseCreate:
    values = {
        "license_line": "LIFE",
        "license_number": "LIC-1001",
        "license_date": date(2023, 1, 1),
    }
    values.update(overrides)
    return LicenseCreate(**values)


class TestCreateLicense:
    """Tests for license issuance."""

    async def test_create_computes_renewal_date_and_audits(self, session, make_agent) -> None:
        agent_id = await make_agent()
        service = LicenseService(session)

        license = await service.create_license(agent_id, license_create(), created_by="ops")

        assert license.renewal_date == date(2024, 1, 1)
        assert license.status == LicenseStatus.ACTIVE
        assert license.version == 1
        assert await AuditService(session).audit_repo.count_by_action(
            AuditAction.LICENSE_CREATE, resource_id=license.id
        ) == 1

    async def test_permanent_with_exam_runs_five_years(self, session, make_agent) -> None:
        agent_id = await make_agent()
        license = await LicenseService(session).create_license(
            agent_id,
            license_create(
                license_type=LicenseType.PERMANENT,
                exam_passed=True,
                exam_date=date(2022, 12, 1),
                certificate_number="CERT-1",
            ),
            created_by="ops",
        )

        assert license.renewal_date == date(2028, 1, 1)

    async def test_unknown_agent(self, session) -> None:
        from uuid import uuid4

        with pytest.raises(AgentNotFoundError):
            await LicenseService(session).create_license(uuid4(), license_create(), "ops")

    async def test_duplicate_number(self, session, make_agent) -> None:
        agent_id = await make_agent()
        service = LicenseService(session)
        await service.create_license(agent_id, license_create(), "ops")

        with pytest.raises(LicenseNumberExistsError):
            await service.create_license(agent_id, license_create(), "ops")

    async def test_new_primary_clears_previous_primary(self, session, make_agent) -> None:
        """At most one primary license per agent; the displaced one is audited."""
        agent_id = await make_agent()
        service = LicenseService(session)
        first = await service.create_license(
            agent_id, license_create(license_number="LIC-A", is_primary=True), "ops"
        )
        second = await service.create_license(
            agent_id, license_create(license_number="LIC-B", is_primary=True), "ops"
        )

        licenses = {lic.id: lic for lic in await service.list_by_agent(agent_id)}
        assert licenses[second.id].is_primary
        assert not licenses[first.id].is_primary
        assert licenses[first.id].version == 2
        assert await AuditService(session).audit_repo.count_by_action(
            AuditAction.LICENSE_PRIMARY_CLEARED, resource_id=first.id
        ) == 1


class TestRenewLicense:
    """Tests for renewals through the store."""

    async def test_renew_bumps_version_and_audits(self, session, make_agent) -> None:
        agent_id = await make_agent()
        service = LicenseService(session)
        created = await service.create_license(agent_id, license_create(), "ops")

        renewed = await service.renew_license(created.id, actor="ops", today=date(2024, 1, 1))

        assert renewed.renewal_date == date(2025, 1, 1)
        assert renewed.renewal_count == 1
        assert renewed.status == LicenseStatus.RENEWED
        assert renewed.version == 2

        entries = await AuditService(session).audit_repo.get_by_resource(
            "license", created.id, actions=[AuditAction.LICENSE_RENEW]
        )
        assert len(entries) == 1
        assert entries[0].actor == "ops"
        assert entries[0].changes["before"]["renewal_date"] == "2024-01-01"
        assert entries[0].changes["after"]["renewal_date"] == "2025-01-01"
        assert entries[0].changes["after"]["version"] == 2

    async def test_denied_renewal_raises_with_reason(self, session, make_agent, make_license) -> None:
        agent_id = await make_agent()
        license_id = await make_license(agent_id, renewal_count=2)

        with pytest.raises(RuleDeniedError) as exc_info:
            await LicenseService(session).renew_license(license_id, "ops", today=date(2024, 1, 1))

        assert exc_info.value.reason == "MAX_PROVISIONAL_RENEWALS"

    async def test_stale_expected_version_conflicts(self, session, make_agent) -> None:
        agent_id = await make_agent()
        service = LicenseService(session)
        created = await service.create_license(agent_id, license_create(), "ops")
        await service.renew_license(created.id, "ops", today=date(2024, 1, 1))

        with pytest.raises(LicenseVersionConflictError):
            await service.renew_license(
                created.id, "ops", today=date(2024, 1, 2), expected_version=1
            )

    async def test_decision_computed_on_old_version_conflicts(
        self, session, session_factory, make_agent
    ) -> None:
        """Two renewals computed against the same version: only one applies."""
        agent_id = await make_agent()
        service = LicenseService(session)
        created = await service.create_license(agent_id, license_create(), "ops")

        first = license_rules.renew(created, date(2024, 1, 1))
        second = license_rules.renew(created, date(2024, 1, 1))
        await service.apply_transition(first, actor="ops")

        async with session_factory() as other:
            with pytest.raises(LicenseVersionConflictError):
                await LicenseService(other).apply_transition(second, actor="ops")
            await other.rollback()

        current = await service.get_license(created.id)
        assert current.renewal_count == 1
        assert await AuditService(session).audit_repo.count_by_action(
            AuditAction.LICENSE_RENEW, resource_id=created.id
        ) == 1

    async def test_renewal_cancels_stale_reminders(self, session, make_agent, make_license) -> None:
        from agent_lifecycle.repositories.reminder_repository import ReminderRepository

        agent_id = await make_agent()
        license_id = await make_license(agent_id, renewal_date=date(2024, 1, 1))
        reminder_repo = ReminderRepository(session)
        reminder = await reminder_repo.create(
            license_id=license_id,
            reminder_type="7_DAYS",
            reminder_date=date(2023, 12, 25),
            renewal_date=date(2024, 1, 1),
            sent_status="FAILED",
            retry_count=1,
        )
        await session.commit()

        await LicenseService(session).renew_license(license_id, "ops", today=date(2023, 12, 28))

        refreshed = await reminder_repo.get(reminder.id)
        assert refreshed.sent_status == "CANCELLED"


class TestConvertLicense:
    """Tests for conversion through the store."""

    async def test_convert_audited_and_in_history(self, session, make_agent, make_license) -> None:
        agent_id = await make_agent()
        license_id = await make_license(agent_id, renewal_count=1, renewal_date=date(2025, 1, 1))
        service = LicenseService(session)

        converted = await service.convert_to_permanent(
            license_id, exam_date=date(2024, 6, 1), certificate_number="CERT-77", actor="ops"
        )

        assert converted.license_type == LicenseType.PERMANENT
        assert converted.renewal_date == date(2029, 6, 1)
        history = await service.get_renewal_history(license_id)
        assert [entry.action for entry in history.entries] == [AuditAction.LICENSE_CONVERT]
        assert history.entries[0].new_renewal_date == date(2029, 6, 1)


class TestDeleteLicense:
    """Tests for soft deletion."""

    async def test_soft_deleted_license_is_hidden(self, session, make_agent) -> None:
        agent_id = await make_agent()
        service = LicenseService(session)
        created = await service.create_license(
            agent_id, license_create(is_primary=True), "ops"
        )

        await service.delete_license(created.id, actor="ops", reason="Issued in error")

        with pytest.raises(LicenseNotFoundError):
            await service.get_license(created.id)
        assert await service.list_by_agent(agent_id) == []
        assert await AuditService(session).audit_repo.count_by_action(
            AuditAction.LICENSE_DELETE, resource_id=created.id
        ) == 1

    async def test_delete_with_stale_version(self, session, make_agent) -> None:
        agent_id = await make_agent()
        service = LicenseService(session)
        created = await service.create_license(agent_id, license_create(), "ops")
        await service.renew_license(created.id, "ops", today=date(2024, 1, 1))

        with pytest.raises(LicenseVersionConflictError):
            await service.delete_license(created.id, "ops", expected_version=1)


class TestRenewalHistory:
    """Tests for reconstructing renewals from the audit log."""

    async def test_history_lists_each_renewal_in_order(self, session, make_agent) -> None:
        agent_id = await make_agent()
        service = LicenseService(session)
        created = await service.create_license(agent_id, license_create(), "ops")
        await service.renew_license(created.id, "ops", today=date(2024, 1, 1))
        await service.renew_license(created.id, "ops", today=date(2025, 1, 1))

        history = await service.get_renewal_history(created.id)

        assert [entry.new_renewal_count for entry in history.entries] == [1, 2]
        assert history.entries[0].previous_renewal_date == date(2024, 1, 1)
        assert history.entries[1].new_renewal_date == date(2026, 1, 1)


class TestExpiringLicenses:
    """Tests for the expiring-licenses report."""

    async def test_window_and_summary(self, session, make_agent, make_license) -> None:
        agent_id = await make_agent()
        today = date(2024, 6, 1)
        await make_license(agent_id, renewal_date=date(2024, 6, 5))
        await make_license(agent_id, renewal_date=date(2024, 6, 20))
        await make_license(agent_id, renewal_date=date(2024, 7, 1), status="RENEWED")
        await make_license(agent_id, renewal_date=date(2024, 9, 1))
        await make_license(agent_id, renewal_date=date(2024, 6, 10), status="EXPIRED")

        report = await LicenseService(session).get_expiring_licenses(days=15, today=today)

        assert report.total == 1
        assert report.items[0].renewal_date == date(2024, 6, 5)
        assert report.items[0].expiry_status == "EXPIRING_SOON"
        assert report.summary.within_7_days == 1
        assert report.summary.within_15_days == 1
        assert report.summary.within_30_days == 3


class TestReminderSchedule:
    """Tests for the per-license reminder calendar."""

    async def test_schedule_tracks_renewal_date(self, session, make_agent, make_license) -> None:
        agent_id = await make_agent()
        license_id = await make_license(agent_id, renewal_date=date(2024, 3, 31))

        view = await LicenseService(session).get_reminder_schedule(license_id)

        assert [slot.reminder_date for slot in view.schedule] == [
            date(2024, 3, 1),
            date(2024, 3, 16),
            date(2024, 3, 24),
            date(2024, 3, 31),
        ]
        assert [slot.reminder_type for slot in view.schedule] == [
            "30_DAYS",
            "15_DAYS",
            "7_DAYS",
            "EXPIRY_DAY",
        ]
        assert view.log == []
