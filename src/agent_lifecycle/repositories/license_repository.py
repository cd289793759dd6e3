"""Agent license repository."""

from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update

from agent_lifecycle.models.domain.agent import AgentStatus
from agent_lifecycle.models.domain.license import IN_FORCE_STATUSES, LicenseStatus
from agent_lifecycle.models.orm.agent import AgentProfileORM
from agent_lifecycle.models.orm.base import utcnow
from agent_lifecycle.models.orm.license import LicenseORM
from agent_lifecycle.repositories.base import BaseRepository


class LicenseRepository(BaseRepository[LicenseORM]):
    """Repository for agent license operations.

    Every mutation is a conditional UPDATE so concurrent writers are detected
    through the version counter or the expected status rather than locks.
    """

    model = LicenseORM

    def _not_deleted(self):
        return LicenseORM.deleted_at.is_(None)

    async def get_active(self, license_id: UUID) -> LicenseORM | None:
        """Get a license that has not been soft-deleted.

        Args:
            license_id: License UUID

        Returns:
            LicenseORM or None
        """
        result = await self.session.execute(
            select(LicenseORM)
            .where(LicenseORM.id == license_id, self._not_deleted())
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_agent(self, agent_id: UUID) -> list[LicenseORM]:
        """Get all live licenses for an agent, primary first.

        Args:
            agent_id: Agent UUID

        Returns:
            List of licenses
        """
        result = await self.session.execute(
            select(LicenseORM)
            .where(LicenseORM.agent_id == agent_id, self._not_deleted())
            .order_by(LicenseORM.is_primary.desc(), LicenseORM.renewal_date.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_by_number(self, license_number: str) -> LicenseORM | None:
        """Get a license by its number, including soft-deleted ones."""
        result = await self.session.execute(
            select(LicenseORM).where(LicenseORM.license_number == license_number)
        )
        return result.scalar_one_or_none()

    async def apply_changes(
        self,
        license_id: UUID,
        expected_version: int,
        changes: dict[str, Any],
        updated_by: str | None,
    ) -> bool:
        """Apply field changes if the row is still at the expected version.

        Args:
            license_id: License UUID
            expected_version: Version the changes were computed against
            changes: Column values to set
            updated_by: Actor recorded on the row

        Returns:
            True if the row was updated, False on a version mismatch
        """
        result = await self.session.execute(
            update(LicenseORM)
            .where(
                LicenseORM.id == license_id,
                LicenseORM.version == expected_version,
                self._not_deleted(),
            )
            .values(**changes, updated_by=updated_by, version=LicenseORM.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def soft_delete(self, license_id: UUID, expected_version: int, deleted_by: str) -> bool:
        """Soft-delete a license if it is still at the expected version."""
        return await self.apply_changes(
            license_id,
            expected_version,
            {"deleted_at": utcnow(), "is_primary": False},
            updated_by=deleted_by,
        )

    async def clear_primary(self, agent_id: UUID, updated_by: str | None) -> list[UUID]:
        """Unset the primary flag on all of an agent's licenses.

        Returns:
            IDs of licenses that were primary
        """
        result = await self.session.execute(
            select(LicenseORM.id).where(
                LicenseORM.agent_id == agent_id,
                LicenseORM.is_primary.is_(True),
                self._not_deleted(),
            )
        )
        ids = list(result.scalars().all())
        if ids:
            await self.session.execute(
                update(LicenseORM)
                .where(LicenseORM.id.in_(ids))
                .values(is_primary=False, updated_by=updated_by, version=LicenseORM.version + 1)
                .execution_options(synchronize_session=False)
            )
        return ids

    async def find_expired_candidates(self, today: date) -> list[LicenseORM]:
        """Find ACTIVE licenses whose renewal date has passed.

        Args:
            today: Reference date

        Returns:
            Licenses ordered by renewal date
        """
        result = await self.session.execute(
            select(LicenseORM)
            .where(
                LicenseORM.status == LicenseStatus.ACTIVE,
                LicenseORM.renewal_date < today,
                self._not_deleted(),
            )
            .order_by(LicenseORM.renewal_date.asc(), LicenseORM.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def bulk_mark_expired(self, license_ids: list[UUID], updated_by: str) -> list[UUID]:
        """Mark a set of licenses EXPIRED in one statement.

        Only rows still ACTIVE are touched, so re-running is harmless.

        Args:
            license_ids: Licenses to expire
            updated_by: Actor recorded on the rows

        Returns:
            IDs of the licenses actually moved to EXPIRED
        """
        if not license_ids:
            return []
        result = await self.session.execute(
            select(LicenseORM.id).where(
                LicenseORM.id.in_(license_ids),
                LicenseORM.status == LicenseStatus.ACTIVE,
                self._not_deleted(),
            )
        )
        still_active = list(result.scalars().all())
        if not still_active:
            return []
        await self.session.execute(
            update(LicenseORM)
            .where(LicenseORM.id.in_(still_active), LicenseORM.status == LicenseStatus.ACTIVE)
            .values(
                status=LicenseStatus.EXPIRED,
                updated_by=updated_by,
                version=LicenseORM.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return still_active

    async def mark_expired(self, license_id: UUID, updated_by: str) -> bool:
        """Mark one license EXPIRED if it is still ACTIVE.

        Returns:
            True if the license was moved to EXPIRED
        """
        result = await self.session.execute(
            update(LicenseORM)
            .where(
                LicenseORM.id == license_id,
                LicenseORM.status == LicenseStatus.ACTIVE,
                self._not_deleted(),
            )
            .values(
                status=LicenseStatus.EXPIRED,
                updated_by=updated_by,
                version=LicenseORM.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_in_force(self, agent_id: UUID, today: date) -> int:
        """Count an agent's licenses that still authorise selling.

        RENEWED licenses count regardless of date; ACTIVE ones only until
        their renewal date passes.
        """
        result = await self.session.execute(
            select(func.count())
            .select_from(LicenseORM)
            .where(
                LicenseORM.agent_id == agent_id,
                self._not_deleted(),
                or_(
                    LicenseORM.status == LicenseStatus.RENEWED,
                    and_(
                        LicenseORM.status == LicenseStatus.ACTIVE,
                        LicenseORM.renewal_date >= today,
                    ),
                ),
            )
        )
        return result.scalar_one()

    async def find_expiring(self, today: date, days: int) -> list[LicenseORM]:
        """Find in-force licenses with a renewal date in the next N days.

        Args:
            today: Reference date
            days: Look-ahead window

        Returns:
            Licenses ordered by renewal date
        """
        result = await self.session.execute(
            select(LicenseORM)
            .where(
                LicenseORM.status.in_(list(IN_FORCE_STATUSES)),
                LicenseORM.renewal_date >= today,
                LicenseORM.renewal_date <= today + timedelta(days=days),
                self._not_deleted(),
            )
            .order_by(LicenseORM.renewal_date.asc())
        )
        return list(result.scalars().all())

    async def find_by_renewal_dates(self, renewal_dates: list[date]) -> list[LicenseORM]:
        """Find in-force licenses of ACTIVE agents renewing on one of the given dates."""
        if not renewal_dates:
            return []
        result = await self.session.execute(
            select(LicenseORM)
            .join(AgentProfileORM, AgentProfileORM.id == LicenseORM.agent_id)
            .where(
                LicenseORM.status.in_(list(IN_FORCE_STATUSES)),
                LicenseORM.renewal_date.in_(renewal_dates),
                self._not_deleted(),
                AgentProfileORM.status == AgentStatus.ACTIVE,
                AgentProfileORM.deleted_at.is_(None),
            )
            .order_by(LicenseORM.renewal_date.asc())
        )
        return list(result.scalars().all())
