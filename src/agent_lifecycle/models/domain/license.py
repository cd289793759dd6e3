"""License domain model."""

from datetime import date, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class LicenseStatus(StrEnum):
    """License status enum."""

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    RENEWED = "RENEWED"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"


class LicenseType(StrEnum):
    """License maturity level."""

    PROVISIONAL = "PROVISIONAL"
    PERMANENT = "PERMANENT"


class ResidentStatus(StrEnum):
    """Residency of the license holder."""

    RESIDENT = "RESIDENT"
    NON_RESIDENT = "NON_RESIDENT"


class ExpiryStatus(StrEnum):
    """Derived expiry bucket for display."""

    VALID = "VALID"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"


# Statuses that keep a license in force until its renewal date passes
IN_FORCE_STATUSES = frozenset({LicenseStatus.ACTIVE, LicenseStatus.RENEWED})


class License(BaseModel):
    """License domain model."""

    id: UUID
    agent_id: UUID
    license_line: str
    license_type: LicenseType
    license_number: str
    resident_status: ResidentStatus = ResidentStatus.RESIDENT
    license_date: date
    renewal_date: date
    authority_date: date | None = None
    renewal_count: int = 0
    status: LicenseStatus
    is_primary: bool = False
    exam_passed: bool = False
    exam_date: date | None = None
    certificate_number: str | None = None
    extra_data: dict[str, Any] | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True
        frozen = True
