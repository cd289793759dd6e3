"""License DTOs."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from agent_lifecycle.models.domain.license import (
    ExpiryStatus,
    LicenseStatus,
    LicenseType,
    ResidentStatus,
)


class LicenseCreate(BaseModel):
    """Request to issue a license to an agent."""

    license_line: str = Field(min_length=1, max_length=50)
    license_type: LicenseType = LicenseType.PROVISIONAL
    license_number: str = Field(min_length=1, max_length=100)
    resident_status: ResidentStatus = ResidentStatus.RESIDENT
    license_date: date
    authority_date: date | None = None
    is_primary: bool = False
    exam_passed: bool = False
    exam_date: date | None = None
    certificate_number: str | None = Field(default=None, max_length=100)
    metadata: dict[str, Any] | None = None


class LicenseRenewRequest(BaseModel):
    """Request to renew a license.

    expected_version guards against renewing a row that changed since it was read.
    """

    expected_version: int | None = None
    reason: str | None = Field(default=None, max_length=500)


class LicenseConvertRequest(BaseModel):
    """Request to convert a provisional license after the exam."""

    exam_date: date
    certificate_number: str = Field(min_length=1, max_length=100)
    exam_passed: bool = True
    expected_version: int | None = None


class LicenseResponse(BaseModel):
    """License response DTO."""

    id: UUID
    agent_id: UUID
    license_line: str
    license_type: LicenseType
    license_number: str
    resident_status: ResidentStatus
    license_date: date
    renewal_date: date
    authority_date: date | None = None
    renewal_count: int
    status: LicenseStatus
    is_primary: bool
    exam_passed: bool
    exam_date: date | None = None
    certificate_number: str | None = None
    metadata: dict[str, Any] | None = None
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # Derived expiry view
    days_until_expiry: int
    expiry_status: ExpiryStatus
    can_renew: bool
    renewal_denied_reason: str | None = None


class LicenseListResponse(BaseModel):
    """License list response."""

    items: list[LicenseResponse]
    total: int


class RenewalHistoryEntry(BaseModel):
    """One renewal or conversion reconstructed from the audit log."""

    action: str
    previous_renewal_date: date | None = None
    new_renewal_date: date | None = None
    previous_renewal_count: int | None = None
    new_renewal_count: int | None = None
    actor: str | None = None
    reason: str | None = None
    occurred_at: datetime


class RenewalHistoryResponse(BaseModel):
    """Renewal history for one license."""

    license_id: UUID
    entries: list[RenewalHistoryEntry]


class ExpiringSummary(BaseModel):
    """Counts of expiring licenses by look-ahead window."""

    within_7_days: int = 0
    within_15_days: int = 0
    within_30_days: int = 0


class ExpiringLicensesResponse(BaseModel):
    """Licenses with a renewal date inside the look-ahead window."""

    as_of: date
    days: int
    total: int
    summary: ExpiringSummary
    items: list[LicenseResponse]


class ReminderSlot(BaseModel):
    """One computed reminder date."""

    offset_days: int
    reminder_type: str
    reminder_date: date


class ReminderLogEntry(BaseModel):
    """Delivery record of one reminder."""

    id: UUID
    reminder_type: str
    reminder_date: date
    renewal_date: date
    sent_status: str
    sent_date: datetime | None = None
    email_sent: bool
    sms_sent: bool
    failure_reason: str | None = None
    retry_count: int

    class Config:
        """Pydantic config."""

        from_attributes = True


class ReminderScheduleResponse(BaseModel):
    """Reminder calendar for a license plus what has been sent so far."""

    license_id: UUID
    renewal_date: date
    schedule: list[ReminderSlot]
    log: list[ReminderLogEntry]
