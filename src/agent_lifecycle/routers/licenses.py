"""Licenses router."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from agent_lifecycle.config import get_settings
from agent_lifecycle.dependencies import get_actor, get_license_service
from agent_lifecycle.models.domain.license import License
from agent_lifecycle.models.dto.license import (
    ExpiringLicensesResponse,
    LicenseConvertRequest,
    LicenseCreate,
    LicenseListResponse,
    LicenseRenewRequest,
    LicenseResponse,
    ReminderScheduleResponse,
    RenewalHistoryResponse,
)
from agent_lifecycle.services.license_service import LicenseService, to_response

router = APIRouter()


def _view(license: License) -> LicenseResponse:
    return to_response(license, date.today(), get_settings().expiring_soon_days)


@router.post(
    "/agents/{agent_id}/licenses",
    response_model=LicenseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_license(
    agent_id: UUID,
    body: LicenseCreate,
    actor: Annotated[str, Depends(get_actor)],
    license_service: Annotated[LicenseService, Depends(get_license_service)],
) -> LicenseResponse:
    """Issue a license to an agent."""
    license = await license_service.create_license(agent_id, body, created_by=actor)
    return _view(license)


@router.get("/agents/{agent_id}/licenses", response_model=LicenseListResponse)
async def list_agent_licenses(
    agent_id: UUID,
    license_service: Annotated[LicenseService, Depends(get_license_service)],
) -> LicenseListResponse:
    """List an agent's licenses, primary first."""
    licenses = await license_service.list_by_agent(agent_id)
    items = [_view(lic) for lic in licenses]
    return LicenseListResponse(items=items, total=len(items))


@router.get("/licenses/expiring", response_model=ExpiringLicensesResponse)
async def get_expiring_licenses(
    license_service: Annotated[LicenseService, Depends(get_license_service)],
    days: int = Query(default=30, ge=1, le=365),
) -> ExpiringLicensesResponse:
    """In-force licenses whose renewal date falls within the next N days."""
    return await license_service.get_expiring_licenses(days=days)


@router.get("/licenses/{license_id}", response_model=LicenseResponse)
async def get_license(
    license_id: UUID,
    license_service: Annotated[LicenseService, Depends(get_license_service)],
) -> LicenseResponse:
    """Get a single license by ID."""
    return _view(await license_service.get_license(license_id))


@router.post("/licenses/{license_id}/renew", response_model=LicenseResponse)
async def renew_license(
    license_id: UUID,
    body: LicenseRenewRequest,
    actor: Annotated[str, Depends(get_actor)],
    license_service: Annotated[LicenseService, Depends(get_license_service)],
) -> LicenseResponse:
    """Renew a license for one more year.

    Denied renewals return 400 with the typed denial reason.
    """
    license = await license_service.renew_license(
        license_id,
        actor=actor,
        expected_version=body.expected_version,
        reason=body.reason,
    )
    return _view(license)


@router.post("/licenses/{license_id}/convert", response_model=LicenseResponse)
async def convert_license(
    license_id: UUID,
    body: LicenseConvertRequest,
    actor: Annotated[str, Depends(get_actor)],
    license_service: Annotated[LicenseService, Depends(get_license_service)],
) -> LicenseResponse:
    """Convert a provisional license to permanent after the exam."""
    license = await license_service.convert_to_permanent(
        license_id,
        exam_date=body.exam_date,
        certificate_number=body.certificate_number,
        actor=actor,
        exam_passed=body.exam_passed,
        expected_version=body.expected_version,
    )
    return _view(license)


@router.delete("/licenses/{license_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_license(
    license_id: UUID,
    actor: Annotated[str, Depends(get_actor)],
    license_service: Annotated[LicenseService, Depends(get_license_service)],
    expected_version: int | None = Query(default=None, ge=1),
    reason: str | None = Query(default=None, max_length=500),
) -> None:
    """Soft-delete a license."""
    await license_service.delete_license(
        license_id, actor=actor, expected_version=expected_version, reason=reason
    )


@router.get("/licenses/{license_id}/reminders", response_model=ReminderScheduleResponse)
async def get_reminders(
    license_id: UUID,
    license_service: Annotated[LicenseService, Depends(get_license_service)],
) -> ReminderScheduleResponse:
    """Reminder calendar of a license and what has been sent."""
    return await license_service.get_reminder_schedule(
        license_id, get_settings().reminder_offsets_days
    )


@router.get("/licenses/{license_id}/history", response_model=RenewalHistoryResponse)
async def get_renewal_history(
    license_id: UUID,
    license_service: Annotated[LicenseService, Depends(get_license_service)],
) -> RenewalHistoryResponse:
    """Renewals and conversions of a license."""
    return await license_service.get_renewal_history(license_id)
