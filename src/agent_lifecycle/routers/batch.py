"""Batch operations router."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from agent_lifecycle.dependencies import get_expiry_scan_service
from agent_lifecycle.exceptions import BatchOperationNotFoundError
from agent_lifecycle.models.dto.batch import (
    BatchOperationListResponse,
    BatchOperationResponse,
    ExpiryScanRequest,
)
from agent_lifecycle.services.expiry_scan_service import ExpiryScanService

router = APIRouter()


@router.post("/expiry-scan", response_model=BatchOperationResponse)
async def run_expiry_scan(
    body: ExpiryScanRequest,
    scan_service: Annotated[ExpiryScanService, Depends(get_expiry_scan_service)],
) -> BatchOperationResponse:
    """Run the license expiry sweep now.

    With dry_run the affected licenses are reported and nothing is changed.
    """
    batch_log = await scan_service.run(
        today=body.as_of,
        dry_run=body.dry_run,
        triggered_by=body.triggered_by,
        batch_size=body.batch_size,
    )
    return BatchOperationResponse.model_validate(batch_log)


@router.get("", response_model=BatchOperationListResponse)
async def list_batch_operations(
    scan_service: Annotated[ExpiryScanService, Depends(get_expiry_scan_service)],
    limit: int = Query(default=20, ge=1, le=100),
) -> BatchOperationListResponse:
    """Most recent sweep runs, newest first."""
    runs = await scan_service.get_recent_runs(limit=limit)
    items = [BatchOperationResponse.model_validate(run) for run in runs]
    return BatchOperationListResponse(items=items, total=len(items))


@router.get("/{batch_id}", response_model=BatchOperationResponse)
async def get_batch_operation(
    batch_id: UUID,
    scan_service: Annotated[ExpiryScanService, Depends(get_expiry_scan_service)],
) -> BatchOperationResponse:
    """Get one sweep's log."""
    batch_log = await scan_service.get_batch_log(batch_id)
    if batch_log is None:
        raise BatchOperationNotFoundError(batch_id)
    return BatchOperationResponse.model_validate(batch_log)
