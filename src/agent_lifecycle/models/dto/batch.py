"""Expiry sweep DTOs."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from agent_lifecycle.models.domain.process import ScanPhase


class ExpiryScanRequest(BaseModel):
    """Request to run the expiry sweep on demand."""

    dry_run: bool = False
    as_of: date | None = None
    batch_size: int | None = Field(default=None, ge=1, le=10_000)
    triggered_by: str = Field(default="manual", max_length=255)


class BatchOperationResponse(BaseModel):
    """Outcome of one expiry sweep."""

    id: UUID
    operation_type: str
    dry_run: bool
    phase: ScanPhase
    triggered_by: str | None = None
    total_found: int
    succeeded: int
    failed: int
    chunk_size: int
    chunks_processed: int
    affected_license_ids: list[UUID] = []
    affected_agent_ids: list[UUID] = []
    deactivated_agent_ids: list[UUID] = []
    failed_ids: list[UUID] = []
    failed_agent_ids: list[UUID] = []
    started_at: datetime
    finished_at: datetime | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class BatchOperationListResponse(BaseModel):
    """Recent sweep runs."""

    items: list[BatchOperationResponse]
    total: int
