"""Agent termination, reinstatement and process DTOs."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from agent_lifecycle.models.domain.agent import (
    ReinstatementDecision,
    ReinstatementStatus,
    TerminationReasonCode,
    TerminationWorkflowStatus,
)
from agent_lifecycle.models.domain.process import ProcessKind, ProcessStatus


class TerminationRequest(BaseModel):
    """Request to terminate an agent."""

    termination_reason: str = Field(min_length=20, max_length=2000)
    termination_reason_code: TerminationReasonCode
    effective_date: date | None = None
    terminated_by: str = Field(min_length=1, max_length=255)


class TerminationResponse(BaseModel):
    """Termination record with its action flags and accumulated errors."""

    id: UUID
    agent_id: UUID
    termination_date: datetime
    effective_date: date
    termination_reason: str
    termination_reason_code: TerminationReasonCode
    terminated_by: str
    process_id: UUID | None = None
    workflow_status: TerminationWorkflowStatus
    status_updated: bool
    portal_disabled: bool
    commission_stopped: bool
    letter_generated: bool
    data_archived: bool
    notifications_sent: bool
    termination_letter_url: str | None = None
    termination_letter_generated_at: datetime | None = None
    errors: list[dict[str, Any]] = []
    completed_at: datetime | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class ReinstatementCreate(BaseModel):
    """Request to reinstate a terminated agent."""

    reinstatement_reason: str = Field(min_length=10, max_length=2000)
    requested_by: str = Field(min_length=1, max_length=255)


class ReinstatementDecisionRequest(BaseModel):
    """Approver decision on a reinstatement request."""

    decision: ReinstatementDecision
    decided_by: str = Field(min_length=1, max_length=255)
    rejection_reason: str | None = Field(default=None, max_length=2000)
    reinstatement_conditions: str | None = Field(default=None, max_length=2000)
    probation_period_days: int | None = Field(default=None, ge=0, le=365)

    @model_validator(mode="after")
    def validate_rejection_reason(self) -> "ReinstatementDecisionRequest":
        """A rejection must say why."""
        if self.decision == ReinstatementDecision.REJECTED and not self.rejection_reason:
            raise ValueError("rejection_reason is required when rejecting")
        return self


class ReinstatementResponse(BaseModel):
    """Reinstatement request status."""

    id: UUID
    agent_id: UUID
    request_date: datetime
    reinstatement_reason: str
    requested_by: str
    status: ReinstatementStatus
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    reinstatement_conditions: str | None = None
    probation_period_days: int | None = None
    process_id: UUID | None = None
    errors: list[dict[str, Any]] = []

    class Config:
        """Pydantic config."""

        from_attributes = True


class DecisionAcceptedResponse(BaseModel):
    """Result of submitting a decision signal."""

    reinstatement_id: UUID
    accepted: bool
    status: ReinstatementStatus


class ProcessResponse(BaseModel):
    """Durable process status."""

    id: UUID
    kind: ProcessKind
    subject_id: UUID
    agent_id: UUID
    status: ProcessStatus
    step_results: dict[str, Any]
    wait_name: str | None = None
    wait_deadline: datetime | None = None
    resolution: dict[str, Any] | None = None
    resolved_at: datetime | None = None
    cancel_requested: bool
    cancelled_by: str | None = None
    last_error: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class ProcessCancelRequest(BaseModel):
    """Request to cancel a running process."""

    cancelled_by: str = Field(min_length=1, max_length=255)
