"""Durable workflow process ORM model."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from agent_lifecycle.models.orm.base import (
    Base,
    JSONType,
    NullableJSONType,
    TimestampMixin,
    UUIDMixin,
)


class WorkflowProcessORM(Base, UUIDMixin, TimestampMixin):
    """Persisted state of one termination or reinstatement process.

    step_results maps step name to {"outcome", "attempts", "error", "result"}.
    resolution holds whichever of signal or timer resolved the wait first.
    """

    __tablename__ = "workflow_processes"

    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    subject_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    agent_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="RUNNING")
    input: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    step_results: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    # Single wait slot
    wait_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    wait_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution: Mapped[dict[str, Any] | None] = mapped_column(NullableJSONType, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    cancel_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancelled_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lease_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_workflow_processes_status", "status"),
        Index("idx_workflow_processes_subject", "subject_id"),
        Index("idx_workflow_processes_wait", "status", "wait_deadline"),
    )
