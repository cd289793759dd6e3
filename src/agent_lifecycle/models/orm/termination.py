"""Termination record and reinstatement request ORM models."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from agent_lifecycle.models.orm.base import Base, JSONType, TimestampMixin, UUIDMixin


class TerminationRecordORM(Base, UUIDMixin, TimestampMixin):
    """Termination record database model.

    Created together with the agent status flip; the action flags are set
    one by one as the termination process converges its side effects.
    """

    __tablename__ = "agent_termination_records"

    agent_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("agent_profiles.id"), nullable=False
    )
    termination_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    termination_reason: Mapped[str] = mapped_column(Text, nullable=False)
    termination_reason_code: Mapped[str] = mapped_column(String(50), nullable=False)
    terminated_by: Mapped[str] = mapped_column(String(255), nullable=False)

    # Workflow tracking
    process_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    workflow_status: Mapped[str] = mapped_column(String(50), nullable=False, default="PENDING")

    # Actions performed
    status_updated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    portal_disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    commission_stopped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    letter_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    data_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notifications_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Generated documents
    termination_letter_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    termination_letter_generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Accumulated step failures: [{"step", "error", "attempts", "at"}]
    errors: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, default=dict, nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("idx_termination_records_agent", "agent_id"),
        Index("idx_termination_records_status", "workflow_status"),
    )


class ReinstatementRequestORM(Base, UUIDMixin, TimestampMixin):
    """Reinstatement request database model.

    At most one PENDING request may exist per agent; leaving PENDING is terminal.
    """

    __tablename__ = "agent_reinstatement_requests"

    agent_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("agent_profiles.id"), nullable=False
    )
    request_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reinstatement_reason: Mapped[str] = mapped_column(Text, nullable=False)
    requested_by: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(String(50), nullable=False, default="PENDING")
    approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    process_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    reinstatement_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)
    probation_period_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Accumulated step failures, same shape as on termination records
    errors: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, default=dict, nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("idx_reinstatement_requests_agent", "agent_id"),
        Index(
            "uq_reinstatement_requests_agent_pending",
            "agent_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )
