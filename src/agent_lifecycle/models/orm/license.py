"""Agent license ORM model."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from agent_lifecycle.models.orm.base import Base, JSONType, TimestampMixin, UUIDMixin


class LicenseORM(Base, UUIDMixin, TimestampMixin):
    """Agent license database model."""

    __tablename__ = "agent_licenses"

    agent_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("agent_profiles.id", ondelete="CASCADE"), nullable=False
    )
    license_line: Mapped[str] = mapped_column(String(50), nullable=False)
    license_type: Mapped[str] = mapped_column(String(50), nullable=False)
    license_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    resident_status: Mapped[str] = mapped_column(String(50), nullable=False, default="RESIDENT")

    # Temporal fields
    license_date: Mapped[date] = mapped_column(Date, nullable=False)
    renewal_date: Mapped[date] = mapped_column(Date, nullable=False)
    authority_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Renewal state
    renewal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="ACTIVE")
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Exam state
    exam_passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    exam_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    certificate_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, default=dict, nullable=True
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency counter
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("idx_agent_licenses_agent", "agent_id"),
        Index("idx_agent_licenses_status_renewal", "status", "renewal_date"),
        CheckConstraint(
            "license_type <> 'PROVISIONAL' OR renewal_count <= 2",
            name="ck_agent_licenses_provisional_renewals",
        ),
    )
