"""Agent profile ORM model."""

from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from agent_lifecycle.models.orm.base import Base, JSONType, TimestampMixin, UUIDMixin


class AgentProfileORM(Base, UUIDMixin, TimestampMixin):
    """Agent profile database model.

    Only the fields the lifecycle engine reads or writes are mapped here; the
    remaining profile data (addresses, bank details, ...) is owned elsewhere.
    """

    __tablename__ = "agent_profiles"

    agent_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mobile_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    office_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="ACTIVE")
    status_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    commission_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Termination fields (cleared on reinstatement)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    termination_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    termination_reason_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    terminated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    reinstated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reinstated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, default=dict, nullable=True
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("idx_agent_profiles_status", "status"),
        Index("idx_agent_profiles_office", "office_code"),
    )

    @property
    def full_name(self) -> str:
        """Agent name for letters and notifications."""
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(part for part in parts if part)
