"""License reminder log ORM model."""

from datetime import date, datetime
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
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from agent_lifecycle.models.orm.base import Base, TimestampMixin, UUIDMixin


class LicenseReminderORM(Base, UUIDMixin, TimestampMixin):
    """Delivery log for one renewal reminder."""

    __tablename__ = "license_reminders"

    license_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("agent_licenses.id", ondelete="CASCADE"), nullable=False
    )
    reminder_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reminder_date: Mapped[date] = mapped_column(Date, nullable=False)
    renewal_date: Mapped[date] = mapped_column(Date, nullable=False)
    sent_status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    sent_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sms_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, default="SYSTEM")

    __table_args__ = (
        UniqueConstraint(
            "license_id", "reminder_type", "reminder_date", name="uq_license_reminder_slot"
        ),
        Index("idx_license_reminders_status_date", "sent_status", "reminder_date"),
    )
