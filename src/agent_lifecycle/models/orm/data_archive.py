"""Agent data archive ORM model."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import BigInteger, Date, DateTime, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from agent_lifecycle.models.orm.base import Base, JSONType, UUIDMixin, utcnow


class DataArchiveORM(Base, UUIDMixin):
    """Immutable snapshot of an agent's record set."""

    __tablename__ = "agent_data_archives"

    agent_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    # Record that caused the archive (termination id for TERMINATION archives)
    source_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, unique=True)
    archive_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    archive_type: Mapped[str] = mapped_column(String(50), nullable=False)
    retention_until: Mapped[date] = mapped_column(Date, nullable=False)

    data_snapshot: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    data_checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    storage_location: Mapped[str | None] = mapped_column(Text, nullable=True)
    storage_size_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    archived_by: Mapped[str] = mapped_column(String(255), nullable=False)
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, default=dict, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_agent_data_archives_agent", "agent_id"),
        Index("idx_agent_data_archives_retention", "retention_until"),
    )
