"""Batch operation log ORM model."""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from agent_lifecycle.models.orm.base import Base, JSONType, TimestampMixin, UUIDMixin


class BatchOperationLogORM(Base, UUIDMixin, TimestampMixin):
    """One row per scheduled or manual sweep. Append-only."""

    __tablename__ = "batch_operation_logs"

    operation_type: Mapped[str] = mapped_column(String(100), nullable=False)
    dry_run: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    phase: Mapped[str] = mapped_column(String(50), nullable=False)
    triggered_by: Mapped[str] = mapped_column(String(255), nullable=False)

    total_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    succeeded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    chunk_size: Mapped[int] = mapped_column(Integer, nullable=False)
    chunks_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    affected_license_ids: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    affected_agent_ids: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    deactivated_agent_ids: Mapped[list[Any]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    failed_ids: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    failed_agent_ids: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_batch_operation_logs_type_started", "operation_type", "started_at"),
    )
