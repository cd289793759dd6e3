"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Create agent_profiles table
    op.create_table(
        "agent_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agent_code", sa.String(50), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("middle_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("mobile_number", sa.String(20), nullable=True),
        sa.Column("office_code", sa.String(50), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="ACTIVE"),
        sa.Column("status_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status_reason", sa.Text(), nullable=True),
        sa.Column("commission_enabled", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("termination_date", sa.Date(), nullable=True),
        sa.Column("termination_reason", sa.Text(), nullable=True),
        sa.Column("termination_reason_code", sa.String(50), nullable=True),
        sa.Column("terminated_by", sa.String(255), nullable=True),
        sa.Column("reinstated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reinstated_by", sa.String(255), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), default={}, nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("agent_code"),
    )
    op.create_index("idx_agent_profiles_status", "agent_profiles", ["status"])
    op.create_index("idx_agent_profiles_office", "agent_profiles", ["office_code"])

    # Create agent_licenses table
    op.create_table(
        "agent_licenses",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("license_line", sa.String(50), nullable=False),
        sa.Column("license_type", sa.String(50), nullable=False),
        sa.Column("license_number", sa.String(100), nullable=False),
        sa.Column("resident_status", sa.String(50), nullable=False, server_default="RESIDENT"),
        sa.Column("license_date", sa.Date(), nullable=False),
        sa.Column("renewal_date", sa.Date(), nullable=False),
        sa.Column("authority_date", sa.Date(), nullable=True),
        sa.Column("renewal_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(50), nullable=False, server_default="ACTIVE"),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("exam_passed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("exam_date", sa.Date(), nullable=True),
        sa.Column("certificate_number", sa.String(100), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), default={}, nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("updated_by", sa.String(255), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["agent_id"], ["agent_profiles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("license_number"),
        sa.CheckConstraint(
            "license_type <> 'PROVISIONAL' OR renewal_count <= 2",
            name="ck_agent_licenses_provisional_renewals",
        ),
    )
    op.create_index("idx_agent_licenses_agent", "agent_licenses", ["agent_id"])
    op.create_index(
        "idx_agent_licenses_status_renewal", "agent_licenses", ["status", "renewal_date"]
    )

    # Create agent_audit_logs table (append-only)
    op.create_table(
        "agent_audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource_type", sa.String(100), nullable=False),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor", sa.String(255), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("changes", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_agent_audit_logs_created", "agent_audit_logs", ["created_at"])
    op.create_index(
        "idx_agent_audit_logs_resource", "agent_audit_logs", ["resource_type", "resource_id"]
    )
    op.create_index("idx_agent_audit_logs_agent", "agent_audit_logs", ["agent_id"])

    # Create agent_termination_records table
    op.create_table(
        "agent_termination_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("termination_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("termination_reason", sa.Text(), nullable=False),
        sa.Column("termination_reason_code", sa.String(50), nullable=False),
        sa.Column("terminated_by", sa.String(255), nullable=False),
        sa.Column("process_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("workflow_status", sa.String(50), nullable=False, server_default="PENDING"),
        sa.Column("status_updated", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("portal_disabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("commission_stopped", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("letter_generated", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("data_archived", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("notifications_sent", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("termination_letter_url", sa.Text(), nullable=True),
        sa.Column("termination_letter_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("errors", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), default={}, nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["agent_id"], ["agent_profiles.id"]),
    )
    op.create_index(
        "idx_termination_records_agent", "agent_termination_records", ["agent_id"]
    )
    op.create_index(
        "idx_termination_records_status", "agent_termination_records", ["workflow_status"]
    )

    # Create agent_reinstatement_requests table
    op.create_table(
        "agent_reinstatement_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("request_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reinstatement_reason", sa.Text(), nullable=False),
        sa.Column("requested_by", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="PENDING"),
        sa.Column("approved_by", sa.String(255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(255), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("process_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reinstatement_conditions", sa.Text(), nullable=True),
        sa.Column("probation_period_days", sa.Integer(), nullable=True),
        sa.Column("errors", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("metadata", postgresql.JSONB(), default={}, nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["agent_id"], ["agent_profiles.id"]),
    )
    op.create_index(
        "idx_reinstatement_requests_agent", "agent_reinstatement_requests", ["agent_id"]
    )
    # At most one open request per agent
    op.create_index(
        "uq_reinstatement_requests_agent_pending",
        "agent_reinstatement_requests",
        ["agent_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    # Create agent_data_archives table
    op.create_table(
        "agent_data_archives",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("archive_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("archive_type", sa.String(50), nullable=False),
        sa.Column("retention_until", sa.Date(), nullable=False),
        sa.Column("data_snapshot", postgresql.JSONB(), nullable=False),
        sa.Column("data_checksum", sa.String(64), nullable=False),
        sa.Column("storage_location", sa.Text(), nullable=True),
        sa.Column("storage_size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("archived_by", sa.String(255), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), default={}, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_id"),
    )
    op.create_index("idx_agent_data_archives_agent", "agent_data_archives", ["agent_id"])
    op.create_index(
        "idx_agent_data_archives_retention", "agent_data_archives", ["retention_until"]
    )

    # Create batch_operation_logs table
    op.create_table(
        "batch_operation_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("operation_type", sa.String(100), nullable=False),
        sa.Column("dry_run", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("phase", sa.String(50), nullable=False),
        sa.Column("triggered_by", sa.String(255), nullable=False),
        sa.Column("total_found", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("succeeded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("chunk_size", sa.Integer(), nullable=False),
        sa.Column("chunks_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("affected_license_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("affected_agent_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column(
            "deactivated_agent_ids", postgresql.JSONB(), nullable=False, server_default="[]"
        ),
        sa.Column("failed_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("failed_agent_ids", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_batch_operation_logs_type_started",
        "batch_operation_logs",
        ["operation_type", "started_at"],
    )

    # Create license_reminders table
    op.create_table(
        "license_reminders",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("license_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reminder_type", sa.String(20), nullable=False),
        sa.Column("reminder_date", sa.Date(), nullable=False),
        sa.Column("renewal_date", sa.Date(), nullable=False),
        sa.Column("sent_status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("sent_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("sms_sent", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.String(255), nullable=False, server_default="SYSTEM"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["license_id"], ["agent_licenses.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "license_id", "reminder_type", "reminder_date", name="uq_license_reminder_slot"
        ),
    )
    op.create_index(
        "idx_license_reminders_status_date",
        "license_reminders",
        ["sent_status", "reminder_date"],
    )

    # Create workflow_processes table
    op.create_table(
        "workflow_processes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="RUNNING"),
        sa.Column("input", postgresql.JSONB(), nullable=False),
        sa.Column("step_results", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("wait_name", sa.String(100), nullable=True),
        sa.Column("wait_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution", postgresql.JSONB(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("cancelled_by", sa.String(255), nullable=True),
        sa.Column("lease_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_workflow_processes_status", "workflow_processes", ["status"])
    op.create_index("idx_workflow_processes_subject", "workflow_processes", ["subject_id"])
    op.create_index(
        "idx_workflow_processes_wait", "workflow_processes", ["status", "wait_deadline"]
    )


def downgrade() -> None:
    op.drop_table("workflow_processes")
    op.drop_table("license_reminders")
    op.drop_table("batch_operation_logs")
    op.drop_table("agent_data_archives")
    op.drop_table("agent_reinstatement_requests")
    op.drop_table("agent_termination_records")
    op.drop_table("agent_audit_logs")
    op.drop_table("agent_licenses")
    op.drop_table("agent_profiles")
