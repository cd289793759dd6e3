"""SQLAlchemy ORM models package."""

from agent_lifecycle.models.orm.base import Base
from agent_lifecycle.models.orm.agent import AgentProfileORM
from agent_lifecycle.models.orm.license import LicenseORM
from agent_lifecycle.models.orm.audit_log import AuditLogORM
from agent_lifecycle.models.orm.termination import ReinstatementRequestORM, TerminationRecordORM
from agent_lifecycle.models.orm.data_archive import DataArchiveORM
from agent_lifecycle.models.orm.batch_operation import BatchOperationLogORM
from agent_lifecycle.models.orm.reminder import LicenseReminderORM
from agent_lifecycle.models.orm.process import WorkflowProcessORM

__all__ = [
    "Base",
    "AgentProfileORM",
    "LicenseORM",
    "AuditLogORM",
    "TerminationRecordORM",
    "ReinstatementRequestORM",
    "DataArchiveORM",
    "BatchOperationLogORM",
    "LicenseReminderORM",
    "WorkflowProcessORM",
]
