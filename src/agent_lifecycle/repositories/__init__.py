"""Repositories package."""

from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.archive_repository import ArchiveRepository
from agent_lifecycle.repositories.audit_repository import AuditRepository
from agent_lifecycle.repositories.base import BaseRepository
from agent_lifecycle.repositories.batch_operation_repository import BatchOperationRepository
from agent_lifecycle.repositories.license_repository import LicenseRepository
from agent_lifecycle.repositories.process_repository import ProcessRepository
from agent_lifecycle.repositories.reminder_repository import ReminderRepository
from agent_lifecycle.repositories.termination_repository import (
    ReinstatementRepository,
    TerminationRepository,
)

__all__ = [
    "BaseRepository",
    "AgentRepository",
    "LicenseRepository",
    "AuditRepository",
    "TerminationRepository",
    "ReinstatementRepository",
    "ArchiveRepository",
    "BatchOperationRepository",
    "ReminderRepository",
    "ProcessRepository",
]
