"""Services package."""

from agent_lifecycle.services.archive_service import ArchiveService
from agent_lifecycle.services.audit_service import AuditService
from agent_lifecycle.services.expiry_scan_service import ExpiryScanService
from agent_lifecycle.services.license_service import LicenseService
from agent_lifecycle.services.reminder_service import ReminderService

__all__ = [
    "AuditService",
    "ArchiveService",
    "ExpiryScanService",
    "LicenseService",
    "ReminderService",
]
