"""Centralized dependency injection factories for FastAPI."""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.config import get_settings
from agent_lifecycle.database import get_db
from agent_lifecycle.services.agent_status_service import AgentStatusService
from agent_lifecycle.services.expiry_scan_service import ExpiryScanService
from agent_lifecycle.services.license_service import LicenseService
from agent_lifecycle.workflows.runtime import ProcessRuntime, get_runtime

# Recorded as the actor when the caller does not identify itself
DEFAULT_ACTOR = "api"


def get_actor(x_actor: Annotated[str | None, Header(max_length=255)] = None) -> str:
    """Identity of the caller, as recorded in the audit log."""
    return x_actor or DEFAULT_ACTOR


def get_process_runtime() -> ProcessRuntime:
    """Get the application's process runtime."""
    return get_runtime()


# =============================================================================
# License Service Factories
# =============================================================================


def get_license_service(db: AsyncSession = Depends(get_db)) -> LicenseService:
    """Get LicenseService instance."""
    return LicenseService(db)


def get_expiry_scan_service(db: AsyncSession = Depends(get_db)) -> ExpiryScanService:
    """Get ExpiryScanService instance."""
    return ExpiryScanService(db, batch_size=get_settings().expiry_batch_size)


# =============================================================================
# Agent Status Service Factories
# =============================================================================


def get_agent_status_service(
    db: AsyncSession = Depends(get_db),
    runtime: ProcessRuntime = Depends(get_process_runtime),
) -> AgentStatusService:
    """Get AgentStatusService instance."""
    return AgentStatusService(db, runtime)
