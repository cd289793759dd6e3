"""Agent termination, reinstatement and process status router."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from agent_lifecycle.dependencies import get_agent_status_service
from agent_lifecycle.models.dto.agent_status import (
    DecisionAcceptedResponse,
    ProcessCancelRequest,
    ProcessResponse,
    ReinstatementCreate,
    ReinstatementDecisionRequest,
    ReinstatementResponse,
    TerminationRequest,
    TerminationResponse,
)
from agent_lifecycle.services.agent_status_service import AgentStatusService

router = APIRouter()


@router.post(
    "/agents/{agent_id}/terminate",
    response_model=TerminationResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def terminate_agent(
    agent_id: UUID,
    body: TerminationRequest,
    service: Annotated[AgentStatusService, Depends(get_agent_status_service)],
) -> TerminationResponse:
    """Terminate an agent.

    The agent is TERMINATED when this returns; portal, commission, letter,
    archive and notifications follow in the background and are reported on
    the termination record.
    """
    return await service.terminate_agent(agent_id, body)


@router.get("/agents/{agent_id}/termination", response_model=TerminationResponse)
async def get_agent_termination(
    agent_id: UUID,
    service: Annotated[AgentStatusService, Depends(get_agent_status_service)],
) -> TerminationResponse:
    """Most recent termination record of an agent."""
    return await service.get_latest_termination(agent_id)


@router.get("/terminations/{termination_id}", response_model=TerminationResponse)
async def get_termination(
    termination_id: UUID,
    service: Annotated[AgentStatusService, Depends(get_agent_status_service)],
) -> TerminationResponse:
    """Termination record with its action flags and errors."""
    return await service.get_termination(termination_id)


@router.post(
    "/agents/{agent_id}/reinstatements",
    response_model=ReinstatementResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_reinstatement(
    agent_id: UUID,
    body: ReinstatementCreate,
    service: Annotated[AgentStatusService, Depends(get_agent_status_service)],
) -> ReinstatementResponse:
    """Ask for a terminated agent to be reinstated."""
    return await service.request_reinstatement(agent_id, body)


@router.get("/reinstatements/{reinstatement_id}", response_model=ReinstatementResponse)
async def get_reinstatement(
    reinstatement_id: UUID,
    service: Annotated[AgentStatusService, Depends(get_agent_status_service)],
) -> ReinstatementResponse:
    """Reinstatement request status."""
    return await service.get_reinstatement(reinstatement_id)


@router.post(
    "/reinstatements/{reinstatement_id}/decision",
    response_model=DecisionAcceptedResponse,
)
async def submit_decision(
    reinstatement_id: UUID,
    body: ReinstatementDecisionRequest,
    service: Annotated[AgentStatusService, Depends(get_agent_status_service)],
) -> DecisionAcceptedResponse:
    """Approve or reject a pending reinstatement request.

    Returns 409 once the request already has a decision, including the
    default rejection after the timeout.
    """
    return await service.submit_decision(reinstatement_id, body)


@router.get("/processes/{process_id}", response_model=ProcessResponse)
async def get_process(
    process_id: UUID,
    service: Annotated[AgentStatusService, Depends(get_agent_status_service)],
) -> ProcessResponse:
    """Durable process status."""
    return await service.get_process(process_id)


@router.post("/processes/{process_id}/cancel", response_model=ProcessResponse)
async def cancel_process(
    process_id: UUID,
    body: ProcessCancelRequest,
    service: Annotated[AgentStatusService, Depends(get_agent_status_service)],
) -> ProcessResponse:
    """Cancel a running or waiting process. Steps already run are not undone."""
    return await service.cancel_process(process_id, body.cancelled_by)
