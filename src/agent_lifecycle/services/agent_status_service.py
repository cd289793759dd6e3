"""Agent status service for termination and reinstatement.

Architecture Note:
    Requests write their record synchronously and return it; the remaining
    side effects run in a durable process started right after the commit.
    A request therefore always succeeds once its record exists, even when
    the process later fails partially; failures accumulate on the record. A
    record whose process never started is picked up by the runtime's resume
    pass.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agent_lifecycle.exceptions import (
    AgentAlreadyTerminatedError,
    AgentNotFoundError,
    AgentNotTerminatedError,
    ConflictError,
    DecisionAlreadyRecordedError,
    PendingReinstatementExistsError,
    ProcessStartError,
    ReinstatementRequestNotFoundError,
    TerminationRecordNotFoundError,
)
from agent_lifecycle.models.domain.agent import (
    SYSTEM_ACTOR,
    AgentStatus,
    ReinstatementStatus,
    TerminationWorkflowStatus,
)
from agent_lifecycle.models.domain.process import ProcessKind
from agent_lifecycle.models.dto.agent_status import (
    DecisionAcceptedResponse,
    ProcessResponse,
    ReinstatementCreate,
    ReinstatementDecisionRequest,
    ReinstatementResponse,
    TerminationRequest,
    TerminationResponse,
)
from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.termination_repository import (
    ReinstatementRepository,
    TerminationRepository,
)
from agent_lifecycle.services.audit_service import AuditAction, AuditService, ResourceType
from agent_lifecycle.workflows.reinstatement import reinstatement_input, reject_request
from agent_lifecycle.workflows.runtime import ProcessRuntime
from agent_lifecycle.workflows.termination import termination_input

logger = logging.getLogger(__name__)

START_FAILED_REASON = "Reinstatement process could not be started"


class AgentStatusService:
    """Service for agent termination and reinstatement requests."""

    def __init__(self, session: AsyncSession, runtime: ProcessRuntime) -> None:
        """Initialize service with database session and process runtime."""
        self.session = session
        self.runtime = runtime
        self.agent_repo = AgentRepository(session)
        self.termination_repo = TerminationRepository(session)
        self.reinstatement_repo = ReinstatementRepository(session)
        self.audit_service = AuditService(session)

    async def terminate_agent(self, agent_id: UUID, data: TerminationRequest) -> TerminationResponse:
        """Terminate an agent and start the termination process.

        The status flip, the termination record and its audit entry commit
        together before any process exists.

        Args:
            agent_id: Agent to terminate
            data: Reason, reason code, effective date and actor

        Returns:
            The termination record

        Raises:
            AgentNotFoundError: If the agent does not exist
            AgentAlreadyTerminatedError: If the agent is already terminated
        """
        agent = await self.agent_repo.get_active(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)

        now = self.runtime.clock()
        effective_date = data.effective_date or now.date()
        previous_status = agent.status

        flipped = await self.agent_repo.mark_terminated(
            agent_id,
            effective_date=effective_date,
            reason=data.termination_reason,
            reason_code=data.termination_reason_code,
            terminated_by=data.terminated_by,
            now=now,
        )
        if not flipped:
            await self.session.rollback()
            raise AgentAlreadyTerminatedError(agent_id)

        record = await self.termination_repo.create(
            agent_id=agent_id,
            termination_date=now,
            effective_date=effective_date,
            termination_reason=data.termination_reason,
            termination_reason_code=data.termination_reason_code,
            terminated_by=data.terminated_by,
            workflow_status=TerminationWorkflowStatus.PENDING,
            status_updated=True,
            errors=[],
        )
        await self.audit_service.record(
            action=AuditAction.AGENT_TERMINATE,
            resource_type=ResourceType.AGENT,
            resource_id=agent_id,
            agent_id=agent_id,
            actor=data.terminated_by,
            reason=data.termination_reason,
            changes=self.audit_service.change_set(
                {"status": previous_status, "commission_enabled": True},
                {
                    "status": AgentStatus.TERMINATED,
                    "commission_enabled": False,
                    "termination_reason_code": data.termination_reason_code,
                    "effective_date": effective_date,
                },
            ),
        )
        await self.session.commit()
        termination_id = record.id
        logger.info("Agent %s terminated by %s", agent_id, data.terminated_by)

        try:
            process_id = await self.runtime.start(
                ProcessKind.TERMINATION,
                termination_id,
                agent_id,
                termination_input(
                    termination_id,
                    effective_date,
                    data.termination_reason,
                    data.termination_reason_code,
                    data.terminated_by,
                ),
            )
        except ProcessStartError as e:
            await self._termination_start_failed(termination_id, agent_id, e)
            return await self.get_termination(termination_id)

        if process_id is not None:
            await self.runtime.launch(process_id)
        return await self.get_termination(termination_id)

    async def _termination_start_failed(
        self, termination_id: UUID, agent_id: UUID, error: ProcessStartError
    ) -> None:
        record = await self.termination_repo.get(termination_id)
        record.workflow_status = TerminationWorkflowStatus.FAILED
        record.errors = [
            *(record.errors or []),
            {"step": "start", "error": error.message, "at": self.runtime.clock().isoformat()},
        ]
        await self.audit_service.log(
            action=AuditAction.PROCESS_START_FAILED,
            resource_type=ResourceType.TERMINATION,
            resource_id=termination_id,
            agent_id=agent_id,
            actor=SYSTEM_ACTOR,
            details={"kind": ProcessKind.TERMINATION},
        )
        await self.session.commit()
        logger.error("Termination process for %s could not be started", termination_id)

    async def get_termination(self, termination_id: UUID) -> TerminationResponse:
        """Get a termination record.

        Raises:
            TerminationRecordNotFoundError: If the record does not exist
        """
        record = await self.termination_repo.get(termination_id)
        if record is None:
            raise TerminationRecordNotFoundError(termination_id)
        return TerminationResponse.model_validate(record)

    async def get_latest_termination(self, agent_id: UUID) -> TerminationResponse:
        """Get the most recent termination record of an agent."""
        record = await self.termination_repo.get_latest_for_agent(agent_id)
        if record is None:
            raise TerminationRecordNotFoundError(agent_id=agent_id)
        return TerminationResponse.model_validate(record)

    async def request_reinstatement(
        self, agent_id: UUID, data: ReinstatementCreate
    ) -> ReinstatementResponse:
        """Open a reinstatement request and start its approval process.

        Args:
            agent_id: Terminated agent
            data: Reason and requester

        Returns:
            The reinstatement request

        Raises:
            AgentNotFoundError: If the agent does not exist
            AgentNotTerminatedError: If the agent is not terminated
            PendingReinstatementExistsError: If a request is already pending
        """
        agent = await self.agent_repo.get_active(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        if agent.status != AgentStatus.TERMINATED:
            raise AgentNotTerminatedError(agent_id, agent.status)

        pending = await self.reinstatement_repo.get_pending_for_agent(agent_id)
        if pending is not None:
            raise PendingReinstatementExistsError(agent_id, pending.id)

        try:
            request = await self.reinstatement_repo.create(
                agent_id=agent_id,
                request_date=self.runtime.clock(),
                reinstatement_reason=data.reinstatement_reason,
                requested_by=data.requested_by,
                status=ReinstatementStatus.PENDING,
                errors=[],
            )
            await self.audit_service.record(
                action=AuditAction.REINSTATEMENT_REQUEST,
                resource_type=ResourceType.REINSTATEMENT,
                resource_id=request.id,
                agent_id=agent_id,
                actor=data.requested_by,
                reason=data.reinstatement_reason,
            )
            await self.session.commit()
        except IntegrityError as e:
            # Lost the race against a concurrent request for the same agent
            await self.session.rollback()
            raise PendingReinstatementExistsError(agent_id) from e

        reinstatement_id = request.id
        logger.info("Reinstatement %s requested for agent %s", reinstatement_id, agent_id)

        try:
            process_id = await self.runtime.start(
                ProcessKind.REINSTATEMENT,
                reinstatement_id,
                agent_id,
                reinstatement_input(
                    reinstatement_id, data.reinstatement_reason, data.requested_by
                ),
            )
        except ProcessStartError:
            await reject_request(
                self.session,
                reinstatement_id,
                agent_id,
                SYSTEM_ACTOR,
                START_FAILED_REASON,
                self.runtime.clock(),
                source="start",
            )
            await self.audit_service.log(
                action=AuditAction.PROCESS_START_FAILED,
                resource_type=ResourceType.REINSTATEMENT,
                resource_id=reinstatement_id,
                agent_id=agent_id,
                actor=SYSTEM_ACTOR,
                details={"kind": ProcessKind.REINSTATEMENT},
            )
            await self.session.commit()
            logger.error("Reinstatement process for %s could not be started", reinstatement_id)
            return await self.get_reinstatement(reinstatement_id)

        if process_id is not None:
            await self.runtime.launch(process_id)
        return await self.get_reinstatement(reinstatement_id)

    async def submit_decision(
        self, reinstatement_id: UUID, data: ReinstatementDecisionRequest
    ) -> DecisionAcceptedResponse:
        """Deliver an approver decision to the waiting process.

        Raises:
            ReinstatementRequestNotFoundError: If the request does not exist
            DecisionAlreadyRecordedError: If the request is no longer pending,
                the timer resolved the wait first, or the decision deadline
                has passed
        """
        request = await self.reinstatement_repo.get(reinstatement_id)
        if request is None:
            raise ReinstatementRequestNotFoundError(reinstatement_id)
        if request.status != ReinstatementStatus.PENDING or request.process_id is None:
            raise DecisionAlreadyRecordedError(reinstatement_id, request.status)

        accepted = await self.runtime.signal(request.process_id, data.model_dump(mode="json"))
        if not accepted:
            request = await self.reinstatement_repo.get(reinstatement_id)
            raise DecisionAlreadyRecordedError(reinstatement_id, request.status)

        logger.info(
            "Decision %s on reinstatement %s accepted from %s",
            data.decision,
            reinstatement_id,
            data.decided_by,
        )
        request = await self.reinstatement_repo.get(reinstatement_id)
        return DecisionAcceptedResponse(
            reinstatement_id=reinstatement_id,
            accepted=True,
            status=request.status,
        )

    async def get_reinstatement(self, reinstatement_id: UUID) -> ReinstatementResponse:
        """Get a reinstatement request.

        Raises:
            ReinstatementRequestNotFoundError: If the request does not exist
        """
        request = await self.reinstatement_repo.get(reinstatement_id)
        if request is None:
            raise ReinstatementRequestNotFoundError(reinstatement_id)
        return ReinstatementResponse.model_validate(request)

    async def get_process(self, process_id: UUID) -> ProcessResponse:
        """Get a durable process's status."""
        return ProcessResponse.model_validate(await self.runtime.get(process_id))

    async def cancel_process(self, process_id: UUID, cancelled_by: str) -> ProcessResponse:
        """Cancel a live process.

        Steps that already ran are not undone.

        Raises:
            ProcessNotFoundError: If the process does not exist
            ConflictError: If the process already finished
        """
        process = await self.runtime.get(process_id)
        if not await self.runtime.cancel(process_id, cancelled_by):
            raise ConflictError(
                "Process is not running",
                {"process_id": str(process_id), "status": str(process.status)},
            )

        await self.audit_service.log(
            action=AuditAction.PROCESS_CANCEL,
            resource_type=ResourceType.PROCESS,
            resource_id=process_id,
            agent_id=process.agent_id,
            actor=cancelled_by,
            details={"kind": process.kind, "subject_id": process.subject_id},
        )
        await self.session.commit()
        return await self.get_process(process_id)
