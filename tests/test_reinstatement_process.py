"""Tests for reinstatement requests and the approval process."""

import pytest
from sqlalchemy import update

from agent_lifecycle.exceptions import (
    AgentNotTerminatedError,
    DecisionAlreadyRecordedError,
    PendingReinstatementExistsError,
)
from agent_lifecycle.models.domain.process import ProcessKind, ProcessStatus
from agent_lifecycle.models.dto.agent_status import (
    ReinstatementCreate,
    ReinstatementDecisionRequest,
)
from agent_lifecycle.models.orm.agent import AgentProfileORM
from agent_lifecycle.repositories.agent_repository import AgentRepository
from agent_lifecycle.repositories.audit_repository import AuditRepository
from agent_lifecycle.repositories.termination_repository import ReinstatementRepository
from agent_lifecycle.services.agent_status_service import AgentStatusService
from agent_lifecycle.services.audit_service import AuditAction, AuditService
from agent_lifecycle.workflows.reinstatement import (
    CANCELLED_REASON,
    NOT_TERMINATED_REASON,
    TIMEOUT_REASON,
    reinstatement_input,
)


def reinstatement_create() -> ReinstatementCreate:
    return ReinstatementCreate(
        reinstatement_reason="Misconduct finding overturned on appeal",
        requested_by="branch-manager",
    )


def approve(**overrides) -> ReinstatementDecisionRequest:
    values = {
        "decision": "APPROVED",
        "decided_by": "regional-head",
        "reinstatement_conditions": "Supervised sales for the first quarter",
        "probation_period_days": 90,
    }
    values.update(overrides)
    return ReinstatementDecisionRequest(**values)


def reject() -> ReinstatementDecisionRequest:
    return ReinstatementDecisionRequest(
        decision="REJECTED",
        decided_by="regional-head",
        rejection_reason="Appeal outcome not yet final",
    )


@pytest.fixture
async def terminated_agent(make_agent):
    return await make_agent(
        status="TERMINATED",
        commission_enabled=False,
        termination_reason="Misconduct",
        termination_reason_code="MISCONDUCT",
        terminated_by="compliance-officer",
    )


class TestRequestReinstatement:
    """Tests for opening a request."""

    async def test_request_parks_on_approval(
        self, session, runtime, calls, terminated_agent
    ) -> None:
        request = await AgentStatusService(session, runtime).request_reinstatement(
            terminated_agent, reinstatement_create()
        )

        assert request.status == "PENDING"
        assert request.process_id is not None
        assert calls.count("send_approval_request") == 1

        process = await runtime.get(request.process_id)
        assert process.status == ProcessStatus.WAITING
        assert process.wait_name == "approval-decision"
        assert process.resolution is None
        assert await AuditRepository(session).count_by_action(
            AuditAction.REINSTATEMENT_REQUEST, resource_id=request.id
        ) == 1

    async def test_second_pending_request_denied(
        self, session, runtime, terminated_agent
    ) -> None:
        service = AgentStatusService(session, runtime)
        await service.request_reinstatement(terminated_agent, reinstatement_create())

        with pytest.raises(PendingReinstatementExistsError):
            await service.request_reinstatement(terminated_agent, reinstatement_create())

    async def test_active_agent_cannot_be_reinstated(self, session, runtime, make_agent) -> None:
        agent_id = await make_agent()

        with pytest.raises(AgentNotTerminatedError):
            await AgentStatusService(session, runtime).request_reinstatement(
                agent_id, reinstatement_create()
            )


class TestDecision:
    """Tests for approver decisions."""

    async def test_approval_reactivates_agent(
        self, session, runtime, calls, terminated_agent
    ) -> None:
        service = AgentStatusService(session, runtime)
        request = await service.request_reinstatement(terminated_agent, reinstatement_create())

        accepted = await service.submit_decision(request.id, approve())

        assert accepted.accepted is True
        assert accepted.status == "APPROVED"

        agent = await AgentRepository(session).get(terminated_agent)
        assert agent.status == "ACTIVE"
        assert agent.commission_enabled is True
        assert agent.termination_reason is None
        assert agent.reinstated_by == "regional-head"

        result = await service.get_reinstatement(request.id)
        assert result.approved_by == "regional-head"
        assert result.probation_period_days == 90
        assert calls.count("restore_access") == 1
        assert calls.count("send_reinstatement_confirmation") == 1
        assert await AuditService(session).count_decisions(request.id) == 1
        assert await AuditRepository(session).count_by_action(
            AuditAction.AGENT_REINSTATE, resource_id=terminated_agent
        ) == 1
        assert (await runtime.get(request.process_id)).status == ProcessStatus.COMPLETED

    async def test_rejection_keeps_agent_terminated(
        self, session, runtime, calls, terminated_agent
    ) -> None:
        service = AgentStatusService(session, runtime)
        request = await service.request_reinstatement(terminated_agent, reinstatement_create())

        accepted = await service.submit_decision(request.id, reject())

        assert accepted.status == "REJECTED"
        result = await service.get_reinstatement(request.id)
        assert result.rejected_by == "regional-head"
        assert result.rejection_reason == "Appeal outcome not yet final"
        assert (await AgentRepository(session).get(terminated_agent)).status == "TERMINATED"
        assert calls.count("send_reinstatement_rejection") == 1
        assert calls.count("restore_access") == 0
        assert await AuditService(session).count_decisions(request.id) == 1

    async def test_rejected_agent_may_request_again(
        self, session, runtime, terminated_agent
    ) -> None:
        service = AgentStatusService(session, runtime)
        first = await service.request_reinstatement(terminated_agent, reinstatement_create())
        await service.submit_decision(first.id, reject())

        second = await service.request_reinstatement(terminated_agent, reinstatement_create())

        assert second.id != first.id
        assert second.status == "PENDING"

    async def test_second_decision_refused(self, session, runtime, terminated_agent) -> None:
        service = AgentStatusService(session, runtime)
        request = await service.request_reinstatement(terminated_agent, reinstatement_create())
        await service.submit_decision(request.id, approve())

        with pytest.raises(DecisionAlreadyRecordedError):
            await service.submit_decision(request.id, reject())

        assert await AuditService(session).count_decisions(request.id) == 1

    async def test_approval_of_reactivated_agent_rejected(
        self, session, runtime, terminated_agent
    ) -> None:
        """If the agent left TERMINATED while waiting, approval cannot apply."""
        service = AgentStatusService(session, runtime)
        request = await service.request_reinstatement(terminated_agent, reinstatement_create())
        await session.execute(
            update(AgentProfileORM)
            .where(AgentProfileORM.id == terminated_agent)
            .values(status="ACTIVE")
        )
        await session.commit()

        accepted = await service.submit_decision(request.id, approve())

        assert accepted.status == "REJECTED"
        result = await service.get_reinstatement(request.id)
        assert result.rejected_by == "SYSTEM"
        assert result.rejection_reason == NOT_TERMINATED_REASON
        assert await AuditService(session).count_decisions(request.id) == 1


class TestTimeout:
    """Tests for the 30-day default decision."""

    async def test_no_timeout_before_deadline(
        self, session, runtime, clock, terminated_agent
    ) -> None:
        request = await AgentStatusService(session, runtime).request_reinstatement(
            terminated_agent, reinstatement_create()
        )
        clock.advance(days=29)

        assert await runtime.fire_due_timers() == 0
        assert (await runtime.get(request.process_id)).status == ProcessStatus.WAITING

    async def test_timeout_rejects_and_late_decision_ignored(
        self, session, runtime, clock, calls, terminated_agent
    ) -> None:
        service = AgentStatusService(session, runtime)
        request = await service.request_reinstatement(terminated_agent, reinstatement_create())

        clock.advance(days=31)
        assert await runtime.fire_due_timers() == 1

        result = await service.get_reinstatement(request.id)
        assert result.status == "REJECTED"
        assert result.rejected_by == "SYSTEM"
        assert result.rejection_reason == TIMEOUT_REASON
        assert calls.count("send_reinstatement_rejection") == 1

        with pytest.raises(DecisionAlreadyRecordedError):
            await service.submit_decision(request.id, reject())
        assert await runtime.signal(request.process_id, {"decision": "REJECTED"}) is False

        assert await AuditService(session).count_decisions(request.id) == 1
        process = await runtime.get(request.process_id)
        assert process.status == ProcessStatus.COMPLETED
        assert process.resolution["source"] == "timer"

    async def test_decision_after_deadline_loses_to_timer_not_yet_fired(
        self, session, runtime, clock, calls, terminated_agent
    ) -> None:
        service = AgentStatusService(session, runtime)
        request = await service.request_reinstatement(terminated_agent, reinstatement_create())

        clock.advance(days=30)

        with pytest.raises(DecisionAlreadyRecordedError):
            await service.submit_decision(request.id, approve())

        result = await service.get_reinstatement(request.id)
        assert result.status == "REJECTED"
        assert result.rejection_reason == TIMEOUT_REASON
        assert (await AgentRepository(session).get(terminated_agent)).status == "TERMINATED"
        assert calls.count("restore_access") == 0
        process = await runtime.get(request.process_id)
        assert process.status == ProcessStatus.COMPLETED
        assert process.resolution["source"] == "timer"
        assert await runtime.fire_due_timers() == 0


class TestCancel:
    """Tests for cancelling a waiting reinstatement."""

    async def test_cancel_rejects_request(
        self, session, runtime, calls, terminated_agent
    ) -> None:
        service = AgentStatusService(session, runtime)
        request = await service.request_reinstatement(terminated_agent, reinstatement_create())

        process = await service.cancel_process(request.process_id, "ops-lead")

        assert process.status == ProcessStatus.CANCELLED
        assert process.cancelled_by == "ops-lead"
        result = await service.get_reinstatement(request.id)
        assert result.status == "REJECTED"
        assert result.rejected_by == "ops-lead"
        assert result.rejection_reason == CANCELLED_REASON
        # Notifications after cancellation are skipped
        assert calls.count("send_reinstatement_rejection") == 0
        assert await AuditRepository(session).count_by_action(
            AuditAction.PROCESS_CANCEL, resource_id=request.process_id
        ) == 1
        assert await AuditService(session).count_decisions(request.id) == 1


class TestRecovery:
    """Tests for requests whose process never started."""

    async def test_request_left_without_process_reaches_decision(
        self, session, runtime, clock, calls, terminated_agent, killed_before_start
    ) -> None:
        service = AgentStatusService(session, runtime)

        with pytest.raises(RuntimeError):
            await service.request_reinstatement(terminated_agent, reinstatement_create())

        pending = await ReinstatementRepository(session).get_pending_for_agent(terminated_agent)
        assert pending.process_id is None
        with pytest.raises(DecisionAlreadyRecordedError):
            await service.submit_decision(pending.id, approve())

        clock.advance(minutes=10)
        assert await runtime.tick() == {"timers_fired": 0, "resumed": 1}

        request = await service.get_reinstatement(pending.id)
        assert request.status == "PENDING"
        assert request.process_id is not None
        assert calls.count("send_approval_request") == 1
        assert (await runtime.get(request.process_id)).status == ProcessStatus.WAITING

        accepted = await service.submit_decision(request.id, approve())

        assert accepted.status == "APPROVED"
        assert (await AgentRepository(session).get(terminated_agent)).status == "ACTIVE"
        assert await runtime.start(
            ProcessKind.REINSTATEMENT,
            request.id,
            terminated_agent,
            reinstatement_input(request.id, request.reinstatement_reason, request.requested_by),
        ) is None
