"""HTTP tests for the license and agent status endpoints."""

from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from agent_lifecycle.database import get_db
from agent_lifecycle.dependencies import get_process_runtime
from agent_lifecycle.main import create_app
from agent_lifecycle.services.license_rules import add_years


@pytest.fixture
async def client(session_factory, runtime):
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_process_runtime] = lambda: runtime

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def license_payload(**overrides) -> dict:
    payload = {
        "license_line": "LIFE",
        "license_type": "PROVISIONAL",
        "license_number": "LIC-API-001",
        "license_date": (date.today() - timedelta(days=200)).isoformat(),
    }
    payload.update(overrides)
    return payload


async def test_health(client) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestLicenseEndpoints:
    """Tests for the license routes."""

    async def test_create_license(self, client, make_agent) -> None:
        agent_id = await make_agent()
        license_date = date.today() - timedelta(days=200)

        response = await client.post(
            f"/api/v1/agents/{agent_id}/licenses",
            json=license_payload(),
            headers={"X-Actor": "licensing-desk"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["agent_id"] == str(agent_id)
        assert body["renewal_date"] == add_years(license_date, 1).isoformat()
        assert body["version"] == 1
        assert body["can_renew"] is True

    async def test_unknown_agent(self, client) -> None:
        response = await client.post(
            "/api/v1/agents/00000000-0000-0000-0000-000000000001/licenses",
            json=license_payload(),
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Agent not found"

    async def test_invalid_body(self, client, make_agent) -> None:
        agent_id = await make_agent()

        response = await client.post(
            f"/api/v1/agents/{agent_id}/licenses",
            json=license_payload(license_number=""),
        )

        assert response.status_code == 422

    async def test_renew(self, client, make_agent, make_license) -> None:
        agent_id = await make_agent()
        license_id = await make_license(
            agent_id,
            license_date=date.today() - timedelta(days=200),
            renewal_date=date.today() + timedelta(days=165),
        )

        response = await client.post(
            f"/api/v1/licenses/{license_id}/renew", json={"expected_version": 1}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["renewal_count"] == 1
        assert body["status"] == "RENEWED"
        assert body["version"] == 2

    async def test_renew_stale_version(self, client, make_agent, make_license) -> None:
        agent_id = await make_agent()
        license_id = await make_license(agent_id, license_date=date.today() - timedelta(days=200))

        response = await client.post(
            f"/api/v1/licenses/{license_id}/renew", json={"expected_version": 5}
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "License was modified concurrently"

    async def test_renew_denied_carries_reason(self, client, make_agent, make_license) -> None:
        agent_id = await make_agent()
        license_id = await make_license(
            agent_id, license_date=date.today() - timedelta(days=200), renewal_count=2
        )

        response = await client.post(f"/api/v1/licenses/{license_id}/renew", json={})

        assert response.status_code == 400
        assert response.json()["reason"] == "MAX_PROVISIONAL_RENEWALS"

    async def test_get_missing_license(self, client) -> None:
        response = await client.get("/api/v1/licenses/00000000-0000-0000-0000-000000000002")

        assert response.status_code == 404


class TestAgentStatusEndpoints:
    """Tests for the termination routes."""

    async def test_terminate(self, client, make_agent) -> None:
        agent_id = await make_agent()

        response = await client.post(
            f"/api/v1/agents/{agent_id}/terminate",
            json={
                "termination_reason": "Repeated non-compliance with sales conduct rules",
                "termination_reason_code": "MISCONDUCT",
                "terminated_by": "compliance-officer",
            },
        )

        assert response.status_code == 202
        body = response.json()
        assert body["status_updated"] is True
        assert body["process_id"] is not None

        again = await client.get(f"/api/v1/agents/{agent_id}/termination")
        assert again.status_code == 200
        assert again.json()["id"] == body["id"]

    async def test_reinstate_active_agent_rejected(self, client, make_agent) -> None:
        agent_id = await make_agent()

        response = await client.post(
            f"/api/v1/agents/{agent_id}/reinstatements",
            json={
                "reinstatement_reason": "Misconduct finding overturned on appeal",
                "requested_by": "branch-manager",
            },
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Only terminated agents can be reinstated"
