"""Tests for the FastAPI endpoints."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from bundleswap.api.app import create_app

from conftest import CUSTODY, OTHER, OWNER, PROPOSER


def as_caller(identity: str) -> dict:
    return {"X-Caller-Identity": identity}


@pytest.fixture
def test_app(orchestrator):
    """Create test application around the test orchestrator."""
    return create_app(orchestrator)


@pytest_asyncio.fixture
async def client(test_app):
    """Create async test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def list_via_api(client, token_id: str = "1", owner: str = OWNER) -> dict:
    await client.post(
        "/api/v1/registry/RegistryX/mint", json={"token_id": token_id}, headers=as_caller(owner)
    )
    await client.post("/api/v1/registry/RegistryX/approve", json={}, headers=as_caller(owner))
    response = await client.post(
        "/api/v1/orders",
        json={"registry": "RegistryX", "token_id": token_id},
        headers=as_caller(owner),
    )
    assert response.status_code == 201
    return response.json()


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        """Test basic health check."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "bundleswap"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        """Test detailed health check."""
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["escrow"]["custody_identity"] == CUSTODY
        assert data["escrow"]["registries"] == ["RegistryX", "RegistryY"]
        assert data["escrow"]["order_count"] == 0
        assert "environment" in data["config"]


class TestOrderEndpoints:
    """Tests for the order and offer command surface."""

    @pytest.mark.asyncio
    async def test_full_swap(self, client):
        """Test list, offer and accept through the API."""
        order = await list_via_api(client)
        assert order["id"] == 1
        assert order["active"] is True
        assert order["listed_asset"] == {"registry": "RegistryX", "token_id": "1"}

        await client.post(
            "/api/v1/registry/RegistryY/mint", json={"token_id": 7}, headers=as_caller(PROPOSER)
        )
        await client.post(
            "/api/v1/registry/RegistryY/approve", json={"token_id": "7"}, headers=as_caller(PROPOSER)
        )

        response = await client.post(
            "/api/v1/orders/1/offers",
            json={"registries": ["RegistryY"], "token_ids": [7]},
            headers=as_caller(PROPOSER),
        )
        assert response.status_code == 201
        offer = response.json()
        assert offer["id"] == 1
        assert offer["bundle"] == [{"registry": "RegistryY", "token_id": "7"}]

        response = await client.post("/api/v1/orders/1/offers/1/accept", headers=as_caller(OWNER))
        assert response.status_code == 200
        assert response.json()["status"] == "settled"
        assert response.json()["accepted_offer_id"] == 1

        token = (await client.get("/api/v1/registry/RegistryX/tokens/1")).json()
        assert token["owner"] == PROPOSER
        token = (await client.get("/api/v1/registry/RegistryY/tokens/7")).json()
        assert token["owner"] == OWNER

        offers = (await client.get("/api/v1/orders/1/offers")).json()
        assert [item["proposer"] for item in offers] == [PROPOSER]

    @pytest.mark.asyncio
    async def test_cancel_order(self, client):
        """Test cancel returns the asset and closes the order."""
        await list_via_api(client)

        response = await client.post("/api/v1/orders/1/cancel", headers=as_caller(OWNER))

        assert response.status_code == 200
        assert response.json()["active"] is False
        token = (await client.get("/api/v1/registry/RegistryX/tokens/1")).json()
        assert token["owner"] == OWNER

    @pytest.mark.asyncio
    async def test_order_count(self, client):
        """Test the order counter."""
        await list_via_api(client, "1")
        await list_via_api(client, "2")

        response = await client.get("/api/v1/orders/count")

        assert response.status_code == 200
        assert response.json() == {"count": 2}

    @pytest.mark.asyncio
    async def test_absent_order_is_default_record(self, client):
        """Test reading an unknown order returns the default record."""
        response = await client.get("/api/v1/orders/42")

        assert response.status_code == 200
        data = response.json()
        assert data["owner"] == ""
        assert data["active"] is False
        assert data["listed_asset"] is None


class TestErrorMapping:
    """Tests for escrow errors surfacing as HTTP responses."""

    @pytest.mark.asyncio
    async def test_missing_caller(self, client):
        """Test mutating endpoints need a caller identity."""
        response = await client.post(
            "/api/v1/orders", json={"registry": "RegistryX", "token_id": "1"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_not_approved(self, client):
        """Test listing without approval is rejected."""
        await client.post(
            "/api/v1/registry/RegistryX/mint", json={"token_id": "1"}, headers=as_caller(OWNER)
        )

        response = await client.post(
            "/api/v1/orders",
            json={"registry": "RegistryX", "token_id": "1"},
            headers=as_caller(OWNER),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "NotApproved"

    @pytest.mark.asyncio
    async def test_unauthorized_cancel(self, client):
        """Test only the owner can cancel."""
        await list_via_api(client)

        response = await client.post("/api/v1/orders/1/cancel", headers=as_caller(OTHER))

        assert response.status_code == 403
        assert response.json()["error"] == "Unauthorized"

    @pytest.mark.asyncio
    async def test_mismatched_bundle(self, client):
        """Test unequal bundle sequences are invalid input."""
        await list_via_api(client)

        response = await client.post(
            "/api/v1/orders/1/offers",
            json={"registries": ["RegistryY", "RegistryY"], "token_ids": ["7"]},
            headers=as_caller(PROPOSER),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    @pytest.mark.asyncio
    async def test_missing_order(self, client):
        """Test actions on unknown orders are not found."""
        response = await client.post("/api/v1/orders/9/cancel", headers=as_caller(OWNER))

        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    @pytest.mark.asyncio
    async def test_not_active(self, client):
        """Test a canceled order rejects further actions."""
        await list_via_api(client)
        await client.post("/api/v1/orders/1/cancel", headers=as_caller(OWNER))

        response = await client.post("/api/v1/orders/1/cancel", headers=as_caller(OWNER))

        assert response.status_code == 409
        assert response.json()["error"] == "NotActive"

    @pytest.mark.asyncio
    async def test_native_value_rejected(self, client):
        """Test value transfers are always refused."""
        response = await client.post("/api/v1/value", headers=as_caller(PROPOSER))

        assert response.status_code == 405
        assert response.json()["error"] == "ValueRejected"

    @pytest.mark.asyncio
    async def test_escrow_identity_cannot_use_faucet(self, client):
        """Test the custody identity cannot mint or grant approvals."""
        response = await client.post(
            "/api/v1/registry/RegistryX/approve",
            json={"operator": OTHER},
            headers=as_caller(CUSTODY),
        )
        assert response.status_code == 403

        response = await client.post(
            "/api/v1/registry/RegistryX/mint", json={"token_id": "9"}, headers=as_caller(CUSTODY)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_dry_run_registry(self, client):
        """Test the faucet only serves configured registries."""
        response = await client.post(
            "/api/v1/registry/Nowhere/mint", json={"token_id": "1"}, headers=as_caller(OWNER)
        )

        assert response.status_code == 404
