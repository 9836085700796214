"""
API Integration Tests — role lookup, role assignment and route checks.
"""

import pytest
from httpx import AsyncClient

from conftest import CLIENT, NO_ROLE, RESELLER, SUPERADMIN


@pytest.mark.asyncio
class TestRoleAPI:
    async def test_caller_reads_own_role(self, client: AsyncClient, seeded_db, mock_user):
        mock_user["sub"] = CLIENT
        resp = await client.get("/api/v1/auth/role")
        assert resp.status_code == 200
        assert resp.json()["role"] == "client_basic"

    async def test_missing_role_is_not_found(self, client: AsyncClient, seeded_db, mock_user):
        mock_user["sub"] = NO_ROLE
        resp = await client.get("/api/v1/auth/role")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    async def test_superadmin_reads_other_role(self, client: AsyncClient, seeded_db):
        resp = await client.get("/api/v1/auth/role", params={"identity": RESELLER})
        assert resp.status_code == 200
        assert resp.json()["identity"] == RESELLER

    async def test_non_superadmin_cannot_read_other_role(self, client: AsyncClient, seeded_db, mock_user):
        mock_user["sub"] = CLIENT
        resp = await client.get("/api/v1/auth/role", params={"identity": RESELLER})
        assert resp.status_code == 403

    async def test_assign_then_overwrite(self, client: AsyncClient, seeded_db):
        first = await client.put(f"/api/v1/auth/roles/{NO_ROLE}", json={"role": "client_prospect"})
        assert first.status_code == 200
        assert first.json()["created_by"] == SUPERADMIN

        second = await client.put(f"/api/v1/auth/roles/{NO_ROLE}", json={"role": "client_basic"})
        assert second.status_code == 200
        assert second.json()["role"] == "client_basic"

        lookup = await client.get("/api/v1/auth/role", params={"identity": NO_ROLE})
        assert lookup.json()["role"] == "client_basic"

    async def test_assign_requires_superadmin(self, client: AsyncClient, seeded_db, mock_user):
        mock_user["sub"] = RESELLER
        resp = await client.put(f"/api/v1/auth/roles/{NO_ROLE}", json={"role": "reseller"})
        assert resp.status_code == 403

    async def test_unknown_role_value_is_unprocessable(self, client: AsyncClient, seeded_db):
        resp = await client.put(f"/api/v1/auth/roles/{NO_ROLE}", json={"role": "owner"})
        assert resp.status_code == 422


@pytest.mark.asyncio
class TestRouteAccessAPI:
    async def test_manager_route(self, client: AsyncClient, seeded_db, mock_user):
        mock_user["sub"] = RESELLER
        resp = await client.get("/api/v1/auth/route-access", params={"path": "/customers/123"})
        assert resp.json() == {
            "path": "/customers/123",
            "allowed": True,
            "matched_route": "/customers/[id]",
            "reason": "role_allowed",
        }

    async def test_client_denied_admin(self, client: AsyncClient, seeded_db, mock_user):
        mock_user["sub"] = CLIENT
        resp = await client.get("/api/v1/auth/route-access", params={"path": "/admin"})
        assert resp.json()["allowed"] is False

    async def test_no_role_gets_only_public_routes(self, client: AsyncClient, seeded_db, mock_user):
        mock_user["sub"] = NO_ROLE
        private = await client.get("/api/v1/auth/route-access", params={"path": "/dashboard"})
        public = await client.get("/api/v1/auth/route-access", params={"path": "/unauthorized"})
        assert private.json()["reason"] == "no_role"
        assert public.json()["allowed"] is True


@pytest.mark.asyncio
class TestHealth:
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
