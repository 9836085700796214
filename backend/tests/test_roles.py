"""
Tests for the Role Store.
"""

from sqlalchemy import func, select

from access.roles import get_role_record, resolve_role, set_role
from access.types import Role
from db.models import UserRole
from conftest import CLIENT, NO_ROLE, SUPERADMIN


class TestResolveRole:
    async def test_unassigned_identity_has_no_role(self, seeded_db, test_db):
        assert await resolve_role(test_db, NO_ROLE) is None

    async def test_empty_identity_has_no_role(self, test_db):
        assert await resolve_role(test_db, None) is None
        assert await resolve_role(test_db, "") is None

    async def test_lookup_is_stable(self, seeded_db, test_db):
        first = await resolve_role(test_db, CLIENT)
        second = await resolve_role(test_db, CLIENT)
        assert first == second == Role.CLIENT_BASIC


class TestSetRole:
    async def test_assigns_new_identity(self, test_db):
        record = await set_role(test_db, "auth0|fresh", Role.RESELLER, granted_by=SUPERADMIN)
        assert record.role == "reseller"
        assert record.created_by == SUPERADMIN
        assert await resolve_role(test_db, "auth0|fresh") == Role.RESELLER

    async def test_overwrite_keeps_single_row(self, test_db):
        await set_role(test_db, "auth0|twice", Role.CLIENT_PROSPECT, granted_by=SUPERADMIN)
        await set_role(test_db, "auth0|twice", Role.CLIENT_BASIC, granted_by="auth0|other-admin")

        count = await test_db.scalar(
            select(func.count()).select_from(UserRole).where(UserRole.identity == "auth0|twice")
        )
        assert count == 1
        record = await get_role_record(test_db, "auth0|twice")
        assert record.role == "client_basic"
        assert record.created_by == SUPERADMIN
        assert record.updated_at >= record.created_at
