"""
Tests for the role → permission and dashboard route tables.
"""

import pytest

from access.permissions import (
    ROLE_PERMISSIONS,
    Permission,
    check_route_access,
    has_permission,
    match_route,
)
from access.types import Role


class TestRolePermissions:
    def test_every_role_has_an_entry(self):
        assert set(ROLE_PERMISSIONS) == set(Role)

    def test_superadmin_has_all_permissions(self):
        assert all(has_permission(Role.SUPERADMIN, p) for p in Permission)

    def test_clients_only_touch_reports(self):
        for role in (Role.CLIENT_BASIC, Role.CLIENT_PROSPECT):
            assert ROLE_PERMISSIONS[role] == {Permission.REPORTS_READ, Permission.REPORTS_CREATE}

    def test_intermediary_can_update_but_reseller_cannot(self):
        assert has_permission(Role.INTERMEDIARY, Permission.CUSTOMERS_UPDATE)
        assert not has_permission(Role.RESELLER, Permission.CUSTOMERS_UPDATE)

    def test_no_role_has_no_permissions(self):
        assert not has_permission(None, Permission.REPORTS_READ)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            ROLE_PERMISSIONS[Role.CLIENT_BASIC] = frozenset(Permission)  # type: ignore[index]


class TestRouteMatching:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/customers", "/customers"),
            ("/customers/", "/customers"),
            ("/customers/new", "/customers/new"),
            ("/customers/42", "/customers/[id]"),
            ("/customers/42/edit", "/customers/[id]/edit"),
            ("/reports/abc-123", "/reports/[id]"),
            ("/customers/42/licenses", None),
            ("/settings", None),
        ],
    )
    def test_match_route(self, path, expected):
        assert match_route(path) == expected


class TestRouteAccess:
    def test_manager_can_open_customer_detail(self):
        decision = check_route_access("/customers/7", Role.RESELLER)
        assert decision.allowed
        assert decision.matched_route == "/customers/[id]"

    def test_only_superadmin_can_edit_customer(self):
        assert not check_route_access("/customers/7/edit", Role.INTERMEDIARY).allowed
        assert check_route_access("/customers/7/edit", Role.SUPERADMIN).allowed

    def test_client_cannot_open_customer_list(self):
        decision = check_route_access("/customers", Role.CLIENT_BASIC)
        assert not decision.allowed
        assert decision.reason == "role_not_allowed"

    def test_unlisted_route_is_denied(self):
        decision = check_route_access("/billing/export", Role.SUPERADMIN)
        assert not decision.allowed
        assert decision.reason == "unlisted_route"

    def test_public_routes_need_no_role(self):
        assert check_route_access("/auth/login", None).allowed
        assert check_route_access("/", None).allowed

    def test_no_role_is_denied_on_private_routes(self):
        decision = check_route_access("/dashboard", None)
        assert not decision.allowed
        assert decision.reason == "no_role"
