"""
Tests for the Authorization Engine.

Covers:
  - Association management / stats role gates
  - Customer and report visibility (owner, direct child, superadmin)
  - "No role" and empty-graph inputs never raise
"""

from access.policy import (
    AssociationGraph,
    accessible_owner_identities,
    can_access_customer,
    can_access_report,
    can_manage_associations,
    can_perform_admin_actions,
    can_view_association_stats,
    can_view_customer_list,
)
from access.types import Role

GRAPH = AssociationGraph.from_pairs(
    [
        ("reseller-1", "intermediary-1"),
        ("reseller-1", "client-1"),
        ("intermediary-1", "client-2"),
    ]
)


class TestRoleGates:
    def test_only_superadmin_manages_associations(self):
        assert can_manage_associations(Role.SUPERADMIN)
        for role in (Role.RESELLER, Role.INTERMEDIARY, Role.CLIENT_BASIC, Role.CLIENT_PROSPECT, None):
            assert not can_manage_associations(role)

    def test_stats_visible_to_managers_and_superadmin(self):
        allowed = {r for r in Role if can_view_association_stats(r)}
        assert allowed == {Role.SUPERADMIN, Role.RESELLER, Role.INTERMEDIARY}
        assert not can_view_association_stats(None)

    def test_admin_actions_and_customer_list(self):
        assert can_perform_admin_actions(Role.SUPERADMIN)
        assert not can_perform_admin_actions(Role.RESELLER)
        assert can_view_customer_list(Role.INTERMEDIARY)
        assert not can_view_customer_list(Role.CLIENT_BASIC)
        assert not can_view_customer_list(None)


class TestCustomerAccess:
    def test_superadmin_sees_everything(self):
        assert can_access_customer(Role.SUPERADMIN, "admin", "anyone", GRAPH)
        assert can_access_customer(Role.SUPERADMIN, "admin", None, GRAPH)

    def test_owner_sees_own_customer(self):
        assert can_access_customer(Role.CLIENT_BASIC, "client-1", "client-1", GRAPH)

    def test_client_cannot_see_others(self):
        assert not can_access_customer(Role.CLIENT_BASIC, "client-1", "client-2", GRAPH)

    def test_reseller_sees_direct_children(self):
        assert can_access_customer(Role.RESELLER, "reseller-1", "intermediary-1", GRAPH)
        assert can_access_customer(Role.RESELLER, "reseller-1", "client-1", GRAPH)

    def test_reseller_does_not_reach_grandchildren(self):
        """client-2 sits below intermediary-1: two hops from reseller-1."""
        assert not can_access_customer(Role.RESELLER, "reseller-1", "client-2", GRAPH)

    def test_child_edge_ignored_for_client_roles(self):
        graph = AssociationGraph.from_pairs([("client-1", "client-2")])
        assert not can_access_customer(Role.CLIENT_BASIC, "client-1", "client-2", graph)

    def test_unowned_customer_denied_for_non_superadmin(self):
        assert not can_access_customer(Role.RESELLER, "reseller-1", None, GRAPH)

    def test_no_role_is_denied_even_for_owner(self):
        assert not can_access_customer(None, "client-1", "client-1", GRAPH)

    def test_report_access_follows_customer_rule(self):
        assert can_access_report(Role.INTERMEDIARY, "intermediary-1", "client-2", GRAPH)
        assert not can_access_report(Role.INTERMEDIARY, "intermediary-1", "client-1", GRAPH)

    def test_empty_graph_is_total(self):
        assert not can_access_customer(Role.RESELLER, "reseller-1", "client-1")


class TestAccessibleOwners:
    def test_superadmin_unrestricted(self):
        assert accessible_owner_identities(Role.SUPERADMIN, "admin", GRAPH) is None

    def test_manager_gets_self_and_children(self):
        owners = accessible_owner_identities(Role.RESELLER, "reseller-1", GRAPH)
        assert owners == {"reseller-1", "intermediary-1", "client-1"}

    def test_client_gets_only_self(self):
        assert accessible_owner_identities(Role.CLIENT_PROSPECT, "client-1", GRAPH) == {"client-1"}

    def test_no_role_gets_nothing(self):
        assert accessible_owner_identities(None, "client-1", GRAPH) == frozenset()
