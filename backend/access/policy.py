"""
Authorization Engine — pure allow/deny decisions.

Nothing here touches the database. The only input that comes from storage
is an ``AssociationGraph`` snapshot, loaded by
``associations.store.load_identity_graph`` for the caller.

All functions are total: "no role" (None) and "no association" are ordinary
inputs that produce a denial, never an exception.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from access.permissions import Permission, has_permission
from access.types import Role

MANAGER_ROLES = frozenset({Role.RESELLER, Role.INTERMEDIARY})


@dataclass(frozen=True)
class AssociationGraph:
    """Identity-level view of the association edges: parent identity → direct child identities."""

    edges: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> "AssociationGraph":
        children: dict[str, set[str]] = {}
        for parent, child in pairs:
            if parent is None or child is None:
                continue
            children.setdefault(str(parent), set()).add(str(child))
        return cls({parent: frozenset(kids) for parent, kids in children.items()})

    def children_of(self, identity: str | None) -> frozenset[str]:
        if identity is None:
            return frozenset()
        return self.edges.get(str(identity), frozenset())

    def is_direct_child(self, parent: str | None, child: str | None) -> bool:
        if parent is None or child is None:
            return False
        return str(child) in self.children_of(parent)


EMPTY_GRAPH = AssociationGraph()


def can_manage_associations(role: Role | None) -> bool:
    return role == Role.SUPERADMIN


def can_view_association_stats(role: Role | None) -> bool:
    return has_permission(role, Permission.ANALYTICS_READ)


def can_perform_admin_actions(role: Role | None) -> bool:
    """Create/edit/delete customers, assign licenses, assign roles."""
    return role == Role.SUPERADMIN


def can_view_customer_list(role: Role | None) -> bool:
    return has_permission(role, Permission.CUSTOMERS_READ)


def can_access_customer(
    caller_role: Role | None,
    caller_identity: str | None,
    customer_owner_identity: str | None,
    graph: AssociationGraph = EMPTY_GRAPH,
) -> bool:
    """
    Superadmin sees everything. Anyone else sees a customer they own, and
    resellers/intermediaries additionally see customers owned by their
    direct children (one hop, no transitive reach).
    """
    if caller_role is None:
        return False
    if caller_role == Role.SUPERADMIN:
        return True
    if not customer_owner_identity or not caller_identity:
        return False
    if str(caller_identity) == str(customer_owner_identity):
        return True
    if caller_role in MANAGER_ROLES:
        return graph.is_direct_child(caller_identity, customer_owner_identity)
    return False


def can_access_report(
    caller_role: Role | None,
    caller_identity: str | None,
    report_owner_identity: str | None,
    graph: AssociationGraph = EMPTY_GRAPH,
) -> bool:
    """Same rule as customers, applied to the owner of the report's customer."""
    return can_access_customer(caller_role, caller_identity, report_owner_identity, graph)


def accessible_owner_identities(
    caller_role: Role | None,
    caller_identity: str | None,
    graph: AssociationGraph = EMPTY_GRAPH,
) -> frozenset[str] | None:
    """
    Owner identities whose customers the caller may list.

    Returns None for superadmin (unrestricted) and an empty set when the
    caller has no role.
    """
    if caller_role is None or not caller_identity:
        return frozenset()
    if caller_role == Role.SUPERADMIN:
        return None
    if caller_role in MANAGER_ROLES:
        return frozenset({str(caller_identity)}) | graph.children_of(caller_identity)
    return frozenset({str(caller_identity)})
