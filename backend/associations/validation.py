"""
Association Validator — role-pairing rules for parent → child edges.

Hierarchy:
  reseller      → intermediary, client_basic, client_prospect
  intermediary  → client_basic, client_prospect
  clients       → cannot manage anyone

Only superadmin may create or delete edges. These checks are necessary but
not sufficient: duplicate and reverse edges are checked against the live
graph by ``associations.store.create_association``.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from access.policy import can_manage_associations
from access.types import AssociationType, Role, parse_role
from core.errors import ErrorKind

VALID_CHILD_TYPES: Mapping[Role, frozenset[Role]] = MappingProxyType(
    {
        Role.RESELLER: frozenset({Role.INTERMEDIARY, Role.CLIENT_BASIC, Role.CLIENT_PROSPECT}),
        Role.INTERMEDIARY: frozenset({Role.CLIENT_BASIC, Role.CLIENT_PROSPECT}),
    }
)
VALID_PARENT_TYPES: frozenset[Role] = frozenset(VALID_CHILD_TYPES)


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error_kind: ErrorKind | None = None
    message: str | None = None
    association_type: AssociationType | None = None


def valid_child_types(parent_type: Role | str | None) -> frozenset[Role]:
    role = parent_type if isinstance(parent_type, Role) else parse_role(parent_type)
    return VALID_CHILD_TYPES.get(role, frozenset())


def valid_parent_types(child_type: Role | str | None) -> frozenset[Role]:
    """Parent types that may manage ``child_type``; empty for resellers and superadmin."""
    role = child_type if isinstance(child_type, Role) else parse_role(child_type)
    if role is None:
        return frozenset()
    return frozenset(parent for parent, children in VALID_CHILD_TYPES.items() if role in children)


def association_type_for(parent_type: Role | str) -> AssociationType:
    role = parent_type if isinstance(parent_type, Role) else Role(parent_type)
    return AssociationType.RESELLER if role == Role.RESELLER else AssociationType.INTERMEDIARY


def validate_association(
    parent_type: Role | str | None,
    child_type: Role | str | None,
    caller_role: Role | None,
) -> ValidationResult:
    if not can_manage_associations(caller_role):
        return ValidationResult(False, ErrorKind.FORBIDDEN, "Only superadmin can manage associations")

    parent = parent_type if isinstance(parent_type, Role) else parse_role(parent_type)
    child = child_type if isinstance(child_type, Role) else parse_role(child_type)

    if parent not in VALID_PARENT_TYPES:
        label = parent.value if parent else parent_type
        return ValidationResult(False, ErrorKind.INVALID_PARENT_TYPE, f"{label} cannot be a parent")

    if child not in VALID_CHILD_TYPES[parent]:
        label = child.value if child else child_type
        return ValidationResult(False, ErrorKind.INVALID_CHILD_TYPE, f"{parent.value} cannot manage {label}")

    return ValidationResult(True, association_type=association_type_for(parent))
