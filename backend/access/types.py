"""
Fixed enumerations shared by the role store, the association graph and the
license ledger.
"""

from enum import Enum


class Role(str, Enum):
    """The single role an identity holds."""

    CLIENT_BASIC = "client_basic"
    CLIENT_PROSPECT = "client_prospect"
    RESELLER = "reseller"
    INTERMEDIARY = "intermediary"
    SUPERADMIN = "superadmin"


# Superadmin is an operator role, never a customer type.
CUSTOMER_TYPES: frozenset[Role] = frozenset(
    {Role.CLIENT_BASIC, Role.CLIENT_PROSPECT, Role.RESELLER, Role.INTERMEDIARY}
)


class AssociationType(str, Enum):
    RESELLER = "reseller"
    INTERMEDIARY = "intermediary"


class CustomerStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


class LicenseStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class ReportStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def sql_in(values) -> str:
    """Render enum values as the body of a SQL ``IN (...)`` check constraint."""
    return ", ".join(f"'{v.value}'" for v in sorted(values, key=lambda v: v.value))


def parse_role(value: str | None) -> Role | None:
    """Map a stored string to a Role; unknown or empty values mean "no role"."""
    if not value:
        return None
    try:
        return Role(value)
    except ValueError:
        return None
