"""
Role → permission and dashboard route → role tables.

Both tables are built once at import and never change at runtime. Route
lookups are default-deny: a path with no entry is refused unless it is on
the public allowlist.
"""

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from access.types import Role


class Permission(str, Enum):
    CUSTOMERS_READ = "customers:read"
    CUSTOMERS_CREATE = "customers:create"
    CUSTOMERS_UPDATE = "customers:update"
    CUSTOMERS_DELETE = "customers:delete"
    LICENSES_READ = "licenses:read"
    LICENSES_ASSIGN = "licenses:assign"
    REPORTS_READ = "reports:read"
    REPORTS_CREATE = "reports:create"
    ANALYTICS_READ = "analytics:read"


_CLIENT_PERMISSIONS = frozenset({Permission.REPORTS_READ, Permission.REPORTS_CREATE})

ROLE_PERMISSIONS: Mapping[Role, frozenset[Permission]] = MappingProxyType(
    {
        Role.CLIENT_BASIC: _CLIENT_PERMISSIONS,
        Role.CLIENT_PROSPECT: _CLIENT_PERMISSIONS,
        Role.RESELLER: frozenset(
            {
                Permission.CUSTOMERS_READ,
                Permission.LICENSES_READ,
                Permission.REPORTS_READ,
                Permission.REPORTS_CREATE,
                Permission.ANALYTICS_READ,
            }
        ),
        Role.INTERMEDIARY: frozenset(
            {
                Permission.CUSTOMERS_READ,
                Permission.CUSTOMERS_UPDATE,
                Permission.LICENSES_READ,
                Permission.REPORTS_READ,
                Permission.REPORTS_CREATE,
                Permission.ANALYTICS_READ,
            }
        ),
        Role.SUPERADMIN: frozenset(Permission),
    }
)


def has_permission(role: Role | None, permission: Permission) -> bool:
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


# ─── Dashboard routes ───────────────────────────────────────────────────────

_EVERYONE = frozenset(Role)
_MANAGERS = frozenset({Role.RESELLER, Role.INTERMEDIARY, Role.SUPERADMIN})
_SUPERADMIN_ONLY = frozenset({Role.SUPERADMIN})

ROUTE_PERMISSIONS: Mapping[str, frozenset[Role]] = MappingProxyType(
    {
        "/dashboard": _EVERYONE,
        "/customers": _MANAGERS,
        "/customers/new": _SUPERADMIN_ONLY,
        "/customers/[id]": _MANAGERS,
        "/customers/[id]/edit": _SUPERADMIN_ONLY,
        "/reports": _EVERYONE,
        "/reports/new": _EVERYONE,
        "/reports/[id]": _EVERYONE,
        "/licenses": _SUPERADMIN_ONLY,
        "/associations": _SUPERADMIN_ONLY,
        "/profile": _EVERYONE,
        "/admin": _SUPERADMIN_ONLY,
    }
)

# Reachable without a role (and without an entry above).
PUBLIC_ROUTE_PREFIXES = ("/auth/", "/unauthorized", "/forbidden", "/health")
PUBLIC_ROUTES = frozenset({"/", "/auth"})


def _compile(route: str) -> re.Pattern:
    return re.compile("^" + re.sub(r"\\\[[^/]*?\\\]", "[^/]+", re.escape(route)) + "$")


_ROUTE_PATTERNS: tuple[tuple[str, re.Pattern], ...] = tuple(
    (route, _compile(route)) for route in ROUTE_PERMISSIONS if "[" in route
)


def match_route(path: str) -> str | None:
    """Map a concrete path (``/customers/42``) to its table key (``/customers/[id]``)."""
    normalized = path.rstrip("/") or "/"
    if normalized in ROUTE_PERMISSIONS:
        return normalized
    for route, pattern in _ROUTE_PATTERNS:
        if pattern.match(normalized):
            return route
    return None


def is_public_route(path: str) -> bool:
    normalized = path.rstrip("/") or "/"
    return normalized in PUBLIC_ROUTES or any(path.startswith(p) for p in PUBLIC_ROUTE_PREFIXES)


@dataclass(frozen=True)
class RouteDecision:
    allowed: bool
    matched_route: str | None
    reason: str


def check_route_access(path: str, role: Role | None) -> RouteDecision:
    if is_public_route(path):
        return RouteDecision(True, None, "public")
    if role is None:
        return RouteDecision(False, None, "no_role")

    matched = match_route(path)
    if matched is None:
        return RouteDecision(False, None, "unlisted_route")
    if role in ROUTE_PERMISSIONS[matched]:
        return RouteDecision(True, matched, "role_allowed")
    return RouteDecision(False, matched, "role_not_allowed")
