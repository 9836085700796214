"""
FormulaFinance API Dependencies

Dependency injection for DB sessions, caller identity and role resolution.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from access.permissions import Permission, has_permission
from access.policy import AssociationGraph
from access.roles import resolve_role
from access.types import Role
from associations.store import load_identity_graph
from core.config import get_settings
from core.errors import AccessDenied, DomainError, ErrorKind
from db.session import AsyncSessionLocal

settings = get_settings()
security = HTTPBearer(auto_error=False)

# Dev identity must match a role row seeded locally.
DEV_IDENTITY = "dev-user"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session. Anything not committed is rolled back on close."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """Decode the bearer token and return its claims. Bypassed in debug mode."""
    if settings.debug:
        return {"sub": DEV_IDENTITY, "email": "dev@formulafinance.local"}

    if credentials is None:
        raise DomainError("Not authenticated", kind=ErrorKind.UNAUTHENTICATED)

    from core.security import decode_access_token

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise DomainError("Invalid or expired token", kind=ErrorKind.UNAUTHENTICATED)
    return payload


@dataclass(frozen=True)
class Caller:
    identity: str
    role: Role


async def get_caller(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
) -> Caller:
    """Resolve the caller's role. An identity without a role is refused outright."""
    from core.security import identity_from_claims

    identity = identity_from_claims(user)
    if identity is None:
        raise DomainError("Token carries no identity", kind=ErrorKind.UNAUTHENTICATED)

    role = await resolve_role(db, identity)
    if role is None:
        raise AccessDenied("No role assigned to user")
    return Caller(identity=identity, role=role)


async def get_caller_graph(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
) -> AssociationGraph:
    return await load_identity_graph(db, caller.identity)


def require_permission(permission: Permission):
    """Dependency factory: refuse callers whose role lacks ``permission``."""

    async def _check(caller: Caller = Depends(get_caller)) -> Caller:
        if not has_permission(caller.role, permission):
            raise AccessDenied(f"Missing permission {permission.value}")
        return caller

    return _check
