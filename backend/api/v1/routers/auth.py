"""
Auth Router — role lookup/assignment and dashboard route checks.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from access.permissions import check_route_access
from access.policy import can_perform_admin_actions
from access.roles import get_role_record, resolve_role, set_role
from access.types import Role
from api.deps import Caller, get_caller, get_current_user, get_db
from core.errors import AccessDenied, DomainError, EntityNotFound, ErrorKind
from core.security import identity_from_claims

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class RoleAssignment(BaseModel):
    role: Role


class RoleResponse(BaseModel):
    identity: str
    role: Role
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RouteAccessResponse(BaseModel):
    path: str
    allowed: bool
    matched_route: str | None
    reason: str


def _require_identity(user: dict) -> str:
    identity = identity_from_claims(user)
    if identity is None:
        raise DomainError("Token carries no identity", kind=ErrorKind.UNAUTHENTICATED)
    return identity


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/role", response_model=RoleResponse)
async def get_role(
    identity: str | None = Query(None, description="Defaults to the caller"),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Return the role of the caller, or of any identity for superadmin."""
    caller_identity = _require_identity(user)
    target = identity or caller_identity

    if target != caller_identity:
        caller_role = await resolve_role(db, caller_identity)
        if not can_perform_admin_actions(caller_role):
            raise AccessDenied("Only superadmin can look up other identities")

    record = await get_role_record(db, target)
    if record is None or await resolve_role(db, target) is None:
        raise EntityNotFound("User role not found")
    return RoleResponse(
        identity=record.identity,
        role=Role(record.role),
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@router.put("/roles/{identity}", response_model=RoleResponse)
async def assign_role(
    identity: str,
    body: RoleAssignment,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Assign (or overwrite) an identity's role. Superadmin only."""
    if not can_perform_admin_actions(caller.role):
        raise AccessDenied("Only superadmin can assign roles")

    record = await set_role(db, identity, body.role, granted_by=caller.identity)
    await db.commit()
    await db.refresh(record)
    return RoleResponse(
        identity=record.identity,
        role=Role(record.role),
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@router.get("/route-access", response_model=RouteAccessResponse)
async def route_access(
    path: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Tell the dashboard whether the caller may open ``path``."""
    role = await resolve_role(db, _require_identity(user))
    decision = check_route_access(path, role)
    return RouteAccessResponse(
        path=path,
        allowed=decision.allowed,
        matched_route=decision.matched_route,
        reason=decision.reason,
    )
