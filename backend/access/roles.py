"""
Role Store — one persisted role per external identity.

An identity with no row has "no role", which callers must treat as a denial.
It is never mapped to a default low-privilege role.
"""

from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from access.types import Role, parse_role
from db.models import UserRole

logger = structlog.get_logger()


async def get_role_record(db: AsyncSession, identity: str) -> UserRole | None:
    result = await db.execute(select(UserRole).where(UserRole.identity == str(identity)))
    return result.scalar_one_or_none()


async def resolve_role(db: AsyncSession, identity: str | None) -> Role | None:
    """Return the identity's role, or None when unassigned."""
    if not identity:
        return None
    record = await get_role_record(db, identity)
    if record is None:
        return None
    role = parse_role(record.role)
    if role is None:
        logger.warning("role.unknown_value", identity=str(identity), stored=record.role)
    return role


async def set_role(db: AsyncSession, identity: str, role: Role, granted_by: str | None = None) -> UserRole:
    """
    Assign ``role`` to ``identity``, overwriting any previous assignment.

    ``created_by`` records who first granted a role and is kept on
    overwrite; ``updated_at`` moves forward.
    """
    role = Role(role)
    record = await get_role_record(db, identity)
    now = datetime.utcnow()
    if record is None:
        record = UserRole(
            identity=str(identity),
            role=role.value,
            created_by=granted_by,
            created_at=now,
            updated_at=now,
        )
        db.add(record)
        previous = None
    else:
        previous = record.role
        record.role = role.value
        record.updated_at = now

    await db.flush()
    logger.info(
        "role.assigned",
        identity=str(identity),
        role=role.value,
        previous_role=previous,
        granted_by=granted_by,
    )
    return record
