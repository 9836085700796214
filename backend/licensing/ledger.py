"""
License Ledger — total/used report units per (customer, module).

Invariant: 0 <= quantity_used <= quantity_total, enforced here for manual
edits and by check constraints in the database. ``quantity_used`` only moves
through ``update_license`` (superadmin) or ``consume_unit`` (report creation).
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from access.policy import can_perform_admin_actions
from access.types import LicenseStatus, Role
from core.config import get_settings
from core.errors import AccessDenied, EntityNotFound
from db.models import Customer, License, Module

logger = structlog.get_logger()


@dataclass
class LicenseChanges:
    quantity_total: int | None = None
    quantity_used: int | None = None
    activation_date: date | None = None
    expiration_date: date | None = None
    status: LicenseStatus | None = None


def _require_admin(caller_role: Role | None, action: str) -> None:
    if not can_perform_admin_actions(caller_role):
        raise AccessDenied(f"Only superadmin can {action}")


def _check_quantities(total: int, used: int) -> None:
    if total < 0:
        raise ValueError("quantity_total must be >= 0")
    if used < 0:
        raise ValueError("quantity_used must be >= 0")
    if used > total:
        raise ValueError("quantity_used cannot exceed quantity_total")


def _check_dates(activation: date, expiration: date) -> None:
    if expiration < activation:
        raise ValueError("expiration_date cannot precede activation_date")


async def get_license(db: AsyncSession, license_id: uuid.UUID) -> License:
    license_row = await db.get(License, license_id)
    if license_row is None:
        raise EntityNotFound("License not found")
    return license_row


async def list_licenses(
    db: AsyncSession,
    customer_ids: Iterable[uuid.UUID] | None = None,
    module_id: int | None = None,
    status: LicenseStatus | None = None,
) -> list[License]:
    """List licenses, optionally restricted to ``customer_ids`` (None = all)."""
    query = select(License)
    if customer_ids is not None:
        ids = list(customer_ids)
        if not ids:
            return []
        query = query.where(License.customer_id.in_(ids))
    if module_id is not None:
        query = query.where(License.module_id == module_id)
    if status is not None:
        query = query.where(License.status == LicenseStatus(status).value)
    result = await db.execute(query.order_by(License.expiration_date.asc()))
    return list(result.scalars().all())


async def list_owned_licenses(db: AsyncSession, owner_identity: str) -> list[License]:
    """Licenses of every customer owned by ``owner_identity``, soonest expiring first."""
    owned = select(Customer.id).where(Customer.owner_identity == str(owner_identity))
    result = await db.execute(
        select(License).where(License.customer_id.in_(owned)).order_by(License.expiration_date.asc())
    )
    return list(result.scalars().all())


async def create_license(
    db: AsyncSession,
    *,
    caller_role: Role | None,
    customer_id: uuid.UUID,
    module_id: int,
    quantity_total: int,
    activation_date: date,
    expiration_date: date,
    quantity_used: int = 0,
    status: LicenseStatus = LicenseStatus.ACTIVE,
) -> License:
    _require_admin(caller_role, "assign licenses")
    _check_quantities(quantity_total, quantity_used)
    _check_dates(activation_date, expiration_date)

    if await db.get(Customer, customer_id) is None:
        raise EntityNotFound("Customer not found")
    if await db.get(Module, module_id) is None:
        raise EntityNotFound("Module not found")

    license_row = License(
        customer_id=customer_id,
        module_id=module_id,
        quantity_total=quantity_total,
        quantity_used=quantity_used,
        activation_date=activation_date,
        expiration_date=expiration_date,
        status=LicenseStatus(status).value,
    )
    db.add(license_row)
    await db.flush()
    logger.info(
        "license.created",
        license_id=str(license_row.id),
        customer_id=str(customer_id),
        module_id=module_id,
        quantity_total=quantity_total,
    )
    return license_row


async def update_license(
    db: AsyncSession,
    license_id: uuid.UUID,
    changes: LicenseChanges,
    caller_role: Role | None,
) -> License:
    """Superadmin edit of quantities, dates or status."""
    _require_admin(caller_role, "edit licenses")
    license_row = await get_license(db, license_id)

    total = changes.quantity_total if changes.quantity_total is not None else license_row.quantity_total
    used = changes.quantity_used if changes.quantity_used is not None else license_row.quantity_used
    _check_quantities(total, used)
    _check_dates(
        changes.activation_date or license_row.activation_date,
        changes.expiration_date or license_row.expiration_date,
    )

    previous = {"quantity_total": license_row.quantity_total, "quantity_used": license_row.quantity_used}
    license_row.quantity_total = total
    license_row.quantity_used = used
    if changes.activation_date is not None:
        license_row.activation_date = changes.activation_date
    if changes.expiration_date is not None:
        license_row.expiration_date = changes.expiration_date
    if changes.status is not None:
        license_row.status = LicenseStatus(changes.status).value
    license_row.updated_at = datetime.utcnow()

    await db.flush()
    logger.info("license.updated", license_id=str(license_id), previous=previous, quantity_total=total, quantity_used=used)
    return license_row


async def select_license_for_consumption(
    db: AsyncSession, customer_id: uuid.UUID, module_id: int
) -> License | None:
    """
    The single active license a report request draws from.

    Ordered by expiration date according to ``license_selection_policy``
    (latest first by default). Only status is filtered here; expiry and
    remaining units are checked by the caller.
    """
    policy = get_settings().license_selection_policy
    order = License.expiration_date.asc() if policy == "earliest_expiration" else License.expiration_date.desc()
    result = await db.execute(
        select(License)
        .where(
            License.customer_id == customer_id,
            License.module_id == module_id,
            License.status == LicenseStatus.ACTIVE.value,
        )
        .order_by(order, License.created_at.asc())
        .limit(1)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def consume_unit(db: AsyncSession, license_id: uuid.UUID) -> bool:
    """
    Increment ``quantity_used`` by exactly one if a unit is still available.

    The availability check lives in the UPDATE's WHERE clause, so concurrent
    callers can never push the license past its total. Returns False when
    no row was updated.
    """
    result = await db.execute(
        update(License)
        .where(License.id == license_id, License.quantity_used < License.quantity_total)
        .values(quantity_used=License.quantity_used + 1, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
