"""
Association Graph Store — persisted parent → child edges between customers.

Mutations (create/delete) run inside the caller's session transaction and
only flush; the request commits once at the end. Edge creation locks both
customer rows before re-reading the graph so two concurrent requests cannot
both pass the duplicate/reverse checks.

The exclusion rules in ``search_eligible_parents`` mirror the checks in
``create_association`` one for one. Change both or neither.
"""

import uuid
from typing import Any

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from access.policy import AssociationGraph, can_manage_associations
from access.types import CustomerStatus, Role, parse_role
from associations.validation import valid_parent_types, validate_association
from core.config import get_settings
from core.errors import AccessDenied, AssociationRejected, EntityNotFound, ErrorKind
from db.models import Customer, CustomerAssociation

logger = structlog.get_logger()


# ─── Reads ──────────────────────────────────────────────────────────────────


async def get_customer(db: AsyncSession, customer_id: uuid.UUID) -> Customer | None:
    result = await db.execute(select(Customer).where(Customer.id == customer_id))
    return result.scalar_one_or_none()


async def find_edge(
    db: AsyncSession, parent_customer_id: uuid.UUID, child_customer_id: uuid.UUID
) -> CustomerAssociation | None:
    result = await db.execute(
        select(CustomerAssociation).where(
            CustomerAssociation.parent_customer_id == parent_customer_id,
            CustomerAssociation.child_customer_id == child_customer_id,
        )
    )
    return result.scalar_one_or_none()


async def load_identity_graph(db: AsyncSession, identity: str | None) -> AssociationGraph:
    """
    Build the one-hop identity graph rooted at ``identity``: owners of the
    customers directly below any customer that ``identity`` owns.
    """
    if not identity:
        return AssociationGraph()

    parent = aliased(Customer)
    child = aliased(Customer)
    result = await db.execute(
        select(parent.owner_identity, child.owner_identity)
        .select_from(CustomerAssociation)
        .join(parent, parent.id == CustomerAssociation.parent_customer_id)
        .join(child, child.id == CustomerAssociation.child_customer_id)
        .where(parent.owner_identity == str(identity), child.owner_identity.is_not(None))
    )
    return AssociationGraph.from_pairs((row[0], row[1]) for row in result.all())


def _serialize_edge(edge: CustomerAssociation, other: Customer, side: str) -> dict[str, Any]:
    return {
        "id": edge.id,
        "parent_customer_id": edge.parent_customer_id,
        "child_customer_id": edge.child_customer_id,
        "association_type": edge.association_type,
        "created_by": edge.created_by,
        "created_at": edge.created_at,
        "notes": edge.notes,
        f"{side}_name": other.name,
        f"{side}_type": other.customer_type,
        "location": other.location,
    }


async def list_associations(db: AsyncSession, customer_id: uuid.UUID) -> dict[str, Any]:
    """Return ``{"parent": edge | None, "children": [edge, ...]}`` for one customer."""
    parent_rows = await db.execute(
        select(CustomerAssociation, Customer)
        .join(Customer, Customer.id == CustomerAssociation.parent_customer_id)
        .where(CustomerAssociation.child_customer_id == customer_id)
        .order_by(CustomerAssociation.created_at.asc())
        .limit(1)
    )
    parent_row = parent_rows.first()

    child_rows = await db.execute(
        select(CustomerAssociation, Customer)
        .join(Customer, Customer.id == CustomerAssociation.child_customer_id)
        .where(CustomerAssociation.parent_customer_id == customer_id)
        .order_by(Customer.name)
    )

    return {
        "parent": _serialize_edge(parent_row[0], parent_row[1], "parent") if parent_row else None,
        "children": [_serialize_edge(edge, child, "child") for edge, child in child_rows.all()],
    }


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def search_eligible_parents(
    db: AsyncSession,
    child_customer_id: uuid.UUID,
    child_type: Role | str | None,
    query_text: str = "",
    limit: int | None = None,
) -> list[Customer]:
    """
    Customers that could become a parent of ``child_customer_id``.

    Applies the same rules as ``create_association``: a parent type valid for
    the child, active status, not the child itself, and no existing edge in
    either direction. When the child row exists its stored type wins over
    ``child_type``.
    """
    child = await get_customer(db, child_customer_id)
    effective_type = parse_role(child.customer_type) if child is not None else child_type
    parent_types = valid_parent_types(effective_type)
    if not parent_types:
        raise AssociationRejected(
            "This customer type cannot have a parent",
            kind=ErrorKind.INVALID_CHILD_TYPE,
        )

    existing_parents = select(CustomerAssociation.parent_customer_id).where(
        CustomerAssociation.child_customer_id == child_customer_id
    )
    existing_children = select(CustomerAssociation.child_customer_id).where(
        CustomerAssociation.parent_customer_id == child_customer_id
    )

    query = select(Customer).where(
        Customer.customer_type.in_([t.value for t in parent_types]),
        Customer.status == CustomerStatus.ACTIVE.value,
        Customer.id != child_customer_id,
        Customer.id.not_in(existing_parents),
        Customer.id.not_in(existing_children),
    )
    if query_text:
        pattern = f"%{_escape_like(query_text.lower())}%"
        query = query.where(func.lower(Customer.name).like(pattern, escape="\\"))

    query = query.order_by(Customer.name).limit(limit or get_settings().search_results_limit)
    result = await db.execute(query)
    return list(result.scalars().all())


# ─── Mutations ──────────────────────────────────────────────────────────────


async def _lock_customers(db: AsyncSession, *customer_ids: uuid.UUID) -> dict[uuid.UUID, Customer]:
    # Fixed lock order so two requests on the same pair cannot deadlock.
    result = await db.execute(
        select(Customer).where(Customer.id.in_(customer_ids)).order_by(Customer.id).with_for_update()
    )
    return {customer.id: customer for customer in result.scalars().all()}


async def create_association(
    db: AsyncSession,
    parent_customer_id: uuid.UUID,
    child_customer_id: uuid.UUID,
    caller_role: Role | None,
    created_by: str | None = None,
    notes: str | None = None,
) -> CustomerAssociation:
    """
    Validate and insert one parent → child edge.

    Raises ``AccessDenied`` (not superadmin), ``EntityNotFound`` (either
    customer missing) or ``AssociationRejected`` carrying the precise kind.
    """
    if not can_manage_associations(caller_role):
        logger.info("association.refused", kind=ErrorKind.FORBIDDEN.value, created_by=created_by)
        raise AccessDenied("Only superadmin can create associations")

    if parent_customer_id == child_customer_id:
        raise AssociationRejected("A customer cannot be its own parent", kind=ErrorKind.CIRCULAR)

    customers = await _lock_customers(db, parent_customer_id, child_customer_id)
    parent = customers.get(parent_customer_id)
    child = customers.get(child_customer_id)
    if parent is None or child is None:
        raise EntityNotFound("Parent or child customer not found")

    verdict = validate_association(parent.customer_type, child.customer_type, caller_role)
    if not verdict.valid:
        logger.info(
            "association.refused",
            kind=verdict.error_kind.value,
            parent_customer_id=str(parent_customer_id),
            child_customer_id=str(child_customer_id),
        )
        raise AssociationRejected(verdict.message, kind=verdict.error_kind)

    if parent.status != CustomerStatus.ACTIVE.value:
        raise AssociationRejected("Parent customer is not active", kind=ErrorKind.INVALID_PAIR)

    if await find_edge(db, parent_customer_id, child_customer_id) is not None:
        raise AssociationRejected("Association already exists", kind=ErrorKind.DUPLICATE)
    if await find_edge(db, child_customer_id, parent_customer_id) is not None:
        raise AssociationRejected("Circular association not allowed", kind=ErrorKind.CIRCULAR)

    edge = CustomerAssociation(
        parent_customer_id=parent_customer_id,
        child_customer_id=child_customer_id,
        association_type=verdict.association_type.value,
        created_by=created_by,
        notes=notes,
    )
    db.add(edge)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Concurrent identical insert committed first.
        logger.warning(
            "association.duplicate_on_insert",
            parent_customer_id=str(parent_customer_id),
            child_customer_id=str(child_customer_id),
            error=str(exc.orig),
        )
        raise AssociationRejected("Association already exists", kind=ErrorKind.DUPLICATE) from exc

    logger.info(
        "association.created",
        association_id=str(edge.id),
        parent_customer_id=str(parent_customer_id),
        child_customer_id=str(child_customer_id),
        association_type=edge.association_type,
        created_by=created_by,
    )
    return edge


async def delete_association(db: AsyncSession, association_id: uuid.UUID, caller_role: Role | None) -> None:
    if not can_manage_associations(caller_role):
        raise AccessDenied("Only superadmin can delete associations")

    result = await db.execute(delete(CustomerAssociation).where(CustomerAssociation.id == association_id))
    if result.rowcount == 0:
        raise EntityNotFound("Association not found")
    logger.info("association.deleted", association_id=str(association_id))

