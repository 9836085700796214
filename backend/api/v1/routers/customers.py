"""
Customers Router — visibility-filtered reads, superadmin creation and deletion, scoped edits.
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from access.permissions import Permission
from access.policy import (
    AssociationGraph,
    accessible_owner_identities,
    can_access_customer,
    can_view_customer_list,
)
from access.roles import resolve_role, set_role
from access.types import CUSTOMER_TYPES, CustomerStatus, Role
from api.deps import Caller, get_caller, get_caller_graph, get_db, require_permission
from core.errors import AccessDenied, EntityNotFound
from db.models import Customer, CustomerAssociation

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/customers", tags=["customers"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(None, max_length=255)
    customer_type: Role
    status: CustomerStatus = CustomerStatus.ACTIVE
    owner_identity: str | None = None
    city: str | None = None
    province: str | None = Field(None, max_length=10)

    @field_validator("customer_type")
    @classmethod
    def _not_superadmin(cls, value: Role) -> Role:
        if value not in CUSTOMER_TYPES:
            raise ValueError("superadmin is not a customer type")
        return value


class CustomerUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = Field(None, max_length=255)
    status: CustomerStatus | None = None
    city: str | None = None
    province: str | None = Field(None, max_length=10)


class CustomerResponse(BaseModel):
    id: UUID
    name: str
    email: str | None
    customer_type: str
    status: str
    owner_identity: str | None
    location: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[CustomerResponse])
async def list_customers(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    customer_type: Role | None = None,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
    graph: AssociationGraph = Depends(get_caller_graph),
):
    """Customers the caller can see: all for superadmin, own + direct children for managers."""
    if not can_view_customer_list(caller.role):
        raise AccessDenied("You cannot view the customer list")

    query = select(Customer)
    owners = accessible_owner_identities(caller.role, caller.identity, graph)
    if owners is not None:
        query = query.where(Customer.owner_identity.in_(sorted(owners)))
    if customer_type:
        query = query.where(Customer.customer_type == customer_type.value)
    result = await db.execute(query.order_by(Customer.name).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer_detail(
    customer_id: UUID,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
    graph: AssociationGraph = Depends(get_caller_graph),
):
    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise EntityNotFound("Customer not found")
    if not can_access_customer(caller.role, caller.identity, customer.owner_identity, graph):
        raise AccessDenied("You cannot access this customer")
    return customer


@router.post("/", response_model=CustomerResponse, status_code=201)
async def create_customer(
    body: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.CUSTOMERS_CREATE)),
):
    """
    Create a customer. An owner identity that holds no role yet is given
    the customer's type as its role; an existing role is left alone.
    """
    customer = Customer(
        name=body.name,
        email=body.email,
        customer_type=body.customer_type.value,
        status=body.status.value,
        owner_identity=body.owner_identity,
        city=body.city,
        province=body.province,
    )
    db.add(customer)
    if body.owner_identity and await resolve_role(db, body.owner_identity) is None:
        await set_role(db, body.owner_identity, body.customer_type, granted_by=caller.identity)
    await db.commit()
    await db.refresh(customer)
    return customer


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: UUID,
    body: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.CUSTOMERS_UPDATE)),
    graph: AssociationGraph = Depends(get_caller_graph),
):
    """Edit contact details or status of a customer the caller can see."""
    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise EntityNotFound("Customer not found")
    if not can_access_customer(caller.role, caller.identity, customer.owner_identity, graph):
        raise AccessDenied("You cannot edit this customer")

    for field, value in body.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "status"):
            continue
        setattr(customer, field, value.value if isinstance(value, CustomerStatus) else value)
    await db.commit()
    await db.refresh(customer)
    logger.info("customer.updated", customer_id=str(customer_id), updated_by=caller.identity)
    return customer


@router.delete("/{customer_id}", status_code=204)
async def delete_customer(
    customer_id: UUID,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.CUSTOMERS_DELETE)),
):
    """Delete a customer with its licenses, reports and association edges."""
    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise EntityNotFound("Customer not found")

    await db.execute(
        delete(CustomerAssociation).where(
            or_(
                CustomerAssociation.parent_customer_id == customer_id,
                CustomerAssociation.child_customer_id == customer_id,
            )
        )
    )
    await db.delete(customer)
    await db.commit()
    logger.info("customer.deleted", customer_id=str(customer_id), deleted_by=caller.identity)
