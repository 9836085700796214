"""
Associations Router — parent → child customer edges, parent search and stats.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from access.policy import AssociationGraph, can_access_customer, can_manage_associations
from access.types import Role
from api.deps import Caller, get_caller, get_caller_graph, get_db
from associations.stats import get_association_stats
from associations.store import (
    create_association,
    delete_association,
    get_customer,
    list_associations,
    search_eligible_parents,
)
from core.errors import AccessDenied, EntityNotFound

router = APIRouter(prefix="/api/v1/associations", tags=["associations"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class AssociationCreate(BaseModel):
    parent_id: UUID
    child_id: UUID
    notes: str | None = Field(None, max_length=2000)


class AssociationResponse(BaseModel):
    id: UUID
    parent_customer_id: UUID
    child_customer_id: UUID
    association_type: str
    created_by: str | None
    created_at: datetime
    notes: str | None

    model_config = {"from_attributes": True}


class AssociationDetail(AssociationResponse):
    parent_name: str | None = None
    parent_type: str | None = None
    child_name: str | None = None
    child_type: str | None = None
    location: str | None = None


class AssociationListResponse(BaseModel):
    parent: AssociationDetail | None
    children: list[AssociationDetail]


class EligibleParent(BaseModel):
    id: UUID
    name: str
    customer_type: str
    status: str
    email: str | None
    location: str | None

    model_config = {"from_attributes": True}


class ChildStats(BaseModel):
    id: UUID
    name: str
    type: str
    status: str
    association_type: str
    license_count: int
    license_usage: int
    location: str | None
    email: str | None


class StatsResponse(BaseModel):
    parent_customer_id: UUID
    total_children: int
    by_type: dict[str, int]
    licenses: dict[str, int]
    children: list[ChildStats]


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.post("/", response_model=AssociationResponse, status_code=201)
async def create_edge(
    body: AssociationCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Create a parent → child association. Superadmin only."""
    edge = await create_association(
        db,
        parent_customer_id=body.parent_id,
        child_customer_id=body.child_id,
        caller_role=caller.role,
        created_by=caller.identity,
        notes=body.notes,
    )
    await db.commit()
    await db.refresh(edge)
    return edge


@router.get("/", response_model=AssociationListResponse)
async def list_for_customer(
    customer_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
    graph: AssociationGraph = Depends(get_caller_graph),
):
    """Parent and children of one customer the caller can see."""
    customer = await get_customer(db, customer_id)
    if customer is None:
        raise EntityNotFound("Customer not found")
    if not can_access_customer(caller.role, caller.identity, customer.owner_identity, graph):
        raise AccessDenied("You cannot access this customer")
    return await list_associations(db, customer_id)


@router.delete("/{association_id}", status_code=204)
async def delete_edge(
    association_id: UUID,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Delete an association. Superadmin only."""
    await delete_association(db, association_id, caller.role)
    await db.commit()


@router.get("/search", response_model=list[EligibleParent])
async def search_parents(
    child_id: UUID = Query(...),
    child_type: Role | None = Query(None),
    q: str = Query("", max_length=255),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Autocomplete candidates for the parent of ``child_id``."""
    if not can_manage_associations(caller.role):
        raise AccessDenied("Only superadmin can search association parents")
    return await search_eligible_parents(db, child_id, child_type, q)


@router.get("/stats", response_model=StatsResponse)
async def stats(
    customer_id: UUID = Query(..., description="Parent customer"),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Children counts and license totals for a reseller/intermediary customer."""
    result = await get_association_stats(db, customer_id, caller.role, caller.identity)
    return result.to_dict()
