"""
Licenses Router — ledger reads for visible customers, superadmin assignment and edits.
"""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from access.permissions import Permission
from access.policy import AssociationGraph, accessible_owner_identities, can_access_customer
from access.types import LicenseStatus
from api.deps import Caller, get_caller, get_caller_graph, get_db, require_permission
from core.errors import AccessDenied
from db.models import Customer
from licensing.ledger import (
    LicenseChanges,
    create_license,
    get_license,
    list_licenses,
    list_owned_licenses,
    update_license,
)

router = APIRouter(prefix="/api/v1/licenses", tags=["licenses"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class LicenseCreate(BaseModel):
    customer_id: UUID
    module_id: int
    quantity_total: int = Field(..., ge=0)
    quantity_used: int = Field(0, ge=0)
    activation_date: date
    expiration_date: date
    status: LicenseStatus = LicenseStatus.ACTIVE


class LicenseUpdate(BaseModel):
    quantity_total: int | None = Field(None, ge=0)
    quantity_used: int | None = Field(None, ge=0)
    activation_date: date | None = None
    expiration_date: date | None = None
    status: LicenseStatus | None = None


class LicenseResponse(BaseModel):
    id: UUID
    customer_id: UUID
    module_id: int
    quantity_total: int
    quantity_used: int
    remaining: int
    activation_date: date
    expiration_date: date
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[LicenseResponse])
async def list_visible_licenses(
    customer_id: UUID | None = None,
    module_id: int | None = None,
    status: LicenseStatus | None = None,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.LICENSES_READ)),
    graph: AssociationGraph = Depends(get_caller_graph),
):
    owners = accessible_owner_identities(caller.role, caller.identity, graph)
    query = select(Customer.id)
    if owners is not None:
        query = query.where(Customer.owner_identity.in_(sorted(owners)))
    if customer_id is not None:
        query = query.where(Customer.id == customer_id)

    customer_ids = None
    if owners is not None or customer_id is not None:
        customer_ids = [row[0] for row in (await db.execute(query)).all()]
    return await list_licenses(db, customer_ids, module_id=module_id, status=status)


@router.get("/mine", response_model=list[LicenseResponse])
async def my_licenses(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Licenses of the customers the caller owns. Open to every role, for the usage card."""
    return await list_owned_licenses(db, caller.identity)


@router.get("/{license_id}", response_model=LicenseResponse)
async def get_license_detail(
    license_id: UUID,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.LICENSES_READ)),
    graph: AssociationGraph = Depends(get_caller_graph),
):
    license_row = await get_license(db, license_id)
    customer = await db.get(Customer, license_row.customer_id)
    owner = customer.owner_identity if customer else None
    if not can_access_customer(caller.role, caller.identity, owner, graph):
        raise AccessDenied("You cannot access this license")
    return license_row


@router.post("/", response_model=LicenseResponse, status_code=201)
async def assign_license(
    body: LicenseCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.LICENSES_ASSIGN)),
):
    try:
        license_row = await create_license(db, caller_role=caller.role, **body.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    await db.commit()
    await db.refresh(license_row)
    return license_row


@router.patch("/{license_id}", response_model=LicenseResponse)
async def edit_license(
    license_id: UUID,
    body: LicenseUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.LICENSES_ASSIGN)),
):
    try:
        license_row = await update_license(
            db, license_id, LicenseChanges(**body.model_dump(exclude_unset=True)), caller.role
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    await db.commit()
    await db.refresh(license_row)
    return license_row
