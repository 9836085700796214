"""
Reports Router — license-gated report requests.

Only the initial ``pending`` row is written here; the external generation
pipeline drives the report through processing → completed|failed.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from access.permissions import Permission
from access.policy import (
    AssociationGraph,
    accessible_owner_identities,
    can_access_customer,
    can_access_report,
)
from access.types import ReportStatus
from api.deps import Caller, get_caller_graph, get_db, require_permission
from core.errors import AccessDenied, EntityNotFound
from db.models import Customer, Report
from licensing.consumption import request_report_creation

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class ReportCreate(BaseModel):
    customer_id: UUID
    module_id: int
    report_type: str | None = Field(None, max_length=50)
    input_data: dict[str, Any] = Field(default_factory=dict)
    status: ReportStatus = ReportStatus.PENDING


class ReportResponse(BaseModel):
    id: UUID
    customer_id: UUID
    module_id: int
    license_id: UUID | None
    report_type: str | None
    status: str
    input_data: dict[str, Any]
    api_response: dict[str, Any] | None
    generated_html: str | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.post("/", response_model=ReportResponse, status_code=201)
async def create_report(
    body: ReportCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.REPORTS_CREATE)),
    graph: AssociationGraph = Depends(get_caller_graph),
):
    """
    Request a report for a customer the caller can access.

    Consumes one license unit; refuses with no_active_license,
    license_exhausted or license_expired before anything is written.
    """
    customer = await db.get(Customer, body.customer_id)
    if customer is None:
        raise EntityNotFound("Customer not found")
    if not can_access_customer(caller.role, caller.identity, customer.owner_identity, graph):
        raise AccessDenied("You cannot request reports for this customer")

    report = await request_report_creation(
        db,
        body.customer_id,
        body.module_id,
        body.input_data,
        report_type=body.report_type,
        status=body.status,
        created_by=caller.identity,
    )
    await db.commit()
    await db.refresh(report)
    return report


@router.get("/", response_model=list[ReportResponse])
async def list_reports(
    customer_id: UUID | None = None,
    module_id: int | None = None,
    status: ReportStatus | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.REPORTS_READ)),
    graph: AssociationGraph = Depends(get_caller_graph),
):
    """Reports of the customers the caller can see, newest first."""
    query = select(Report)
    owners = accessible_owner_identities(caller.role, caller.identity, graph)
    if owners is not None:
        visible = select(Customer.id).where(Customer.owner_identity.in_(sorted(owners)))
        query = query.where(Report.customer_id.in_(visible))
    if customer_id is not None:
        query = query.where(Report.customer_id == customer_id)
    if module_id is not None:
        query = query.where(Report.module_id == module_id)
    if status is not None:
        query = query.where(Report.status == status.value)
    result = await db.execute(query.order_by(Report.created_at.desc()).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: UUID,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_permission(Permission.REPORTS_READ)),
    graph: AssociationGraph = Depends(get_caller_graph),
):
    report = await db.get(Report, report_id)
    if report is None:
        raise EntityNotFound("Report not found")
    customer = await db.get(Customer, report.customer_id)
    owner = customer.owner_identity if customer else None
    if not can_access_report(caller.role, caller.identity, owner, graph):
        raise AccessDenied("You cannot access this report")
    return report
