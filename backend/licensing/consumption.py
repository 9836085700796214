"""
Report creation gated by license consumption.

One request = one unit. The license decrement and the report insert share
the caller's session transaction: either both are committed by the request
or neither is. Guard failures raise before anything is written.
"""

import uuid
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from access.types import ReportStatus
from core.errors import EntityNotFound, ErrorKind, LicenseUnavailable
from db.models import Customer, License, Report
from licensing.ledger import consume_unit, select_license_for_consumption

logger = structlog.get_logger()


def check_license_available(license_row: License | None, today=None) -> ErrorKind | None:
    """
    Gate a candidate license. Returns the refusal kind, or None if usable.

    Order matters: missing, then exhausted, then expired. Expiry is checked
    even though the license is ``active``; status and dates are maintained
    independently and can disagree.
    """
    if license_row is None:
        return ErrorKind.NO_ACTIVE_LICENSE
    if license_row.remaining <= 0:
        return ErrorKind.LICENSE_EXHAUSTED
    today = today or datetime.utcnow().date()
    if license_row.expiration_date < today:
        return ErrorKind.LICENSE_EXPIRED
    return None


_REFUSAL_MESSAGES = {
    ErrorKind.NO_ACTIVE_LICENSE: "No active license for this module",
    ErrorKind.LICENSE_EXHAUSTED: "License exhausted: no units remaining",
    ErrorKind.LICENSE_EXPIRED: "License expired",
}


def _refuse(kind: ErrorKind, customer_id: uuid.UUID, module_id: int) -> LicenseUnavailable:
    logger.info("report.refused", kind=kind.value, customer_id=str(customer_id), module_id=module_id)
    return LicenseUnavailable(_REFUSAL_MESSAGES[kind], kind=kind)


async def request_report_creation(
    db: AsyncSession,
    customer_id: uuid.UUID,
    module_id: int,
    payload: dict[str, Any],
    *,
    report_type: str | None = None,
    status: ReportStatus = ReportStatus.PENDING,
    created_by: str | None = None,
) -> Report:
    """
    Check the license ledger, consume one unit and insert a ``pending`` report.

    Raises ``EntityNotFound`` for an unknown customer and
    ``LicenseUnavailable`` with kind no_active_license / license_exhausted /
    license_expired. None of these are retried.
    """
    if await db.get(Customer, customer_id) is None:
        raise EntityNotFound("Customer not found")

    license_row = await select_license_for_consumption(db, customer_id, module_id)
    refusal = check_license_available(license_row)
    if refusal is not None:
        raise _refuse(refusal, customer_id, module_id)

    if not await consume_unit(db, license_row.id):
        # Another request took the last unit between our read and the update.
        raise _refuse(ErrorKind.LICENSE_EXHAUSTED, customer_id, module_id)

    report = Report(
        customer_id=customer_id,
        module_id=module_id,
        license_id=license_row.id,
        report_type=report_type,
        status=ReportStatus(status).value,
        input_data=payload or {},
        created_by=created_by,
    )
    db.add(report)
    await db.flush()
    await db.refresh(license_row)

    logger.info(
        "license.consumed",
        license_id=str(license_row.id),
        report_id=str(report.id),
        customer_id=str(customer_id),
        module_id=module_id,
        remaining=license_row.remaining,
    )
    return report
