"""
Association Statistics — aggregate view over a parent's direct children.

Derived entirely from the association edges and active licenses; holds no
state of its own.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from access.policy import can_view_association_stats
from access.types import LicenseStatus, Role
from core.errors import AccessDenied, EntityNotFound
from db.models import Customer, CustomerAssociation, License

CHILD_TYPE_BUCKETS = (Role.INTERMEDIARY, Role.CLIENT_BASIC, Role.CLIENT_PROSPECT)


def license_usage_percent(used: int, total: int) -> int:
    """used/total as a whole percentage, halves rounded up; 0 when nothing was ever issued."""
    if not total:
        return 0
    return (used * 200 + total) // (2 * total)


@dataclass
class ChildSummary:
    id: uuid.UUID
    name: str
    type: str
    status: str
    association_type: str
    license_count: int
    licenses_total: int
    licenses_used: int
    location: str | None = None
    email: str | None = None

    @property
    def license_usage(self) -> int:
        return license_usage_percent(self.licenses_used, self.licenses_total)


@dataclass
class AssociationStats:
    parent_customer_id: uuid.UUID
    children: list[ChildSummary] = field(default_factory=list)

    @property
    def total_children(self) -> int:
        return len(self.children)

    @property
    def by_type(self) -> dict[str, int]:
        counts = {bucket.value: 0 for bucket in CHILD_TYPE_BUCKETS}
        for child in self.children:
            if child.type in counts:
                counts[child.type] += 1
        return counts

    @property
    def licenses(self) -> dict[str, int]:
        return {
            "total": sum(c.licenses_total for c in self.children),
            "used": sum(c.licenses_used for c in self.children),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "parent_customer_id": self.parent_customer_id,
            "total_children": self.total_children,
            "by_type": self.by_type,
            "licenses": self.licenses,
            "children": [
                {
                    "id": c.id,
                    "name": c.name,
                    "type": c.type,
                    "status": c.status,
                    "association_type": c.association_type,
                    "license_count": c.license_count,
                    "license_usage": c.license_usage,
                    "location": c.location,
                    "email": c.email,
                }
                for c in self.children
            ],
        }


async def compute_association_stats(db: AsyncSession, parent_customer_id: uuid.UUID) -> AssociationStats:
    result = await db.execute(
        select(
            Customer,
            CustomerAssociation.association_type,
            func.count(License.id).label("license_count"),
            func.coalesce(func.sum(License.quantity_total), 0).label("licenses_total"),
            func.coalesce(func.sum(License.quantity_used), 0).label("licenses_used"),
        )
        .select_from(CustomerAssociation)
        .join(Customer, Customer.id == CustomerAssociation.child_customer_id)
        .outerjoin(
            License,
            and_(License.customer_id == Customer.id, License.status == LicenseStatus.ACTIVE.value),
        )
        .where(CustomerAssociation.parent_customer_id == parent_customer_id)
        .group_by(Customer.id, CustomerAssociation.association_type)
        .order_by(Customer.name)
    )

    stats = AssociationStats(parent_customer_id=parent_customer_id)
    for customer, association_type, license_count, licenses_total, licenses_used in result.all():
        stats.children.append(
            ChildSummary(
                id=customer.id,
                name=customer.name,
                type=customer.customer_type,
                status=customer.status,
                association_type=association_type,
                license_count=int(license_count or 0),
                licenses_total=int(licenses_total or 0),
                licenses_used=int(licenses_used or 0),
                location=customer.location,
                email=customer.email,
            )
        )
    return stats


async def get_association_stats(
    db: AsyncSession,
    parent_customer_id: uuid.UUID,
    caller_role: Role | None,
    caller_identity: str | None,
) -> AssociationStats:
    """
    Stats for one parent customer. Superadmin may read any parent; resellers
    and intermediaries only a customer they own.
    """
    if not can_view_association_stats(caller_role):
        raise AccessDenied("You do not have permission to view stats")

    parent = await db.get(Customer, parent_customer_id)
    if parent is None:
        raise EntityNotFound("Customer not found")

    if caller_role != Role.SUPERADMIN and (
        not caller_identity or parent.owner_identity != str(caller_identity)
    ):
        raise AccessDenied("You can only view your own stats")

    return await compute_association_stats(db, parent_customer_id)
