"""
FormulaFinance Database Models

Tables:
  1. user_roles             - One role per external identity
  2. customers              - Business entities, nodes of the association graph
  3. modules                - Product modules a license entitles
  4. customer_associations  - Directed parent -> child management edges
  5. licenses               - Consumable report units per (customer, module)
  6. reports                - Report requests gated by license consumption
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship

from access.types import (
    CUSTOMER_TYPES,
    AssociationType,
    CustomerStatus,
    LicenseStatus,
    ReportStatus,
    Role,
    sql_in,
)
from db.session import Base


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


# ─── 1. Roles ───────────────────────────────────────────────────────────────


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identity = Column(String(255), nullable=False, unique=True)
    role = Column(String(30), nullable=False)
    created_by = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (CheckConstraint(f"role IN ({sql_in(Role)})", name="ck_user_role_role"),)


# ─── 2. Customers ───────────────────────────────────────────────────────────


class Customer(Base):
    __tablename__ = "customers"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    customer_type = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=CustomerStatus.ACTIVE.value)
    owner_identity = Column(String(255))
    city = Column(String(100))
    province = Column(String(10))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_customers_owner", "owner_identity"),
        Index("ix_customers_type_status", "customer_type", "status"),
        CheckConstraint(f"customer_type IN ({sql_in(CUSTOMER_TYPES)})", name="ck_customer_type"),
        CheckConstraint(f"status IN ({sql_in(CustomerStatus)})", name="ck_customer_status"),
    )

    licenses = relationship("License", back_populates="customer", cascade="all, delete-orphan")
    reports = relationship("Report", back_populates="customer", cascade="all, delete-orphan")

    @property
    def location(self) -> str | None:
        if self.city and self.province:
            return f"{self.city} ({self.province})"
        return self.city or None


# ─── 3. Modules ─────────────────────────────────────────────────────────────


class Module(Base):
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    display_name = Column(String(255), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


# ─── 4. Associations ────────────────────────────────────────────────────────


class CustomerAssociation(Base):
    __tablename__ = "customer_associations"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    parent_customer_id = Column(GUID(), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    child_customer_id = Column(GUID(), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    association_type = Column(String(20), nullable=False)
    created_by = Column(String(255))
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("parent_customer_id", "child_customer_id", name="uq_association_pair"),
        Index("ix_associations_child", "child_customer_id"),
        CheckConstraint("parent_customer_id <> child_customer_id", name="ck_association_no_self_loop"),
        CheckConstraint(f"association_type IN ({sql_in(AssociationType)})", name="ck_association_type"),
    )

    parent = relationship("Customer", foreign_keys=[parent_customer_id])
    child = relationship("Customer", foreign_keys=[child_customer_id])


# ─── 5. Licenses ────────────────────────────────────────────────────────────


class License(Base):
    __tablename__ = "licenses"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    customer_id = Column(GUID(), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False)
    quantity_total = Column(Integer, nullable=False)
    quantity_used = Column(Integer, nullable=False, default=0)
    activation_date = Column(Date, nullable=False)
    expiration_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=LicenseStatus.ACTIVE.value)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_licenses_customer_module_status", "customer_id", "module_id", "status"),
        CheckConstraint("quantity_used >= 0", name="ck_license_used_non_negative"),
        CheckConstraint("quantity_used <= quantity_total", name="ck_license_used_within_total"),
        CheckConstraint(f"status IN ({sql_in(LicenseStatus)})", name="ck_license_status"),
    )

    customer = relationship("Customer", back_populates="licenses")
    module = relationship("Module")

    @property
    def remaining(self) -> int:
        return int(self.quantity_total or 0) - int(self.quantity_used or 0)


# ─── 6. Reports ─────────────────────────────────────────────────────────────


class Report(Base):
    __tablename__ = "reports"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    customer_id = Column(GUID(), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False)
    license_id = Column(GUID(), ForeignKey("licenses.id"), nullable=True)
    report_type = Column(String(50))
    status = Column(String(20), nullable=False, default=ReportStatus.PENDING.value)
    input_data = Column(JSON, nullable=False, default=dict)
    api_response = Column(JSON)
    generated_html = Column(Text)
    created_by = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime)

    __table_args__ = (
        Index("ix_reports_customer", "customer_id"),
        CheckConstraint(f"status IN ({sql_in(ReportStatus)})", name="ck_report_status"),
    )

    customer = relationship("Customer", back_populates="reports")
    module = relationship("Module")
    license = relationship("License")
