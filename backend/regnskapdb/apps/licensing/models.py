from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from regnskapdb.database import Base
from regnskapdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    ISSUED = "issued"


class InvoiceLineType(str, enum.Enum):
    MAIN_LICENSE = "MAIN_LICENSE"
    USER_LICENSE = "USER_LICENSE"


MAIN_LINE_KEY = "main"


def user_line_key(user_id: str, period: str) -> str:
    return f"user:{user_id}:{period}"


class LicensedEmployee(Base):
    """Per-period record of whether a user occupies a paid seat."""

    __tablename__ = "licensed_employees"
    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", "period", name="uq_licensed_employees_tenant_user_period"),
        Index("ix_licensed_employees_tenant_period", "tenant_id", "period"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    period = Column(String(7), nullable=False)
    is_licensed = Column(Boolean, nullable=False, default=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<LicensedEmployee user={self.user_id} period={self.period} licensed={self.is_licensed}>"


class Invoice(Base):
    """
    Monthly license invoice for a tenant. `total_amount` is derived from the
    lines and only written by `recalculate_invoice_total`.
    """

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("tenant_id", "period_start", "period_end", name="uq_invoices_tenant_period"),
        Index("ix_invoices_tenant_status", "tenant_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_number = Column(String(64), nullable=False, index=True)
    period = Column(String(7), nullable=False)
    period_start = Column(DateTime(timezone=True), nullable=False)
    period_end = Column(DateTime(timezone=True), nullable=False)

    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="NOK")
    status = Column(
        SAEnum(InvoiceStatus, name="invoice_status_enum", native_enum=False),
        nullable=False,
        default=InvoiceStatus.DRAFT,
    )
    issued_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    lines = relationship(
        "InvoiceLine",
        back_populates="invoice",
        lazy="selectin",
        order_by="InvoiceLine.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} status={self.status} total={self.total_amount}>"


class InvoiceLine(Base):
    __tablename__ = "invoice_lines"
    __table_args__ = (
        UniqueConstraint("invoice_id", "natural_key", name="uq_invoice_lines_invoice_key"),
        Index("ix_invoice_lines_invoice_type", "invoice_id", "line_type"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    line_type = Column(
        SAEnum(InvoiceLineType, name="invoice_line_type_enum", native_enum=False),
        nullable=False,
    )
    # "main" for the base license, "user:{user_id}:{period}" for seats.
    natural_key = Column(String(128), nullable=False)
    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(12, 2), nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    metadata_json = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    invoice = relationship("Invoice", back_populates="lines")

    def __repr__(self) -> str:
        return f"<InvoiceLine {self.natural_key} amount={self.amount}>"
