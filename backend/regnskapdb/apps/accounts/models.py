# backend/regnskapdb/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from regnskapdb.database import Base
from regnskapdb.utils.identifiers import generate_uuid7


DEFAULT_EMPLOYEE_LIMIT = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class AccountRole(str, enum.Enum):
    """Roles used by the back office.

    LISENSADMIN manages seats and billing for the firm; OPPDRAGSANSVARLIG
    (engagement lead) owns client work and may operate the task scheduler.
    """

    ADMIN = "admin"
    LISENSADMIN = "lisensadmin"
    OPPDRAGSANSVARLIG = "oppdragsansvarlig"
    MEDARBEIDER = "medarbeider"


# ---------------------------------------------------------------------------
# TENANT
# ---------------------------------------------------------------------------


class Tenant(Base):
    """
    An accounting firm using the platform; the multi-tenancy boundary.

    `employee_limit` is the seat policy consulted by the licensing ledger.
    It is only changed by plan-upgrade flows, never by the ledger itself.
    """

    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    name = Column(String(255), nullable=False)
    org_number = Column(String(32), nullable=True, index=True)
    email = Column(String(255), nullable=True)

    subscription_plan = Column(String(32), nullable=False, default="basic")
    subscription_status = Column(String(32), nullable=False, default="active")
    employee_limit = Column(Integer, nullable=True, default=DEFAULT_EMPLOYEE_LIMIT)

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    users = relationship("User", back_populates="tenant", lazy="selectin")
    clients = relationship("Client", back_populates="tenant", lazy="selectin")

    @property
    def seat_limit(self) -> int:
        return self.employee_limit if self.employee_limit is not None else DEFAULT_EMPLOYEE_LIMIT

    def __repr__(self) -> str:
        return f"<Tenant {self.id} {self.name}>"


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class User(Base):
    """
    Employee account within a tenant.

    `is_licensed` marks the user as occupying a paid seat; it is only
    written by the licensing ledger.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
        Index("ix_users_tenant_licensed", "tenant_id", "is_active", "is_licensed"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)

    role = Column(
        Enum(AccountRole, name="account_role_enum", native_enum=False),
        nullable=False,
        default=AccountRole.MEDARBEIDER,
        index=True,
    )

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_licensed = Column(Boolean, nullable=False, default=False, index=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    tenant = relationship("Tenant", back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role} licensed={self.is_licensed}>"


# ---------------------------------------------------------------------------
# CLIENTS
# ---------------------------------------------------------------------------


class Client(Base):
    """A customer of the accounting firm; recurring work is attached to it."""

    __tablename__ = "clients"
    __table_args__ = (
        Index("ix_clients_tenant_active", "tenant_id", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    org_number = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    tenant = relationship("Tenant", back_populates="clients")

    def __repr__(self) -> str:
        return f"<Client {self.name} tenant={self.tenant_id}>"
