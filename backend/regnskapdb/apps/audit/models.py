from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, JSON, String, desc

from regnskapdb.database import Base
from regnskapdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(Base):
    """
    What changed, who changed it and when, per tenant.

    Rows are written by the task engine, the license ledger and the
    accounts services; nothing updates or deletes them.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_tenant_module_action", "tenant_id", "module", "action"),
        Index("ix_audit_events_tenant_entity", "tenant_id", "entity_type", "entity_id"),
        Index("ix_audit_events_tenant_recent", "tenant_id", desc("occurred_at")),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    module = Column(String(32), nullable=False)
    action = Column(String(64), nullable=False)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(64), nullable=False)
    is_critical = Column(Boolean, nullable=False, default=False)

    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    details = Column(JSON, nullable=True)

    occurred_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.module}.{self.action} {self.entity_type}:{self.entity_id}>"
