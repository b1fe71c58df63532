from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Index, JSON, String, Text

from regnskapdb.database import Base
from regnskapdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryStatus(str, enum.Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class NotificationLog(Base):
    """One row per outgoing notification attempt, whatever its outcome."""

    __tablename__ = "notification_logs"
    __table_args__ = (
        Index("ix_notification_logs_tenant_status", "tenant_id", "status"),
        Index("ix_notification_logs_task", "task_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)

    channel = Column(String(16), nullable=False, default="email")
    template_key = Column(String(64), nullable=False)
    recipient = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=True)

    status = Column(
        SAEnum(DeliveryStatus, name="delivery_status_enum", native_enum=False),
        nullable=False,
        default=DeliveryStatus.QUEUED,
    )
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<NotificationLog {self.template_key} -> {self.recipient} ({self.status})>"
