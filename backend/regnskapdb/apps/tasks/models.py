from __future__ import annotations

from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)

from regnskapdb.database import Base
from regnskapdb.utils.identifiers import generate_uuid7

from .frequency import Frequency


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: "str | TaskStatus") -> "TaskStatus":
        """Accept canonical values and the Norwegian names used by the UI."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        if key in _STATUS_ALIASES:
            return _STATUS_ALIASES[key]
        raise ValueError(f"Unknown task status {value!r}")


_STATUS_ALIASES = {
    "pending": TaskStatus.PENDING,
    "ikke_startet": TaskStatus.PENDING,
    "in_progress": TaskStatus.IN_PROGRESS,
    "pågår": TaskStatus.IN_PROGRESS,
    "paagaar": TaskStatus.IN_PROGRESS,
    "completed": TaskStatus.COMPLETED,
    "ferdig": TaskStatus.COMPLETED,
}


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecurringTaskTemplate(Base):
    """
    Standing definition of repeating work for a client.

    `next_due_at` always points at the next occurrence that has not been
    generated yet. Only the recurring task engine advances it; users may
    edit frequency, assignee and the date itself.
    """

    __tablename__ = "client_tasks"
    __table_args__ = (
        Index("ix_client_tasks_tenant_due", "tenant_id", "next_due_at"),
        Index("ix_client_tasks_tenant_client", "tenant_id", "client_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    frequency = Column(
        SAEnum(Frequency, name="task_frequency_enum", native_enum=False),
        nullable=True,
        index=True,
    )
    next_due_at = Column(DateTime(timezone=True), nullable=True)
    assignee_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<RecurringTaskTemplate id={self.id} name={self.name} frequency={self.frequency}>"


class TaskInstance(Base):
    """
    A concrete unit of work. Generated from a template or created ad hoc
    (template_id is NULL). At most one instance exists per
    (tenant, client, title, calendar day of due_at) for generated tasks.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_tenant_status", "tenant_id", "status"),
        Index("ix_tasks_tenant_client_title_due", "tenant_id", "client_id", "title", "due_at"),
        Index("ix_tasks_assignee_status", "assignee_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(String(36), ForeignKey("client_tasks.id", ondelete="SET NULL"), nullable=True, index=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=True, index=True)
    assignee_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(
        SAEnum(TaskPriority, name="task_priority_enum", native_enum=False),
        nullable=False,
        default=TaskPriority.MEDIUM,
    )
    status = Column(
        SAEnum(TaskStatus, name="task_status_enum", native_enum=False),
        nullable=False,
        default=TaskStatus.PENDING,
        index=True,
    )

    due_at = Column(DateTime(timezone=True), nullable=True, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<TaskInstance id={self.id} status={self.status} due={self.due_at}>"


class TimeEntry(Base):
    """Hours registered against a client, optionally tied to a task."""

    __tablename__ = "time_entries"
    __table_args__ = (
        Index("ix_time_entries_tenant_user_date", "tenant_id", "user_id", "entry_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=True, index=True)
    task_id = Column(String(36), ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True)

    description = Column(Text, nullable=False)
    hours = Column(Numeric(5, 2), nullable=False)
    entry_date = Column(Date, nullable=False)
    billable = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<TimeEntry id={self.id} hours={self.hours} task={self.task_id}>"
