from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from regnskapdb.apps.accounts import models as account_models
from regnskapdb.apps.audit import services as audit_services
from regnskapdb.apps.notifications import service as notification_service

from . import models
from .frequency import Frequency, normalize
from .recurrence import advance, day_bounds

logger = logging.getLogger(__name__)


class TaskNotFoundError(Exception):
    """Raised when a task or template does not exist within the tenant."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Tick results / domain events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GeneratedTask:
    """Emitted for every task instance the engine creates."""

    task_id: str
    tenant_id: str
    template_id: str
    client_id: Optional[str]
    assignee_id: Optional[str]
    title: str
    due_at: datetime


@dataclass
class TickResult:
    started_at: datetime
    generated: List[GeneratedTask] = field(default_factory=list)
    skipped: int = 0
    seeded: int = 0
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "generated": len(self.generated),
            "skipped": self.skipped,
            "seeded": self.seeded,
            "failed": len(self.failed),
            "failed_template_ids": list(self.failed),
        }


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def _get_client_in_tenant(db: Session, *, tenant_id: str, client_id: str) -> account_models.Client:
    client = (
        db.query(account_models.Client)
        .filter(account_models.Client.id == client_id, account_models.Client.tenant_id == tenant_id)
        .first()
    )
    if not client:
        raise TaskNotFoundError("Client not found")
    return client


def create_template(
    db: Session,
    *,
    tenant_id: str,
    client_id: str,
    name: str,
    frequency: str,
    next_due_at: Optional[datetime] = None,
    description: Optional[str] = None,
    assignee_id: Optional[str] = None,
    actor_user_id: Optional[str] = None,
) -> models.RecurringTaskTemplate:
    _get_client_in_tenant(db, tenant_id=tenant_id, client_id=client_id)
    template = models.RecurringTaskTemplate(
        tenant_id=tenant_id,
        client_id=client_id,
        name=name,
        description=description,
        frequency=normalize(frequency),
        next_due_at=_as_utc(next_due_at),
        assignee_id=assignee_id,
    )
    db.add(template)
    db.flush()
    audit_services.log_event(
        db,
        tenant_id=tenant_id,
        actor_user_id=actor_user_id,
        entity_type="client_task",
        entity_id=str(template.id),
        action="template_create",
        after={"name": name, "frequency": template.frequency.value},
        module="tasks",
    )
    return template


_REQUIRED_TEMPLATE_FIELDS = frozenset({"name"})


def update_template(
    db: Session,
    *,
    template: models.RecurringTaskTemplate,
    changes: dict,
    actor_user_id: Optional[str],
) -> models.RecurringTaskTemplate:
    for field_name in _REQUIRED_TEMPLATE_FIELDS:
        if field_name in changes and changes[field_name] is None:
            raise ValueError(f"Template {field_name} cannot be empty.")
    before = {"frequency": template.frequency.value if template.frequency else None}
    for field_name, value in changes.items():
        if field_name == "frequency" and value is not None:
            value = normalize(value)
        if field_name == "next_due_at":
            value = _as_utc(value)
        setattr(template, field_name, value)
    db.add(template)
    audit_services.log_event(
        db,
        tenant_id=template.tenant_id,
        actor_user_id=actor_user_id,
        entity_type="client_task",
        entity_id=str(template.id),
        action="template_update",
        before=before,
        after={k: v.isoformat() if isinstance(v, datetime) else v for k, v in changes.items()},
        module="tasks",
    )
    return template


def get_template(db: Session, *, tenant_id: str, template_id: str) -> models.RecurringTaskTemplate:
    template = (
        db.query(models.RecurringTaskTemplate)
        .filter(
            models.RecurringTaskTemplate.id == template_id,
            models.RecurringTaskTemplate.tenant_id == tenant_id,
        )
        .first()
    )
    if not template:
        raise TaskNotFoundError("Recurring task not found")
    return template


def list_templates(
    db: Session,
    *,
    tenant_id: str,
    client_id: Optional[str] = None,
) -> Sequence[models.RecurringTaskTemplate]:
    query = db.query(models.RecurringTaskTemplate).filter(models.RecurringTaskTemplate.tenant_id == tenant_id)
    if client_id:
        query = query.filter(models.RecurringTaskTemplate.client_id == client_id)
    return query.order_by(models.RecurringTaskTemplate.next_due_at.asc().nullslast()).all()


# ---------------------------------------------------------------------------
# Task instances
# ---------------------------------------------------------------------------


def create_task(
    db: Session,
    *,
    tenant_id: str,
    title: str,
    client_id: Optional[str] = None,
    description: Optional[str] = None,
    assignee_id: Optional[str] = None,
    due_at: Optional[datetime] = None,
    priority: models.TaskPriority = models.TaskPriority.MEDIUM,
    actor_user_id: Optional[str] = None,
) -> models.TaskInstance:
    """Create an ad hoc task (no template)."""
    if client_id:
        _get_client_in_tenant(db, tenant_id=tenant_id, client_id=client_id)
    task = models.TaskInstance(
        tenant_id=tenant_id,
        client_id=client_id,
        assignee_id=assignee_id,
        title=title,
        description=description,
        priority=priority,
        status=models.TaskStatus.PENDING,
        due_at=_as_utc(due_at),
    )
    db.add(task)
    db.flush()
    audit_services.log_event(
        db,
        tenant_id=tenant_id,
        actor_user_id=actor_user_id,
        entity_type="task",
        entity_id=str(task.id),
        action="task_create",
        after={"title": title, "assignee_id": assignee_id},
        module="tasks",
    )
    return task


def get_task(db: Session, *, tenant_id: str, task_id: str) -> models.TaskInstance:
    task = (
        db.query(models.TaskInstance)
        .filter(models.TaskInstance.id == task_id, models.TaskInstance.tenant_id == tenant_id)
        .first()
    )
    if not task:
        raise TaskNotFoundError("Task not found")
    return task


def list_tasks(
    db: Session,
    *,
    tenant_id: str,
    status: Optional[models.TaskStatus] = None,
    assignee_id: Optional[str] = None,
    client_id: Optional[str] = None,
) -> Sequence[models.TaskInstance]:
    query = db.query(models.TaskInstance).filter(models.TaskInstance.tenant_id == tenant_id)
    if status:
        query = query.filter(models.TaskInstance.status == status)
    if assignee_id:
        query = query.filter(models.TaskInstance.assignee_id == assignee_id)
    if client_id:
        query = query.filter(models.TaskInstance.client_id == client_id)
    return query.order_by(models.TaskInstance.due_at.asc().nullslast()).all()


def update_task_status(
    db: Session,
    *,
    task: models.TaskInstance,
    status: models.TaskStatus,
    actor_user_id: Optional[str],
    now: Optional[datetime] = None,
) -> models.TaskInstance:
    previous = task.status
    task.status = status
    if status == models.TaskStatus.COMPLETED:
        task.completed_at = now or _utcnow()
    else:
        task.completed_at = None
    db.add(task)
    audit_services.log_event(
        db,
        tenant_id=task.tenant_id,
        actor_user_id=actor_user_id,
        entity_type="task",
        entity_id=str(task.id),
        action="task_update",
        before={"status": previous.value if previous else None},
        after={"status": status.value},
        module="tasks",
    )
    return task


def complete_task(
    db: Session,
    *,
    task: models.TaskInstance,
    actor_user_id: str,
    hours: Optional[Decimal] = None,
    description: Optional[str] = None,
    billable: bool = True,
    now: Optional[datetime] = None,
) -> Tuple[models.TaskInstance, Optional[models.TimeEntry]]:
    """Mark a task completed; register time when hours are given."""
    if hours is not None and Decimal(hours) <= 0:
        raise ValueError("Hours must be positive.")
    now = _as_utc(now) or _utcnow()
    update_task_status(db, task=task, status=models.TaskStatus.COMPLETED, actor_user_id=actor_user_id, now=now)

    entry = None
    if hours is not None:
        entry = models.TimeEntry(
            tenant_id=task.tenant_id,
            user_id=actor_user_id,
            client_id=task.client_id,
            task_id=task.id,
            description=description or task.title,
            hours=Decimal(hours),
            entry_date=now.date(),
            billable=billable,
        )
        db.add(entry)
        db.flush()
    return task, entry


# ---------------------------------------------------------------------------
# Recurring task engine
# ---------------------------------------------------------------------------


def find_generated_instance(
    db: Session,
    *,
    template: models.RecurringTaskTemplate,
    due_at: datetime,
) -> Optional[models.TaskInstance]:
    """Existing instance for (tenant, client, title, calendar day of due_at)."""
    day_start, day_end = day_bounds(_as_utc(due_at))
    return (
        db.query(models.TaskInstance)
        .filter(
            models.TaskInstance.tenant_id == template.tenant_id,
            models.TaskInstance.client_id == template.client_id,
            models.TaskInstance.title == template.name,
            models.TaskInstance.due_at >= day_start,
            models.TaskInstance.due_at < day_end,
        )
        .first()
    )


def _next_due_after(template: models.RecurringTaskTemplate, due_at: datetime) -> Optional[datetime]:
    if template.frequency is None or not template.frequency.is_recurring:
        return None
    return advance(due_at, template.frequency)


def generate_instance(
    db: Session,
    *,
    template: models.RecurringTaskTemplate,
    due_at: datetime,
) -> Optional[models.TaskInstance]:
    """
    Create the task instance for one occurrence of a template.

    Idempotent: when an instance for the same client, title and calendar
    day already exists nothing is inserted and None is returned. The
    template is moved past `due_at` whenever that occurrence is covered,
    so it never points at an occurrence that already has a task.
    Does not commit.
    """
    due_at = _as_utc(due_at)
    stored_due = _as_utc(template.next_due_at)

    existing = find_generated_instance(db, template=template, due_at=due_at)
    if existing:
        if stored_due is not None and stored_due == due_at:
            template.next_due_at = _next_due_after(template, due_at)
            db.add(template)
            db.flush()
        return None

    instance = models.TaskInstance(
        tenant_id=template.tenant_id,
        template_id=template.id,
        client_id=template.client_id,
        assignee_id=template.assignee_id,
        title=template.name,
        description=template.description or f"Recurring task: {template.name}",
        priority=models.TaskPriority.MEDIUM,
        status=models.TaskStatus.PENDING,
        due_at=due_at,
    )
    db.add(instance)

    template.next_due_at = _next_due_after(template, due_at)
    db.add(template)
    db.flush()

    audit_services.log_event(
        db,
        tenant_id=template.tenant_id,
        actor_user_id=None,
        entity_type="task",
        entity_id=str(instance.id),
        action="task_generate",
        after={
            "template_id": template.id,
            "due_at": due_at.isoformat(),
            "next_due_at": template.next_due_at.isoformat() if template.next_due_at else None,
        },
        module="tasks",
    )
    return instance


def _due_templates_query(db: Session):
    return (
        db.query(models.RecurringTaskTemplate)
        .join(account_models.Client, account_models.Client.id == models.RecurringTaskTemplate.client_id)
        .filter(
            models.RecurringTaskTemplate.frequency.is_not(None),
            account_models.Client.is_active.is_(True),
        )
    )


def process_recurring_tasks(db: Session, *, now: Optional[datetime] = None) -> TickResult:
    """
    One scheduler tick across all tenants.

    Each template is handled in its own transaction (insert + advance,
    then commit). A failure rolls back that template only, is logged, and
    leaves its due date untouched so the next tick retries it.
    """
    now = _as_utc(now) or _utcnow()
    result = TickResult(started_at=now)

    templates = _due_templates_query(db).all()
    for template in templates:
        template_id = template.id
        try:
            frequency: Frequency = template.frequency
            stored_due = _as_utc(template.next_due_at)

            if stored_due is None:
                if frequency.is_recurring:
                    template.next_due_at = advance(now, frequency)
                    db.add(template)
                    db.commit()
                    result.seeded += 1
                else:
                    result.skipped += 1
                continue

            if stored_due > now:
                result.skipped += 1
                continue

            instance = generate_instance(db, template=template, due_at=stored_due)
            db.commit()
            if instance is None:
                result.skipped += 1
                continue

            result.generated.append(
                GeneratedTask(
                    task_id=instance.id,
                    tenant_id=instance.tenant_id,
                    template_id=template_id,
                    client_id=instance.client_id,
                    assignee_id=instance.assignee_id,
                    title=instance.title,
                    due_at=stored_due,
                )
            )
        except Exception:
            db.rollback()
            logger.exception(
                "Failed to generate recurring task",
                extra={"template_id": template_id},
            )
            result.failed.append(template_id)

    logger.info("Recurring task tick completed", extra=result.to_dict())
    return result


def notify_generated_tasks(db: Session, events: Sequence[GeneratedTask]) -> int:
    """
    Tell assignees about newly generated tasks. Best effort: returns the
    number of notifications the provider accepted and never raises.
    """
    sent = 0
    for event in events:
        if not event.assignee_id:
            continue
        try:
            user = (
                db.query(account_models.User)
                .filter(
                    account_models.User.id == event.assignee_id,
                    account_models.User.tenant_id == event.tenant_id,
                )
                .first()
            )
            recipient = user.email.strip() if user and user.email else None
            if notification_service.notify_task_due(
                db,
                tenant_id=event.tenant_id,
                recipient=recipient,
                subject=f"New task: {event.title}",
                due_at=event.due_at,
                task_id=event.task_id,
                payload={"title": event.title, "client_id": event.client_id},
            ):
                sent += 1
            db.commit()
        except Exception:
            db.rollback()
            logger.warning(
                "Could not notify assignee of generated task",
                extra={"task_id": event.task_id, "assignee_id": event.assignee_id},
                exc_info=True,
            )
    return sent
