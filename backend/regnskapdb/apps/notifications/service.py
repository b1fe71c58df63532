from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from . import models, providers

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def send_notification(
    db: Session,
    *,
    tenant_id: str,
    template_key: str,
    recipient: str,
    subject: str,
    payload: Optional[dict] = None,
    task_id: Optional[str] = None,
    critical: bool = False,
) -> models.NotificationLog:
    """
    Hand one email to the configured provider and log the attempt.

    The log row joins the caller's transaction. A provider error marks the
    row FAILED; it is re-raised only for `critical` sends.
    """
    payload = dict(payload or {})
    log = models.NotificationLog(
        tenant_id=tenant_id,
        task_id=task_id,
        template_key=template_key,
        recipient=recipient,
        subject=subject,
        payload=payload,
        status=models.DeliveryStatus.QUEUED,
    )
    db.add(log)
    db.flush()

    provider, delivers = providers.get_email_provider()
    if not delivers:
        log.status = models.DeliveryStatus.SKIPPED
        log.error = "No notification provider configured"
        return log

    try:
        provider.send(recipient=recipient, subject=subject, template_key=template_key, payload=payload)
    except Exception as exc:
        log.status = models.DeliveryStatus.FAILED
        log.error = str(exc)
        if critical:
            raise
        return log

    log.status = models.DeliveryStatus.SENT
    log.delivered_at = _utcnow()
    return log


def notify_task_due(
    db: Session,
    *,
    tenant_id: str,
    recipient: Optional[str],
    subject: str,
    due_at: Optional[datetime],
    task_id: Optional[str] = None,
    payload: Optional[dict] = None,
) -> bool:
    """Tell an assignee a task is due. Never raises; True only when sent."""
    if not recipient:
        return False
    body = dict(payload or {})
    body["due_at"] = due_at.isoformat() if due_at else None
    try:
        log = send_notification(
            db,
            tenant_id=tenant_id,
            template_key="task_due",
            recipient=recipient,
            subject=subject,
            payload=body,
            task_id=task_id,
        )
    except Exception:
        logger.warning(
            "Task due notification failed",
            extra={"tenant_id": tenant_id, "task_id": task_id},
            exc_info=True,
        )
        return False
    return log.status == models.DeliveryStatus.SENT
