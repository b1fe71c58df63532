from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


def log_event(
    db: Session,
    *,
    tenant_id: str,
    module: str,
    action: str,
    entity_type: str,
    entity_id: str,
    actor_user_id: Optional[str] = None,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    details: Optional[dict] = None,
    critical: bool = False,
) -> models.AuditEvent:
    """
    Record an audit event in the caller's transaction (flush, no commit).

    A failed write surfaces as the flush error and the caller's unit of
    work rolls back with it; the session cannot continue after a failed
    flush anyway. `critical` marks license changes for reporting.
    """
    event = models.AuditEvent(
        tenant_id=tenant_id,
        module=module,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        is_critical=critical,
        before=before,
        after=after,
        details=details,
    )
    db.add(event)
    db.flush()
    if critical:
        logger.info(
            "Critical audit event",
            extra={"tenant_id": tenant_id, "module": module, "action": action, "entity_id": entity_id},
        )
    return event


def list_audit_events(
    db: Session,
    *,
    tenant_id: str,
    module: Optional[str] = None,
    action: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 200,
) -> List[models.AuditEvent]:
    """Newest first."""
    query = db.query(models.AuditEvent).filter(models.AuditEvent.tenant_id == tenant_id)
    if module:
        query = query.filter(models.AuditEvent.module == module)
    if action:
        query = query.filter(models.AuditEvent.action == action)
    if entity_id:
        query = query.filter(models.AuditEvent.entity_id == entity_id)
    return query.order_by(models.AuditEvent.occurred_at.desc()).limit(limit).all()
