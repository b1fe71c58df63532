# backend/regnskapdb/apps/accounts/services.py

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from regnskapdb.apps.audit import services as audit_services

from . import models

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AccountNotFound(Exception):
    """Raised when a tenant, user or client is missing within the tenant scope."""


class DuplicateEmailError(Exception):
    """Raised when an email is already in use within the tenant."""


def _normalise_email(value: str) -> str:
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Tenants
# ---------------------------------------------------------------------------


def get_tenant(db: Session, *, tenant_id: str) -> models.Tenant:
    tenant = db.query(models.Tenant).filter(models.Tenant.id == tenant_id).first()
    if not tenant:
        raise AccountNotFound("Tenant not found")
    return tenant


def create_tenant(
    db: Session,
    *,
    name: str,
    org_number: Optional[str] = None,
    email: Optional[str] = None,
    employee_limit: Optional[int] = models.DEFAULT_EMPLOYEE_LIMIT,
    subscription_plan: str = "basic",
) -> models.Tenant:
    tenant = models.Tenant(
        name=name.strip(),
        org_number=org_number,
        email=email,
        employee_limit=employee_limit,
        subscription_plan=subscription_plan,
    )
    db.add(tenant)
    db.flush()
    return tenant


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def get_user_in_tenant(db: Session, *, tenant_id: str, user_id: str) -> models.User:
    user = (
        db.query(models.User)
        .filter(models.User.id == user_id, models.User.tenant_id == tenant_id)
        .first()
    )
    if not user:
        raise AccountNotFound("User not found")
    return user


def list_users(db: Session, *, tenant_id: str, include_inactive: bool = False) -> List[models.User]:
    query = db.query(models.User).filter(models.User.tenant_id == tenant_id)
    if not include_inactive:
        query = query.filter(models.User.is_active.is_(True))
    return query.order_by(models.User.last_name.asc(), models.User.first_name.asc()).all()


def create_user(
    db: Session,
    *,
    tenant_id: str,
    email: str,
    first_name: str,
    last_name: str,
    role: models.AccountRole = models.AccountRole.MEDARBEIDER,
    actor_user_id: Optional[str] = None,
) -> models.User:
    """
    Add an unlicensed employee. Seats are granted separately through the
    licensing ledger. Flushes only; the caller owns the transaction.
    """
    get_tenant(db, tenant_id=tenant_id)
    email = _normalise_email(email)
    exists = (
        db.query(models.User.id)
        .filter(models.User.tenant_id == tenant_id, models.User.email == email)
        .first()
    )
    if exists:
        raise DuplicateEmailError("A user with this email already exists.")

    user = models.User(
        tenant_id=tenant_id,
        email=email,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=role,
        is_active=True,
        is_licensed=False,
    )
    db.add(user)
    db.flush()
    audit_services.log_event(
        db,
        tenant_id=tenant_id,
        actor_user_id=actor_user_id,
        entity_type="user",
        entity_id=str(user.id),
        action="user_create",
        after={"email": email, "role": role.value},
        module="accounts",
    )
    logger.info("Employee created", extra={"tenant_id": tenant_id, "user_id": user.id})
    return user


def deactivate_user(
    db: Session,
    *,
    tenant_id: str,
    user_id: str,
    actor_user_id: Optional[str] = None,
) -> models.User:
    """Inactive users no longer count towards the seat limit."""
    user = get_user_in_tenant(db, tenant_id=tenant_id, user_id=user_id)
    user.is_active = False
    db.add(user)
    audit_services.log_event(
        db,
        tenant_id=tenant_id,
        actor_user_id=actor_user_id,
        entity_type="user",
        entity_id=str(user.id),
        action="user_deactivate",
        before={"is_active": True},
        after={"is_active": False},
        module="accounts",
    )
    return user


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


def create_client(
    db: Session,
    *,
    tenant_id: str,
    name: str,
    org_number: Optional[str] = None,
    email: Optional[str] = None,
) -> models.Client:
    get_tenant(db, tenant_id=tenant_id)
    client = models.Client(tenant_id=tenant_id, name=name.strip(), org_number=org_number, email=email)
    db.add(client)
    db.flush()
    return client


def list_clients(db: Session, *, tenant_id: str) -> List[models.Client]:
    return (
        db.query(models.Client)
        .filter(models.Client.tenant_id == tenant_id)
        .order_by(models.Client.name.asc())
        .all()
    )
