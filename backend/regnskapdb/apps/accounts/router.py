# backend/regnskapdb/apps/accounts/router.py

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from regnskapdb.database import get_db
from regnskapdb.security import get_current_active_user, require_roles
from regnskapdb.apps.licensing import guard as license_guard
from regnskapdb.apps.licensing import services as license_services

from . import models, schemas, services

router = APIRouter(tags=["accounts"])

_require_license_admin = require_roles(models.AccountRole.LISENSADMIN)


@router.get("/tenant", response_model=schemas.TenantRead)
def get_my_tenant(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return services.get_tenant(db, tenant_id=current_user.tenant_id)


@router.get("/employees", response_model=List[schemas.UserRead])
def list_employees(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return services.list_users(db, tenant_id=current_user.tenant_id, include_inactive=include_inactive)


@router.post("/employees", response_model=schemas.UserRead, status_code=status.HTTP_201_CREATED)
def create_employee(
    payload: schemas.EmployeeCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_require_license_admin),
):
    """
    Create an employee, licensed by default. User creation and the seat
    grant commit together; a full tenant gets a 403 and no user.
    """
    tenant_id = current_user.tenant_id
    if payload.is_licensed:
        check = license_guard.check_seat_limit(db, tenant_id=tenant_id)
        if not check.allowed:
            raise license_services.SeatLimitExceeded(
                current_seats=check.current_seats,
                seat_limit=check.seat_limit,
            )

    try:
        user = services.create_user(
            db,
            tenant_id=tenant_id,
            email=payload.email,
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role,
            actor_user_id=current_user.id,
        )
    except services.DuplicateEmailError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    if payload.is_licensed:
        license_services.process_new_employee_license(
            db,
            tenant_id=tenant_id,
            user_id=user.id,
            actor_user_id=current_user.id,
        )
    else:
        db.commit()
    db.refresh(user)
    return user


@router.post("/employees/{user_id}/deactivate", response_model=schemas.UserRead)
def deactivate_employee(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(_require_license_admin),
):
    try:
        user = services.deactivate_user(
            db,
            tenant_id=current_user.tenant_id,
            user_id=user_id,
            actor_user_id=current_user.id,
        )
    except services.AccountNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    db.commit()
    db.refresh(user)
    return user


@router.get("/clients", response_model=List[schemas.ClientRead])
def list_clients(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return services.list_clients(db, tenant_id=current_user.tenant_id)


@router.post("/clients", response_model=schemas.ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: schemas.ClientCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(
        require_roles(models.AccountRole.OPPDRAGSANSVARLIG, models.AccountRole.LISENSADMIN)
    ),
):
    client = services.create_client(db, tenant_id=current_user.tenant_id, **payload.model_dump())
    db.commit()
    db.refresh(client)
    return client
