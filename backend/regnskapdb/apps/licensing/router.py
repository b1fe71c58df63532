from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from regnskapdb.database import get_db
from regnskapdb.security import get_current_active_user, require_roles
from regnskapdb.apps.accounts import models as account_models

from . import guard, schemas, services
from .periods import InvalidPeriod, current_period

router = APIRouter(prefix="/licensing", tags=["licensing"])

_require_license_admin = require_roles(account_models.AccountRole.LISENSADMIN)


@router.get("/subscription", response_model=schemas.SubscriptionSummaryRead)
def get_subscription(
    period: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    try:
        return services.get_subscription_summary(db, tenant_id=current_user.tenant_id, period=period)
    except InvalidPeriod as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except services.LicensingNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/seats", response_model=schemas.SeatUsageRead)
def get_seats(
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    try:
        return guard.check_seat_limit(db, tenant_id=current_user.tenant_id)
    except services.LicensingNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/employees/{user_id}/license", response_model=schemas.LicenseStatusRead)
def get_employee_license(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(_require_license_admin),
):
    try:
        return services.get_employee_license_status(db, tenant_id=current_user.tenant_id, user_id=user_id)
    except services.LicensingNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.patch("/employees/{user_id}/license", response_model=schemas.LicenseStatusRead)
def toggle_employee_license(
    user_id: str,
    payload: schemas.LicenseToggleRequest,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(_require_license_admin),
):
    # SeatLimitExceeded is rendered as 403 by the app-level handler.
    try:
        return services.toggle_employee_license(
            db,
            tenant_id=current_user.tenant_id,
            user_id=user_id,
            is_licensed=payload.is_licensed,
            actor_user_id=current_user.id,
        )
    except services.LicensingNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except services.SeatLimitExceeded:
        raise
    except services.LicensingError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("/system/subscriptions", response_model=schemas.TenantSubscriptionList)
def list_system_subscriptions(
    period: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_roles(account_models.AccountRole.ADMIN)),
):
    try:
        period = period or current_period()
        rows = services.list_tenant_subscriptions(db, period=period)
    except InvalidPeriod as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"period": period, "tenants": rows}
