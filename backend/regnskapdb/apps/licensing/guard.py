"""
Seat-limit guard for routes that add licensed users.

The dependency is a fast pre-check that turns a full tenant into a 403
before any work starts. It is not the enforcement point: the locked
re-check inside `services.process_new_employee_license` is.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from regnskapdb.database import get_db
from regnskapdb.security import get_current_active_user
from regnskapdb.apps.accounts import models as account_models

from . import services

SEAT_LIMIT_ERROR = "SEAT_LIMIT_EXCEEDED"


@dataclass(frozen=True)
class SeatCheck:
    allowed: bool
    current_seats: int
    seat_limit: int


def check_seat_limit(db: Session, *, tenant_id: str) -> SeatCheck:
    tenant = services.get_tenant(db, tenant_id=tenant_id)
    current = services.get_seat_usage(db, tenant_id=tenant_id)
    return SeatCheck(allowed=current < tenant.seat_limit, current_seats=current, seat_limit=tenant.seat_limit)


def enforce_seat_limit(
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
) -> SeatCheck:
    check = check_seat_limit(db, tenant_id=current_user.tenant_id)
    if not check.allowed:
        raise services.SeatLimitExceeded(current_seats=check.current_seats, seat_limit=check.seat_limit)
    return check


def seat_limit_body(exc: services.SeatLimitExceeded) -> dict:
    return {
        "error": SEAT_LIMIT_ERROR,
        "message": "Seat limit reached. Cannot add more licensed users.",
        "details": {
            "currentSeats": exc.current_seats,
            "seatLimit": exc.seat_limit,
            "message": (
                f"You have reached your license limit of {exc.seat_limit} users. "
                "Upgrade your plan or remove inactive users to add new ones."
            ),
        },
    }


async def seat_limit_exception_handler(request: Request, exc: services.SeatLimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=403, content=seat_limit_body(exc))
