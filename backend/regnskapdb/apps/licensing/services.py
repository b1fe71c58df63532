"""
Seat-based license ledger.

Every paid seat is an invoice line. A tenant has one invoice per calendar
month carrying one MAIN_LICENSE line plus one USER_LICENSE line per
licensed employee; the invoice total is always recomputed from its lines.
Lines are never deleted: un-licensing an employee only stops future
periods from billing them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from regnskapdb.database import lock_for_update, transaction
from regnskapdb.apps.accounts import models as account_models
from regnskapdb.apps.audit import services as audit_services

from . import models
from .periods import current_period, generate_invoice_id, parse_period, period_dates, previous_period

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")

BASE_LICENSE_PRICE_NOK = Decimal(os.getenv("LICENSE_BASE_PRICE_NOK", "2500"))
USER_LICENSE_PRICE_NOK = Decimal(os.getenv("LICENSE_USER_PRICE_NOK", "500"))
MAIN_LICENSE_NAME = "Hovedlisens RegnskapsAI"


@dataclass(frozen=True)
class LicensePricing:
    base_price: Decimal = BASE_LICENSE_PRICE_NOK
    user_price: Decimal = USER_LICENSE_PRICE_NOK
    currency: str = "NOK"


DEFAULT_PRICING = LicensePricing()


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LicensingError(Exception):
    """Base class for license ledger failures."""


class LicensingNotFound(LicensingError):
    pass


class TenantNotFound(LicensingNotFound):
    pass


class UserNotFound(LicensingNotFound):
    pass


class InvoiceNotFound(LicensingNotFound):
    pass


class InvoiceNotEditable(LicensingError):
    """Raised when a line mutation targets an issued invoice."""


class LedgerInvariantError(LicensingError):
    """Raised when the stored ledger violates a uniqueness rule."""


class SeatLimitExceeded(LicensingError):
    def __init__(self, *, current_seats: int, seat_limit: int, message: Optional[str] = None) -> None:
        self.current_seats = current_seats
        self.seat_limit = seat_limit
        self.message = message or (
            f"Seat limit reached ({current_seats}/{seat_limit}). "
            "Upgrade the subscription to license more employees."
        )
        super().__init__(self.message)


@dataclass
class LicenseGrant:
    record: models.LicensedEmployee
    invoice: models.Invoice
    line: models.InvoiceLine


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(_CENTS)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_tenant(db: Session, *, tenant_id: str, for_update: bool = False) -> account_models.Tenant:
    query = db.query(account_models.Tenant).filter(account_models.Tenant.id == tenant_id)
    if for_update:
        query = lock_for_update(query)
    tenant = query.first()
    if not tenant:
        raise TenantNotFound("Tenant not found")
    return tenant


def _get_user(db: Session, *, tenant_id: str, user_id: str) -> account_models.User:
    user = (
        db.query(account_models.User)
        .filter(account_models.User.id == user_id, account_models.User.tenant_id == tenant_id)
        .first()
    )
    if not user:
        raise UserNotFound("User not found")
    return user


def _get_invoice(db: Session, *, invoice_id: str) -> models.Invoice:
    invoice = db.query(models.Invoice).filter(models.Invoice.id == invoice_id).first()
    if not invoice:
        raise InvoiceNotFound("Invoice not found")
    return invoice


def find_invoice(db: Session, *, tenant_id: str, period: str) -> Optional[models.Invoice]:
    start, end = period_dates(period)
    return (
        db.query(models.Invoice)
        .filter(
            models.Invoice.tenant_id == tenant_id,
            models.Invoice.period_start == start,
            models.Invoice.period_end == end,
        )
        .first()
    )


def _assert_editable(invoice: models.Invoice) -> None:
    if invoice.status != models.InvoiceStatus.DRAFT:
        raise InvoiceNotEditable(f"Invoice {invoice.invoice_number} is {invoice.status.value}")


# ---------------------------------------------------------------------------
# Seats
# ---------------------------------------------------------------------------


def get_seat_usage(db: Session, *, tenant_id: str) -> int:
    return (
        db.query(func.count(account_models.User.id))
        .filter(
            account_models.User.tenant_id == tenant_id,
            account_models.User.is_active.is_(True),
            account_models.User.is_licensed.is_(True),
        )
        .scalar()
        or 0
    )


def can_add_user(db: Session, *, tenant_id: str) -> bool:
    """
    Advisory seat check. Callers that go on to license someone must rely on
    the locked re-check inside `process_new_employee_license`.
    """
    tenant = get_tenant(db, tenant_id=tenant_id)
    return get_seat_usage(db, tenant_id=tenant_id) < tenant.seat_limit


# ---------------------------------------------------------------------------
# Invoices and lines
# ---------------------------------------------------------------------------


def get_or_create_draft_invoice(db: Session, *, tenant_id: str, period: str, currency: str = "NOK") -> models.Invoice:
    existing = find_invoice(db, tenant_id=tenant_id, period=period)
    if existing:
        return existing

    start, end = period_dates(period)
    invoice = models.Invoice(
        tenant_id=tenant_id,
        invoice_number=generate_invoice_id(tenant_id, period),
        period=period,
        period_start=start,
        period_end=end,
        total_amount=Decimal("0"),
        currency=currency,
        status=models.InvoiceStatus.DRAFT,
    )
    db.add(invoice)
    db.flush()
    logger.info(
        "Created draft license invoice",
        extra={"tenant_id": tenant_id, "period": period, "invoice_number": invoice.invoice_number},
    )
    return invoice


def recalculate_invoice_total(db: Session, *, invoice_id: str) -> Decimal:
    invoice = _get_invoice(db, invoice_id=invoice_id)
    db.flush()
    total = (
        db.query(func.coalesce(func.sum(models.InvoiceLine.amount), 0))
        .filter(models.InvoiceLine.invoice_id == invoice_id)
        .scalar()
    )
    invoice.total_amount = _money(total)
    db.add(invoice)
    db.flush()
    return invoice.total_amount


def ensure_main_license_line(
    db: Session,
    *,
    invoice_id: str,
    period: str,
    pricing: LicensePricing = DEFAULT_PRICING,
) -> models.InvoiceLine:
    invoice = _get_invoice(db, invoice_id=invoice_id)
    existing = (
        db.query(models.InvoiceLine)
        .filter(
            models.InvoiceLine.invoice_id == invoice_id,
            models.InvoiceLine.line_type == models.InvoiceLineType.MAIN_LICENSE,
        )
        .all()
    )
    if len(existing) > 1:
        raise LedgerInvariantError(f"Invoice {invoice.invoice_number} has {len(existing)} main license lines")
    if existing:
        return existing[0]

    _assert_editable(invoice)
    line = models.InvoiceLine(
        invoice_id=invoice_id,
        line_type=models.InvoiceLineType.MAIN_LICENSE,
        natural_key=models.MAIN_LINE_KEY,
        description=f"{MAIN_LICENSE_NAME} ({period})",
        quantity=Decimal("1"),
        unit_price=_money(pricing.base_price),
        amount=_money(pricing.base_price),
        metadata_json={"period": period},
    )
    db.add(line)
    db.flush()
    recalculate_invoice_total(db, invoice_id=invoice_id)
    return line


def upsert_user_license_line(
    db: Session,
    *,
    invoice_id: str,
    user_id: str,
    period: str,
    price: Optional[Decimal] = None,
    pricing: LicensePricing = DEFAULT_PRICING,
) -> models.InvoiceLine:
    """
    One USER_LICENSE line per (user, period) on an invoice. An existing
    line gets its price and description refreshed; the total is recomputed
    either way.
    """
    invoice = _get_invoice(db, invoice_id=invoice_id)
    _assert_editable(invoice)
    user = _get_user(db, tenant_id=invoice.tenant_id, user_id=user_id)
    unit_price = _money(price if price is not None else pricing.user_price)
    description = f"Brukerlisens - {user.full_name} ({period})"
    key = models.user_line_key(user_id, period)

    matches = (
        db.query(models.InvoiceLine)
        .filter(models.InvoiceLine.invoice_id == invoice_id, models.InvoiceLine.natural_key == key)
        .all()
    )
    if len(matches) > 1:
        raise LedgerInvariantError(f"Invoice {invoice.invoice_number} has duplicate lines for {key}")

    if matches:
        line = matches[0]
        line.unit_price = unit_price
        line.amount = _money(unit_price * (line.quantity or 1))
        line.description = description
    else:
        line = models.InvoiceLine(
            invoice_id=invoice_id,
            line_type=models.InvoiceLineType.USER_LICENSE,
            natural_key=key,
            description=description,
            quantity=Decimal("1"),
            unit_price=unit_price,
            amount=unit_price,
            metadata_json={"userId": user_id, "period": period},
        )
    db.add(line)
    db.flush()
    recalculate_invoice_total(db, invoice_id=invoice_id)
    return line


def issue_invoice(db: Session, *, tenant_id: str, period: str, now: Optional[datetime] = None) -> Optional[models.Invoice]:
    """Freeze a period's draft invoice. Returns None when the period has no invoice."""
    invoice = find_invoice(db, tenant_id=tenant_id, period=period)
    if not invoice or invoice.status == models.InvoiceStatus.ISSUED:
        return invoice
    recalculate_invoice_total(db, invoice_id=invoice.id)
    invoice.status = models.InvoiceStatus.ISSUED
    invoice.issued_at = now or _utcnow()
    db.add(invoice)
    audit_services.log_event(
        db,
        tenant_id=tenant_id,
        actor_user_id=None,
        entity_type="invoice",
        entity_id=str(invoice.id),
        action="invoice_issue",
        after={"period": period, "total_amount": str(invoice.total_amount)},
        module="licensing",
        critical=True,
    )
    db.flush()
    return invoice


# ---------------------------------------------------------------------------
# Licensed employee records
# ---------------------------------------------------------------------------


def upsert_licensed_employee(
    db: Session,
    *,
    tenant_id: str,
    user_id: str,
    period: str,
    is_licensed: bool = True,
    now: Optional[datetime] = None,
) -> models.LicensedEmployee:
    record = (
        db.query(models.LicensedEmployee)
        .filter(
            models.LicensedEmployee.tenant_id == tenant_id,
            models.LicensedEmployee.user_id == user_id,
            models.LicensedEmployee.period == period,
        )
        .first()
    )
    if record is None:
        record = models.LicensedEmployee(tenant_id=tenant_id, user_id=user_id, period=period)
    record.is_licensed = is_licensed
    if is_licensed:
        record.verified_at = now or _utcnow()
    db.add(record)
    db.flush()
    return record


def _grant_license(
    db: Session,
    *,
    tenant: account_models.Tenant,
    user: account_models.User,
    period: str,
    now: datetime,
    pricing: LicensePricing,
) -> LicenseGrant:
    user.is_licensed = True
    if user.verified_at is None:
        user.verified_at = now
    db.add(user)

    record = upsert_licensed_employee(db, tenant_id=tenant.id, user_id=user.id, period=period, now=now)
    invoice = get_or_create_draft_invoice(db, tenant_id=tenant.id, period=period, currency=pricing.currency)
    ensure_main_license_line(db, invoice_id=invoice.id, period=period, pricing=pricing)
    line = upsert_user_license_line(
        db,
        invoice_id=invoice.id,
        user_id=user.id,
        period=period,
        price=pricing.user_price,
        pricing=pricing,
    )
    return LicenseGrant(record=record, invoice=invoice, line=line)


# ---------------------------------------------------------------------------
# Composite operations
# ---------------------------------------------------------------------------


def process_new_employee_license(
    db: Session,
    *,
    tenant_id: str,
    user_id: str,
    now: Optional[datetime] = None,
    pricing: LicensePricing = DEFAULT_PRICING,
    actor_user_id: Optional[str] = None,
) -> LicenseGrant:
    """
    License an employee for the current period, all or nothing.

    The tenant row is locked before seats are counted, so two concurrent
    calls for the same tenant cannot both take the last seat. Licensing a
    user who already holds a seat re-applies the ledger writes without
    consuming another seat. Commits on success; any failure rolls back
    every write, including uncommitted work the caller added to `db`.
    """
    now = now or _utcnow()
    period = current_period(now)

    with transaction(db):
        tenant = get_tenant(db, tenant_id=tenant_id, for_update=True)
        user = _get_user(db, tenant_id=tenant_id, user_id=user_id)
        if not user.is_active:
            raise LicensingError("Inactive users cannot be licensed")

        if not user.is_licensed:
            current = get_seat_usage(db, tenant_id=tenant_id)
            if current >= tenant.seat_limit:
                raise SeatLimitExceeded(current_seats=current, seat_limit=tenant.seat_limit)

        grant = _grant_license(db, tenant=tenant, user=user, period=period, now=now, pricing=pricing)
        audit_services.log_event(
            db,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            entity_type="user",
            entity_id=str(user_id),
            action="license_grant",
            after={
                "period": period,
                "invoice_number": grant.invoice.invoice_number,
                "invoice_total": str(grant.invoice.total_amount),
            },
            module="licensing",
            critical=True,
        )

    logger.info(
        "Employee licensed",
        extra={"tenant_id": tenant_id, "user_id": user_id, "period": period},
    )
    return grant


def toggle_employee_license(
    db: Session,
    *,
    tenant_id: str,
    user_id: str,
    is_licensed: bool,
    now: Optional[datetime] = None,
    pricing: LicensePricing = DEFAULT_PRICING,
    actor_user_id: Optional[str] = None,
) -> dict:
    """
    Turn an employee's seat on or off and return their license status.

    Turning off flips the current period's record only. Invoice lines
    already written stay as billed.
    """
    now = now or _utcnow()
    if is_licensed:
        process_new_employee_license(
            db,
            tenant_id=tenant_id,
            user_id=user_id,
            now=now,
            pricing=pricing,
            actor_user_id=actor_user_id,
        )
        return get_employee_license_status(db, tenant_id=tenant_id, user_id=user_id, now=now)

    period = current_period(now)
    with transaction(db):
        get_tenant(db, tenant_id=tenant_id, for_update=True)
        user = _get_user(db, tenant_id=tenant_id, user_id=user_id)
        was_licensed = bool(user.is_licensed)
        user.is_licensed = False
        db.add(user)
        upsert_licensed_employee(db, tenant_id=tenant_id, user_id=user_id, period=period, is_licensed=False, now=now)
        audit_services.log_event(
            db,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            entity_type="user",
            entity_id=str(user_id),
            action="license_revoke",
            before={"is_licensed": was_licensed},
            after={"is_licensed": False, "period": period},
            module="licensing",
            critical=True,
        )

    logger.info(
        "Employee license revoked",
        extra={"tenant_id": tenant_id, "user_id": user_id, "period": period},
    )
    return get_employee_license_status(db, tenant_id=tenant_id, user_id=user_id, now=now)


def get_employee_license_status(
    db: Session,
    *,
    tenant_id: str,
    user_id: str,
    period: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    user = _get_user(db, tenant_id=tenant_id, user_id=user_id)
    period = period or current_period(now)
    parse_period(period)
    record = (
        db.query(models.LicensedEmployee)
        .filter(
            models.LicensedEmployee.tenant_id == tenant_id,
            models.LicensedEmployee.user_id == user_id,
            models.LicensedEmployee.period == period,
        )
        .first()
    )
    return {
        "user_id": user.id,
        "is_licensed": bool(user.is_licensed),
        "verified_at": user.verified_at,
        "period": period,
        "period_licensed": bool(record.is_licensed) if record else False,
    }


def carry_forward_licenses(
    db: Session,
    *,
    tenant_id: str,
    period: str,
    now: Optional[datetime] = None,
    pricing: LicensePricing = DEFAULT_PRICING,
) -> Optional[models.Invoice]:
    """
    Bill every currently licensed employee for `period`. Idempotent; used
    by the monthly rollover job. Does not check seats: it only re-bills
    seats that are already held. Does not commit.
    """
    now = now or _utcnow()
    tenant = get_tenant(db, tenant_id=tenant_id)
    licensed_users = (
        db.query(account_models.User)
        .filter(
            account_models.User.tenant_id == tenant_id,
            account_models.User.is_active.is_(True),
            account_models.User.is_licensed.is_(True),
        )
        .order_by(account_models.User.created_at.asc())
        .all()
    )
    if not licensed_users:
        return None

    invoice = None
    for user in licensed_users:
        invoice = _grant_license(db, tenant=tenant, user=user, period=period, now=now, pricing=pricing).invoice
    return invoice


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


def get_subscription_summary(
    db: Session,
    *,
    tenant_id: str,
    period: Optional[str] = None,
    now: Optional[datetime] = None,
    pricing: LicensePricing = DEFAULT_PRICING,
) -> dict:
    """
    Cost of a period, read from the ledger.

    When the period has an invoice its lines are the answer. Otherwise the
    cost is projected from the period's licensed-employee records, or from
    the currently licensed users when the current or a future period has no
    records yet. A past period with neither comes back as `no_data` with
    zero amounts. Never writes.
    """
    tenant = get_tenant(db, tenant_id=tenant_id)
    period = period or current_period(now)
    parse_period(period)
    seat_usage = get_seat_usage(db, tenant_id=tenant_id)

    invoice = find_invoice(db, tenant_id=tenant_id, period=period)
    if invoice is not None:
        lines = db.query(models.InvoiceLine).filter(models.InvoiceLine.invoice_id == invoice.id).all()
        main_lines = [line for line in lines if line.line_type == models.InvoiceLineType.MAIN_LICENSE]
        user_lines = [line for line in lines if line.line_type == models.InvoiceLineType.USER_LICENSE]
        if len(main_lines) > 1:
            raise LedgerInvariantError(f"Invoice {invoice.invoice_number} has {len(main_lines)} main license lines")

        main_amount = _money(main_lines[0].amount) if main_lines else _money(0)
        user_quantity = len(user_lines)
        user_amount = _money(sum((_money(line.amount) for line in user_lines), Decimal("0")))
        unit_price = _money(user_lines[0].unit_price) if user_lines else _money(pricing.user_price)
        currency = invoice.currency
        total = main_amount + user_amount
        if total != _money(invoice.total_amount):
            logger.warning(
                "Invoice total out of step with its lines",
                extra={"invoice_id": invoice.id, "stored_total": str(invoice.total_amount), "lines_total": str(total)},
            )
        status = invoice.status.value
        invoice_number = invoice.invoice_number
    else:
        records = (
            db.query(models.LicensedEmployee)
            .filter(models.LicensedEmployee.tenant_id == tenant_id, models.LicensedEmployee.period == period)
            .all()
        )
        unit_price = _money(pricing.user_price)
        currency = pricing.currency
        status = "projected"
        main_amount = _money(pricing.base_price)
        if records:
            user_quantity = sum(1 for record in records if record.is_licensed)
        elif period < current_period(now):
            user_quantity = 0
            main_amount = _money(0)
            status = "no_data"
        else:
            user_quantity = seat_usage
        user_amount = _money(unit_price * user_quantity)
        total = main_amount + user_amount
        invoice_number = None

    return {
        "tenantId": tenant.id,
        "period": period,
        "plan": tenant.subscription_plan,
        "status": status,
        "invoiceNumber": invoice_number,
        "seatUsage": seat_usage,
        "employeeLimit": tenant.seat_limit,
        "mainLicense": {
            "description": MAIN_LICENSE_NAME,
            "amount": main_amount,
            "currency": currency,
        },
        "userLicenses": {
            "description": "Brukerlisenser",
            "unitPrice": unit_price,
            "quantity": user_quantity,
            "amount": user_amount,
            "currency": currency,
        },
        "total": {
            "amount": total,
            "currency": currency,
        },
    }


def list_tenant_subscriptions(
    db: Session,
    *,
    period: Optional[str] = None,
    now: Optional[datetime] = None,
    pricing: LicensePricing = DEFAULT_PRICING,
) -> List[dict]:
    """System-owner overview. A tenant whose summary fails shows up as an error row."""
    period = period or current_period(now)
    parse_period(period)
    rows: List[dict] = []
    tenants = db.query(account_models.Tenant).order_by(account_models.Tenant.name.asc()).all()
    for tenant in tenants:
        row = {"tenantId": tenant.id, "tenantName": tenant.name, "summary": None, "error": None}
        try:
            row["summary"] = get_subscription_summary(db, tenant_id=tenant.id, period=period, pricing=pricing)
        except Exception as exc:
            db.rollback()
            logger.exception("Subscription summary failed", extra={"tenant_id": tenant.id, "period": period})
            row["error"] = str(exc)
        rows.append(row)
    return rows


def roll_license_period(
    db: Session,
    *,
    now: Optional[datetime] = None,
    pricing: LicensePricing = DEFAULT_PRICING,
) -> dict:
    """
    Month-start maintenance across tenants: issue last period's draft and
    carry licensed employees into the current period. Commits per tenant.
    """
    now = now or _utcnow()
    period = current_period(now)
    last_period = previous_period(period)
    summary = {"period": period, "issued": 0, "carried_forward": 0, "failed": []}

    tenant_ids = [
        row.id
        for row in db.query(account_models.Tenant.id)
        .filter(account_models.Tenant.is_active.is_(True))
        .all()
    ]
    for tenant_id in tenant_ids:
        try:
            with transaction(db):
                previous = find_invoice(db, tenant_id=tenant_id, period=last_period)
                if previous is not None and previous.status == models.InvoiceStatus.DRAFT:
                    issue_invoice(db, tenant_id=tenant_id, period=last_period, now=now)
                    summary["issued"] += 1
                if carry_forward_licenses(db, tenant_id=tenant_id, period=period, now=now, pricing=pricing):
                    summary["carried_forward"] += 1
        except Exception:
            logger.exception("License period rollover failed", extra={"tenant_id": tenant_id, "period": period})
            summary["failed"].append(tenant_id)
    return summary
