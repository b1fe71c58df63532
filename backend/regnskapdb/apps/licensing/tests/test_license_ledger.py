from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from regnskapdb.apps.accounts import models as account_models
from regnskapdb.apps.audit import models as audit_models
from regnskapdb.apps.licensing import models as licensing_models
from regnskapdb.apps.licensing import services as license_services

JUNE = datetime(2024, 6, 10, 9, tzinfo=timezone.utc)
JULY = datetime(2024, 7, 3, 9, tzinfo=timezone.utc)
SEPTEMBER = datetime(2024, 9, 2, 9, tzinfo=timezone.utc)


def _create_tenant(db_session, employee_limit=5, name="Fjord Regnskap AS") -> account_models.Tenant:
    tenant = account_models.Tenant(name=name, employee_limit=employee_limit)
    db_session.add(tenant)
    db_session.commit()
    return tenant


def _create_user(db_session, tenant_id: str, n: int, is_active: bool = True) -> account_models.User:
    user = account_models.User(
        tenant_id=tenant_id,
        email=f"ansatt{n}@fjord.no",
        first_name="Ansatt",
        last_name=str(n),
        role=account_models.AccountRole.MEDARBEIDER,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    return user


def _license(db_session, tenant, user, now=JUNE):
    return license_services.process_new_employee_license(
        db_session,
        tenant_id=tenant.id,
        user_id=user.id,
        now=now,
    )


def _lines(db_session, invoice_id):
    return (
        db_session.query(licensing_models.InvoiceLine)
        .filter(licensing_models.InvoiceLine.invoice_id == invoice_id)
        .all()
    )


def test_fifth_seat_bills_main_plus_five_user_lines(db_session):
    tenant = _create_tenant(db_session)
    users = [_create_user(db_session, tenant.id, n) for n in range(5)]
    for user in users[:4]:
        _license(db_session, tenant, user)

    grant = _license(db_session, tenant, users[4])

    invoice = grant.invoice
    lines = _lines(db_session, invoice.id)
    main = [line for line in lines if line.line_type == licensing_models.InvoiceLineType.MAIN_LICENSE]
    seats = [line for line in lines if line.line_type == licensing_models.InvoiceLineType.USER_LICENSE]
    assert len(main) == 1
    assert main[0].amount == Decimal("2500")
    assert len(seats) == 5
    assert all(line.amount == Decimal("500") for line in seats)
    assert invoice.total_amount == Decimal("5000")
    assert invoice.period == "2024-06"
    assert invoice.status == licensing_models.InvoiceStatus.DRAFT
    assert license_services.get_seat_usage(db_session, tenant_id=tenant.id) == 5


def test_sixth_seat_is_rejected_and_nothing_changes(db_session):
    tenant = _create_tenant(db_session)
    users = [_create_user(db_session, tenant.id, n) for n in range(6)]
    for user in users[:5]:
        _license(db_session, tenant, user)

    assert license_services.can_add_user(db_session, tenant_id=tenant.id) is False
    with pytest.raises(license_services.SeatLimitExceeded) as exc_info:
        _license(db_session, tenant, users[5])

    assert exc_info.value.current_seats == 5
    assert exc_info.value.seat_limit == 5
    assert license_services.get_seat_usage(db_session, tenant_id=tenant.id) == 5
    db_session.refresh(users[5])
    assert users[5].is_licensed is False
    invoice = license_services.find_invoice(db_session, tenant_id=tenant.id, period="2024-06")
    assert len(_lines(db_session, invoice.id)) == 6
    assert invoice.total_amount == Decimal("5000")


def test_relicensing_a_licensed_user_is_idempotent(db_session):
    tenant = _create_tenant(db_session, employee_limit=1)
    user = _create_user(db_session, tenant.id, 1)

    _license(db_session, tenant, user)
    grant = _license(db_session, tenant, user)

    assert len(_lines(db_session, grant.invoice.id)) == 2
    assert grant.invoice.total_amount == Decimal("3000")
    records = db_session.query(licensing_models.LicensedEmployee).all()
    assert len(records) == 1


def test_invoice_total_always_matches_lines(db_session):
    tenant = _create_tenant(db_session)
    users = [_create_user(db_session, tenant.id, n) for n in range(3)]
    for user in users:
        grant = _license(db_session, tenant, user)
        lines = _lines(db_session, grant.invoice.id)
        assert grant.invoice.total_amount == sum((line.amount for line in lines), Decimal("0"))

    line = license_services.upsert_user_license_line(
        db_session,
        invoice_id=grant.invoice.id,
        user_id=users[0].id,
        period="2024-06",
        price=Decimal("450"),
    )
    db_session.commit()
    assert line.amount == Decimal("450.00")
    assert license_services.recalculate_invoice_total(db_session, invoice_id=grant.invoice.id) == Decimal("3950")


def test_draft_invoice_and_main_line_are_idempotent(db_session):
    tenant = _create_tenant(db_session)

    first = license_services.get_or_create_draft_invoice(db_session, tenant_id=tenant.id, period="2024-06")
    second = license_services.get_or_create_draft_invoice(db_session, tenant_id=tenant.id, period="2024-06")
    assert first.id == second.id
    assert first.invoice_number.startswith("INV-")
    assert first.invoice_number.endswith("-2024-06")

    license_services.ensure_main_license_line(db_session, invoice_id=first.id, period="2024-06")
    license_services.ensure_main_license_line(db_session, invoice_id=first.id, period="2024-06")
    db_session.commit()

    assert len(_lines(db_session, first.id)) == 1
    assert first.total_amount == Decimal("2500")


def test_duplicate_main_lines_raise_loudly(db_session):
    tenant = _create_tenant(db_session)
    invoice = license_services.get_or_create_draft_invoice(db_session, tenant_id=tenant.id, period="2024-06")
    for key in ("main", "main-copy"):
        db_session.add(
            licensing_models.InvoiceLine(
                invoice_id=invoice.id,
                line_type=licensing_models.InvoiceLineType.MAIN_LICENSE,
                natural_key=key,
                description="Hovedlisens",
                quantity=Decimal("1"),
                unit_price=Decimal("2500"),
                amount=Decimal("2500"),
            )
        )
    db_session.commit()

    with pytest.raises(license_services.LedgerInvariantError):
        license_services.ensure_main_license_line(db_session, invoice_id=invoice.id, period="2024-06")
    with pytest.raises(license_services.LedgerInvariantError):
        license_services.get_subscription_summary(db_session, tenant_id=tenant.id, period="2024-06")


def test_failed_license_rolls_back_every_write(db_session, monkeypatch):
    tenant = _create_tenant(db_session)
    user = _create_user(db_session, tenant.id, 1)

    def _explode(*args, **kwargs):
        raise RuntimeError("line write failed")

    monkeypatch.setattr(license_services, "upsert_user_license_line", _explode)

    with pytest.raises(RuntimeError):
        _license(db_session, tenant, user)

    db_session.refresh(user)
    assert user.is_licensed is False
    assert db_session.query(licensing_models.LicensedEmployee).count() == 0
    assert db_session.query(licensing_models.Invoice).count() == 0
    assert db_session.query(licensing_models.InvoiceLine).count() == 0


def test_unlicensing_keeps_history_and_lowers_next_period(db_session):
    tenant = _create_tenant(db_session)
    users = [_create_user(db_session, tenant.id, n) for n in range(5)]
    for user in users:
        _license(db_session, tenant, user)

    status = license_services.toggle_employee_license(
        db_session,
        tenant_id=tenant.id,
        user_id=users[0].id,
        is_licensed=False,
        now=JUNE,
    )

    assert status["is_licensed"] is False
    assert status["period_licensed"] is False
    june = license_services.get_subscription_summary(db_session, tenant_id=tenant.id, period="2024-06")
    assert june["total"]["amount"] == Decimal("5000")
    assert june["userLicenses"]["quantity"] == 5

    july = license_services.get_subscription_summary(db_session, tenant_id=tenant.id, now=JULY)
    assert july["period"] == "2024-07"
    assert july["status"] == "projected"
    assert july["userLicenses"]["quantity"] == 4
    assert july["total"]["amount"] == Decimal("4500")
    assert july["total"]["amount"] < june["total"]["amount"]
    assert license_services.find_invoice(db_session, tenant_id=tenant.id, period="2024-07") is None


def test_toggle_on_frees_and_reuses_seat(db_session):
    tenant = _create_tenant(db_session, employee_limit=2)
    a, b, c = (_create_user(db_session, tenant.id, n) for n in range(3))
    _license(db_session, tenant, a)
    _license(db_session, tenant, b)

    license_services.toggle_employee_license(db_session, tenant_id=tenant.id, user_id=a.id, is_licensed=False, now=JUNE)
    status = license_services.toggle_employee_license(
        db_session,
        tenant_id=tenant.id,
        user_id=c.id,
        is_licensed=True,
        now=JUNE,
    )

    assert status["is_licensed"] is True
    assert license_services.get_seat_usage(db_session, tenant_id=tenant.id) == 2


def test_inactive_users_do_not_hold_seats(db_session):
    tenant = _create_tenant(db_session, employee_limit=1)
    leaver = _create_user(db_session, tenant.id, 1)
    _license(db_session, tenant, leaver)
    leaver.is_active = False
    db_session.commit()

    newcomer = _create_user(db_session, tenant.id, 2)
    assert license_services.can_add_user(db_session, tenant_id=tenant.id) is True
    _license(db_session, tenant, newcomer)
    assert license_services.get_seat_usage(db_session, tenant_id=tenant.id) == 1


def test_missing_rows_raise_not_found(db_session):
    tenant = _create_tenant(db_session)
    with pytest.raises(license_services.TenantNotFound):
        license_services.process_new_employee_license(db_session, tenant_id="nope", user_id="nope", now=JUNE)
    with pytest.raises(license_services.UserNotFound):
        license_services.process_new_employee_license(db_session, tenant_id=tenant.id, user_id="nope", now=JUNE)


def test_license_grant_is_audited(db_session):
    tenant = _create_tenant(db_session)
    user = _create_user(db_session, tenant.id, 1)
    _license(db_session, tenant, user)

    event = (
        db_session.query(audit_models.AuditEvent)
        .filter(audit_models.AuditEvent.action == "license_grant")
        .one()
    )
    assert event.entity_id == user.id
    assert event.after["period"] == "2024-06"
    assert event.is_critical is True
    assert event.module == "licensing"


def test_summary_projects_from_current_seats_without_invoice(db_session):
    tenant = _create_tenant(db_session)
    user = _create_user(db_session, tenant.id, 1)
    user.is_licensed = True
    db_session.commit()

    summary = license_services.get_subscription_summary(db_session, tenant_id=tenant.id, period="2024-09", now=SEPTEMBER)

    assert summary["mainLicense"] == {
        "description": "Hovedlisens RegnskapsAI",
        "amount": Decimal("2500.00"),
        "currency": "NOK",
    }
    assert summary["userLicenses"]["quantity"] == 1
    assert summary["total"]["amount"] == Decimal("3000")
    assert summary["employeeLimit"] == 5
    assert db_session.query(licensing_models.Invoice).count() == 0


def test_summary_of_past_period_without_records_is_empty(db_session):
    tenant = _create_tenant(db_session)
    user = _create_user(db_session, tenant.id, 1)
    user.is_licensed = True
    db_session.commit()

    summary = license_services.get_subscription_summary(db_session, tenant_id=tenant.id, period="2024-06", now=SEPTEMBER)

    assert summary["status"] == "no_data"
    assert summary["mainLicense"]["amount"] == Decimal("0")
    assert summary["userLicenses"]["quantity"] == 0
    assert summary["total"]["amount"] == Decimal("0")
    assert summary["seatUsage"] == 1
    assert db_session.query(licensing_models.Invoice).count() == 0


def test_pricing_is_injectable(db_session):
    tenant = _create_tenant(db_session)
    user = _create_user(db_session, tenant.id, 1)
    pricing = license_services.LicensePricing(base_price=Decimal("1000"), user_price=Decimal("100"))

    grant = license_services.process_new_employee_license(
        db_session,
        tenant_id=tenant.id,
        user_id=user.id,
        now=JUNE,
        pricing=pricing,
    )

    assert grant.invoice.total_amount == Decimal("1100")


def test_issued_invoices_are_frozen(db_session):
    tenant = _create_tenant(db_session)
    user = _create_user(db_session, tenant.id, 1)
    grant = _license(db_session, tenant, user)

    license_services.issue_invoice(db_session, tenant_id=tenant.id, period="2024-06", now=JULY)
    db_session.commit()

    assert grant.invoice.status == licensing_models.InvoiceStatus.ISSUED
    with pytest.raises(license_services.InvoiceNotEditable):
        license_services.upsert_user_license_line(
            db_session,
            invoice_id=grant.invoice.id,
            user_id=user.id,
            period="2024-06",
        )


def test_roll_license_period_issues_and_carries_forward(db_session):
    tenant = _create_tenant(db_session)
    users = [_create_user(db_session, tenant.id, n) for n in range(2)]
    for user in users:
        _license(db_session, tenant, user)

    summary = license_services.roll_license_period(db_session, now=JULY)
    again = license_services.roll_license_period(db_session, now=JULY)

    assert summary == {"period": "2024-07", "issued": 1, "carried_forward": 1, "failed": []}
    assert again["issued"] == 0
    june = license_services.find_invoice(db_session, tenant_id=tenant.id, period="2024-06")
    july = license_services.find_invoice(db_session, tenant_id=tenant.id, period="2024-07")
    assert june.status == licensing_models.InvoiceStatus.ISSUED
    assert july.status == licensing_models.InvoiceStatus.DRAFT
    assert july.total_amount == Decimal("3500")
    assert len(_lines(db_session, july.id)) == 3


def test_list_tenant_subscriptions_reports_every_tenant(db_session):
    first = _create_tenant(db_session, name="A Regnskap")
    _create_tenant(db_session, name="B Regnskap")
    _license(db_session, first, _create_user(db_session, first.id, 1))

    rows = license_services.list_tenant_subscriptions(db_session, period="2024-06")

    assert [row["tenantName"] for row in rows] == ["A Regnskap", "B Regnskap"]
    assert rows[0]["summary"]["total"]["amount"] == Decimal("3000")
    assert rows[1]["summary"]["status"] == "no_data"
    assert rows[1]["summary"]["total"]["amount"] == Decimal("0")
    assert all(row["error"] is None for row in rows)
