from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException

from regnskapdb import security
from regnskapdb.apps.accounts import models as account_models


def _create_user(db_session, role=account_models.AccountRole.MEDARBEIDER, is_active=True):
    tenant = account_models.Tenant(name="Øst Regnskap")
    db_session.add(tenant)
    db_session.flush()
    user = account_models.User(
        tenant_id=tenant.id,
        email=f"{role.value}@ost.no",
        first_name="Test",
        last_name="Bruker",
        role=role,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    return user


def test_token_resolves_to_user(db_session):
    user = _create_user(db_session)
    token = security.create_access_token(user_id=user.id, tenant_id=user.tenant_id)

    assert security.get_current_user(token=token, db=db_session).id == user.id


def test_token_for_other_tenant_is_rejected(db_session):
    user = _create_user(db_session)
    token = security.create_access_token(user_id=user.id, tenant_id="another-tenant")

    with pytest.raises(HTTPException) as exc_info:
        security.get_current_user(token=token, db=db_session)
    assert exc_info.value.status_code == 401


def test_expired_and_garbage_tokens_are_rejected(db_session):
    user = _create_user(db_session)
    expired = security.create_access_token(user_id=user.id, expires_delta=timedelta(minutes=-5))

    for token in (expired, "not-a-jwt"):
        with pytest.raises(HTTPException) as exc_info:
            security.get_current_user(token=token, db=db_session)
        assert exc_info.value.status_code == 401


def test_inactive_users_are_blocked(db_session):
    user = _create_user(db_session, is_active=False)

    with pytest.raises(HTTPException) as exc_info:
        security.get_current_active_user(current_user=user)
    assert exc_info.value.status_code == 400


def test_require_roles(db_session):
    check = security.require_roles(account_models.AccountRole.LISENSADMIN, "oppdragsansvarlig")
    lead = _create_user(db_session, role=account_models.AccountRole.OPPDRAGSANSVARLIG)
    admin = _create_user(db_session, role=account_models.AccountRole.ADMIN)
    staff = _create_user(db_session, role=account_models.AccountRole.MEDARBEIDER)

    assert check(current_user=lead) is lead
    assert check(current_user=admin) is admin
    with pytest.raises(HTTPException) as exc_info:
        check(current_user=staff)
    assert exc_info.value.status_code == 403

    with pytest.raises(ValueError):
        security.require_roles("revisor")
