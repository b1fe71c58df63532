from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["TASK_SCHEDULER_ENABLED"] = "false"
os.environ.setdefault("NOTIFICATIONS_EMAIL_PROVIDER", "noop")

from regnskapdb.database import Base  # noqa: E402
from regnskapdb.apps.accounts import models as account_models  # noqa: E402
from regnskapdb.apps.audit import models as audit_models  # noqa: E402
from regnskapdb.apps.licensing import models as licensing_models  # noqa: E402
from regnskapdb.apps.notifications import models as notification_models  # noqa: E402
from regnskapdb.apps.tasks import models as task_models  # noqa: E402

CORE_TABLES = [
    account_models.Tenant.__table__,
    account_models.User.__table__,
    account_models.Client.__table__,
    task_models.RecurringTaskTemplate.__table__,
    task_models.TaskInstance.__table__,
    task_models.TimeEntry.__table__,
    licensing_models.LicensedEmployee.__table__,
    licensing_models.Invoice.__table__,
    licensing_models.InvoiceLine.__table__,
    audit_models.AuditEvent.__table__,
    notification_models.NotificationLog.__table__,
]


def _memory_engine():
    # One shared connection so sessions opened on other threads (TestClient,
    # the scheduler thread) see the same in-memory database.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=CORE_TABLES)
    return engine


@pytest.fixture()
def session_factory():
    engine = _memory_engine()
    factory = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
