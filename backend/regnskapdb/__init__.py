# backend/regnskapdb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- The package exposes a clear surface.

The model classes live in regnskapdb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models          # tenants / users / clients
from .apps.audit import models as audit_models                # audit trail
from .apps.licensing import models as licensing_models        # seats / invoices
from .apps.notifications import models as notifications_models  # notification log
from .apps.tasks import models as tasks_models                # templates / tasks / time

__all__ = [
    "accounts_models",
    "audit_models",
    "licensing_models",
    "notifications_models",
    "tasks_models",
]
