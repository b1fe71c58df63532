# backend/regnskapdb/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- Tenants (accounting firms) and their seat policy
- Users (employees) and roles
- Clients of the firm that recurring work is attached to
- Employee endpoints (create employee, toggle licence)

Seat accounting itself lives in the licensing app; this app only owns
the rows the ledger reads and flags.
"""

from . import models, schemas, services  # noqa: F401

__all__ = ["models", "schemas", "services"]
