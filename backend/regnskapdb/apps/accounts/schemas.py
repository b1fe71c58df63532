# backend/regnskapdb/apps/accounts/schemas.py

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import AccountRole


# ---------------------------------------------------------------------------
# TENANTS / CLIENTS
# ---------------------------------------------------------------------------


class TenantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    org_number: Optional[str] = None
    subscription_plan: str
    subscription_status: str
    employee_limit: Optional[int] = None
    is_active: bool


class ClientCreate(BaseModel):
    name: str = Field(min_length=1)
    org_number: Optional[str] = None
    email: Optional[EmailStr] = None


class ClientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    name: str
    org_number: Optional[str] = None
    email: Optional[str] = None
    is_active: bool


# ---------------------------------------------------------------------------
# EMPLOYEES
# ---------------------------------------------------------------------------


class EmployeeCreate(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    role: AccountRole = AccountRole.MEDARBEIDER
    is_licensed: bool = True


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    email: str
    first_name: str
    last_name: str
    role: AccountRole
    is_active: bool
    is_licensed: bool
    verified_at: Optional[datetime] = None
    created_at: datetime
