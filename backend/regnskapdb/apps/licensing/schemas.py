from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class MainLicenseRead(BaseModel):
    description: str
    amount: float
    currency: str


class UserLicensesRead(BaseModel):
    description: str
    unitPrice: float
    quantity: int
    amount: float
    currency: str


class TotalRead(BaseModel):
    amount: float
    currency: str


class SubscriptionSummaryRead(BaseModel):
    tenantId: str
    period: str
    plan: str
    status: str
    invoiceNumber: Optional[str] = None
    seatUsage: int
    employeeLimit: int
    mainLicense: MainLicenseRead
    userLicenses: UserLicensesRead
    total: TotalRead


class TenantSubscriptionRow(BaseModel):
    tenantId: str
    tenantName: str
    summary: Optional[SubscriptionSummaryRead] = None
    error: Optional[str] = None


class SeatUsageRead(BaseModel):
    allowed: bool
    current_seats: int
    seat_limit: int


class LicenseToggleRequest(BaseModel):
    is_licensed: bool


class LicenseStatusRead(BaseModel):
    user_id: str
    is_licensed: bool
    verified_at: Optional[datetime] = None
    period: str
    period_licensed: bool


class TenantSubscriptionList(BaseModel):
    period: str
    tenants: List[TenantSubscriptionRow]
