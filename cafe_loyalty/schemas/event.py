from datetime import date
from decimal import Decimal
from typing import Optional

from uuid import UUID

from pydantic import BaseModel, Field


class OrderCompleted(BaseModel):
    id: str
    tenantId: str
    customerId: str
    totalAmount: Decimal = Field(ge=0)


class RedemptionRequested(BaseModel):
    accountId: UUID
    rewardId: UUID
    orderId: Optional[str] = None
    notes: Optional[str] = None


class BirthdayEvent(BaseModel):
    accountId: UUID


class BirthdaySweep(BaseModel):
    today: Optional[date] = None


class ReferralEvent(BaseModel):
    tenantId: str
    referrerUserId: str
    newUserId: str
