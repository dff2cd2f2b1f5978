from datetime import datetime
from decimal import Decimal
from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class LoyaltyTierCreate(BaseModel):
    tenant_id: Optional[str] = None

    name: str
    level: int

    points_required: int = 0
    spend_required: Decimal = Decimal("0")
    orders_required: int = 0

    points_multiplier: Decimal = Decimal("1")
    validity_days: Optional[int] = None
    birthday_bonus: Optional[int] = None

    active: bool = True


class LoyaltyTierUpdate(BaseModel):
    name: Optional[str] = None
    level: Optional[int] = None

    points_required: Optional[int] = None
    spend_required: Optional[Decimal] = None
    orders_required: Optional[int] = None

    points_multiplier: Optional[Decimal] = None
    validity_days: Optional[int] = None
    birthday_bonus: Optional[int] = None

    active: Optional[bool] = None


class LoyaltyTierOut(BaseModel):
    id: UUID
    tenant_id: str

    name: str
    level: int

    points_required: int
    spend_required: Decimal
    orders_required: int

    points_multiplier: Decimal
    validity_days: Optional[int] = None
    birthday_bonus: Optional[int] = None

    active: bool

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
