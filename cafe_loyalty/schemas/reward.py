from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from uuid import UUID

from pydantic import BaseModel


class RewardCreate(BaseModel):
    tenant_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    type: str = "FREE_ITEM"
    points_cost: int
    cash_value: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    required_tier_levels: List[int] = []
    total_quantity: int = -1
    max_redemptions_per_user: int = 0
    requires_approval: bool = False
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    priority: int = 0
    status: str = "ACTIVE"
    is_active: bool = True
    is_visible: bool = True


class RewardUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    points_cost: Optional[int] = None
    cash_value: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    required_tier_levels: Optional[List[int]] = None
    total_quantity: Optional[int] = None
    max_redemptions_per_user: Optional[int] = None
    requires_approval: Optional[bool] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    priority: Optional[int] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None
    is_visible: Optional[bool] = None


class RewardOut(BaseModel):
    id: UUID
    tenant_id: str
    name: str
    description: Optional[str] = None
    type: str
    points_cost: int
    cash_value: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    required_tier_levels: Optional[List[int]] = None
    total_quantity: int
    redeemed_quantity: int
    max_redemptions_per_user: int
    requires_approval: bool
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    priority: int
    status: str
    is_active: bool
    is_visible: bool
    redemption_count: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
