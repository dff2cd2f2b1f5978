from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from uuid import UUID

from pydantic import BaseModel


class AccountCreate(BaseModel):
    userId: str
    tenant: Optional[str] = None


class AccountUpdate(BaseModel):
    birth_date: Optional[date] = None
    preferences: Optional[Dict[str, bool]] = None


class AccountOut(BaseModel):
    id: UUID
    user_id: str
    tenant_id: str
    loyalty_number: str

    current_points: int
    lifetime_points: int
    points_redeemed: int

    total_spent: Decimal
    yearly_spent: Decimal
    total_orders: int
    yearly_orders: int

    current_tier_id: Optional[UUID] = None
    tier_achieved_at: Optional[datetime] = None
    tier_expires_at: Optional[datetime] = None

    birth_date: Optional[date] = None
    referral_count: int
    referral_bonus_earned: int

    is_active: bool
    preferences: Optional[Dict[str, Any]] = None

    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TierProgressOut(BaseModel):
    current_tier_id: Optional[UUID] = None
    current_level: int
    next_tier_id: Optional[UUID] = None
    next_level: Optional[int] = None
    points_to_next_tier: int
    spend_to_next_tier: Decimal
    orders_to_next_tier: int
    progress_percentage: float


class ProgramStatsOut(BaseModel):
    tenant_id: str
    total_members: int
    active_members: int
    total_points_issued: int
    total_points_redeemed: int
    average_order_value: Decimal
    top_tier_members: int
    redemption_rate: float
    engagement_rate: float
