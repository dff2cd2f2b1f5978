from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from uuid import UUID

from pydantic import BaseModel


class PromotionCreate(BaseModel):
    tenant_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    type: Literal["BONUS_POINTS", "POINTS_MULTIPLIER"]
    status: str = "DRAFT"
    start_date: datetime
    end_date: datetime
    bonus_points: Optional[int] = None
    points_multiplier: Optional[Decimal] = None
    minimum_spend: Optional[Decimal] = None
    eligible_tier_levels: List[int] = []
    max_uses_per_customer: Optional[int] = None


class PromotionUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    bonus_points: Optional[int] = None
    points_multiplier: Optional[Decimal] = None
    minimum_spend: Optional[Decimal] = None
    eligible_tier_levels: Optional[List[int]] = None
    max_uses_per_customer: Optional[int] = None


class PromotionOut(BaseModel):
    id: UUID
    tenant_id: str
    name: str
    description: Optional[str] = None
    type: str
    status: str
    start_date: datetime
    end_date: datetime
    bonus_points: Optional[int] = None
    points_multiplier: Optional[Decimal] = None
    minimum_spend: Optional[Decimal] = None
    eligible_tier_levels: Optional[List[int]] = None
    max_uses_per_customer: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
