from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from uuid import UUID

from pydantic import BaseModel, Field


class RedemptionOut(BaseModel):
    id: UUID
    account_id: UUID
    reward_id: UUID
    tenant_id: str

    transaction_id: Optional[UUID] = None
    refund_transaction_id: Optional[UUID] = None
    order_id: Optional[str] = None

    points_used: int
    cash_value: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None

    redemption_code: str
    status: str
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="metadata_json")

    expires_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    redeemed_at: Optional[datetime] = None
    denied_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RedemptionDecision(BaseModel):
    reason: Optional[str] = None
