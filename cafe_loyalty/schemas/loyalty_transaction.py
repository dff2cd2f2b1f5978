from datetime import datetime
from typing import Any, Dict, Optional

from uuid import UUID

from pydantic import BaseModel, Field

from cafe_loyalty.schemas.transaction_metadata import TransactionMetadata


class LoyaltyTransactionOut(BaseModel):
    id: UUID
    account_id: UUID
    tenant_id: str

    points: int
    kind: str
    balance_after: int

    order_id: Optional[str] = None
    promotion_id: Optional[UUID] = None

    description: Optional[str] = None
    metadata: Optional[TransactionMetadata] = Field(default=None, validation_alias="metadata_json")

    status: str

    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdjustmentCreate(BaseModel):
    points: int
    reason: str
    notes: Optional[Dict[str, Any]] = None
