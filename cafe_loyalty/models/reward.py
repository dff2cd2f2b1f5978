import uuid
from enum import Enum

from sqlalchemy import JSON, Boolean, Column, Integer, Numeric, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from cafe_loyalty.db import Base


class RewardStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"
    OUT_OF_STOCK = "OUT_OF_STOCK"


UNLIMITED_QUANTITY = -1


class LoyaltyReward(Base):
    __tablename__ = "loyalty_rewards"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    tenant_id = Column(String(50), nullable=False)

    name = Column(String(100), nullable=False)
    description = Column(String(255))

    # FREE_ITEM, DISCOUNT_FIXED, DISCOUNT_PERCENTAGE, ...
    type = Column(String(50), nullable=False, default="FREE_ITEM")

    points_cost = Column(Integer, nullable=False)
    cash_value = Column(Numeric(12, 2), nullable=True)
    discount_amount = Column(Numeric(12, 2), nullable=True)

    required_tier_levels = Column(JSON, default=list)  # [] = all tiers

    total_quantity = Column(Integer, nullable=False, default=UNLIMITED_QUANTITY)
    redeemed_quantity = Column(Integer, nullable=False, default=0)
    max_redemptions_per_user = Column(Integer, nullable=False, default=0)  # 0 = no cap

    requires_approval = Column(Boolean, nullable=False, default=False)

    valid_from = Column(TIMESTAMP)
    valid_until = Column(TIMESTAMP)

    priority = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=RewardStatus.ACTIVE.value)
    is_active = Column(Boolean, nullable=False, default=True)
    is_visible = Column(Boolean, nullable=False, default=True)

    redemption_count = Column(Integer, nullable=False, default=0)
    last_redeemed_at = Column(TIMESTAMP)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
