import uuid
from enum import Enum

from sqlalchemy import JSON, Column, Integer, Numeric, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from cafe_loyalty.db import Base


class PromotionType(str, Enum):
    BONUS_POINTS = "BONUS_POINTS"
    POINTS_MULTIPLIER = "POINTS_MULTIPLIER"


class PromotionStatus(str, Enum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class LoyaltyPromotion(Base):
    __tablename__ = "loyalty_promotions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    tenant_id = Column(String(50), nullable=False)

    name = Column(String(200), nullable=False)
    description = Column(String(255))

    type = Column(String(30), nullable=False)  # BONUS_POINTS / POINTS_MULTIPLIER
    status = Column(String(20), nullable=False, default=PromotionStatus.DRAFT.value)

    # active window is [start_date, end_date)
    start_date = Column(TIMESTAMP, nullable=False)
    end_date = Column(TIMESTAMP, nullable=False)

    bonus_points = Column(Integer, nullable=True)
    points_multiplier = Column(Numeric(4, 2), nullable=True)

    minimum_spend = Column(Numeric(12, 2), nullable=True)
    eligible_tier_levels = Column(JSON, default=list)  # [] = all tiers
    max_uses_per_customer = Column(Integer, nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
