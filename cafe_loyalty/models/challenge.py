import uuid
from enum import Enum

from sqlalchemy import JSON, Column, Integer, Numeric, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from cafe_loyalty.db import Base


class ChallengeType(str, Enum):
    ORDER_COUNT = "ORDER_COUNT"
    SPEND_AMOUNT = "SPEND_AMOUNT"
    POINTS_EARNED = "POINTS_EARNED"
    REFERRAL_COUNT = "REFERRAL_COUNT"
    PRODUCT_VARIETY = "PRODUCT_VARIETY"
    CONSECUTIVE_DAYS = "CONSECUTIVE_DAYS"
    CUSTOM = "CUSTOM"


class ChallengeStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"


class LoyaltyChallenge(Base):
    __tablename__ = "loyalty_challenges"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    tenant_id = Column(String(50), nullable=False)

    name = Column(String(200), nullable=False)
    description = Column(String(255))

    type = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=ChallengeStatus.DRAFT.value)

    start_date = Column(TIMESTAMP, nullable=False)
    end_date = Column(TIMESTAMP, nullable=False)

    target_value = Column(Numeric(12, 2), nullable=False)
    completion_points = Column(Integer, nullable=False, default=0)

    milestones = Column(JSON, default=list)
    # ex: [{"percentage": 50, "title": "Halfway there"}]

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
