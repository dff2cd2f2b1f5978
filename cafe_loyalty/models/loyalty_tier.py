import uuid

from sqlalchemy import Boolean, Column, Integer, Numeric, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from cafe_loyalty.db import Base


class LoyaltyTier(Base):
    __tablename__ = "loyalty_tiers"

    __table_args__ = (UniqueConstraint("tenant_id", "level", name="uq_loyalty_tiers_tenant_level"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    tenant_id = Column(String(50), nullable=False)

    name = Column(String(200), nullable=False)
    level = Column(Integer, nullable=False)  # 1 = Bronze, 2 = Silver, ...

    points_required = Column(Integer, nullable=False, default=0)
    spend_required = Column(Numeric(12, 2), nullable=False, default=0)
    orders_required = Column(Integer, nullable=False, default=0)

    points_multiplier = Column(Numeric(4, 2), nullable=False, default=1)

    # NULL = tier never expires once achieved
    validity_days = Column(Integer, nullable=True)

    birthday_bonus = Column(Integer, nullable=True)

    active = Column(Boolean, default=True)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
