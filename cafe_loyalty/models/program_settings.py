import uuid

from sqlalchemy import Column, Integer, Numeric, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from cafe_loyalty.db import Base


class LoyaltyProgramSettings(Base):
    """Per-tenant overrides. NULL columns fall back to the defaults in ``config.py``."""

    __tablename__ = "loyalty_program_settings"

    __table_args__ = (UniqueConstraint("tenant_id", name="uq_loyalty_program_settings_tenant"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    tenant_id = Column(String(50), nullable=False)

    welcome_bonus = Column(Integer)
    base_points_rate = Column(Numeric(6, 2))
    birthday_bonus = Column(Integer)
    referral_bonus = Column(Integer)
    tier_upgrade_bonus_per_level = Column(Integer)
    earned_points_validity_days = Column(Integer)
    redemption_validity_days = Column(Integer)
    rolling_year_days = Column(Integer)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
