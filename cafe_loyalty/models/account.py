import uuid

from sqlalchemy import JSON, Boolean, Column, Date, Integer, Numeric, String, TIMESTAMP, UniqueConstraint
from sqlalchemy import ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from cafe_loyalty.db import Base


def default_preferences() -> dict:
    return {
        "emailNotifications": True,
        "smsNotifications": True,
        "pushNotifications": True,
        "marketingEmails": True,
        "birthdayReminders": True,
        "pointsExpiry": True,
        "newRewards": True,
    }


class LoyaltyAccount(Base):
    __tablename__ = "loyalty_accounts"

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", name="uq_loyalty_accounts_user_tenant"),
        UniqueConstraint("loyalty_number", name="uq_loyalty_accounts_loyalty_number"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id = Column(String(100), nullable=False)
    tenant_id = Column(String(50), nullable=False)

    loyalty_number = Column(String(20), nullable=False)

    # currentPoints == lifetimePoints - pointsRedeemed, maintained by the ledger only
    current_points = Column(Integer, nullable=False, default=0)
    lifetime_points = Column(Integer, nullable=False, default=0)
    points_redeemed = Column(Integer, nullable=False, default=0)

    total_spent = Column(Numeric(12, 2), nullable=False, default=0)
    yearly_spent = Column(Numeric(12, 2), nullable=False, default=0)
    total_orders = Column(Integer, nullable=False, default=0)
    yearly_orders = Column(Integer, nullable=False, default=0)
    yearly_period_started_at = Column(TIMESTAMP)

    current_tier_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_tiers.id"), nullable=True)
    tier_achieved_at = Column(TIMESTAMP)
    tier_expires_at = Column(TIMESTAMP)

    birth_date = Column(Date)
    last_birthday_reward_at = Column(TIMESTAMP)

    referred_by_user_id = Column(String(100))
    referral_count = Column(Integer, nullable=False, default=0)
    referral_bonus_earned = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    preferences = Column(JSON, default=default_preferences)

    last_activity_at = Column(TIMESTAMP)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
