import uuid
from enum import Enum

from sqlalchemy import JSON, Column, ForeignKey, Integer, Numeric, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from cafe_loyalty.db import Base


class RedemptionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REDEEMED = "REDEEMED"
    DENIED = "DENIED"
    EXPIRED = "EXPIRED"


class LoyaltyRedemption(Base):
    __tablename__ = "loyalty_redemptions"

    __table_args__ = (UniqueConstraint("redemption_code", name="uq_loyalty_redemptions_code"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    account_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_accounts.id"), nullable=False)
    reward_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_rewards.id"), nullable=False)
    tenant_id = Column(String(50), nullable=False)

    # debit written in the same unit of work
    transaction_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_transactions.id"), nullable=True)
    refund_transaction_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_transactions.id"), nullable=True)

    order_id = Column(String(100))

    points_used = Column(Integer, nullable=False)
    cash_value = Column(Numeric(12, 2))
    discount_amount = Column(Numeric(12, 2))

    redemption_code = Column(String(20), nullable=False)

    status = Column(String(20), nullable=False, default=RedemptionStatus.PENDING.value)

    notes = Column(String(500))
    metadata_json = Column("metadata", JSON)

    expires_at = Column(TIMESTAMP)
    approved_at = Column(TIMESTAMP)
    redeemed_at = Column(TIMESTAMP)
    denied_at = Column(TIMESTAMP)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
