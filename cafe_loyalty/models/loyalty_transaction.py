import uuid
from enum import Enum

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from cafe_loyalty.db import Base


class TransactionKind(str, Enum):
    EARNED = "EARNED"
    REDEEMED = "REDEEMED"
    BONUS = "BONUS"
    BIRTHDAY = "BIRTHDAY"
    REFERRAL = "REFERRAL"
    CHALLENGE = "CHALLENGE"
    PROMOTION = "PROMOTION"
    EXPIRED = "EXPIRED"
    ADJUSTMENT = "ADJUSTMENT"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


def earned_idempotency_key(tenant_id: str, order_id: str) -> str:
    return f"EARNED:{tenant_id}:{order_id}"


class LoyaltyTransaction(Base):
    """One immutable ledger row. Never updated or deleted once written."""

    __tablename__ = "loyalty_transactions"

    __table_args__ = (
        # one EARNED row per order; NULL for every other kind
        UniqueConstraint("idempotency_key", name="uq_loyalty_transactions_idempotency_key"),
        Index("ix_loyalty_transactions_account_created", "account_id", "created_at"),
        Index("ix_loyalty_transactions_order", "order_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    account_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_accounts.id"), nullable=False)
    tenant_id = Column(String(50), nullable=False)

    points = Column(Integer, nullable=False)
    kind = Column(String(20), nullable=False)
    balance_after = Column(Integer, nullable=False)

    order_id = Column(String(100))
    promotion_id = Column(UUID(as_uuid=True), nullable=True)
    idempotency_key = Column(String(200))

    description = Column(String(255))
    metadata_json = Column("metadata", JSON)

    status = Column(String(20), nullable=False, default=TransactionStatus.COMPLETED.value)

    expires_at = Column(TIMESTAMP)
    created_at = Column(TIMESTAMP, server_default=func.now())
