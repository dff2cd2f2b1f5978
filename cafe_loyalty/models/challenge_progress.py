import uuid

from sqlalchemy import Column, ForeignKey, Numeric, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from cafe_loyalty.db import Base


class ChallengeProgress(Base):
    __tablename__ = "loyalty_challenge_progress"

    __table_args__ = (
        UniqueConstraint("account_id", "challenge_id", name="uq_loyalty_challenge_progress_account_challenge"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    account_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_accounts.id"), nullable=False)
    challenge_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_challenges.id"), nullable=False)

    current_progress = Column(Numeric(12, 2), nullable=False, default=0)
    target_value = Column(Numeric(12, 2), nullable=False)

    started_at = Column(TIMESTAMP, server_default=func.now())
    # set once; its presence is what keeps the completion bonus from firing twice
    completed_at = Column(TIMESTAMP)

    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
