"""Typed metadata stored on ledger rows, tagged by ``type``.

Structured variants exist for every movement the engine writes itself. Staff
adjustments carry a free-form ``notes`` map only.
"""
from typing import Annotated, Any, Dict, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field


class WelcomeBonusMetadata(BaseModel):
    type: Literal["WELCOME_BONUS"] = "WELCOME_BONUS"


class OrderEarnMetadata(BaseModel):
    type: Literal["ORDER_EARN"] = "ORDER_EARN"
    order_amount: str
    base_points: int
    tier_bonus: int
    multiplier: str
    promotional_bonus: int


class PromotionMetadata(BaseModel):
    type: Literal["PROMOTION"] = "PROMOTION"
    promotion_id: UUID
    promotion_name: str
    promotion_type: str


class TierUpgradeMetadata(BaseModel):
    type: Literal["TIER_UPGRADE"] = "TIER_UPGRADE"
    previous_tier: Optional[str] = None
    previous_level: int = 0
    new_tier: str
    tier_level: int


class ChallengeCompletionMetadata(BaseModel):
    type: Literal["CHALLENGE_COMPLETION"] = "CHALLENGE_COMPLETION"
    challenge_id: UUID
    challenge_name: str


class RedemptionMetadata(BaseModel):
    type: Literal["REDEMPTION"] = "REDEMPTION"
    reward_id: UUID
    redemption_id: UUID
    redemption_code: str


class RedemptionRefundMetadata(BaseModel):
    type: Literal["REDEMPTION_REFUND"] = "REDEMPTION_REFUND"
    redemption_id: UUID
    redemption_code: str
    reason: Optional[str] = None


class BirthdayMetadata(BaseModel):
    type: Literal["BIRTHDAY"] = "BIRTHDAY"
    birthday_year: int
    tier_level: int = 0


class ReferralMetadata(BaseModel):
    type: Literal["REFERRAL"] = "REFERRAL"
    referred_user_id: str


class NotesMetadata(BaseModel):
    type: Literal["NOTES"] = "NOTES"
    notes: Dict[str, Any] = Field(default_factory=dict)


TransactionMetadata = Annotated[
    Union[
        WelcomeBonusMetadata,
        OrderEarnMetadata,
        PromotionMetadata,
        TierUpgradeMetadata,
        ChallengeCompletionMetadata,
        RedemptionMetadata,
        RedemptionRefundMetadata,
        BirthdayMetadata,
        ReferralMetadata,
        NotesMetadata,
    ],
    Field(discriminator="type"),
]


def dump_metadata(metadata) -> dict | None:
    if metadata is None:
        return None
    if isinstance(metadata, dict):
        # untyped input is treated as free-form notes
        metadata = NotesMetadata(notes=metadata)
    return metadata.model_dump(mode="json")
