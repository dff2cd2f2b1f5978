from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal

from sqlalchemy.orm import Session

from cafe_loyalty.errors import ConfigurationError
from cafe_loyalty.models.promotion import LoyaltyPromotion, PromotionStatus, PromotionType
from cafe_loyalty.timeutils import utcnow


@dataclass
class AppliedPromotion:
    promotion: LoyaltyPromotion
    points: int


@dataclass
class PromotionBonus:
    bonus_points: int = 0
    applied_promotions: list[AppliedPromotion] = field(default_factory=list)


def floor_points(value: Decimal) -> int:
    return int(Decimal(value).to_integral_value(rounding=ROUND_FLOOR))


def list_active_promotions(db: Session, tenant_id: str, now: datetime | None = None) -> list[LoyaltyPromotion]:
    now = now or utcnow()
    return (
        db.query(LoyaltyPromotion)
        .filter(
            LoyaltyPromotion.tenant_id == tenant_id,
            LoyaltyPromotion.status == PromotionStatus.ACTIVE.value,
            LoyaltyPromotion.start_date <= now,
            LoyaltyPromotion.end_date > now,
        )
        .order_by(LoyaltyPromotion.start_date.asc(), LoyaltyPromotion.created_at.asc())
        .all()
    )


def check_eligibility(promotion: LoyaltyPromotion, order_total: Decimal, tier_level: int, uses: int) -> str | None:
    """Return the reason the promotion does not apply, or None when eligible."""
    eligible_levels = promotion.eligible_tier_levels or []
    if eligible_levels and tier_level not in [int(level) for level in eligible_levels]:
        return "Tier requirement not met"

    if promotion.minimum_spend is not None and order_total < Decimal(promotion.minimum_spend):
        return "Minimum spend not met"

    if promotion.max_uses_per_customer and uses >= int(promotion.max_uses_per_customer):
        return "Usage limit exceeded"

    return None


def promotion_points(promotion: LoyaltyPromotion, base_points: int) -> int:
    if promotion.type == PromotionType.BONUS_POINTS.value:
        if promotion.bonus_points is None or int(promotion.bonus_points) < 0:
            raise ConfigurationError(f"Promotion {promotion.name!r} has no valid bonus_points")
        return int(promotion.bonus_points)

    if promotion.type == PromotionType.POINTS_MULTIPLIER.value:
        if promotion.points_multiplier is None or Decimal(promotion.points_multiplier) < 1:
            raise ConfigurationError(f"Promotion {promotion.name!r} has no valid points_multiplier")
        return floor_points(Decimal(base_points) * (Decimal(promotion.points_multiplier) - 1))

    raise ConfigurationError(f"Unsupported promotion type: {promotion.type}")


def compute_bonus(
    order_total: Decimal,
    base_points: int,
    tier_level: int,
    active_promotions,
    usage_counts: dict | None = None,
) -> PromotionBonus:
    """Stack every eligible promotion, in listed order.

    ``active_promotions`` is already filtered to ACTIVE and inside its window.
    ``usage_counts`` maps promotion id to prior PROMOTION rows for the account.
    """
    usage_counts = usage_counts or {}
    order_total = Decimal(order_total)
    result = PromotionBonus()

    for promotion in active_promotions:
        reason = check_eligibility(promotion, order_total, tier_level, usage_counts.get(promotion.id, 0))
        if reason:
            continue

        points = promotion_points(promotion, base_points)
        result.bonus_points += points
        result.applied_promotions.append(AppliedPromotion(promotion=promotion, points=points))

    return result
