"""Points award for a completed order.

One call is one unit of work on one account: counters, the EARNED row, the
promotion rows, the tier upgrade and challenge progress are flushed together
and the caller commits them together. Replaying an order id returns the
original EARNED row untouched.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cafe_loyalty.models.loyalty_transaction import LoyaltyTransaction, TransactionKind
from cafe_loyalty.schemas.event import OrderCompleted
from cafe_loyalty.schemas.transaction_metadata import OrderEarnMetadata, PromotionMetadata
from cafe_loyalty.services.account_service import ensure_active, get_or_create_account, record_order_activity
from cafe_loyalty.services.challenge_service import refresh_progression
from cafe_loyalty.services.ledger_service import (
    append_transaction,
    count_promotion_uses,
    find_earned_transaction,
    lock_account,
)
from cafe_loyalty.services.program_settings_service import get_program_settings
from cafe_loyalty.services.promotion_service import compute_bonus, floor_points, list_active_promotions
from cafe_loyalty.services.tier_service import get_tier, list_active_tiers, tier_level
from cafe_loyalty.timeutils import utcnow


logger = logging.getLogger(__name__)


def calculate_order_points(order_total: Decimal, base_rate: Decimal, multiplier: Decimal) -> dict:
    base_points = floor_points(Decimal(order_total) * Decimal(base_rate))
    earned = floor_points(Decimal(base_points) * Decimal(multiplier))
    return {
        "base_points": base_points,
        "tier_bonus": earned - base_points,
        "earned_points": earned,
    }


def award_points_for_order(db: Session, order: OrderCompleted, *, now: datetime | None = None) -> LoyaltyTransaction:
    now = now or utcnow()

    existing = find_earned_transaction(db, order.tenantId, order.id)
    if existing:
        logger.info("order already awarded", extra={"order_id": order.id, "transaction_id": str(existing.id)})
        return existing

    account = get_or_create_account(db, order.customerId, order.tenantId, now=now)
    account = lock_account(db, account.id)
    ensure_active(account)

    # re-check under the account lock
    existing = find_earned_transaction(db, order.tenantId, order.id)
    if existing:
        return existing

    settings = get_program_settings(db, account.tenant_id)
    tiers = list_active_tiers(db, account.tenant_id)
    current_tier = get_tier(db, account.current_tier_id)
    multiplier = Decimal(current_tier.points_multiplier) if current_tier else Decimal("1")

    record_order_activity(db, account, order.totalAmount, now=now)

    points = calculate_order_points(order.totalAmount, settings.base_points_rate, multiplier)

    promotions = list_active_promotions(db, account.tenant_id, now)
    bonus = compute_bonus(
        order.totalAmount,
        points["base_points"],
        tier_level(current_tier),
        promotions,
        count_promotion_uses(db, account.id, [p.id for p in promotions]),
    )

    earned = append_transaction(
        db,
        account.id,
        points["earned_points"],
        TransactionKind.EARNED,
        order_id=order.id,
        description=f"Points earned for order {order.id}",
        metadata=OrderEarnMetadata(
            order_amount=str(order.totalAmount),
            base_points=points["base_points"],
            tier_bonus=points["tier_bonus"],
            multiplier=str(multiplier),
            promotional_bonus=bonus.bonus_points,
        ),
        earned_validity=timedelta(days=settings.earned_points_validity_days),
        now=now,
    )

    for applied in bonus.applied_promotions:
        append_transaction(
            db,
            account.id,
            applied.points,
            TransactionKind.PROMOTION,
            order_id=order.id,
            promotion_id=applied.promotion.id,
            description=f"Promotion bonus: {applied.promotion.name}",
            metadata=PromotionMetadata(
                promotion_id=applied.promotion.id,
                promotion_name=applied.promotion.name,
                promotion_type=applied.promotion.type,
            ),
            now=now,
        )

    refresh_progression(db, account, tiers, now=now)

    logger.info(
        "awarded points for order",
        extra={
            "order_id": order.id,
            "account_id": str(account.id),
            "earned_points": points["earned_points"],
            "promotional_bonus": bonus.bonus_points,
            "balance": int(account.current_points),
        },
    )
    return earned


def on_order_completed(db: Session, order: OrderCompleted, *, now: datetime | None = None) -> LoyaltyTransaction:
    """Award and commit. A lost race on the order's idempotency key resolves to the winner's row."""
    try:
        transaction = award_points_for_order(db, order, now=now)
        db.commit()
        return transaction
    except IntegrityError:
        db.rollback()
        existing = find_earned_transaction(db, order.tenantId, order.id)
        if existing:
            logger.info(
                "concurrent award for order resolved to existing transaction",
                extra={"order_id": order.id, "transaction_id": str(existing.id)},
            )
            return existing
        logger.exception("order award failed", extra={"order_id": order.id})
        raise
    except Exception:
        db.rollback()
        logger.exception("order award failed", extra={"order_id": order.id})
        raise
