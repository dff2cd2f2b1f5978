import logging
import secrets
import time
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cafe_loyalty import config
from cafe_loyalty.errors import BusinessRuleViolation, GenerationConflictError, NotFoundError
from cafe_loyalty.models.account import LoyaltyAccount, default_preferences
from cafe_loyalty.models.loyalty_tier import LoyaltyTier
from cafe_loyalty.models.loyalty_transaction import LoyaltyTransaction, TransactionKind
from cafe_loyalty.models.redemption import LoyaltyRedemption
from cafe_loyalty.schemas.transaction_metadata import WelcomeBonusMetadata
from cafe_loyalty.services.challenge_service import refresh_progression
from cafe_loyalty.services.ledger_service import append_transaction
from cafe_loyalty.services.program_settings_service import get_program_settings
from cafe_loyalty.services.tier_service import list_active_tiers
from cafe_loyalty.timeutils import utcnow


logger = logging.getLogger(__name__)


def get_account(db: Session, user_id: str, tenant_id: str) -> LoyaltyAccount | None:
    return (
        db.query(LoyaltyAccount)
        .filter(
            LoyaltyAccount.user_id == user_id,
            LoyaltyAccount.tenant_id == tenant_id,
        )
        .first()
    )


def get_account_by_id(db: Session, account_id) -> LoyaltyAccount:
    account = db.query(LoyaltyAccount).filter(LoyaltyAccount.id == account_id).first()
    if not account:
        raise NotFoundError("Loyalty account not found")
    return account


def get_account_by_number(db: Session, loyalty_number: str) -> LoyaltyAccount:
    account = db.query(LoyaltyAccount).filter(LoyaltyAccount.loyalty_number == loyalty_number).first()
    if not account:
        raise NotFoundError("Loyalty account not found")
    return account


def ensure_active(account: LoyaltyAccount) -> None:
    if not account.is_active:
        raise BusinessRuleViolation("Loyalty account is inactive", code="ACCOUNT_INACTIVE")


def _candidate_loyalty_number() -> str:
    return f"LP{str(int(time.time() * 1000))[-8:]}{secrets.randbelow(1000):03d}"


def generate_loyalty_number(db: Session, *, max_attempts: int = config.LOYALTY_NUMBER_MAX_ATTEMPTS) -> str:
    for _ in range(max_attempts):
        number = _candidate_loyalty_number()
        exists = db.query(LoyaltyAccount.id).filter(LoyaltyAccount.loyalty_number == number).first()
        if not exists:
            return number

    raise GenerationConflictError("Failed to generate unique loyalty number")


def _base_tier(db: Session, tenant_id: str) -> LoyaltyTier | None:
    return (
        db.query(LoyaltyTier)
        .filter(LoyaltyTier.tenant_id == tenant_id)
        .filter(LoyaltyTier.active.is_(True))
        .filter(LoyaltyTier.level == 1)
        .first()
    )


def get_or_create_account(
    db: Session,
    user_id: str,
    tenant_id: str,
    *,
    now: datetime | None = None,
    max_attempts: int = config.LOYALTY_NUMBER_MAX_ATTEMPTS,
) -> LoyaltyAccount:
    """Return the (user, tenant) account, creating it on first interaction.

    A concurrent creator losing the race on the (user, tenant) constraint
    re-reads the winner's row. A loyalty-number collision at insert time
    retries with a fresh number. The welcome bonus is paid only by the creator.
    """
    now = now or utcnow()

    account = get_account(db, user_id, tenant_id)
    if account:
        return account

    base_tier = _base_tier(db, tenant_id)

    for _ in range(max_attempts):
        account = LoyaltyAccount(
            user_id=user_id,
            tenant_id=tenant_id,
            loyalty_number=generate_loyalty_number(db, max_attempts=max_attempts),
            current_points=0,
            lifetime_points=0,
            points_redeemed=0,
            total_spent=Decimal("0"),
            yearly_spent=Decimal("0"),
            total_orders=0,
            yearly_orders=0,
            yearly_period_started_at=now,
            current_tier_id=base_tier.id if base_tier else None,
            tier_achieved_at=now if base_tier else None,
            tier_expires_at=(
                now + timedelta(days=int(base_tier.validity_days))
                if base_tier and base_tier.validity_days
                else None
            ),
            referral_count=0,
            referral_bonus_earned=0,
            is_active=True,
            preferences=default_preferences(),
            created_at=now,
        )

        try:
            with db.begin_nested():
                db.add(account)
        except IntegrityError:
            existing = get_account(db, user_id, tenant_id)
            if existing:
                logger.info(
                    "loyalty account created concurrently; using existing row",
                    extra={"user_id": user_id, "tenant_id": tenant_id, "account_id": str(existing.id)},
                )
                return existing
            logger.warning(
                "loyalty number collision on insert; retrying",
                extra={"user_id": user_id, "tenant_id": tenant_id},
            )
            continue

        _award_welcome_bonus(db, account, now=now)
        refresh_progression(db, account, list_active_tiers(db, tenant_id), now=now)

        logger.info(
            "created loyalty account",
            extra={"account_id": str(account.id), "loyalty_number": account.loyalty_number, "user_id": user_id},
        )
        return account

    raise GenerationConflictError("Failed to generate unique loyalty number")


def _award_welcome_bonus(db: Session, account: LoyaltyAccount, *, now: datetime):
    settings = get_program_settings(db, account.tenant_id)
    if settings.welcome_bonus <= 0:
        return None

    return append_transaction(
        db,
        account.id,
        settings.welcome_bonus,
        TransactionKind.BONUS,
        description="Welcome bonus - Thanks for joining our loyalty program!",
        metadata=WelcomeBonusMetadata(),
        now=now,
    )


def record_order_activity(db: Session, account: LoyaltyAccount, amount: Decimal, *, now: datetime) -> None:
    """Roll lifetime and rolling-year order counters forward for one completed order."""
    settings = get_program_settings(db, account.tenant_id)
    amount = Decimal(amount)

    period_start = account.yearly_period_started_at
    if period_start is None or now - period_start >= timedelta(days=settings.rolling_year_days):
        account.yearly_period_started_at = now
        account.yearly_spent = Decimal("0")
        account.yearly_orders = 0

    account.total_orders = int(account.total_orders or 0) + 1
    account.yearly_orders = int(account.yearly_orders or 0) + 1
    account.total_spent = Decimal(account.total_spent or 0) + amount
    account.yearly_spent = Decimal(account.yearly_spent or 0) + amount
    account.last_activity_at = now
    db.flush()


def update_account(db: Session, account: LoyaltyAccount, data: dict) -> LoyaltyAccount:
    if data.get("birth_date") is not None:
        account.birth_date = data["birth_date"]

    if data.get("preferences") is not None:
        merged = dict(account.preferences or default_preferences())
        merged.update(data["preferences"])
        account.preferences = merged

    db.flush()
    return account


def set_account_active(db: Session, account: LoyaltyAccount, active: bool) -> LoyaltyAccount:
    """Soft (de)activation. Accounts are never deleted."""
    account.is_active = bool(active)
    db.flush()
    logger.info(
        "loyalty account active flag changed",
        extra={"account_id": str(account.id), "is_active": account.is_active},
    )
    return account


def get_program_stats(db: Session, tenant_id: str, *, now: datetime | None = None) -> dict:
    now = now or utcnow()

    total_members = db.query(func.count(LoyaltyAccount.id)).filter(LoyaltyAccount.tenant_id == tenant_id).scalar() or 0

    active_members = (
        db.query(func.count(LoyaltyAccount.id))
        .filter(LoyaltyAccount.tenant_id == tenant_id)
        .filter(LoyaltyAccount.is_active.is_(True))
        .filter(LoyaltyAccount.last_activity_at > now - timedelta(days=config.ACTIVE_MEMBER_DAYS))
        .scalar()
        or 0
    )

    issued, redeemed = (
        db.query(
            func.coalesce(func.sum(case((LoyaltyTransaction.points > 0, LoyaltyTransaction.points), else_=0)), 0),
            func.coalesce(func.sum(case((LoyaltyTransaction.points < 0, -LoyaltyTransaction.points), else_=0)), 0),
        )
        .filter(LoyaltyTransaction.tenant_id == tenant_id)
        .one()
    )

    spent, orders = (
        db.query(
            func.coalesce(func.sum(LoyaltyAccount.total_spent), 0),
            func.coalesce(func.sum(LoyaltyAccount.total_orders), 0),
        )
        .filter(LoyaltyAccount.tenant_id == tenant_id)
        .one()
    )

    top_tier_members = (
        db.query(func.count(LoyaltyAccount.id))
        .join(LoyaltyTier, LoyaltyTier.id == LoyaltyAccount.current_tier_id)
        .filter(LoyaltyAccount.tenant_id == tenant_id)
        .filter(LoyaltyTier.level >= config.TOP_TIER_LEVEL)
        .scalar()
        or 0
    )

    total_redemptions = (
        db.query(func.count(LoyaltyRedemption.id)).filter(LoyaltyRedemption.tenant_id == tenant_id).scalar() or 0
    )

    average_order_value = (Decimal(spent) / int(orders)).quantize(Decimal("0.01")) if orders else Decimal("0.00")

    return {
        "tenant_id": tenant_id,
        "total_members": int(total_members),
        "active_members": int(active_members),
        "total_points_issued": int(issued),
        "total_points_redeemed": int(redeemed),
        "average_order_value": average_order_value,
        "top_tier_members": int(top_tier_members),
        "redemption_rate": (total_redemptions / total_members * 100) if total_members else 0.0,
        "engagement_rate": (active_members / total_members * 100) if total_members else 0.0,
    }
