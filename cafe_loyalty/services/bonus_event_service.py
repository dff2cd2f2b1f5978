import logging
from datetime import date, datetime

from sqlalchemy import extract, or_
from sqlalchemy.orm import Session

from cafe_loyalty.errors import BusinessRuleViolation, NotFoundError
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.loyalty_transaction import LoyaltyTransaction, TransactionKind
from cafe_loyalty.schemas.transaction_metadata import BirthdayMetadata, NotesMetadata, ReferralMetadata
from cafe_loyalty.services.account_service import ensure_active, get_account, get_or_create_account
from cafe_loyalty.services.challenge_service import refresh_progression
from cafe_loyalty.services.ledger_service import append_transaction, lock_account
from cafe_loyalty.services.program_settings_service import get_program_settings
from cafe_loyalty.services.tier_service import get_tier, tier_level
from cafe_loyalty.timeutils import utcnow


logger = logging.getLogger(__name__)


# ============================================================
# BIRTHDAY
# ============================================================
def award_birthday_bonus(db: Session, account_id, *, now: datetime | None = None) -> LoyaltyTransaction:
    """Once per calendar year. The tier's own birthday bonus wins over the program default."""
    now = now or utcnow()

    account = lock_account(db, account_id)
    ensure_active(account)

    if account.last_birthday_reward_at and account.last_birthday_reward_at.year == now.year:
        raise BusinessRuleViolation("Birthday bonus already awarded this year", code="BIRTHDAY_ALREADY_AWARDED")

    tier = get_tier(db, account.current_tier_id)
    settings = get_program_settings(db, account.tenant_id)
    points = int(tier.birthday_bonus) if tier and tier.birthday_bonus else settings.birthday_bonus

    transaction = append_transaction(
        db,
        account.id,
        points,
        TransactionKind.BIRTHDAY,
        description="Happy Birthday! Here are your bonus points!",
        metadata=BirthdayMetadata(birthday_year=now.year, tier_level=tier_level(tier)),
        now=now,
    )
    account.last_birthday_reward_at = now

    refresh_progression(db, account, now=now)

    logger.info(
        "birthday bonus awarded",
        extra={"account_id": str(account.id), "loyalty_number": account.loyalty_number, "points": points},
    )
    return transaction


def process_birthday_rewards(db: Session, tenant_id: str, *, today: date | None = None, now: datetime | None = None) -> int:
    """Sweep entry point for the external daily job. Commits per account."""
    now = now or utcnow()
    today = today or now.date()

    account_ids = [
        row[0]
        for row in (
            db.query(LoyaltyAccount.id)
            .filter(LoyaltyAccount.tenant_id == tenant_id)
            .filter(LoyaltyAccount.is_active.is_(True))
            .filter(LoyaltyAccount.birth_date.isnot(None))
            .filter(extract("month", LoyaltyAccount.birth_date) == today.month)
            .filter(extract("day", LoyaltyAccount.birth_date) == today.day)
            .filter(
                or_(
                    LoyaltyAccount.last_birthday_reward_at.is_(None),
                    extract("year", LoyaltyAccount.last_birthday_reward_at) < today.year,
                )
            )
            .all()
        )
    ]

    awarded = 0
    for account_id in account_ids:
        try:
            award_birthday_bonus(db, account_id, now=now)
            db.commit()
            awarded += 1
        except BusinessRuleViolation as e:
            db.rollback()
            logger.info("birthday bonus skipped", extra={"account_id": str(account_id), "reason": e.code})
        except Exception:
            db.rollback()
            logger.exception("birthday bonus failed", extra={"account_id": str(account_id)})
            raise

    logger.info("birthday sweep finished", extra={"tenant_id": tenant_id, "awarded": awarded})
    return awarded


# ============================================================
# REFERRAL
# ============================================================
def process_referral(
    db: Session,
    referrer_user_id: str,
    new_user_id: str,
    tenant_id: str,
    *,
    now: datetime | None = None,
) -> LoyaltyTransaction:
    now = now or utcnow()

    if referrer_user_id == new_user_id:
        raise BusinessRuleViolation("Users cannot refer themselves", code="ALREADY_REFERRED")

    referrer = get_account(db, referrer_user_id, tenant_id)
    if not referrer:
        raise NotFoundError("Referrer loyalty account not found")

    new_account = get_or_create_account(db, new_user_id, tenant_id, now=now)
    if new_account.referred_by_user_id:
        raise BusinessRuleViolation("Account was already referred", code="ALREADY_REFERRED")
    new_account.referred_by_user_id = referrer_user_id

    referrer = lock_account(db, referrer.id)
    ensure_active(referrer)

    settings = get_program_settings(db, tenant_id)
    transaction = append_transaction(
        db,
        referrer.id,
        settings.referral_bonus,
        TransactionKind.REFERRAL,
        description="Referral bonus - Thanks for bringing a friend!",
        metadata=ReferralMetadata(referred_user_id=new_user_id),
        now=now,
    )
    referrer.referral_count = int(referrer.referral_count or 0) + 1
    referrer.referral_bonus_earned = int(referrer.referral_bonus_earned or 0) + settings.referral_bonus

    refresh_progression(db, referrer, now=now)

    logger.info(
        "referral bonus awarded",
        extra={"referrer_account_id": str(referrer.id), "new_account_id": str(new_account.id)},
    )
    return transaction


# ============================================================
# MANUAL ADJUSTMENT
# ============================================================
def adjust_points(
    db: Session,
    account_id,
    points: int,
    reason: str,
    *,
    notes: dict | None = None,
    now: datetime | None = None,
) -> LoyaltyTransaction:
    """Staff credit or debit. Not a points-earning event: no tier evaluation."""
    if int(points) == 0:
        raise BusinessRuleViolation("Adjustment must be non-zero", code="INVALID_AMOUNT")

    return append_transaction(
        db,
        account_id,
        int(points),
        TransactionKind.ADJUSTMENT,
        description=reason,
        metadata=NotesMetadata(notes={"reason": reason, **(notes or {})}),
        now=now,
    )
