"""Reward redemption: validation, the points debit, and the redemption lifecycle.

The debit and the redemption row are written in the same unit of work; the
caller commits both or neither.
"""
import logging
import secrets
import string
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cafe_loyalty import config
from cafe_loyalty.errors import BusinessRuleViolation, GenerationConflictError, InsufficientBalance, NotFoundError
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.loyalty_transaction import TransactionKind
from cafe_loyalty.models.redemption import LoyaltyRedemption, RedemptionStatus
from cafe_loyalty.models.reward import UNLIMITED_QUANTITY, LoyaltyReward, RewardStatus
from cafe_loyalty.schemas.transaction_metadata import RedemptionMetadata, RedemptionRefundMetadata
from cafe_loyalty.services.account_service import ensure_active
from cafe_loyalty.services.ledger_service import append_transaction, lock_account
from cafe_loyalty.services.program_settings_service import get_program_settings
from cafe_loyalty.services.tier_service import get_tier, tier_level
from cafe_loyalty.timeutils import utcnow


logger = logging.getLogger(__name__)

REDEMPTION_CODE_ALPHABET = string.ascii_uppercase + string.digits
REDEMPTION_CODE_LENGTH = 8

_ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    RedemptionStatus.PENDING.value: {
        RedemptionStatus.APPROVED.value,
        RedemptionStatus.DENIED.value,
        RedemptionStatus.EXPIRED.value,
    },
    RedemptionStatus.APPROVED.value: {
        RedemptionStatus.REDEEMED.value,
        RedemptionStatus.EXPIRED.value,
    },
    RedemptionStatus.REDEEMED.value: set(),
    RedemptionStatus.DENIED.value: set(),
    RedemptionStatus.EXPIRED.value: set(),
}


# ============================================================
# REWARD CATALOG
# ============================================================
def get_reward(db: Session, reward_id, tenant_id: str | None = None, *, lock: bool = False) -> LoyaltyReward:
    """Load a reward. With ``lock`` the row is re-read and held until the unit of work ends."""
    q = db.query(LoyaltyReward).filter(LoyaltyReward.id == reward_id)
    if tenant_id is not None:
        q = q.filter(LoyaltyReward.tenant_id == tenant_id)
    if lock:
        # quantity counters are read-modify-write
        db.flush()
        q = q.populate_existing().with_for_update()
    reward = q.first()
    if not reward:
        raise NotFoundError("Reward not found")
    return reward


def remaining_quantity(reward: LoyaltyReward) -> int:
    if int(reward.total_quantity) == UNLIMITED_QUANTITY:
        return UNLIMITED_QUANTITY
    return max(int(reward.total_quantity) - int(reward.redeemed_quantity or 0), 0)


def is_reward_available(reward: LoyaltyReward, now: datetime) -> bool:
    if not reward.is_active or reward.status != RewardStatus.ACTIVE.value:
        return False
    if reward.valid_from and reward.valid_from > now:
        return False
    if reward.valid_until and reward.valid_until < now:
        return False
    return remaining_quantity(reward) != 0


def tier_allows(required_levels, level: int) -> bool:
    required_levels = required_levels or []
    return not required_levels or level in [int(lvl) for lvl in required_levels]


def list_available_rewards(
    db: Session,
    account: LoyaltyAccount,
    *,
    limit: int = 20,
    offset: int = 0,
    now: datetime | None = None,
) -> list[LoyaltyReward]:
    """Visible rewards the account can redeem right now, by priority then cost."""
    now = now or utcnow()
    level = tier_level(get_tier(db, account.current_tier_id))

    candidates = (
        db.query(LoyaltyReward)
        .filter(LoyaltyReward.tenant_id == account.tenant_id)
        .filter(LoyaltyReward.is_active.is_(True))
        .filter(LoyaltyReward.is_visible.is_(True))
        .filter(LoyaltyReward.status == RewardStatus.ACTIVE.value)
        .filter(LoyaltyReward.points_cost <= int(account.current_points or 0))
        .order_by(LoyaltyReward.priority.desc(), LoyaltyReward.points_cost.asc())
        .all()
    )

    # tier lists are JSON, filtered here rather than in SQL
    available = [r for r in candidates if is_reward_available(r, now) and tier_allows(r.required_tier_levels, level)]
    return available[offset:offset + limit]


# ============================================================
# REDEEM
# ============================================================
def generate_redemption_code(db: Session, *, max_attempts: int = config.REDEMPTION_CODE_MAX_ATTEMPTS) -> str:
    for _ in range(max_attempts):
        code = "".join(secrets.choice(REDEMPTION_CODE_ALPHABET) for _ in range(REDEMPTION_CODE_LENGTH))
        exists = db.query(LoyaltyRedemption.id).filter(LoyaltyRedemption.redemption_code == code).first()
        if not exists:
            return code

    raise GenerationConflictError("Failed to generate unique redemption code")


def validate_redemption(db: Session, account: LoyaltyAccount, reward: LoyaltyReward, now: datetime) -> None:
    """First failing rule wins: availability, balance, tier, per-user cap."""
    if not is_reward_available(reward, now):
        raise BusinessRuleViolation("Reward is not available", code="REWARD_UNAVAILABLE")

    balance = int(account.current_points or 0)
    if balance < int(reward.points_cost):
        raise InsufficientBalance(balance=balance, requested=int(reward.points_cost))

    if not tier_allows(reward.required_tier_levels, tier_level(get_tier(db, account.current_tier_id))):
        raise BusinessRuleViolation("Tier requirement not met", code="TIER_REQUIREMENT_NOT_MET")

    if reward.max_redemptions_per_user and int(reward.max_redemptions_per_user) > 0:
        redeemed = (
            db.query(func.count(LoyaltyRedemption.id))
            .filter(LoyaltyRedemption.account_id == account.id)
            .filter(LoyaltyRedemption.reward_id == reward.id)
            .filter(LoyaltyRedemption.status == RedemptionStatus.REDEEMED.value)
            .scalar()
            or 0
        )
        if redeemed >= int(reward.max_redemptions_per_user):
            raise BusinessRuleViolation(
                "Redemption limit exceeded for this reward",
                code="REDEMPTION_LIMIT_EXCEEDED",
            )


def _insert_redemption(
    db: Session,
    account: LoyaltyAccount,
    reward: LoyaltyReward,
    *,
    status: str,
    approved_at: datetime | None,
    expires_at: datetime,
    order_id: str | None,
    notes: str | None,
    now: datetime,
    max_attempts: int = config.REDEMPTION_CODE_MAX_ATTEMPTS,
) -> LoyaltyRedemption:
    """Insert the redemption row, drawing a fresh code when another writer took ours."""
    for _ in range(max_attempts):
        code = generate_redemption_code(db)
        redemption = LoyaltyRedemption(
            account_id=account.id,
            reward_id=reward.id,
            tenant_id=account.tenant_id,
            order_id=order_id,
            points_used=int(reward.points_cost),
            cash_value=reward.cash_value,
            discount_amount=reward.discount_amount,
            redemption_code=code,
            status=status,
            approved_at=approved_at,
            expires_at=expires_at,
            notes=notes,
            metadata_json={
                "rewardName": reward.name,
                "rewardDescription": reward.description,
                "rewardType": reward.type,
            },
            created_at=now,
        )

        try:
            with db.begin_nested():
                db.add(redemption)
        except IntegrityError:
            logger.warning(
                "redemption code collision on insert; retrying",
                extra={"account_id": str(account.id), "redemption_code": code},
            )
            continue

        return redemption

    raise GenerationConflictError("Failed to generate unique redemption code")


def redeem(
    db: Session,
    account_id,
    reward_id,
    *,
    order_id: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> LoyaltyRedemption:
    now = now or utcnow()

    account = lock_account(db, account_id)
    ensure_active(account)

    reward = get_reward(db, reward_id, tenant_id=account.tenant_id, lock=True)
    validate_redemption(db, account, reward, now)

    settings = get_program_settings(db, account.tenant_id)
    redemption = _insert_redemption(
        db,
        account,
        reward,
        status=(RedemptionStatus.PENDING.value if reward.requires_approval else RedemptionStatus.APPROVED.value),
        approved_at=None if reward.requires_approval else now,
        expires_at=now + timedelta(days=settings.redemption_validity_days),
        order_id=order_id,
        notes=notes,
        now=now,
    )
    code = redemption.redemption_code

    transaction = append_transaction(
        db,
        account.id,
        -int(reward.points_cost),
        TransactionKind.REDEEMED,
        order_id=order_id,
        description=f"Points redeemed for {reward.name}",
        metadata=RedemptionMetadata(reward_id=reward.id, redemption_id=redemption.id, redemption_code=code),
        now=now,
    )
    redemption.transaction_id = transaction.id

    reward.redeemed_quantity = int(reward.redeemed_quantity or 0) + 1
    reward.redemption_count = int(reward.redemption_count or 0) + 1
    reward.last_redeemed_at = now
    db.flush()

    logger.info(
        "reward redeemed",
        extra={
            "account_id": str(account.id),
            "loyalty_number": account.loyalty_number,
            "reward_id": str(reward.id),
            "redemption_code": code,
            "status": redemption.status,
        },
    )
    return redemption


# ============================================================
# LIFECYCLE
# ============================================================
def get_redemption(db: Session, redemption_id, tenant_id: str | None = None) -> LoyaltyRedemption:
    q = db.query(LoyaltyRedemption).filter(LoyaltyRedemption.id == redemption_id)
    if tenant_id is not None:
        q = q.filter(LoyaltyRedemption.tenant_id == tenant_id)
    redemption = q.first()
    if not redemption:
        raise NotFoundError("Redemption not found")
    return redemption


def _transition(redemption: LoyaltyRedemption, target: RedemptionStatus) -> None:
    if target.value not in _ALLOWED_TRANSITIONS.get(redemption.status, set()):
        raise BusinessRuleViolation(
            f"Cannot move redemption from {redemption.status} to {target.value}",
            code="INVALID_REDEMPTION_TRANSITION",
        )
    redemption.status = target.value


def approve_redemption(db: Session, redemption: LoyaltyRedemption, *, now: datetime | None = None):
    now = now or utcnow()
    _transition(redemption, RedemptionStatus.APPROVED)
    redemption.approved_at = now
    db.flush()
    return redemption


def complete_redemption(db: Session, redemption: LoyaltyRedemption, *, now: datetime | None = None):
    now = now or utcnow()
    if redemption.expires_at and redemption.expires_at < now:
        raise BusinessRuleViolation("Redemption has expired", code="INVALID_REDEMPTION_TRANSITION")
    _transition(redemption, RedemptionStatus.REDEEMED)
    redemption.redeemed_at = now
    db.flush()
    return redemption


def deny_redemption(db: Session, redemption: LoyaltyRedemption, *, reason: str | None = None, now: datetime | None = None):
    """Deny a pending redemption and give the points back."""
    now = now or utcnow()
    _transition(redemption, RedemptionStatus.DENIED)
    redemption.denied_at = now

    refund = append_transaction(
        db,
        redemption.account_id,
        int(redemption.points_used),
        TransactionKind.ADJUSTMENT,
        description="Redemption denied - points refunded",
        reverses_debit=True,
        metadata=RedemptionRefundMetadata(
            redemption_id=redemption.id,
            redemption_code=redemption.redemption_code,
            reason=reason,
        ),
        now=now,
    )
    redemption.refund_transaction_id = refund.id

    reward = get_reward(db, redemption.reward_id, lock=True)
    if int(reward.redeemed_quantity or 0) > 0:
        reward.redeemed_quantity = int(reward.redeemed_quantity) - 1

    db.flush()
    logger.info(
        "redemption denied",
        extra={"redemption_id": str(redemption.id), "refunded_points": int(redemption.points_used)},
    )
    return redemption


def expire_redemptions(db: Session, *, tenant_id: str | None = None, now: datetime | None = None) -> int:
    """Batch job: PENDING/APPROVED redemptions past their expiry become EXPIRED (no refund)."""
    now = now or utcnow()

    q = (
        db.query(LoyaltyRedemption)
        .filter(LoyaltyRedemption.status.in_([RedemptionStatus.PENDING.value, RedemptionStatus.APPROVED.value]))
        .filter(LoyaltyRedemption.expires_at.isnot(None))
        .filter(LoyaltyRedemption.expires_at < now)
    )
    if tenant_id is not None:
        q = q.filter(LoyaltyRedemption.tenant_id == tenant_id)

    expired = q.all()
    for redemption in expired:
        redemption.status = RedemptionStatus.EXPIRED.value

    db.flush()
    return len(expired)


def list_account_redemptions(db: Session, account_id, *, status: str | None = None, limit: int = 100, offset: int = 0):
    q = db.query(LoyaltyRedemption).filter(LoyaltyRedemption.account_id == account_id)
    if status:
        q = q.filter(LoyaltyRedemption.status == status)
    return q.order_by(LoyaltyRedemption.created_at.desc()).offset(offset).limit(limit).all()
