"""Per-account challenge progress.

Progress is recomputed from the account's cumulative counters on every
points-earning event. The completion bonus is paid once per (account,
challenge): the ``completed_at`` stamp on the progress row is the guard.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from cafe_loyalty.errors import ConfigurationError
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.challenge import ChallengeStatus, ChallengeType, LoyaltyChallenge
from cafe_loyalty.models.challenge_progress import ChallengeProgress
from cafe_loyalty.models.loyalty_transaction import TransactionKind
from cafe_loyalty.schemas.transaction_metadata import ChallengeCompletionMetadata
from cafe_loyalty.services.ledger_service import append_transaction
from cafe_loyalty.services.tier_service import apply_upgrades
from cafe_loyalty.timeutils import utcnow


logger = logging.getLogger(__name__)


@dataclass
class ChallengeEvaluation:
    challenge: LoyaltyChallenge
    current_progress: Decimal
    target_value: Decimal
    progress_percentage: float
    is_completed: bool
    next_milestone: dict | None = None


def list_active_challenges(db: Session, tenant_id: str, now: datetime | None = None) -> list[LoyaltyChallenge]:
    now = now or utcnow()
    return (
        db.query(LoyaltyChallenge)
        .filter(
            LoyaltyChallenge.tenant_id == tenant_id,
            LoyaltyChallenge.status == ChallengeStatus.ACTIVE.value,
            LoyaltyChallenge.start_date <= now,
            LoyaltyChallenge.end_date > now,
        )
        .order_by(LoyaltyChallenge.start_date.asc())
        .all()
    )


def _counter_for(challenge: LoyaltyChallenge, account: LoyaltyAccount) -> Decimal:
    if challenge.type == ChallengeType.ORDER_COUNT.value:
        return Decimal(account.total_orders or 0)
    if challenge.type == ChallengeType.SPEND_AMOUNT.value:
        return Decimal(account.total_spent or 0)
    if challenge.type == ChallengeType.POINTS_EARNED.value:
        return Decimal(account.lifetime_points or 0)
    if challenge.type == ChallengeType.REFERRAL_COUNT.value:
        return Decimal(account.referral_count or 0)
    # no tracked counter yet for the remaining types
    return Decimal("0")


def evaluate_challenge(challenge: LoyaltyChallenge, account: LoyaltyAccount) -> ChallengeEvaluation:
    if challenge.target_value is None or Decimal(challenge.target_value) <= 0:
        raise ConfigurationError(f"Challenge {challenge.name!r} has no positive target_value")

    target = Decimal(challenge.target_value)
    current = _counter_for(challenge, account)
    percentage = float(min(current / target * 100, Decimal(100)))

    upcoming = sorted(
        (m for m in (challenge.milestones or []) if float(m.get("percentage", 0)) > percentage),
        key=lambda m: float(m.get("percentage", 0)),
    )

    return ChallengeEvaluation(
        challenge=challenge,
        current_progress=current,
        target_value=target,
        progress_percentage=round(percentage, 2),
        is_completed=current >= target,
        next_milestone=upcoming[0] if upcoming else None,
    )


def _get_or_create_progress(db: Session, account: LoyaltyAccount, challenge: LoyaltyChallenge, now: datetime):
    progress = (
        db.query(ChallengeProgress)
        .filter(ChallengeProgress.account_id == account.id)
        .filter(ChallengeProgress.challenge_id == challenge.id)
        .first()
    )
    if progress:
        return progress

    progress = ChallengeProgress(
        account_id=account.id,
        challenge_id=challenge.id,
        current_progress=0,
        target_value=challenge.target_value,
        started_at=now,
    )
    db.add(progress)
    db.flush()
    return progress


def update_progress(
    db: Session,
    account: LoyaltyAccount,
    active_challenges=None,
    *,
    now: datetime | None = None,
) -> list[ChallengeProgress]:
    """Refresh progress rows and pay completion bonuses. Returns newly completed rows.

    Expects the account row to be locked by the caller's unit of work.
    """
    now = now or utcnow()
    if active_challenges is None:
        active_challenges = list_active_challenges(db, account.tenant_id, now)

    completed = []
    for challenge in active_challenges:
        if challenge.tenant_id != account.tenant_id:
            continue

        evaluation = evaluate_challenge(challenge, account)
        progress = _get_or_create_progress(db, account, challenge, now)

        if progress.completed_at is not None:
            continue

        progress.current_progress = evaluation.current_progress
        progress.target_value = evaluation.target_value

        if not evaluation.is_completed:
            continue

        progress.completed_at = now
        db.flush()

        if challenge.completion_points:
            append_transaction(
                db,
                account.id,
                int(challenge.completion_points),
                TransactionKind.CHALLENGE,
                description=f"Challenge completed: {challenge.name}",
                metadata=ChallengeCompletionMetadata(challenge_id=challenge.id, challenge_name=challenge.name),
                now=now,
            )

        logger.info(
            "challenge completed",
            extra={
                "account_id": str(account.id),
                "challenge_id": str(challenge.id),
                "completion_points": int(challenge.completion_points or 0),
            },
        )
        completed.append(progress)

    db.flush()
    return completed


def list_account_progress(db: Session, account_id) -> list[ChallengeProgress]:
    return (
        db.query(ChallengeProgress)
        .filter(ChallengeProgress.account_id == account_id)
        .order_by(ChallengeProgress.started_at.asc())
        .all()
    )


def refresh_progression(
    db: Session,
    account: LoyaltyAccount,
    tenant_tiers=None,
    *,
    now: datetime | None = None,
) -> list[ChallengeProgress]:
    """Run after any points-earning credit: tier upgrades, then challenges.

    A challenge completion bonus is itself a credit, so upgrades run again.
    Returns the challenge rows completed by this call.
    """
    now = now or utcnow()

    apply_upgrades(db, account, tenant_tiers, now=now)
    completed = update_progress(db, account, list_active_challenges(db, account.tenant_id, now), now=now)
    if completed:
        apply_upgrades(db, account, tenant_tiers, now=now)
    return completed
