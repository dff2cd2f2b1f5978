"""Append-only points ledger.

Every change to an account balance goes through ``append_transaction``, which
writes the ledger row and the account counters in the caller's unit of work.
The caller commits; nothing here commits on its own.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from cafe_loyalty.errors import InsufficientBalance, NotFoundError
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.loyalty_transaction import (
    LoyaltyTransaction,
    TransactionKind,
    TransactionStatus,
    earned_idempotency_key,
)
from cafe_loyalty.schemas.transaction_metadata import dump_metadata
from cafe_loyalty.timeutils import utcnow


logger = logging.getLogger(__name__)

DEFAULT_EARNED_VALIDITY = timedelta(days=365)


def lock_account(db: Session, account_id) -> LoyaltyAccount:
    """Load the account row with a write lock held until the unit of work ends."""
    # pending counter changes must reach the row before it is re-read
    db.flush()
    account = (
        db.query(LoyaltyAccount)
        .filter(LoyaltyAccount.id == account_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if not account:
        raise NotFoundError("Loyalty account not found")
    return account


def find_earned_transaction(db: Session, tenant_id: str, order_id: str) -> LoyaltyTransaction | None:
    return (
        db.query(LoyaltyTransaction)
        .filter(LoyaltyTransaction.idempotency_key == earned_idempotency_key(tenant_id, order_id))
        .first()
    )


def append_transaction(
    db: Session,
    account_id,
    delta: int,
    kind: TransactionKind,
    *,
    order_id: str | None = None,
    expires_at: datetime | None = None,
    metadata=None,
    description: str | None = None,
    promotion_id=None,
    earned_validity: timedelta = DEFAULT_EARNED_VALIDITY,
    reverses_debit: bool = False,
    now: datetime | None = None,
) -> LoyaltyTransaction:
    """Write one ledger row and move the account counters with it.

    A ``reverses_debit`` credit gives back points that were debited earlier: it
    lowers ``points_redeemed`` and leaves ``lifetime_points`` alone.
    """
    now = now or utcnow()
    kind = TransactionKind(kind)
    delta = int(delta)

    account = lock_account(db, account_id)

    idempotency_key = None
    if kind == TransactionKind.EARNED and order_id:
        existing = find_earned_transaction(db, account.tenant_id, order_id)
        if existing:
            logger.info(
                "points already awarded for order",
                extra={"order_id": order_id, "transaction_id": str(existing.id)},
            )
            return existing
        idempotency_key = earned_idempotency_key(account.tenant_id, order_id)

    current = int(account.current_points or 0)
    new_balance = current + delta
    if new_balance < 0:
        raise InsufficientBalance(balance=current, requested=abs(delta))

    if kind == TransactionKind.EARNED and expires_at is None:
        expires_at = now + earned_validity

    transaction = LoyaltyTransaction(
        account_id=account.id,
        tenant_id=account.tenant_id,
        points=delta,
        kind=kind.value,
        balance_after=new_balance,
        order_id=order_id,
        promotion_id=promotion_id,
        idempotency_key=idempotency_key,
        description=description,
        metadata_json=dump_metadata(metadata),
        status=TransactionStatus.COMPLETED.value,
        expires_at=expires_at,
        created_at=now,
    )
    db.add(transaction)

    account.current_points = new_balance
    if delta > 0 and reverses_debit:
        account.points_redeemed = max(int(account.points_redeemed or 0) - delta, 0)
    elif delta > 0:
        account.lifetime_points = int(account.lifetime_points or 0) + delta
    elif delta < 0:
        account.points_redeemed = int(account.points_redeemed or 0) + abs(delta)
    account.last_activity_at = now

    db.flush()

    logger.info(
        "ledger transaction appended",
        extra={
            "account_id": str(account.id),
            "kind": kind.value,
            "points": delta,
            "balance": new_balance,
            "order_id": order_id,
        },
    )
    return transaction


def list_transactions(db: Session, account_id, *, kind: str | None = None, limit: int = 100, offset: int = 0):
    q = db.query(LoyaltyTransaction).filter(LoyaltyTransaction.account_id == account_id)
    if kind:
        q = q.filter(LoyaltyTransaction.kind == kind)
    return (
        q.order_by(LoyaltyTransaction.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def compute_balance_from_ledger(db: Session, account_id) -> int:
    balance = (
        db.query(func.coalesce(func.sum(LoyaltyTransaction.points), 0))
        .filter(
            LoyaltyTransaction.account_id == account_id,
            LoyaltyTransaction.status == TransactionStatus.COMPLETED.value,
        )
        .scalar()
    )
    return int(balance or 0)


def verify_balance(db: Session, account: LoyaltyAccount) -> dict:
    ledger_balance = compute_balance_from_ledger(db, account.id)
    current = int(account.current_points or 0)
    lifetime = int(account.lifetime_points or 0)
    redeemed = int(account.points_redeemed or 0)
    return {
        "accountId": str(account.id),
        "currentPoints": current,
        "ledgerBalance": ledger_balance,
        "consistent": current == ledger_balance == lifetime - redeemed and current >= 0,
    }


def count_promotion_uses(db: Session, account_id, promotion_ids) -> dict:
    if not promotion_ids:
        return {}
    rows = (
        db.query(LoyaltyTransaction.promotion_id, func.count(LoyaltyTransaction.id))
        .filter(LoyaltyTransaction.account_id == account_id)
        .filter(LoyaltyTransaction.kind == TransactionKind.PROMOTION.value)
        .filter(LoyaltyTransaction.promotion_id.in_(list(promotion_ids)))
        .group_by(LoyaltyTransaction.promotion_id)
        .all()
    )
    return {promotion_id: int(count) for promotion_id, count in rows}
