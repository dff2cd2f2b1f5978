from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cafe_loyalty.db import get_db
from cafe_loyalty.deps.tenant import get_active_tenant
from cafe_loyalty.errors import NotFoundError
from cafe_loyalty.schemas.account import AccountCreate, AccountOut, AccountUpdate, TierProgressOut
from cafe_loyalty.schemas.challenge import ChallengeProgressOut
from cafe_loyalty.schemas.loyalty_transaction import AdjustmentCreate, LoyaltyTransactionOut
from cafe_loyalty.schemas.redemption import RedemptionOut
from cafe_loyalty.schemas.reward import RewardOut
from cafe_loyalty.services.account_service import (
    get_account,
    get_account_by_id,
    get_account_by_number,
    get_or_create_account,
    set_account_active,
    update_account,
)
from cafe_loyalty.services.bonus_event_service import adjust_points
from cafe_loyalty.services.challenge_service import list_account_progress
from cafe_loyalty.services.ledger_service import list_transactions, verify_balance
from cafe_loyalty.services.redemption_service import list_account_redemptions, list_available_rewards
from cafe_loyalty.services.tier_service import compute_tier_progress, get_tier, list_active_tiers


router = APIRouter(prefix="/accounts", tags=["accounts"])


def _account_in_tenant(db: Session, account_id: UUID, tenant: str):
    account = get_account_by_id(db, account_id)
    if account.tenant_id != tenant:
        raise NotFoundError("Loyalty account not found")
    return account


def _page(limit: int, offset: int) -> tuple[int, int]:
    return max(1, min(limit, 500)), max(0, offset)


@router.post("", response_model=AccountOut)
def create_account(
    payload: AccountCreate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    if payload.tenant is not None and payload.tenant != active_tenant:
        raise HTTPException(status_code=400, detail="payload.tenant does not match active tenant context")
    account = get_or_create_account(db, payload.userId, active_tenant)
    db.commit()
    db.refresh(account)
    return account


@router.get("/by-user/{user_id}", response_model=AccountOut)
def read_account_by_user(user_id: str, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    account = get_account(db, user_id, active_tenant)
    if not account:
        raise HTTPException(status_code=404, detail="Loyalty account not found")
    return account


@router.get("/by-number/{loyalty_number}", response_model=AccountOut)
def read_account_by_number(
    loyalty_number: str,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    account = get_account_by_number(db, loyalty_number)
    if account.tenant_id != active_tenant:
        raise HTTPException(status_code=404, detail="Loyalty account not found")
    return account


@router.get("/{account_id}", response_model=AccountOut)
def read_account(account_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    return _account_in_tenant(db, account_id, active_tenant)


@router.patch("/{account_id}", response_model=AccountOut)
def patch_account(
    account_id: UUID,
    payload: AccountUpdate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    account = _account_in_tenant(db, account_id, active_tenant)
    update_account(db, account, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(account)
    return account


@router.post("/{account_id}/deactivate", response_model=AccountOut)
def deactivate_account(account_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    account = _account_in_tenant(db, account_id, active_tenant)
    set_account_active(db, account, False)
    db.commit()
    db.refresh(account)
    return account


@router.post("/{account_id}/reactivate", response_model=AccountOut)
def reactivate_account(account_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    account = _account_in_tenant(db, account_id, active_tenant)
    set_account_active(db, account, True)
    db.commit()
    db.refresh(account)
    return account


@router.get("/{account_id}/transactions", response_model=list[LoyaltyTransactionOut])
def read_transactions(
    account_id: UUID,
    kind: str | None = None,
    limit: int = 100,
    offset: int = 0,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    account = _account_in_tenant(db, account_id, active_tenant)
    limit, offset = _page(limit, offset)
    return list_transactions(db, account.id, kind=kind, limit=limit, offset=offset)


@router.get("/{account_id}/balance-check")
def read_balance_check(account_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    account = _account_in_tenant(db, account_id, active_tenant)
    return verify_balance(db, account)


@router.post("/{account_id}/adjustments", response_model=LoyaltyTransactionOut)
def create_adjustment(
    account_id: UUID,
    payload: AdjustmentCreate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    account = _account_in_tenant(db, account_id, active_tenant)
    transaction = adjust_points(db, account.id, payload.points, payload.reason, notes=payload.notes)
    db.commit()
    db.refresh(transaction)
    return transaction


@router.get("/{account_id}/rewards/available", response_model=list[RewardOut])
def read_available_rewards(
    account_id: UUID,
    limit: int = 20,
    offset: int = 0,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    account = _account_in_tenant(db, account_id, active_tenant)
    limit, offset = _page(limit, offset)
    return list_available_rewards(db, account, limit=limit, offset=offset)


@router.get("/{account_id}/redemptions", response_model=list[RedemptionOut])
def read_redemptions(
    account_id: UUID,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    account = _account_in_tenant(db, account_id, active_tenant)
    limit, offset = _page(limit, offset)
    return list_account_redemptions(db, account.id, status=status, limit=limit, offset=offset)


@router.get("/{account_id}/tier-progress", response_model=TierProgressOut)
def read_tier_progress(account_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    account = _account_in_tenant(db, account_id, active_tenant)
    progress = compute_tier_progress(account, get_tier(db, account.current_tier_id), list_active_tiers(db, active_tenant))
    return TierProgressOut(**progress.__dict__)


@router.get("/{account_id}/challenges", response_model=list[ChallengeProgressOut])
def read_challenge_progress(
    account_id: UUID,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    account = _account_in_tenant(db, account_id, active_tenant)
    return list_account_progress(db, account.id)
