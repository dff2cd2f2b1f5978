from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cafe_loyalty.db import get_db
from cafe_loyalty.schemas.event import BirthdayEvent, OrderCompleted, RedemptionRequested, ReferralEvent
from cafe_loyalty.schemas.loyalty_transaction import LoyaltyTransactionOut
from cafe_loyalty.schemas.redemption import RedemptionOut
from cafe_loyalty.services.bonus_event_service import award_birthday_bonus, process_referral
from cafe_loyalty.services.order_service import on_order_completed
from cafe_loyalty.services.redemption_service import redeem

router = APIRouter(prefix="/events", tags=["events"])


@router.post("/order-completed", response_model=LoyaltyTransactionOut)
def order_completed(event: OrderCompleted, db: Session = Depends(get_db)):
    transaction = on_order_completed(db, event)
    db.refresh(transaction)
    return transaction


@router.post("/redemption-requested", response_model=RedemptionOut)
def redemption_requested(event: RedemptionRequested, db: Session = Depends(get_db)):
    redemption = redeem(db, event.accountId, event.rewardId, order_id=event.orderId, notes=event.notes)
    db.commit()
    db.refresh(redemption)
    return redemption


@router.post("/birthday", response_model=LoyaltyTransactionOut)
def birthday(event: BirthdayEvent, db: Session = Depends(get_db)):
    transaction = award_birthday_bonus(db, event.accountId)
    db.commit()
    db.refresh(transaction)
    return transaction


@router.post("/referral", response_model=LoyaltyTransactionOut)
def referral(event: ReferralEvent, db: Session = Depends(get_db)):
    if not event.tenantId.strip():
        raise HTTPException(status_code=400, detail="tenantId is required")
    transaction = process_referral(db, event.referrerUserId, event.newUserId, event.tenantId)
    db.commit()
    db.refresh(transaction)
    return transaction
