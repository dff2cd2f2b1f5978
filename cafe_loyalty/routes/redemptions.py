from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cafe_loyalty.db import get_db
from cafe_loyalty.deps.tenant import get_active_tenant
from cafe_loyalty.schemas.redemption import RedemptionDecision, RedemptionOut
from cafe_loyalty.services.redemption_service import (
    approve_redemption,
    complete_redemption,
    deny_redemption,
    expire_redemptions,
    get_redemption,
)


router = APIRouter(tags=["redemptions"])


@router.get("/redemptions/{redemption_id}", response_model=RedemptionOut)
def read_redemption(redemption_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    return get_redemption(db, redemption_id, tenant_id=active_tenant)


@router.post("/redemptions/{redemption_id}/approve", response_model=RedemptionOut)
def approve(redemption_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    redemption = get_redemption(db, redemption_id, tenant_id=active_tenant)
    approve_redemption(db, redemption)
    db.commit()
    db.refresh(redemption)
    return redemption


@router.post("/redemptions/{redemption_id}/deny", response_model=RedemptionOut)
def deny(
    redemption_id: UUID,
    payload: RedemptionDecision | None = None,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    redemption = get_redemption(db, redemption_id, tenant_id=active_tenant)
    deny_redemption(db, redemption, reason=payload.reason if payload else None)
    db.commit()
    db.refresh(redemption)
    return redemption


@router.post("/redemptions/{redemption_id}/complete", response_model=RedemptionOut)
def complete(redemption_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    redemption = get_redemption(db, redemption_id, tenant_id=active_tenant)
    complete_redemption(db, redemption)
    db.commit()
    db.refresh(redemption)
    return redemption


@router.post("/admin/redemptions/expire")
def run_expiry(active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    expired = expire_redemptions(db, tenant_id=active_tenant)
    db.commit()
    return {"tenant": active_tenant, "expired": expired}
