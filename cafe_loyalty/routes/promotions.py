from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cafe_loyalty.db import get_db
from cafe_loyalty.deps.tenant import get_active_tenant
from cafe_loyalty.models.promotion import LoyaltyPromotion, PromotionStatus, PromotionType
from cafe_loyalty.schemas.promotion import PromotionCreate, PromotionOut, PromotionUpdate


router = APIRouter(prefix="/admin/promotions", tags=["admin-promotions"])


def _validate(data: dict) -> None:
    if data.get("status") is not None and data["status"] not in {s.value for s in PromotionStatus}:
        raise HTTPException(status_code=400, detail="Unknown promotion status")
    if data.get("start_date") and data.get("end_date") and data["end_date"] <= data["start_date"]:
        raise HTTPException(status_code=400, detail="end_date must be after start_date")
    if data.get("type") == PromotionType.BONUS_POINTS.value and not data.get("bonus_points"):
        raise HTTPException(status_code=400, detail="bonus_points is required for BONUS_POINTS promotions")
    if data.get("type") == PromotionType.POINTS_MULTIPLIER.value:
        multiplier = data.get("points_multiplier")
        if multiplier is None or multiplier < 1:
            raise HTTPException(status_code=400, detail="points_multiplier >= 1 is required for POINTS_MULTIPLIER promotions")


def _get_owned(db: Session, promotion_id: UUID, tenant: str) -> LoyaltyPromotion:
    promotion = db.query(LoyaltyPromotion).filter(LoyaltyPromotion.id == promotion_id).first()
    if not promotion or promotion.tenant_id != tenant:
        raise HTTPException(status_code=404, detail="Promotion not found")
    return promotion


@router.get("", response_model=list[PromotionOut])
def list_promotions(
    active_tenant: str = Depends(get_active_tenant),
    status: str | None = None,
    db: Session = Depends(get_db),
):
    q = db.query(LoyaltyPromotion).filter(LoyaltyPromotion.tenant_id == active_tenant)
    if status:
        q = q.filter(LoyaltyPromotion.status == status)
    return q.order_by(LoyaltyPromotion.start_date.desc()).all()


@router.post("", response_model=PromotionOut)
def create_promotion(
    payload: PromotionCreate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    if payload.tenant_id is not None and payload.tenant_id != active_tenant:
        raise HTTPException(status_code=400, detail="payload.tenant_id does not match active tenant context")
    data = payload.model_dump(exclude={"tenant_id"})
    _validate(data)

    promotion = LoyaltyPromotion(tenant_id=active_tenant, **data)
    db.add(promotion)
    db.commit()
    db.refresh(promotion)
    return promotion


@router.get("/{promotion_id}", response_model=PromotionOut)
def get_promotion(promotion_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    return _get_owned(db, promotion_id, active_tenant)


@router.patch("/{promotion_id}", response_model=PromotionOut)
def update_promotion(
    promotion_id: UUID,
    payload: PromotionUpdate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    promotion = _get_owned(db, promotion_id, active_tenant)
    data = payload.model_dump(exclude_unset=True)
    _validate(
        {
            "type": promotion.type,
            "status": data.get("status", promotion.status),
            "start_date": data.get("start_date", promotion.start_date),
            "end_date": data.get("end_date", promotion.end_date),
            "bonus_points": data.get("bonus_points", promotion.bonus_points),
            "points_multiplier": data.get("points_multiplier", promotion.points_multiplier),
        }
    )
    for k, v in data.items():
        setattr(promotion, k, v)

    db.commit()
    db.refresh(promotion)
    return promotion
