from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cafe_loyalty.db import get_db
from cafe_loyalty.deps.tenant import get_active_tenant
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.loyalty_tier import LoyaltyTier
from cafe_loyalty.schemas.loyalty_tier import LoyaltyTierCreate, LoyaltyTierOut, LoyaltyTierUpdate


router = APIRouter(prefix="/admin/loyalty-tiers", tags=["admin-loyalty-tiers"])


def _validate_tier_payload(
    *,
    db: Session,
    tenant: str,
    tier_id: UUID | None,
    level: int,
    points_required: int,
    points_multiplier,
):
    if level is None or int(level) < 1:
        raise HTTPException(status_code=400, detail="level must be >= 1")
    if points_required is None or int(points_required) < 0:
        raise HTTPException(status_code=400, detail="points_required must be >= 0")
    if points_multiplier is not None and points_multiplier < 1:
        raise HTTPException(status_code=400, detail="points_multiplier must be >= 1")

    dup_level_q = db.query(LoyaltyTier.id).filter(LoyaltyTier.tenant_id == tenant).filter(LoyaltyTier.level == int(level))
    if tier_id is not None:
        dup_level_q = dup_level_q.filter(LoyaltyTier.id != tier_id)
    if dup_level_q.first():
        raise HTTPException(status_code=400, detail="Tier level already exists for tenant")

    tiers = db.query(LoyaltyTier).filter(LoyaltyTier.tenant_id == tenant).all()
    simulated = []
    for t in tiers:
        if tier_id is not None and t.id == tier_id:
            simulated.append({"level": int(level), "points": int(points_required)})
        else:
            simulated.append({"level": int(t.level), "points": int(t.points_required)})
    if tier_id is None:
        simulated.append({"level": int(level), "points": int(points_required)})

    simulated.sort(key=lambda x: x["level"])
    for prev, cur in zip(simulated, simulated[1:]):
        if cur["points"] < prev["points"]:
            raise HTTPException(
                status_code=400,
                detail="Invalid tiers configuration: points_required must not decrease as level increases",
            )


@router.get("", response_model=list[LoyaltyTierOut])
def list_loyalty_tiers(
    active_tenant: str = Depends(get_active_tenant),
    active: bool | None = None,
    db: Session = Depends(get_db),
):
    q = db.query(LoyaltyTier).filter(LoyaltyTier.tenant_id == active_tenant)
    if active is not None:
        q = q.filter(LoyaltyTier.active.is_(active))
    return q.order_by(LoyaltyTier.level.asc()).all()


@router.post("", response_model=LoyaltyTierOut)
def create_loyalty_tier(
    payload: LoyaltyTierCreate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    if payload.tenant_id is not None and payload.tenant_id != active_tenant:
        raise HTTPException(status_code=400, detail="payload.tenant_id does not match active tenant context")

    _validate_tier_payload(
        db=db,
        tenant=active_tenant,
        tier_id=None,
        level=payload.level,
        points_required=payload.points_required,
        points_multiplier=payload.points_multiplier,
    )

    tier = LoyaltyTier(tenant_id=active_tenant, **payload.model_dump(exclude={"tenant_id"}))
    db.add(tier)
    db.commit()
    db.refresh(tier)
    return tier


@router.get("/{tier_id}", response_model=LoyaltyTierOut)
def get_loyalty_tier(tier_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    tier = db.query(LoyaltyTier).filter(LoyaltyTier.id == tier_id).first()
    if not tier or tier.tenant_id != active_tenant:
        raise HTTPException(status_code=404, detail="Tier not found")
    return tier


@router.patch("/{tier_id}", response_model=LoyaltyTierOut)
def update_loyalty_tier(
    tier_id: UUID,
    payload: LoyaltyTierUpdate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    tier = db.query(LoyaltyTier).filter(LoyaltyTier.id == tier_id).first()
    if not tier or tier.tenant_id != active_tenant:
        raise HTTPException(status_code=404, detail="Tier not found")

    data = payload.model_dump(exclude_unset=True)
    _validate_tier_payload(
        db=db,
        tenant=active_tenant,
        tier_id=tier.id,
        level=data.get("level", tier.level),
        points_required=data.get("points_required", tier.points_required),
        points_multiplier=data.get("points_multiplier", tier.points_multiplier),
    )
    for k, v in data.items():
        setattr(tier, k, v)

    db.commit()
    db.refresh(tier)
    return tier


@router.delete("/{tier_id}")
def delete_loyalty_tier(tier_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    tier = db.query(LoyaltyTier).filter(LoyaltyTier.id == tier_id).first()
    if not tier or tier.tenant_id != active_tenant:
        raise HTTPException(status_code=404, detail="Tier not found")

    in_use = db.query(LoyaltyAccount.id).filter(LoyaltyAccount.current_tier_id == tier.id).first()
    if in_use:
        # accounts keep their tier reference; retire the tier instead
        tier.active = False
        db.commit()
        return {"deleted": False, "deactivated": True}

    db.delete(tier)
    db.commit()
    return {"deleted": True}
