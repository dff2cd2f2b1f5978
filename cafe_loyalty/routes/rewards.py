from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cafe_loyalty.db import get_db
from cafe_loyalty.deps.tenant import get_active_tenant
from cafe_loyalty.models.reward import LoyaltyReward, RewardStatus
from cafe_loyalty.schemas.reward import RewardCreate, RewardOut, RewardUpdate


router = APIRouter(prefix="/admin/rewards", tags=["admin-rewards"])


def _get_owned(db: Session, reward_id: UUID, tenant: str) -> LoyaltyReward:
    reward = db.query(LoyaltyReward).filter(LoyaltyReward.id == reward_id).first()
    if not reward or reward.tenant_id != tenant:
        raise HTTPException(status_code=404, detail="Reward not found")
    return reward


@router.get("", response_model=list[RewardOut])
def list_rewards(
    active_tenant: str = Depends(get_active_tenant),
    active: bool | None = None,
    db: Session = Depends(get_db),
):
    q = db.query(LoyaltyReward).filter(LoyaltyReward.tenant_id == active_tenant)
    if active is not None:
        q = q.filter(LoyaltyReward.is_active.is_(active))
    return q.order_by(LoyaltyReward.priority.desc(), LoyaltyReward.points_cost.asc()).all()


@router.post("", response_model=RewardOut)
def create_reward(
    payload: RewardCreate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    if payload.tenant_id is not None and payload.tenant_id != active_tenant:
        raise HTTPException(status_code=400, detail="payload.tenant_id does not match active tenant context")
    if payload.points_cost <= 0:
        raise HTTPException(status_code=400, detail="points_cost must be > 0")
    if payload.status not in {s.value for s in RewardStatus}:
        raise HTTPException(status_code=400, detail="Unknown reward status")

    reward = LoyaltyReward(tenant_id=active_tenant, **payload.model_dump(exclude={"tenant_id"}))
    db.add(reward)
    db.commit()
    db.refresh(reward)
    return reward


@router.get("/{reward_id}", response_model=RewardOut)
def get_reward(reward_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    return _get_owned(db, reward_id, active_tenant)


@router.patch("/{reward_id}", response_model=RewardOut)
def update_reward(
    reward_id: UUID,
    payload: RewardUpdate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    reward = _get_owned(db, reward_id, active_tenant)

    data = payload.model_dump(exclude_unset=True)
    if "points_cost" in data and (data["points_cost"] is None or data["points_cost"] <= 0):
        raise HTTPException(status_code=400, detail="points_cost must be > 0")
    for k, v in data.items():
        setattr(reward, k, v)

    db.commit()
    db.refresh(reward)
    return reward


@router.delete("/{reward_id}")
def retire_reward(reward_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    # redemptions reference the reward; it is retired, never deleted
    reward = _get_owned(db, reward_id, active_tenant)
    reward.is_active = False
    reward.status = RewardStatus.INACTIVE.value
    db.commit()
    return {"retired": True}
