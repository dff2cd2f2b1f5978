from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cafe_loyalty.db import get_db
from cafe_loyalty.deps.tenant import get_active_tenant
from cafe_loyalty.models.challenge import ChallengeStatus, ChallengeType, LoyaltyChallenge
from cafe_loyalty.schemas.challenge import ChallengeCreate, ChallengeOut, ChallengeUpdate


router = APIRouter(prefix="/admin/challenges", tags=["admin-challenges"])


def _get_owned(db: Session, challenge_id: UUID, tenant: str) -> LoyaltyChallenge:
    challenge = db.query(LoyaltyChallenge).filter(LoyaltyChallenge.id == challenge_id).first()
    if not challenge or challenge.tenant_id != tenant:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return challenge


@router.get("", response_model=list[ChallengeOut])
def list_challenges(
    active_tenant: str = Depends(get_active_tenant),
    status: str | None = None,
    db: Session = Depends(get_db),
):
    q = db.query(LoyaltyChallenge).filter(LoyaltyChallenge.tenant_id == active_tenant)
    if status:
        q = q.filter(LoyaltyChallenge.status == status)
    return q.order_by(LoyaltyChallenge.start_date.desc()).all()


@router.post("", response_model=ChallengeOut)
def create_challenge(
    payload: ChallengeCreate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    if payload.tenant_id is not None and payload.tenant_id != active_tenant:
        raise HTTPException(status_code=400, detail="payload.tenant_id does not match active tenant context")
    if payload.type not in {t.value for t in ChallengeType}:
        raise HTTPException(status_code=400, detail="Unknown challenge type")
    if payload.status not in {s.value for s in ChallengeStatus}:
        raise HTTPException(status_code=400, detail="Unknown challenge status")
    if payload.target_value <= 0:
        raise HTTPException(status_code=400, detail="target_value must be > 0")
    if payload.end_date <= payload.start_date:
        raise HTTPException(status_code=400, detail="end_date must be after start_date")

    challenge = LoyaltyChallenge(tenant_id=active_tenant, **payload.model_dump(exclude={"tenant_id"}))
    db.add(challenge)
    db.commit()
    db.refresh(challenge)
    return challenge


@router.get("/{challenge_id}", response_model=ChallengeOut)
def get_challenge(challenge_id: UUID, active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    return _get_owned(db, challenge_id, active_tenant)


@router.patch("/{challenge_id}", response_model=ChallengeOut)
def update_challenge(
    challenge_id: UUID,
    payload: ChallengeUpdate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    challenge = _get_owned(db, challenge_id, active_tenant)
    data = payload.model_dump(exclude_unset=True)
    if "target_value" in data and (data["target_value"] is None or data["target_value"] <= 0):
        raise HTTPException(status_code=400, detail="target_value must be > 0")
    if data.get("status") is not None and data["status"] not in {s.value for s in ChallengeStatus}:
        raise HTTPException(status_code=400, detail="Unknown challenge status")
    for k, v in data.items():
        setattr(challenge, k, v)

    db.commit()
    db.refresh(challenge)
    return challenge
