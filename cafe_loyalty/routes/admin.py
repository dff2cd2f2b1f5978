from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cafe_loyalty.db import get_db
from cafe_loyalty.deps.tenant import get_active_tenant
from cafe_loyalty.schemas.account import ProgramStatsOut
from cafe_loyalty.schemas.event import BirthdaySweep
from cafe_loyalty.schemas.program_settings import ProgramSettingsOut, ProgramSettingsUpdate
from cafe_loyalty.services.account_service import get_program_stats
from cafe_loyalty.services.bonus_event_service import process_birthday_rewards
from cafe_loyalty.services.program_settings_service import get_program_settings, upsert_program_settings


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=ProgramStatsOut)
def read_stats(active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    return get_program_stats(db, active_tenant)


@router.get("/program-settings", response_model=ProgramSettingsOut)
def read_program_settings(active_tenant: str = Depends(get_active_tenant), db: Session = Depends(get_db)):
    return asdict(get_program_settings(db, active_tenant))


@router.put("/program-settings", response_model=ProgramSettingsOut)
def write_program_settings(
    payload: ProgramSettingsUpdate,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    settings = upsert_program_settings(db, active_tenant, payload.model_dump(exclude_unset=True))
    db.commit()
    return asdict(settings)


@router.post("/birthdays/run")
def run_birthday_sweep(
    payload: BirthdaySweep | None = None,
    active_tenant: str = Depends(get_active_tenant),
    db: Session = Depends(get_db),
):
    awarded = process_birthday_rewards(db, active_tenant, today=payload.today if payload else None)
    return {"tenant": active_tenant, "awarded": awarded}
