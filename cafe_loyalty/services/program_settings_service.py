from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from cafe_loyalty import config
from cafe_loyalty.models.program_settings import LoyaltyProgramSettings


@dataclass(frozen=True)
class ProgramSettings:
    tenant_id: str
    welcome_bonus: int
    base_points_rate: Decimal
    birthday_bonus: int
    referral_bonus: int
    tier_upgrade_bonus_per_level: int
    earned_points_validity_days: int
    redemption_validity_days: int
    rolling_year_days: int


_OVERRIDABLE = (
    "welcome_bonus",
    "base_points_rate",
    "birthday_bonus",
    "referral_bonus",
    "tier_upgrade_bonus_per_level",
    "earned_points_validity_days",
    "redemption_validity_days",
    "rolling_year_days",
)


def default_settings(tenant_id: str) -> ProgramSettings:
    return ProgramSettings(
        tenant_id=tenant_id,
        welcome_bonus=config.DEFAULT_WELCOME_BONUS,
        base_points_rate=config.DEFAULT_BASE_POINTS_RATE,
        birthday_bonus=config.DEFAULT_BIRTHDAY_BONUS,
        referral_bonus=config.DEFAULT_REFERRAL_BONUS,
        tier_upgrade_bonus_per_level=config.DEFAULT_TIER_UPGRADE_BONUS_PER_LEVEL,
        earned_points_validity_days=config.DEFAULT_EARNED_POINTS_VALIDITY_DAYS,
        redemption_validity_days=config.DEFAULT_REDEMPTION_VALIDITY_DAYS,
        rolling_year_days=config.DEFAULT_ROLLING_YEAR_DAYS,
    )


def get_program_settings(db: Session, tenant_id: str) -> ProgramSettings:
    """Tenant overrides merged field-by-field over the environment defaults."""
    values = default_settings(tenant_id).__dict__.copy()

    row = db.query(LoyaltyProgramSettings).filter(LoyaltyProgramSettings.tenant_id == tenant_id).first()
    if row:
        for name in _OVERRIDABLE:
            override = getattr(row, name)
            if override is not None:
                values[name] = Decimal(override) if name == "base_points_rate" else int(override)

    return ProgramSettings(**values)


def upsert_program_settings(db: Session, tenant_id: str, data: dict) -> ProgramSettings:
    row = db.query(LoyaltyProgramSettings).filter(LoyaltyProgramSettings.tenant_id == tenant_id).first()
    if not row:
        row = LoyaltyProgramSettings(tenant_id=tenant_id)
        db.add(row)

    for name, value in data.items():
        if name in _OVERRIDABLE:
            setattr(row, name, value)

    db.flush()
    return get_program_settings(db, tenant_id)
