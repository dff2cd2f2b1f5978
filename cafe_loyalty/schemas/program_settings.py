from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class ProgramSettingsUpdate(BaseModel):
    welcome_bonus: Optional[int] = None
    base_points_rate: Optional[Decimal] = None
    birthday_bonus: Optional[int] = None
    referral_bonus: Optional[int] = None
    tier_upgrade_bonus_per_level: Optional[int] = None
    earned_points_validity_days: Optional[int] = None
    redemption_validity_days: Optional[int] = None
    rolling_year_days: Optional[int] = None


class ProgramSettingsOut(BaseModel):
    tenant_id: str
    welcome_bonus: int
    base_points_rate: Decimal
    birthday_bonus: int
    referral_bonus: int
    tier_upgrade_bonus_per_level: int
    earned_points_validity_days: int
    redemption_validity_days: int
    rolling_year_days: int
