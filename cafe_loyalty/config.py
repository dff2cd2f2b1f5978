"""Program-wide defaults, read once from the environment.

Each value can be overridden per tenant through a ``loyalty_program_settings``
row (see ``services/program_settings_service.py``).
"""
import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv(encoding="utf-8")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return Decimal(default)
    return Decimal(raw)


# Points credited when an account is first created.
DEFAULT_WELCOME_BONUS = _env_int("LOYALTY_WELCOME_BONUS", 100)

# Points per currency unit spent, before the tier multiplier.
DEFAULT_BASE_POINTS_RATE = _env_decimal("LOYALTY_BASE_POINTS_RATE", "1")

# Used when the account's tier defines no birthday bonus of its own.
DEFAULT_BIRTHDAY_BONUS = _env_int("LOYALTY_BIRTHDAY_BONUS", 100)

DEFAULT_REFERRAL_BONUS = _env_int("LOYALTY_REFERRAL_BONUS", 500)

# Upgrade bonus is this value times the new tier level.
DEFAULT_TIER_UPGRADE_BONUS_PER_LEVEL = _env_int("LOYALTY_TIER_UPGRADE_BONUS_PER_LEVEL", 100)

DEFAULT_EARNED_POINTS_VALIDITY_DAYS = _env_int("LOYALTY_EARNED_POINTS_VALIDITY_DAYS", 365)
DEFAULT_REDEMPTION_VALIDITY_DAYS = _env_int("LOYALTY_REDEMPTION_VALIDITY_DAYS", 30)
DEFAULT_ROLLING_YEAR_DAYS = _env_int("LOYALTY_ROLLING_YEAR_DAYS", 365)

LOYALTY_NUMBER_MAX_ATTEMPTS = _env_int("LOYALTY_NUMBER_MAX_ATTEMPTS", 10)
REDEMPTION_CODE_MAX_ATTEMPTS = _env_int("LOYALTY_REDEMPTION_CODE_MAX_ATTEMPTS", 10)

ACTIVE_MEMBER_DAYS = _env_int("LOYALTY_ACTIVE_MEMBER_DAYS", 90)

# Tier level from which members count as "top tier" in program statistics.
TOP_TIER_LEVEL = _env_int("LOYALTY_TOP_TIER_LEVEL", 3)
