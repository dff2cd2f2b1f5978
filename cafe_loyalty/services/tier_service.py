import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from cafe_loyalty.errors import ConfigurationError
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.loyalty_tier import LoyaltyTier
from cafe_loyalty.models.loyalty_transaction import TransactionKind
from cafe_loyalty.schemas.transaction_metadata import TierUpgradeMetadata
from cafe_loyalty.services.ledger_service import append_transaction
from cafe_loyalty.services.program_settings_service import get_program_settings
from cafe_loyalty.timeutils import utcnow


logger = logging.getLogger(__name__)


def list_active_tiers(db: Session, tenant_id: str) -> list[LoyaltyTier]:
    return (
        db.query(LoyaltyTier)
        .filter(LoyaltyTier.tenant_id == tenant_id)
        .filter(LoyaltyTier.active.is_(True))
        .order_by(LoyaltyTier.level.asc())
        .all()
    )


def get_tier(db: Session, tier_id) -> LoyaltyTier | None:
    if tier_id is None:
        return None
    return db.query(LoyaltyTier).filter(LoyaltyTier.id == tier_id).first()


def tier_level(tier: LoyaltyTier | None) -> int:
    # "no tier" ranks below every configured level
    return int(tier.level) if tier is not None else 0


def _sorted_tiers(tiers) -> list[LoyaltyTier]:
    for tier in tiers:
        if tier.level is None or int(tier.level) < 1:
            raise ConfigurationError(f"Tier {tier.name!r} has an invalid level: {tier.level!r}")
    ordered = sorted(tiers, key=lambda t: int(t.level))
    for prev, cur in zip(ordered, ordered[1:]):
        if int(cur.level) == int(prev.level):
            raise ConfigurationError(f"Duplicate tier level {cur.level} for tenant {cur.tenant_id}")
    return ordered


def qualifies_for(account: LoyaltyAccount, tier: LoyaltyTier) -> bool:
    return (
        int(account.lifetime_points or 0) >= int(tier.points_required or 0)
        and Decimal(account.total_spent or 0) >= Decimal(tier.spend_required or 0)
        and int(account.total_orders or 0) >= int(tier.orders_required or 0)
    )


def evaluate_tier(account: LoyaltyAccount, tenant_tiers) -> LoyaltyTier | None:
    """Highest tier whose three thresholds the account meets, or None."""
    qualified = None
    for tier in _sorted_tiers(tenant_tiers):
        if qualifies_for(account, tier):
            qualified = tier
    return qualified


def apply_upgrade_if_due(
    db: Session,
    account: LoyaltyAccount,
    tenant_tiers=None,
    *,
    now: datetime | None = None,
) -> LoyaltyTier | None:
    """Move the account up to the tier it qualifies for, paying the upgrade bonus.

    Never downgrades. Returns the new tier when an upgrade happened.
    """
    now = now or utcnow()
    if tenant_tiers is None:
        tenant_tiers = list_active_tiers(db, account.tenant_id)

    qualified = evaluate_tier(account, tenant_tiers)
    if qualified is None:
        return None

    current = get_tier(db, account.current_tier_id)
    if tier_level(qualified) <= tier_level(current):
        return None

    settings = get_program_settings(db, account.tenant_id)

    account.current_tier_id = qualified.id
    account.tier_achieved_at = now
    account.tier_expires_at = now + timedelta(days=int(qualified.validity_days)) if qualified.validity_days else None

    append_transaction(
        db,
        account.id,
        settings.tier_upgrade_bonus_per_level * tier_level(qualified),
        TransactionKind.BONUS,
        description=f"Tier upgrade bonus - Welcome to {qualified.name}!",
        metadata=TierUpgradeMetadata(
            previous_tier=current.name if current else None,
            previous_level=tier_level(current),
            new_tier=qualified.name,
            tier_level=tier_level(qualified),
        ),
        now=now,
    )

    logger.info(
        "account upgraded tier",
        extra={
            "account_id": str(account.id),
            "loyalty_number": account.loyalty_number,
            "from_level": tier_level(current),
            "to_level": tier_level(qualified),
        },
    )
    return qualified


def apply_upgrades(
    db: Session,
    account: LoyaltyAccount,
    tenant_tiers=None,
    *,
    now: datetime | None = None,
) -> LoyaltyTier | None:
    """Upgrade until the account sits on the tier its final stats qualify for.

    Each upgrade bonus raises lifetime points, which can clear the next threshold.
    Returns the highest tier reached, or None when nothing changed.
    """
    if tenant_tiers is None:
        tenant_tiers = list_active_tiers(db, account.tenant_id)

    reached = None
    while True:
        upgraded = apply_upgrade_if_due(db, account, tenant_tiers, now=now)
        if upgraded is None:
            return reached
        reached = upgraded


@dataclass
class TierProgress:
    current_tier_id: object
    current_level: int
    next_tier_id: object
    next_level: int | None
    points_to_next_tier: int
    spend_to_next_tier: Decimal
    orders_to_next_tier: int
    progress_percentage: float


def compute_tier_progress(account: LoyaltyAccount, current: LoyaltyTier | None, tenant_tiers) -> TierProgress:
    level = tier_level(current)
    upcoming = [t for t in _sorted_tiers(tenant_tiers) if int(t.level) > level]

    if not upcoming:
        return TierProgress(
            current_tier_id=current.id if current else None,
            current_level=level,
            next_tier_id=None,
            next_level=None,
            points_to_next_tier=0,
            spend_to_next_tier=Decimal("0"),
            orders_to_next_tier=0,
            progress_percentage=100.0,
        )

    nxt = upcoming[0]
    lifetime = int(account.lifetime_points or 0)
    required = int(nxt.points_required or 0)
    percentage = 100.0 if required <= 0 else min(lifetime / required * 100, 100.0)

    return TierProgress(
        current_tier_id=current.id if current else None,
        current_level=level,
        next_tier_id=nxt.id,
        next_level=int(nxt.level),
        points_to_next_tier=max(required - lifetime, 0),
        spend_to_next_tier=max(Decimal(nxt.spend_required or 0) - Decimal(account.total_spent or 0), Decimal("0")),
        orders_to_next_tier=max(int(nxt.orders_required or 0) - int(account.total_orders or 0), 0),
        progress_percentage=round(percentage, 2),
    )
