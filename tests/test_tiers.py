from decimal import Decimal
from types import SimpleNamespace

import pytest

from cafe_loyalty.errors import ConfigurationError
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.loyalty_transaction import LoyaltyTransaction, TransactionKind
from cafe_loyalty.schemas.event import OrderCompleted
from cafe_loyalty.services.account_service import get_or_create_account
from cafe_loyalty.services.ledger_service import append_transaction
from cafe_loyalty.services.order_service import on_order_completed
from cafe_loyalty.services.tier_service import apply_upgrade_if_due, compute_tier_progress, evaluate_tier

from conftest import NOW, TENANT, make_tier


def _stats(points=0, spent="0", orders=0):
    return SimpleNamespace(lifetime_points=points, total_spent=Decimal(spent), total_orders=orders)


def _tiers():
    return [
        SimpleNamespace(id=3, name="Gold", level=3, points_required=1000, spend_required=0, orders_required=10),
        SimpleNamespace(id=1, name="Bronze", level=1, points_required=0, spend_required=0, orders_required=0),
        SimpleNamespace(id=2, name="Silver", level=2, points_required=500, spend_required=0, orders_required=0),
    ]


def test_evaluate_picks_highest_qualified_tier():
    assert evaluate_tier(_stats(points=600), _tiers()).name == "Silver"
    assert evaluate_tier(_stats(points=5000, orders=3), _tiers()).name == "Silver"
    assert evaluate_tier(_stats(points=5000, orders=10), _tiers()).name == "Gold"


def test_evaluate_is_monotonic_in_lifetime_points():
    levels = [evaluate_tier(_stats(points=p, orders=99), _tiers()).level for p in range(0, 2000, 50)]
    assert levels == sorted(levels)


def test_no_tiers_means_no_tier():
    assert evaluate_tier(_stats(points=100), []) is None


def test_duplicate_levels_are_a_configuration_error():
    tiers = _tiers() + [SimpleNamespace(id=9, name="Other", level=2, points_required=10, spend_required=0, orders_required=0, tenant_id=TENANT)]

    with pytest.raises(ConfigurationError):
        evaluate_tier(_stats(), tiers)


def test_upgrade_pays_bonus_per_level_once(db):
    make_tier(db, 1, name="Bronze")
    silver = make_tier(db, 2, name="Silver", points_required=300)
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)

    append_transaction(db, account.id, 250, TransactionKind.EARNED, order_id="o-1", now=NOW)
    upgraded = apply_upgrade_if_due(db, account, now=NOW)
    again = apply_upgrade_if_due(db, account, now=NOW)

    bonuses = db.query(LoyaltyTransaction).filter(LoyaltyTransaction.kind == TransactionKind.BONUS.value).all()
    assert upgraded.id == silver.id
    assert again is None
    assert account.current_tier_id == silver.id
    assert sorted(b.points for b in bonuses) == [100, 200]


def test_tier_is_never_downgraded(db):
    make_tier(db, 1, name="Bronze")
    silver = make_tier(db, 2, name="Silver", points_required=100)
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)
    assert account.current_tier_id == silver.id

    # the account no longer meets Silver; only Bronze qualifies now
    silver.points_required = 10_000
    append_transaction(db, account.id, -300, TransactionKind.REDEEMED, now=NOW)
    result = apply_upgrade_if_due(db, account, now=NOW)

    assert result is None
    assert account.current_tier_id == silver.id


def test_tier_progress_to_next_level():
    account = SimpleNamespace(lifetime_points=250, total_spent=Decimal("10"), total_orders=2)
    tiers = _tiers()

    progress = compute_tier_progress(account, tiers[1], tiers)

    assert progress.current_level == 1
    assert progress.next_level == 2
    assert progress.points_to_next_tier == 250
    assert progress.progress_percentage == 50.0


def test_tier_progress_at_top_tier():
    account = SimpleNamespace(lifetime_points=5000, total_spent=Decimal("0"), total_orders=20)
    tiers = _tiers()

    progress = compute_tier_progress(account, tiers[0], tiers)

    assert progress.next_tier_id is None
    assert progress.progress_percentage == 100.0


def test_upgrade_bonus_can_carry_account_past_next_threshold(db):
    make_tier(db, 1, name="Bronze")
    make_tier(db, 2, name="Silver", points_required=150)
    gold = make_tier(db, 3, name="Gold", points_required=300)
    db.commit()

    on_order_completed(db, OrderCompleted(id="o-1", tenantId=TENANT, customerId="user-1", totalAmount=Decimal("60.00")), now=NOW)

    account = db.query(LoyaltyAccount).one()
    bonuses = db.query(LoyaltyTransaction).filter(LoyaltyTransaction.kind == TransactionKind.BONUS.value).all()
    assert account.current_tier_id == gold.id
    assert sorted(b.points for b in bonuses) == [100, 200, 300]
    assert account.lifetime_points == 660
    assert account.current_points == 660
