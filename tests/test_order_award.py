from decimal import Decimal

import pytest

from cafe_loyalty.errors import BusinessRuleViolation, ConfigurationError
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.loyalty_transaction import LoyaltyTransaction, TransactionKind, earned_idempotency_key
from cafe_loyalty.schemas.event import OrderCompleted
from cafe_loyalty.services import order_service
from cafe_loyalty.services.account_service import get_or_create_account, set_account_active
from cafe_loyalty.services.order_service import award_points_for_order, calculate_order_points, on_order_completed

from conftest import NOW, TENANT, make_promotion, make_tier


def _order(order_id="o-1", total="50.00", customer="user-1"):
    return OrderCompleted(id=order_id, tenantId=TENANT, customerId=customer, totalAmount=Decimal(total))


def _rows(db, kind):
    return db.query(LoyaltyTransaction).filter(LoyaltyTransaction.kind == kind.value).all()


def test_calculate_order_points_floors_each_step():
    points = calculate_order_points(Decimal("50.99"), Decimal("1"), Decimal("1.5"))

    assert points == {"base_points": 50, "tier_bonus": 25, "earned_points": 75}


def test_tier_multiplier_applies_to_earned_points(db):
    make_tier(db, 1, name="Gold", multiplier="1.5")

    earned = on_order_completed(db, _order(), now=NOW)

    assert earned.kind == TransactionKind.EARNED.value
    assert earned.points == 75
    assert earned.idempotency_key == earned_idempotency_key(TENANT, "o-1")
    assert earned.metadata_json["base_points"] == 50
    assert earned.metadata_json["tier_bonus"] == 25
    account = db.query(LoyaltyAccount).one()
    assert account.current_points == 175
    assert account.total_orders == 1
    assert account.total_spent == Decimal("50.00")


def test_multiplier_promotion_adds_separate_row(db):
    make_tier(db, 1, multiplier="1.5")
    promotion = make_promotion(db, points_multiplier=Decimal("1.2"))

    earned = on_order_completed(db, _order(), now=NOW)

    promo_rows = _rows(db, TransactionKind.PROMOTION)
    assert earned.points == 75
    assert earned.metadata_json["promotional_bonus"] == 10
    assert len(promo_rows) == 1
    assert promo_rows[0].points == 10
    assert promo_rows[0].promotion_id == promotion.id
    assert db.query(LoyaltyAccount).one().current_points == 185


def test_replayed_order_is_not_credited_twice(db):
    first = on_order_completed(db, _order(), now=NOW)
    again = on_order_completed(db, _order(), now=NOW)

    assert again.id == first.id
    assert len(_rows(db, TransactionKind.EARNED)) == 1
    account = db.query(LoyaltyAccount).one()
    assert account.current_points == 150
    assert account.total_orders == 1


def test_concurrent_duplicate_resolves_to_existing_row(db, monkeypatch):
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)
    winner = LoyaltyTransaction(
        account_id=account.id,
        tenant_id=TENANT,
        points=50,
        kind=TransactionKind.EARNED.value,
        balance_after=150,
        order_id="o-1",
        idempotency_key=earned_idempotency_key(TENANT, "o-1"),
        created_at=NOW,
    )
    db.add(winner)
    db.commit()

    # both replay checks miss, as they would while the other writer is uncommitted
    monkeypatch.setattr(order_service, "find_earned_transaction", _miss_then_find())
    monkeypatch.setattr("cafe_loyalty.services.ledger_service.find_earned_transaction", lambda *a, **k: None)

    result = on_order_completed(db, _order(), now=NOW)

    assert result.id == winner.id
    assert len(_rows(db, TransactionKind.EARNED)) == 1


def _miss_then_find():
    from cafe_loyalty.services.ledger_service import find_earned_transaction

    calls = {"n": 0}

    def lookup(db, tenant_id, order_id):
        calls["n"] += 1
        if calls["n"] <= 2:
            return None
        return find_earned_transaction(db, tenant_id, order_id)

    return lookup


def test_inactive_account_earns_nothing(db):
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)
    set_account_active(db, account, False)
    db.commit()

    with pytest.raises(BusinessRuleViolation):
        on_order_completed(db, _order(), now=NOW)

    assert _rows(db, TransactionKind.EARNED) == []
    assert db.query(LoyaltyAccount).one().total_orders == 0


def test_bad_promotion_config_aborts_whole_award(db):
    make_promotion(db, type="BONUS_POINTS", bonus_points=None)
    db.commit()

    with pytest.raises(ConfigurationError):
        on_order_completed(db, _order(), now=NOW)

    assert _rows(db, TransactionKind.EARNED) == []
    assert db.query(LoyaltyAccount).count() == 0


def test_order_award_upgrades_tier_in_same_unit_of_work(db):
    make_tier(db, 1, name="Bronze")
    silver = make_tier(db, 2, name="Silver", points_required=150)

    award_points_for_order(db, _order(total="60.00"), now=NOW)

    account = db.query(LoyaltyAccount).one()
    upgrade = [r for r in _rows(db, TransactionKind.BONUS) if r.metadata_json["type"] == "TIER_UPGRADE"]
    assert account.current_tier_id == silver.id
    assert len(upgrade) == 1
    assert upgrade[0].points == 200
