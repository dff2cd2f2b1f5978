from datetime import timedelta
from decimal import Decimal

import pytest

from cafe_loyalty.errors import BusinessRuleViolation, GenerationConflictError
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.loyalty_transaction import LoyaltyTransaction, TransactionKind
from cafe_loyalty.services import account_service
from cafe_loyalty.services.account_service import (
    ensure_active,
    generate_loyalty_number,
    get_or_create_account,
    record_order_activity,
    set_account_active,
)
from cafe_loyalty.services.program_settings_service import upsert_program_settings

from conftest import NOW, TENANT, make_tier


def test_new_account_gets_welcome_bonus(db):
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)
    db.commit()

    rows = db.query(LoyaltyTransaction).filter(LoyaltyTransaction.account_id == account.id).all()
    assert account.current_points == 100
    assert len(rows) == 1
    assert rows[0].kind == TransactionKind.BONUS.value
    assert rows[0].points == 100
    assert rows[0].metadata_json["type"] == "WELCOME_BONUS"
    assert account.loyalty_number.startswith("LP")
    assert len(account.loyalty_number) == 13


def test_second_call_returns_same_account_without_bonus(db):
    first = get_or_create_account(db, "user-1", TENANT, now=NOW)
    again = get_or_create_account(db, "user-1", TENANT, now=NOW)

    assert again.id == first.id
    assert db.query(LoyaltyTransaction).count() == 1


def test_same_user_in_two_tenants_gets_two_accounts(db):
    a = get_or_create_account(db, "user-1", TENANT, now=NOW)
    b = get_or_create_account(db, "user-1", "cafe-2", now=NOW)

    assert a.id != b.id
    assert a.loyalty_number != b.loyalty_number


def test_welcome_bonus_follows_tenant_settings(db):
    upsert_program_settings(db, TENANT, {"welcome_bonus": 0})
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)

    assert account.current_points == 0
    assert db.query(LoyaltyTransaction).count() == 0


def test_base_tier_assigned_on_creation(db):
    bronze = make_tier(db, 1, name="Bronze", validity_days=365)
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)

    assert account.current_tier_id == bronze.id
    assert account.tier_achieved_at == NOW
    assert account.tier_expires_at == NOW + timedelta(days=365)


def test_lost_creation_race_returns_winner(db, monkeypatch):
    winner = LoyaltyAccount(user_id="user-1", tenant_id=TENANT, loyalty_number="LP00000000001")
    db.add(winner)
    db.flush()

    # the pre-insert lookup misses, as it would for a concurrent creator
    original = account_service.get_account
    calls = {"n": 0}

    def racing_lookup(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return original(*args, **kwargs)

    monkeypatch.setattr(account_service, "get_account", racing_lookup)

    account = get_or_create_account(db, "user-1", TENANT, now=NOW)

    assert account.id == winner.id
    assert db.query(LoyaltyAccount).count() == 1
    assert db.query(LoyaltyTransaction).count() == 0


def test_loyalty_number_generation_gives_up(db, monkeypatch):
    db.add(LoyaltyAccount(user_id="someone", tenant_id=TENANT, loyalty_number="LP12345678000"))
    db.flush()
    monkeypatch.setattr(account_service, "_candidate_loyalty_number", lambda: "LP12345678000")

    with pytest.raises(GenerationConflictError):
        generate_loyalty_number(db, max_attempts=3)


def test_rolling_year_counters_reset(db):
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)
    record_order_activity(db, account, Decimal("20.00"), now=NOW)
    record_order_activity(db, account, Decimal("5.50"), now=NOW + timedelta(days=400))

    assert account.total_orders == 2
    assert account.total_spent == Decimal("25.50")
    assert account.yearly_orders == 1
    assert account.yearly_spent == Decimal("5.50")


def test_inactive_account_is_rejected(db):
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)
    set_account_active(db, account, False)

    with pytest.raises(BusinessRuleViolation) as exc:
        ensure_active(account)
    assert exc.value.code == "ACCOUNT_INACTIVE"
