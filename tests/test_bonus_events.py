from datetime import date, datetime

import pytest

from cafe_loyalty.errors import BusinessRuleViolation, NotFoundError
from cafe_loyalty.models.account import LoyaltyAccount
from cafe_loyalty.models.challenge_progress import ChallengeProgress
from cafe_loyalty.models.loyalty_transaction import LoyaltyTransaction, TransactionKind
from cafe_loyalty.services.account_service import get_account, get_or_create_account
from cafe_loyalty.services.bonus_event_service import (
    adjust_points,
    award_birthday_bonus,
    process_birthday_rewards,
    process_referral,
)

from conftest import NOW, TENANT, make_challenge, make_tier


def _kind(db, kind):
    return db.query(LoyaltyTransaction).filter(LoyaltyTransaction.kind == kind.value).all()


def test_birthday_bonus_once_per_year(db):
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)

    award_birthday_bonus(db, account.id, now=NOW)
    with pytest.raises(BusinessRuleViolation) as exc:
        award_birthday_bonus(db, account.id, now=NOW.replace(month=12))
    award_birthday_bonus(db, account.id, now=NOW.replace(year=2027))

    assert exc.value.code == "BIRTHDAY_ALREADY_AWARDED"
    assert [t.points for t in _kind(db, TransactionKind.BIRTHDAY)] == [100, 100]


def test_tier_birthday_bonus_overrides_default(db):
    make_tier(db, 1, birthday_bonus=250)
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)

    transaction = award_birthday_bonus(db, account.id, now=NOW)

    assert transaction.points == 250
    assert transaction.metadata_json["tier_level"] == 1


def test_birthday_sweep_awards_matching_accounts(db):
    today = date(2026, 6, 15)
    for user_id, birth_date in [("a", date(1990, 6, 15)), ("b", date(1985, 6, 15)), ("c", date(1990, 1, 2))]:
        get_or_create_account(db, user_id, TENANT, now=NOW).birth_date = birth_date
    get_account(db, "b", TENANT).last_birthday_reward_at = datetime(2026, 1, 1)
    db.commit()

    awarded = process_birthday_rewards(db, TENANT, today=today, now=NOW)

    assert awarded == 1
    rewarded = db.query(LoyaltyAccount).filter(LoyaltyAccount.last_birthday_reward_at == NOW).all()
    assert [a.user_id for a in rewarded] == ["a"]


def test_referral_rewards_referrer(db):
    referrer = get_or_create_account(db, "ref", TENANT, now=NOW)

    transaction = process_referral(db, "ref", "newbie", TENANT, now=NOW)

    newbie = get_account(db, "newbie", TENANT)
    assert transaction.account_id == referrer.id
    assert transaction.points == 500
    assert referrer.referral_count == 1
    assert referrer.referral_bonus_earned == 500
    assert newbie.referred_by_user_id == "ref"
    assert newbie.current_points == 100


def test_account_can_only_be_referred_once(db):
    get_or_create_account(db, "ref", TENANT, now=NOW)
    get_or_create_account(db, "other", TENANT, now=NOW)
    process_referral(db, "ref", "newbie", TENANT, now=NOW)

    with pytest.raises(BusinessRuleViolation) as exc:
        process_referral(db, "other", "newbie", TENANT, now=NOW)
    assert exc.value.code == "ALREADY_REFERRED"


def test_referral_needs_existing_referrer(db):
    with pytest.raises(NotFoundError):
        process_referral(db, "ghost", "newbie", TENANT, now=NOW)


def test_zero_adjustment_is_rejected(db):
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)

    with pytest.raises(BusinessRuleViolation) as exc:
        adjust_points(db, account.id, 0, "nothing", now=NOW)
    assert exc.value.code == "INVALID_AMOUNT"


def test_referral_completes_referral_challenge(db):
    challenge = make_challenge(db, name="Bring a friend", type="REFERRAL_COUNT", target_value=1, completion_points=250)
    referrer = get_or_create_account(db, "ref", TENANT, now=NOW)

    process_referral(db, "ref", "newbie", TENANT, now=NOW)

    progress = (
        db.query(ChallengeProgress)
        .filter(ChallengeProgress.account_id == referrer.id)
        .filter(ChallengeProgress.challenge_id == challenge.id)
        .one()
    )
    rows = _kind(db, TransactionKind.CHALLENGE)
    assert progress.completed_at == NOW
    assert [(r.account_id, r.points) for r in rows] == [(referrer.id, 250)]
    assert referrer.current_points == 100 + 500 + 250


def test_birthday_credit_counts_toward_points_challenge(db):
    make_challenge(db, name="Earn 150", type="POINTS_EARNED", target_value=150, completion_points=40)
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)

    award_birthday_bonus(db, account.id, now=NOW)

    assert [r.points for r in _kind(db, TransactionKind.CHALLENGE)] == [40]
    assert account.lifetime_points == 100 + 100 + 40


def test_birthday_credit_can_upgrade_tier(db):
    make_tier(db, 1, name="Bronze")
    silver = make_tier(db, 2, name="Silver", points_required=200)
    account = get_or_create_account(db, "user-1", TENANT, now=NOW)

    award_birthday_bonus(db, account.id, now=NOW)

    assert account.current_tier_id == silver.id
