from decimal import Decimal
from types import SimpleNamespace

import pytest

from cafe_loyalty.errors import ConfigurationError
from cafe_loyalty.models.challenge_progress import ChallengeProgress
from cafe_loyalty.models.loyalty_transaction import LoyaltyTransaction, TransactionKind
from cafe_loyalty.schemas.event import OrderCompleted
from cafe_loyalty.services.challenge_service import evaluate_challenge
from cafe_loyalty.services.order_service import on_order_completed

from conftest import NOW, TENANT, make_challenge


def _order(order_id):
    return OrderCompleted(id=order_id, tenantId=TENANT, customerId="user-1", totalAmount=Decimal("4.00"))


def _challenge_rows(db):
    return db.query(LoyaltyTransaction).filter(LoyaltyTransaction.kind == TransactionKind.CHALLENGE.value).all()


def test_evaluate_reports_next_milestone():
    challenge = SimpleNamespace(
        name="Spend 100",
        type="SPEND_AMOUNT",
        target_value=Decimal("100"),
        milestones=[{"percentage": 75, "title": "Almost"}, {"percentage": 25, "title": "Started"}],
    )
    account = SimpleNamespace(total_spent=Decimal("40"))

    evaluation = evaluate_challenge(challenge, account)

    assert evaluation.progress_percentage == 40.0
    assert evaluation.is_completed is False
    assert evaluation.next_milestone["title"] == "Almost"


def test_progress_is_capped_at_100_percent():
    challenge = SimpleNamespace(name="Orders", type="ORDER_COUNT", target_value=Decimal("2"), milestones=[])

    evaluation = evaluate_challenge(challenge, SimpleNamespace(total_orders=5))

    assert evaluation.progress_percentage == 100.0
    assert evaluation.is_completed is True


def test_non_positive_target_is_a_configuration_error():
    challenge = SimpleNamespace(name="Broken", type="ORDER_COUNT", target_value=Decimal("0"), milestones=[])

    with pytest.raises(ConfigurationError):
        evaluate_challenge(challenge, SimpleNamespace(total_orders=1))


def test_completion_bonus_fires_once(db):
    challenge = make_challenge(db, target_value=3, completion_points=40)
    db.commit()

    for n in range(5):
        on_order_completed(db, _order(f"o-{n}"), now=NOW)

    progress = db.query(ChallengeProgress).one()
    rows = _challenge_rows(db)
    assert progress.challenge_id == challenge.id
    assert progress.completed_at == NOW
    assert len(rows) == 1
    assert rows[0].points == 40


def test_progress_tracked_before_completion(db):
    make_challenge(db, target_value=3, completion_points=40)
    db.commit()

    on_order_completed(db, _order("o-1"), now=NOW)

    progress = db.query(ChallengeProgress).one()
    assert progress.current_progress == Decimal("1")
    assert progress.completed_at is None
    assert _challenge_rows(db) == []
