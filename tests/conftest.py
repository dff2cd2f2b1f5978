from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import cafe_loyalty.models.registry  # noqa: F401
from cafe_loyalty.db import Base, configure_sqlite, get_db
from cafe_loyalty.main import app
from cafe_loyalty.models.challenge import ChallengeStatus, LoyaltyChallenge
from cafe_loyalty.models.loyalty_tier import LoyaltyTier
from cafe_loyalty.models.promotion import LoyaltyPromotion, PromotionStatus
from cafe_loyalty.models.reward import LoyaltyReward


TENANT = "cafe-1"
NOW = datetime(2026, 6, 15, 12, 0, 0)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    Base.metadata.create_all(bind=engine)

    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_tier(db, level, *, name=None, points_required=0, multiplier="1", tenant_id=TENANT, **kwargs):
    tier = LoyaltyTier(
        tenant_id=tenant_id,
        name=name or f"Level {level}",
        level=level,
        points_required=points_required,
        spend_required=kwargs.pop("spend_required", Decimal("0")),
        orders_required=kwargs.pop("orders_required", 0),
        points_multiplier=Decimal(multiplier),
        active=True,
        **kwargs,
    )
    db.add(tier)
    db.flush()
    return tier


def make_promotion(db, *, now=NOW, tenant_id=TENANT, **kwargs):
    promotion = LoyaltyPromotion(
        tenant_id=tenant_id,
        name=kwargs.pop("name", "Double-ish Tuesday"),
        type=kwargs.pop("type", "POINTS_MULTIPLIER"),
        status=kwargs.pop("status", PromotionStatus.ACTIVE.value),
        start_date=kwargs.pop("start_date", now - timedelta(days=1)),
        end_date=kwargs.pop("end_date", now + timedelta(days=1)),
        eligible_tier_levels=kwargs.pop("eligible_tier_levels", []),
        **kwargs,
    )
    db.add(promotion)
    db.flush()
    return promotion


def make_reward(db, *, points_cost=50, tenant_id=TENANT, **kwargs):
    reward = LoyaltyReward(
        tenant_id=tenant_id,
        name=kwargs.pop("name", "Free Latte"),
        points_cost=points_cost,
        required_tier_levels=kwargs.pop("required_tier_levels", []),
        **kwargs,
    )
    db.add(reward)
    db.flush()
    return reward


def make_challenge(db, *, now=NOW, tenant_id=TENANT, **kwargs):
    challenge = LoyaltyChallenge(
        tenant_id=tenant_id,
        name=kwargs.pop("name", "Three visits"),
        type=kwargs.pop("type", "ORDER_COUNT"),
        status=kwargs.pop("status", ChallengeStatus.ACTIVE.value),
        start_date=kwargs.pop("start_date", now - timedelta(days=1)),
        end_date=kwargs.pop("end_date", now + timedelta(days=30)),
        target_value=Decimal(kwargs.pop("target_value", 3)),
        completion_points=kwargs.pop("completion_points", 0),
        milestones=kwargs.pop("milestones", []),
        **kwargs,
    )
    db.add(challenge)
    db.flush()
    return challenge
