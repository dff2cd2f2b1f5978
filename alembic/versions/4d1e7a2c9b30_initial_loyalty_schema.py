"""initial loyalty schema

Revision ID: 4d1e7a2c9b30
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "4d1e7a2c9b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk():
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _timestamps():
    return [
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if not insp.has_table("loyalty_tiers"):
        op.create_table(
            "loyalty_tiers",
            _uuid_pk(),
            sa.Column("tenant_id", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("level", sa.Integer(), nullable=False),
            sa.Column("points_required", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("spend_required", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("orders_required", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("points_multiplier", sa.Numeric(4, 2), nullable=False, server_default=sa.text("1")),
            sa.Column("validity_days", sa.Integer(), nullable=True),
            sa.Column("birthday_bonus", sa.Integer(), nullable=True),
            sa.Column("active", sa.Boolean(), server_default=sa.text("true")),
            *_timestamps(),
            sa.UniqueConstraint("tenant_id", "level", name="uq_loyalty_tiers_tenant_level"),
        )

    if not insp.has_table("loyalty_accounts"):
        op.create_table(
            "loyalty_accounts",
            _uuid_pk(),
            sa.Column("user_id", sa.String(length=100), nullable=False),
            sa.Column("tenant_id", sa.String(length=50), nullable=False),
            sa.Column("loyalty_number", sa.String(length=20), nullable=False),
            sa.Column("current_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("lifetime_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("points_redeemed", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("total_spent", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("yearly_spent", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("total_orders", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("yearly_orders", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("yearly_period_started_at", sa.TIMESTAMP()),
            sa.Column(
                "current_tier_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("loyalty_tiers.id"),
                nullable=True,
            ),
            sa.Column("tier_achieved_at", sa.TIMESTAMP()),
            sa.Column("tier_expires_at", sa.TIMESTAMP()),
            sa.Column("birth_date", sa.Date()),
            sa.Column("last_birthday_reward_at", sa.TIMESTAMP()),
            sa.Column("referred_by_user_id", sa.String(length=100)),
            sa.Column("referral_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("referral_bonus_earned", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("preferences", sa.JSON()),
            sa.Column("last_activity_at", sa.TIMESTAMP()),
            *_timestamps(),
            sa.UniqueConstraint("user_id", "tenant_id", name="uq_loyalty_accounts_user_tenant"),
            sa.UniqueConstraint("loyalty_number", name="uq_loyalty_accounts_loyalty_number"),
        )

    if not insp.has_table("loyalty_transactions"):
        op.create_table(
            "loyalty_transactions",
            _uuid_pk(),
            sa.Column(
                "account_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("loyalty_accounts.id"),
                nullable=False,
            ),
            sa.Column("tenant_id", sa.String(length=50), nullable=False),
            sa.Column("points", sa.Integer(), nullable=False),
            sa.Column("kind", sa.String(length=20), nullable=False),
            sa.Column("balance_after", sa.Integer(), nullable=False),
            sa.Column("order_id", sa.String(length=100)),
            sa.Column("promotion_id", postgresql.UUID(as_uuid=True), nullable=True),
            sa.Column("idempotency_key", sa.String(length=200)),
            sa.Column("description", sa.String(length=255)),
            sa.Column("metadata", sa.JSON()),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="COMPLETED"),
            sa.Column("expires_at", sa.TIMESTAMP()),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.text("now()")),
            sa.UniqueConstraint("idempotency_key", name="uq_loyalty_transactions_idempotency_key"),
        )
        op.create_index(
            "ix_loyalty_transactions_account_created",
            "loyalty_transactions",
            ["account_id", "created_at"],
        )
        op.create_index("ix_loyalty_transactions_order", "loyalty_transactions", ["order_id"])

    if not insp.has_table("loyalty_promotions"):
        op.create_table(
            "loyalty_promotions",
            _uuid_pk(),
            sa.Column("tenant_id", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.String(length=255)),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="DRAFT"),
            sa.Column("start_date", sa.TIMESTAMP(), nullable=False),
            sa.Column("end_date", sa.TIMESTAMP(), nullable=False),
            sa.Column("bonus_points", sa.Integer(), nullable=True),
            sa.Column("points_multiplier", sa.Numeric(4, 2), nullable=True),
            sa.Column("minimum_spend", sa.Numeric(12, 2), nullable=True),
            sa.Column("eligible_tier_levels", sa.JSON()),
            sa.Column("max_uses_per_customer", sa.Integer(), nullable=True),
            *_timestamps(),
        )

    if not insp.has_table("loyalty_rewards"):
        op.create_table(
            "loyalty_rewards",
            _uuid_pk(),
            sa.Column("tenant_id", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=255)),
            sa.Column("type", sa.String(length=50), nullable=False, server_default="FREE_ITEM"),
            sa.Column("points_cost", sa.Integer(), nullable=False),
            sa.Column("cash_value", sa.Numeric(12, 2), nullable=True),
            sa.Column("discount_amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("required_tier_levels", sa.JSON()),
            sa.Column("total_quantity", sa.Integer(), nullable=False, server_default=sa.text("-1")),
            sa.Column("redeemed_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("max_redemptions_per_user", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("valid_from", sa.TIMESTAMP()),
            sa.Column("valid_until", sa.TIMESTAMP()),
            sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("redemption_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("last_redeemed_at", sa.TIMESTAMP()),
            *_timestamps(),
        )

    if not insp.has_table("loyalty_redemptions"):
        op.create_table(
            "loyalty_redemptions",
            _uuid_pk(),
            sa.Column(
                "account_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("loyalty_accounts.id"),
                nullable=False,
            ),
            sa.Column(
                "reward_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("loyalty_rewards.id"),
                nullable=False,
            ),
            sa.Column("tenant_id", sa.String(length=50), nullable=False),
            sa.Column(
                "transaction_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("loyalty_transactions.id"),
                nullable=True,
            ),
            sa.Column(
                "refund_transaction_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("loyalty_transactions.id"),
                nullable=True,
            ),
            sa.Column("order_id", sa.String(length=100)),
            sa.Column("points_used", sa.Integer(), nullable=False),
            sa.Column("cash_value", sa.Numeric(12, 2)),
            sa.Column("discount_amount", sa.Numeric(12, 2)),
            sa.Column("redemption_code", sa.String(length=20), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("notes", sa.String(length=500)),
            sa.Column("metadata", sa.JSON()),
            sa.Column("expires_at", sa.TIMESTAMP()),
            sa.Column("approved_at", sa.TIMESTAMP()),
            sa.Column("redeemed_at", sa.TIMESTAMP()),
            sa.Column("denied_at", sa.TIMESTAMP()),
            *_timestamps(),
            sa.UniqueConstraint("redemption_code", name="uq_loyalty_redemptions_code"),
        )

    if not insp.has_table("loyalty_challenges"):
        op.create_table(
            "loyalty_challenges",
            _uuid_pk(),
            sa.Column("tenant_id", sa.String(length=50), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.String(length=255)),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="DRAFT"),
            sa.Column("start_date", sa.TIMESTAMP(), nullable=False),
            sa.Column("end_date", sa.TIMESTAMP(), nullable=False),
            sa.Column("target_value", sa.Numeric(12, 2), nullable=False),
            sa.Column("completion_points", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("milestones", sa.JSON()),
            *_timestamps(),
        )

    if not insp.has_table("loyalty_challenge_progress"):
        op.create_table(
            "loyalty_challenge_progress",
            _uuid_pk(),
            sa.Column(
                "account_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("loyalty_accounts.id"),
                nullable=False,
            ),
            sa.Column(
                "challenge_id",
                postgresql.UUID(as_uuid=True),
                sa.ForeignKey("loyalty_challenges.id"),
                nullable=False,
            ),
            sa.Column("current_progress", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("target_value", sa.Numeric(12, 2), nullable=False),
            sa.Column("started_at", sa.TIMESTAMP(), server_default=sa.text("now()")),
            sa.Column("completed_at", sa.TIMESTAMP()),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.text("now()")),
            sa.UniqueConstraint(
                "account_id",
                "challenge_id",
                name="uq_loyalty_challenge_progress_account_challenge",
            ),
        )

    if not insp.has_table("loyalty_program_settings"):
        op.create_table(
            "loyalty_program_settings",
            _uuid_pk(),
            sa.Column("tenant_id", sa.String(length=50), nullable=False),
            sa.Column("welcome_bonus", sa.Integer()),
            sa.Column("base_points_rate", sa.Numeric(6, 2)),
            sa.Column("birthday_bonus", sa.Integer()),
            sa.Column("referral_bonus", sa.Integer()),
            sa.Column("tier_upgrade_bonus_per_level", sa.Integer()),
            sa.Column("earned_points_validity_days", sa.Integer()),
            sa.Column("redemption_validity_days", sa.Integer()),
            sa.Column("rolling_year_days", sa.Integer()),
            *_timestamps(),
            sa.UniqueConstraint("tenant_id", name="uq_loyalty_program_settings_tenant"),
        )


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    for table in (
        "loyalty_program_settings",
        "loyalty_challenge_progress",
        "loyalty_challenges",
        "loyalty_redemptions",
        "loyalty_rewards",
        "loyalty_promotions",
        "loyalty_transactions",
        "loyalty_accounts",
        "loyalty_tiers",
    ):
        if insp.has_table(table):
            op.drop_table(table)
