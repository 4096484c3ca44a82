"""Initial schema: users, coin ledger, deployed sites, subscriptions, webhook ids, admin logs.

App startup also runs Base.metadata.create_all, so every table is created only
when missing (idempotent for repeated deploys).

Revision ID: 001_initial
Revises:
Create Date: 2026-03-02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    existing = set(sa.inspect(conn).get_table_names())

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("hashed_password", sa.String(), nullable=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("provider", sa.String(), nullable=False, server_default="local"),
            sa.Column("github_token", sa.String(), nullable=True),
            sa.Column("preferred_ai", sa.String(), nullable=False, server_default="groq"),
            sa.Column("role", sa.String(), nullable=False, server_default="user"),
            sa.Column("permissions", sa.JSON(), nullable=False, server_default="{}"),
            sa.Column("status", sa.String(), nullable=False, server_default="active"),
            sa.Column("plan", sa.String(), nullable=False, server_default="free"),
            sa.Column("billing_interval", sa.String(), nullable=True),
            sa.Column("subscription_start", sa.DateTime(), nullable=True),
            sa.Column("stripe_customer_id", sa.String(), nullable=True),
            sa.Column("stripe_subscription_id", sa.String(), nullable=True),
            sa.Column("scans_limit", sa.Integer(), nullable=False, server_default="5"),
            sa.Column("builds_limit", sa.Integer(), nullable=False, server_default="3"),
            sa.Column("max_sites", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("bl_coins", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("signup_bonus_claimed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("last_daily_claim", sa.DateTime(), nullable=True),
            sa.Column("usage_date", sa.String(10), nullable=True),
            sa.Column("daily_generations", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("daily_code_fixes", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("daily_github_pushes", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("referral_code", sa.String(), nullable=True),
            sa.Column("referred_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("referral_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("bl_coins >= 0", name="ck_users_bl_coins_non_negative"),
        )
        op.create_index("ix_users_id", "users", ["id"])
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_referral_code", "users", ["referral_code"], unique=True)
        op.create_index("ix_users_stripe_customer_id", "users", ["stripe_customer_id"])
        op.create_index("ix_users_stripe_subscription_id", "users", ["stripe_subscription_id"])

    if "coin_transactions" not in existing:
        op.create_table(
            "coin_transactions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("kind", sa.String(), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("balance", sa.Integer(), nullable=False),
            sa.Column("description", sa.String(), nullable=True),
            sa.Column("ai_model", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_coin_transactions_id", "coin_transactions", ["id"])
        op.create_index("ix_coin_transactions_user_id_id", "coin_transactions", ["user_id", "id"])

    if "deployed_sites" not in existing:
        op.create_table(
            "deployed_sites",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("subdomain", sa.String(50), nullable=False),
            sa.Column("title", sa.String(), nullable=True),
            sa.Column("has_badge", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_pwa", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("file_size", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("last_updated", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_deployed_sites_id", "deployed_sites", ["id"])
        op.create_index("ix_deployed_sites_user_id", "deployed_sites", ["user_id"])
        op.create_index("ix_deployed_sites_subdomain", "deployed_sites", ["subdomain"], unique=True)

    if "subscriptions" not in existing:
        op.create_table(
            "subscriptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
            sa.Column("stripe_subscription_id", sa.String(), nullable=True, unique=True),
            sa.Column("stripe_customer_id", sa.String(), nullable=True),
            sa.Column("plan", sa.String(), nullable=False, server_default="free"),
            sa.Column("status", sa.String(), nullable=False, server_default="inactive"),
            sa.Column("billing_interval", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_subscriptions_id", "subscriptions", ["id"])

    if "processed_webhook_events" not in existing:
        op.create_table(
            "processed_webhook_events",
            sa.Column("event_id", sa.String(255), primary_key=True),
            sa.Column("event_type", sa.String(), nullable=False),
            sa.Column("processed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )

    if "admin_logs" not in existing:
        op.create_table(
            "admin_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_email", sa.String(), nullable=False),
            sa.Column("actor_role", sa.String(), nullable=False),
            sa.Column("action", sa.String(), nullable=False),
            sa.Column("target_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("target_email", sa.String(), nullable=True),
            sa.Column("description", sa.String(), nullable=False),
            sa.Column("before_state", sa.JSON(), nullable=True),
            sa.Column("after_state", sa.JSON(), nullable=True),
            sa.Column("severity", sa.String(), nullable=False, server_default="info"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_admin_logs_id", "admin_logs", ["id"])
        op.create_index("ix_admin_logs_actor_id", "admin_logs", ["actor_id"])
        op.create_index("ix_admin_logs_action", "admin_logs", ["action"])
        op.create_index("ix_admin_logs_target_user_id", "admin_logs", ["target_user_id"])
        op.create_index("ix_admin_logs_created_at", "admin_logs", ["created_at"])


def downgrade() -> None:
    for table in (
        "admin_logs",
        "processed_webhook_events",
        "subscriptions",
        "deployed_sites",
        "coin_transactions",
        "users",
    ):
        op.drop_table(table)
