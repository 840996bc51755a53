"""Initial schema: profiles, subscriptions, trial_eligibility, call_campaigns.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

App startup also runs Base.metadata.create_all, so every table is only
created when missing.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    existing = set(sa.inspect(op.get_bind()).get_table_names())

    if "profiles" not in existing:
        op.create_table(
            "profiles",
            sa.Column("id", sa.String(64), primary_key=True),
            sa.Column("email", sa.String(255), nullable=False),
            sa.Column("email_normalized", sa.String(255), nullable=True),
            sa.Column("full_name", sa.String(255), nullable=True),
            sa.Column("stripe_customer_id", sa.String(255), nullable=True, unique=True),
            sa.Column("subscription_tier", sa.String(32), nullable=True),
            sa.Column("subscription_status", sa.String(32), nullable=True),
            sa.Column("trial_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("trial_ends_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_profiles_email", "profiles", ["email"])
        op.create_index("ix_profiles_email_normalized", "profiles", ["email_normalized"])

    if "subscriptions" not in existing:
        op.create_table(
            "subscriptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(64), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True),
            sa.Column("tier", sa.String(32), nullable=False, server_default="basic"),
            sa.Column("status", sa.String(32), nullable=False, server_default="trialing"),
            sa.Column("stripe_customer_id", sa.String(255), nullable=True),
            sa.Column("stripe_subscription_id", sa.String(255), nullable=True, unique=True),
            sa.Column("trial_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("trial_ends_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
            sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
            sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_subscriptions_id", "subscriptions", ["id"])

    if "trial_eligibility" not in existing:
        op.create_table(
            "trial_eligibility",
            sa.Column("email_normalized", sa.String(255), primary_key=True),
            sa.Column("has_used_trial", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("used_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("user_id", sa.String(64), nullable=True),
        )

    if "call_campaigns" not in existing:
        op.create_table(
            "call_campaigns",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(64), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
            sa.Column("timezone", sa.String(64), nullable=False, server_default="America/New_York"),
            sa.Column("allowed_call_start_time", sa.String(8), nullable=False, server_default="09:00:00"),
            sa.Column("allowed_call_end_time", sa.String(8), nullable=False, server_default="18:00:00"),
            sa.Column("allowed_days_of_week", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_call_campaigns_id", "call_campaigns", ["id"])
        op.create_index("ix_call_campaigns_user_id", "call_campaigns", ["user_id"])


def downgrade() -> None:
    op.drop_table("call_campaigns")
    op.drop_table("trial_eligibility")
    op.drop_table("subscriptions")
    op.drop_table("profiles")
