"""Backfill normalized emails and the trial ledger (idempotent).

Revision ID: 002_backfill_trial_ledger
Revises: 001_initial
Create Date: 2026-10-18

Every account that already started a trial gets a trial_eligibility row,
so deleting the account cannot unlock a second trial. Existing ledger
rows are left alone.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_backfill_trial_ledger"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    conn.execute(
        sa.text(
            """
            UPDATE profiles
            SET email_normalized = LOWER(TRIM(email))
            WHERE email_normalized IS NULL AND email IS NOT NULL
            """
        )
    )
    conn.execute(
        sa.text(
            """
            INSERT INTO trial_eligibility (email_normalized, has_used_trial, used_at, user_id)
            SELECT p.email_normalized, true, MIN(s.trial_started_at), MIN(p.id)
            FROM profiles p
            JOIN subscriptions s ON s.user_id = p.id
            WHERE s.trial_started_at IS NOT NULL
              AND p.email_normalized IS NOT NULL
              AND NOT EXISTS (
                  SELECT 1 FROM trial_eligibility t WHERE t.email_normalized = p.email_normalized
              )
            GROUP BY p.email_normalized
            """
        )
    )


def downgrade() -> None:
    # The ledger is never un-flagged
    pass
