"""
Ledger of emails that have already consumed the free trial.

Keyed by normalized email rather than user id so deleting an account and
signing up again with the same address cannot unlock a second trial.
Rows are never updated to has_used_trial=False and never deleted.
"""
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.sql import func
from app.db.base import Base


class TrialEligibility(Base):
    __tablename__ = "trial_eligibility"

    # Primary key doubles as the unique constraint that stops two concurrent trial starts
    email_normalized = Column(String(255), primary_key=True, nullable=False)
    has_used_trial = Column(Boolean, nullable=False, default=True)
    used_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    user_id = Column(String(64), nullable=True)  # Account that consumed the trial; not a FK, survives deletion
