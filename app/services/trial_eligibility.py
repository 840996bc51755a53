"""
One free trial per email address, for the lifetime of the product.

Eligibility is keyed by normalized email, not by user id, so deleting an
account and signing up again with "User@Example.com " cannot unlock a
second trial for "user@example.com". The ledger is never reset.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.profile import Profile
from app.models.subscription import Subscription
from app.models.trial_eligibility import TrialEligibility
from app.utils.dates import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class TrialEligibilityGuard:
    """Reads and writes the trial ledger through the request's session.

    Database errors are not caught here; the caller decides how to answer.
    """

    def __init__(self, db: Session):
        self.db = db

    def has_email_used_trial(self, email: str) -> bool:
        normalized = normalize_email(email)
        if not normalized:
            return False

        entry = self.db.get(TrialEligibility, normalized)
        if entry is not None and entry.has_used_trial:
            return True

        # Accounts that started a trial before the ledger existed
        legacy = (
            self.db.query(Subscription.id)
            .join(Profile, Profile.id == Subscription.user_id)
            .filter(
                Profile.email_normalized == normalized,
                Subscription.trial_started_at.isnot(None),
            )
            .first()
        )
        return legacy is not None

    def mark_trial_as_used(self, user_id: str, email: str) -> bool:
        """
        Record that this email has consumed its trial.

        Returns True if this call claimed the trial, False if the email was
        already recorded (including when a concurrent request won the insert).
        Idempotent in effect: an existing row is never modified.

        The row is flushed, not committed; the caller commits it together with
        the subscription it grants. Call this before any other write in the
        unit of work, since losing the race rolls the session back.
        """
        normalized = normalize_email(email)
        if not normalized:
            raise ValueError("email is required to record trial usage")

        profile = self.db.get(Profile, user_id)
        if profile is not None and profile.email_normalized != normalized:
            profile.email_normalized = normalized

        if self.db.get(TrialEligibility, normalized) is not None:
            logger.info("Trial already recorded for %s; leaving ledger untouched", normalized)
            return False

        self.db.add(TrialEligibility(
            email_normalized=normalized,
            has_used_trial=True,
            used_at=utcnow(),
            user_id=user_id,
        ))
        try:
            self.db.flush()
        except IntegrityError:
            # Another request inserted the same email between our read and write
            self.db.rollback()
            logger.warning("Concurrent trial claim for %s lost the race", normalized)
            return False

        logger.info("Recorded trial usage for %s (user %s)", normalized, user_id)
        return True

    def is_user_on_active_trial(self, user_id: str, now: Optional[datetime] = None) -> bool:
        now = ensure_utc(now) if now is not None else utcnow()

        subscription = self.db.query(Subscription).filter(Subscription.user_id == user_id).first()
        if subscription is not None:
            status, trial_ends_at = subscription.status, subscription.trial_ends_at
        else:
            profile = self.db.get(Profile, user_id)
            if profile is None:
                return False
            status, trial_ends_at = profile.subscription_status, profile.trial_ends_at

        trial_ends_at = ensure_utc(trial_ends_at)
        return status == "trialing" and trial_ends_at is not None and now < trial_ends_at
