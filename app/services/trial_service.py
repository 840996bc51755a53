"""
Starting a free trial, as one unit of work.

Order matters:
1. policy checks (tier, disposable email, active trial, email ledger)
2. find or create the Stripe customer; its id is committed on its own
3. claim the email in the trial ledger (unique key, flushed not committed)
4. create the Stripe trial subscription (when Stripe is configured)
5. write the subscription row and mirror it onto the profile
6. commit once

Losing the ledger claim to a concurrent request denies with
TRIAL_ALREADY_USED. Any failure after the claim rolls the whole unit back,
claim included, so a failed trial start never burns the user's trial. A
Stripe subscription created before the failure is canceled.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import stripe
from sqlalchemy.orm import Session

from app.core.entitlements import TRIAL_DAYS, TRIAL_TIERS
from app.core.errors import (
    DISPOSABLE_EMAIL,
    SUBSCRIPTION_ALREADY_ACTIVE,
    TRIAL_ALREADY_USED,
    TRIAL_NOT_AVAILABLE,
    TrialDenied,
)
from app.models.profile import Profile
from app.models.subscription import Subscription
from app.services.billing import StripeBilling, TrialSubscription
from app.services.entitlement_gate import EntitlementGate
from app.services.subscription_sync import mirror_subscription_to_profile
from app.utils.dates import ensure_utc, utcnow
from app.utils.disposable_email import is_disposable_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrialStarted:
    user_id: str
    tier: str
    trial_started_at: datetime
    trial_ends_at: datetime
    stripe_subscription_id: Optional[str] = None


class TrialService:
    def __init__(
        self,
        db: Session,
        gate: EntitlementGate,
        billing: Optional[StripeBilling] = None,
        trial_days: int = TRIAL_DAYS,
    ):
        self.db = db
        self.gate = gate
        self.billing = billing
        self.trial_days = trial_days

    def check_eligibility(self, user_id: str, email: str, tier: str = "basic", now: Optional[datetime] = None) -> None:
        """Raise TrialDenied if a trial start would be refused. Writes nothing."""
        if tier not in TRIAL_TIERS:
            raise TrialDenied(TRIAL_NOT_AVAILABLE)

        self.gate.can_start_trial(user_id, email, now=now)

        if is_disposable_email(email):
            logger.info("Trial start denied for user %s: disposable email domain", user_id)
            raise TrialDenied(DISPOSABLE_EMAIL)

        subscription = self.db.query(Subscription).filter(Subscription.user_id == user_id).first()
        if subscription is not None and subscription.status == "active":
            raise TrialDenied(SUBSCRIPTION_ALREADY_ACTIVE)

    def start_trial(self, profile: Profile, tier: str, now: Optional[datetime] = None) -> TrialStarted:
        now = ensure_utc(now) if now is not None else utcnow()
        user_id, email = profile.id, profile.email

        self.check_eligibility(user_id, email, tier, now=now)
        customer_id = self._prepare_customer(profile)

        if not self.gate.eligibility.mark_trial_as_used(user_id, email):
            raise TrialDenied(TRIAL_ALREADY_USED)

        remote = None
        try:
            remote = self._create_remote_trial(profile, tier, customer_id)
            started_at = (remote.trial_start if remote else None) or now
            ends_at = (remote.trial_end if remote else None) or now + timedelta(days=self.trial_days)

            subscription = self.db.query(Subscription).filter(Subscription.user_id == user_id).first()
            if subscription is None:
                subscription = Subscription(user_id=user_id)
                self.db.add(subscription)

            subscription.tier = tier
            subscription.status = "trialing"
            subscription.trial_started_at = started_at
            subscription.trial_ends_at = ends_at
            subscription.cancel_at_period_end = False
            subscription.canceled_at = None
            if remote is not None:
                subscription.stripe_customer_id = remote.stripe_customer_id
                subscription.stripe_subscription_id = remote.stripe_subscription_id
                subscription.current_period_start = remote.current_period_start
                subscription.current_period_end = remote.current_period_end
            else:
                subscription.current_period_start = started_at
                subscription.current_period_end = ends_at

            mirror_subscription_to_profile(profile, subscription)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("Trial start failed for user %s; ledger claim rolled back", user_id)
            if remote is not None:
                self._cancel_remote_trial(remote.stripe_subscription_id)
            raise

        logger.info("Trial started for user %s on %s plan, ends %s", user_id, tier, ends_at.isoformat())
        return TrialStarted(
            user_id=user_id,
            tier=tier,
            trial_started_at=started_at,
            trial_ends_at=ends_at,
            stripe_subscription_id=remote.stripe_subscription_id if remote else None,
        )

    def _prepare_customer(self, profile: Profile) -> Optional[str]:
        """
        Find or create the Stripe customer and save its id in its own commit,
        so a failed trial start reuses the same customer next time.
        """
        if self.billing is None:
            return None

        customer_id = self.billing.ensure_customer(profile.id, profile.email, profile.stripe_customer_id)
        if profile.stripe_customer_id != customer_id:
            profile.stripe_customer_id = customer_id
            self.db.commit()

        if self.billing.has_live_subscription(customer_id):
            raise TrialDenied(SUBSCRIPTION_ALREADY_ACTIVE)
        return customer_id

    def _create_remote_trial(self, profile: Profile, tier: str, customer_id: Optional[str]) -> Optional[TrialSubscription]:
        if self.billing is None:
            logger.warning("Stripe not configured; recording local-only trial for user %s", profile.id)
            return None

        return self.billing.create_trial_subscription(
            profile.id,
            profile.email,
            tier,
            self.trial_days,
            customer_id=customer_id,
        )

    def _cancel_remote_trial(self, subscription_id: str) -> None:
        try:
            self.billing.cancel_subscription(subscription_id)
        except stripe.StripeError as e:
            # Left for manual cleanup; the original failure is what the caller sees
            logger.error("Could not cancel orphaned Stripe subscription %s: %s", subscription_id, e)
