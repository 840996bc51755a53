"""
Stripe client used when a trial subscription has to exist on the billing side.

One instance is built in the composition root (app.main) and handed to
routes through a dependency, so tests and local runs can swap or drop it.
Webhook handling lives with the billing integration, not here.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

import stripe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrialSubscription:
    stripe_subscription_id: str
    stripe_customer_id: str
    trial_start: Optional[datetime]
    trial_end: Optional[datetime]
    current_period_start: Optional[datetime]
    current_period_end: Optional[datetime]


def _from_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class StripeBilling:
    def __init__(self, api_key: str, price_ids: Dict[str, str]):
        if not api_key:
            raise ValueError("Stripe API key is required")
        self.api_key = api_key
        self.price_ids = {tier: price for tier, price in price_ids.items() if price}

    @classmethod
    def from_env(cls) -> Optional["StripeBilling"]:
        """Build from STRIPE_* variables; None when Stripe is not configured."""
        api_key = os.getenv("STRIPE_SECRET_KEY", "").strip()
        if not api_key:
            logger.warning("STRIPE_SECRET_KEY is not set; trials will be recorded locally only")
            return None
        return cls(
            api_key,
            {
                "basic": os.getenv("STRIPE_PRICE_ID_BASIC", ""),
                "advanced": os.getenv("STRIPE_PRICE_ID_ADVANCED", ""),
                "elite": os.getenv("STRIPE_PRICE_ID_ELITE", ""),
            },
        )

    def price_id_for(self, tier: str) -> str:
        price_id = self.price_ids.get(tier)
        if not price_id:
            raise ValueError(f"Stripe price ID not configured for tier {tier!r}")
        return price_id

    def ensure_customer(self, user_id: str, email: str, customer_id: Optional[str] = None) -> str:
        if customer_id:
            return customer_id
        customer = stripe.Customer.create(
            api_key=self.api_key,
            email=email,
            metadata={"supabase_user_id": user_id},
        )
        logger.info("Created Stripe customer %s for user %s", customer.id, user_id)
        return customer.id

    def has_live_subscription(self, customer_id: str) -> bool:
        """True if Stripe already holds an active or trialing subscription for this customer."""
        existing = stripe.Subscription.list(api_key=self.api_key, customer=customer_id, status="all", limit=10)
        return any(sub.status in ("active", "trialing") for sub in existing.data)

    def create_trial_subscription(
        self,
        user_id: str,
        email: str,
        tier: str,
        trial_days: int,
        customer_id: Optional[str] = None,
    ) -> TrialSubscription:
        """Create a subscription that starts with a free trial. Raises stripe.StripeError."""
        customer_id = self.ensure_customer(user_id, email, customer_id)
        subscription = stripe.Subscription.create(
            api_key=self.api_key,
            customer=customer_id,
            items=[{"price": self.price_id_for(tier)}],
            trial_period_days=trial_days,
            metadata={
                "tier": tier,
                "userId": user_id,
                "is_trial": "true",
            },
        )
        logger.info("Created Stripe trial subscription %s for user %s", subscription.id, user_id)
        return TrialSubscription(
            stripe_subscription_id=subscription.id,
            stripe_customer_id=customer_id,
            trial_start=_from_timestamp(getattr(subscription, "trial_start", None)),
            trial_end=_from_timestamp(getattr(subscription, "trial_end", None)),
            current_period_start=_from_timestamp(getattr(subscription, "current_period_start", None)),
            current_period_end=_from_timestamp(getattr(subscription, "current_period_end", None)),
        )

    def cancel_subscription(self, subscription_id: str) -> None:
        """Cancel immediately; used to undo a trial whose local write failed."""
        stripe.Subscription.cancel(subscription_id, api_key=self.api_key)
        logger.info("Canceled Stripe subscription %s", subscription_id)
