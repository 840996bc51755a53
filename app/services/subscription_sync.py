"""
Keeps the denormalized subscription fields on profiles in step with the
subscriptions table.

The subscription row is the source of truth. Code that changes a
subscription calls mirror_subscription_to_profile in the same transaction;
nothing writes the profile mirror on its own.
"""
import logging
from typing import List

from app.models.profile import Profile
from app.models.subscription import Subscription
from app.utils.dates import ensure_utc

logger = logging.getLogger(__name__)

MIRRORED_FIELDS = (
    ("tier", "subscription_tier"),
    ("status", "subscription_status"),
    ("trial_started_at", "trial_started_at"),
    ("trial_ends_at", "trial_ends_at"),
)


def mirror_subscription_to_profile(profile: Profile, subscription: Subscription) -> None:
    """Copy the subscription's tier, status and trial dates onto the profile (no commit)."""
    profile.subscription_tier = subscription.tier
    profile.subscription_status = subscription.status
    profile.trial_started_at = subscription.trial_started_at
    profile.trial_ends_at = subscription.trial_ends_at


def find_profile_drift(profile: Profile, subscription: Subscription) -> List[str]:
    """Names of profile mirror columns that disagree with the subscription row."""
    drifted = []
    for sub_field, profile_field in MIRRORED_FIELDS:
        sub_value = getattr(subscription, sub_field)
        profile_value = getattr(profile, profile_field)
        if sub_field.endswith("_at"):
            sub_value, profile_value = ensure_utc(sub_value), ensure_utc(profile_value)
        if sub_value != profile_value:
            drifted.append(profile_field)
    return drifted
