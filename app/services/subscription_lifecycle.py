"""
Subscription lifecycle: derives a user's account mode from stored billing
records and the wall clock.

Nothing here is persisted or scheduled. Every call recomputes the mode from
the subscription row (authoritative) or, when there is none, from the
profile mirror. Transitions happen purely by comparing `now` against stored
timestamps:

    preview -> trial-active -> trial-expired -> data-cleared
                    \\-> subscribed -> (canceled/past_due/paused) -> trial-expired -> data-cleared

Retention windows: 30 days after a trial that never converted, 60 days after
a paid subscription lapses. Once the window has elapsed the mode is
data-cleared, which tells the external retention job the user's
conversations and assets may be purged. This module never deletes anything.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.core.entitlements import (
    AccountMode,
    LAPSED_STATUSES,
    PAID_RETENTION_DAYS,
    TRIAL_RETENTION_DAYS,
)
from app.utils.dates import ensure_utc, utcnow

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class BillingState:
    """The billing fields the lifecycle reads, taken from a single source."""
    status: Optional[str] = None
    tier: Optional[str] = None
    trial_started_at: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    source: str = "none"  # subscription | profile | none


@dataclass(frozen=True)
class RetentionWindow:
    reason: str  # trial_expired | paid_canceled | paid_paused | payment_failed
    starts_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RetentionStatus:
    has_retention_window: bool
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None
    reason: Optional[str] = None
    is_expired: bool = False


def _log_discrepancy(profile, subscription) -> None:
    mismatches = []
    if profile.subscription_status and profile.subscription_status != subscription.status:
        mismatches.append(f"status {profile.subscription_status!r} != {subscription.status!r}")
    if profile.subscription_tier and profile.subscription_tier != subscription.tier:
        mismatches.append(f"tier {profile.subscription_tier!r} != {subscription.tier!r}")
    if mismatches:
        logger.warning(
            "Profile %s disagrees with its subscription row (%s); using the subscription",
            profile.id,
            ", ".join(mismatches),
        )


def resolve_billing_state(profile, subscription) -> BillingState:
    """Pick the source of truth: the subscription row, else the profile mirror."""
    if subscription is not None:
        if profile is not None:
            _log_discrepancy(profile, subscription)
        return BillingState(
            status=subscription.status,
            tier=subscription.tier,
            trial_started_at=ensure_utc(subscription.trial_started_at),
            trial_ends_at=ensure_utc(subscription.trial_ends_at),
            current_period_start=ensure_utc(subscription.current_period_start),
            current_period_end=ensure_utc(subscription.current_period_end),
            canceled_at=ensure_utc(subscription.canceled_at),
            source="subscription",
        )
    if profile is not None:
        return BillingState(
            status=profile.subscription_status,
            tier=profile.subscription_tier,
            trial_started_at=ensure_utc(profile.trial_started_at),
            trial_ends_at=ensure_utc(profile.trial_ends_at),
            source="profile",
        )
    return BillingState()


def _never_paid(state: BillingState) -> bool:
    """True when a lapsed subscription was only ever a trial."""
    if state.trial_ends_at is None:
        return False
    if state.canceled_at is not None and state.canceled_at <= state.trial_ends_at:
        return True
    if state.current_period_start is None:
        return True
    if state.status == "past_due":
        # The first invoice after the trial failed
        return state.current_period_start <= state.trial_ends_at
    return state.current_period_start < state.trial_ends_at


def get_retention_window(state: BillingState) -> Optional[RetentionWindow]:
    """Retention window implied by the billing state, or None when access has not ended."""
    if state.status == "trialing":
        if state.trial_ends_at is None:
            return None
        return RetentionWindow(
            reason="trial_expired",
            starts_at=state.trial_ends_at,
            expires_at=state.trial_ends_at + timedelta(days=TRIAL_RETENTION_DAYS),
        )

    if state.status not in LAPSED_STATUSES:
        return None

    if _never_paid(state):
        anchor = state.trial_ends_at
        if state.canceled_at is not None and state.canceled_at < anchor:
            anchor = state.canceled_at
        return RetentionWindow(
            reason="trial_expired",
            starts_at=anchor,
            expires_at=anchor + timedelta(days=TRIAL_RETENTION_DAYS),
        )

    anchor = state.canceled_at or state.current_period_end
    if anchor is None:
        return None
    if state.status == "paused":
        reason = "paid_paused"
    elif state.status == "past_due":
        reason = "payment_failed"
    else:
        reason = "paid_canceled"
    return RetentionWindow(
        reason=reason,
        starts_at=anchor,
        expires_at=anchor + timedelta(days=PAID_RETENTION_DAYS),
    )


def _mode_for_state(state: BillingState, now: datetime) -> AccountMode:
    if state.tier == "data_cleared":
        # Legacy rows written by the old cleanup job
        return AccountMode.DATA_CLEARED

    if state.status == "active":
        return AccountMode.SUBSCRIBED

    if state.status == "trialing" and state.trial_ends_at is not None and now < state.trial_ends_at:
        return AccountMode.TRIAL_ACTIVE

    window = get_retention_window(state)
    if window is not None:
        if now >= window.expires_at:
            return AccountMode.DATA_CLEARED
        return AccountMode.TRIAL_EXPIRED

    if state.status == "trialing" or state.status in LAPSED_STATUSES:
        # Access has ended but there is no timestamp to start the retention clock
        return AccountMode.TRIAL_EXPIRED

    if state.trial_started_at is not None or state.trial_ends_at is not None:
        return AccountMode.TRIAL_EXPIRED

    return AccountMode.PREVIEW


def compute_account_mode(profile, subscription, now: Optional[datetime] = None) -> AccountMode:
    """
    Derive the account mode for one user.

    Deterministic in (profile, subscription, now). Either record may be None.
    When both are present and disagree, the subscription row wins and the
    disagreement is logged.
    """
    now = ensure_utc(now) if now is not None else utcnow()
    return _mode_for_state(resolve_billing_state(profile, subscription), now)


def get_activation_timestamp(profile, subscription) -> Optional[datetime]:
    """When the user first activated: trial start, else start of the active paid period."""
    state = resolve_billing_state(profile, subscription)
    if state.trial_started_at is not None:
        return state.trial_started_at
    if state.status == "active":
        return state.current_period_start
    return None


def get_retention_status(profile, subscription, now: Optional[datetime] = None) -> RetentionStatus:
    now = ensure_utc(now) if now is not None else utcnow()
    state = resolve_billing_state(profile, subscription)
    mode = _mode_for_state(state, now)
    if mode not in (AccountMode.TRIAL_EXPIRED, AccountMode.DATA_CLEARED):
        return RetentionStatus(has_retention_window=False)

    window = get_retention_window(state)
    if window is None:
        return RetentionStatus(has_retention_window=False, is_expired=mode == AccountMode.DATA_CLEARED)

    seconds_left = (window.expires_at - now).total_seconds()
    return RetentionStatus(
        has_retention_window=True,
        expires_at=window.expires_at,
        days_remaining=max(0, math.ceil(seconds_left / SECONDS_PER_DAY)),
        reason=window.reason,
        is_expired=seconds_left <= 0,
    )


def trial_days_remaining(profile, subscription, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days left in a running trial (rounded up), 0 once ended, None outside a trial."""
    now = ensure_utc(now) if now is not None else utcnow()
    state = resolve_billing_state(profile, subscription)
    if state.status != "trialing" or state.trial_ends_at is None:
        return None
    seconds_left = (state.trial_ends_at - now).total_seconds()
    return max(0, math.ceil(seconds_left / SECONDS_PER_DAY))
