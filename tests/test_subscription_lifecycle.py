import logging
from datetime import datetime, timedelta, timezone

from app.core.entitlements import AccountMode
from app.models.profile import Profile
from app.models.subscription import Subscription
from app.services.subscription_lifecycle import (
    compute_account_mode,
    get_activation_timestamp,
    get_retention_status,
    resolve_billing_state,
    trial_days_remaining,
)

NOW = datetime(2024, 6, 17, 12, 0, tzinfo=timezone.utc)


def profile(**fields):
    return Profile(id="user-1", email="alice@example.com", **fields)


def trial_sub(ends_at, **fields):
    fields.setdefault("status", "trialing")
    return Subscription(
        user_id="user-1",
        tier=fields.pop("tier", "basic"),
        trial_started_at=ends_at - timedelta(days=3),
        trial_ends_at=ends_at,
        **fields,
    )


def test_no_records_is_preview():
    assert compute_account_mode(None, None, NOW) == AccountMode.PREVIEW
    assert compute_account_mode(profile(), None, NOW) == AccountMode.PREVIEW


def test_active_subscription_is_subscribed():
    sub = Subscription(user_id="user-1", tier="advanced", status="active", current_period_start=NOW)
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.SUBSCRIBED


def test_running_trial_is_active():
    sub = trial_sub(NOW + timedelta(seconds=1))
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.TRIAL_ACTIVE


def test_trial_that_ended_one_second_ago_is_expired():
    sub = trial_sub(NOW - timedelta(seconds=1))
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.TRIAL_EXPIRED


def test_trial_ended_31_days_ago_is_data_cleared():
    sub = trial_sub(NOW - timedelta(days=31))
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.DATA_CLEARED


def test_trial_retention_boundary_is_30_days():
    ends = NOW - timedelta(days=30)
    assert compute_account_mode(profile(), trial_sub(ends), NOW) == AccountMode.DATA_CLEARED
    assert compute_account_mode(profile(), trial_sub(ends), NOW - timedelta(seconds=1)) == AccountMode.TRIAL_EXPIRED


def test_trialing_without_end_date_is_expired():
    sub = Subscription(user_id="user-1", tier="basic", status="trialing")
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.TRIAL_EXPIRED


def test_trial_canceled_early_anchors_on_cancellation():
    ends = NOW - timedelta(days=10)
    canceled = ends - timedelta(days=2)
    sub = trial_sub(ends, status="canceled", canceled_at=canceled)

    assert compute_account_mode(profile(), sub, NOW) == AccountMode.TRIAL_EXPIRED
    assert compute_account_mode(profile(), sub, canceled + timedelta(days=30)) == AccountMode.DATA_CLEARED

    retention = get_retention_status(profile(), sub, NOW)
    assert retention.reason == "trial_expired"
    assert retention.expires_at == canceled + timedelta(days=30)


def test_paid_cancellation_keeps_data_for_60_days():
    trial_end = NOW - timedelta(days=100)
    canceled = NOW - timedelta(days=59)
    sub = trial_sub(
        trial_end,
        status="canceled",
        current_period_start=trial_end + timedelta(days=30),
        current_period_end=canceled,
        canceled_at=canceled,
    )

    assert compute_account_mode(profile(), sub, NOW) == AccountMode.TRIAL_EXPIRED
    retention = get_retention_status(profile(), sub, NOW)
    assert retention.reason == "paid_canceled"
    assert retention.days_remaining == 1
    assert retention.is_expired is False

    assert compute_account_mode(profile(), sub, NOW + timedelta(days=2)) == AccountMode.DATA_CLEARED


def test_paid_lapse_without_cancel_date_uses_period_end():
    period_end = NOW - timedelta(days=61)
    sub = Subscription(
        user_id="user-1",
        tier="elite",
        status="canceled",
        current_period_start=period_end - timedelta(days=30),
        current_period_end=period_end,
    )
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.DATA_CLEARED


def test_first_invoice_failure_counts_as_unconverted_trial():
    trial_end = NOW - timedelta(days=5)
    sub = trial_sub(trial_end, status="past_due", current_period_start=trial_end)
    assert get_retention_status(profile(), sub, NOW).reason == "trial_expired"


def test_failed_renewal_is_payment_failed():
    trial_end = NOW - timedelta(days=90)
    sub = trial_sub(
        trial_end,
        status="past_due",
        current_period_start=NOW - timedelta(days=35),
        current_period_end=NOW - timedelta(days=5),
    )
    retention = get_retention_status(profile(), sub, NOW)
    assert retention.reason == "payment_failed"
    assert retention.expires_at == NOW - timedelta(days=5) + timedelta(days=60)


def test_paused_paid_subscription():
    sub = Subscription(
        user_id="user-1",
        tier="advanced",
        status="paused",
        current_period_start=NOW - timedelta(days=40),
        current_period_end=NOW - timedelta(days=10),
    )
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.TRIAL_EXPIRED
    assert get_retention_status(profile(), sub, NOW).reason == "paid_paused"


def test_lapsed_without_any_anchor_is_expired():
    sub = Subscription(user_id="user-1", tier="basic", status="canceled")
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.TRIAL_EXPIRED


def test_unknown_status_with_trial_on_record_is_expired():
    sub = trial_sub(NOW - timedelta(days=1), status="incomplete")
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.TRIAL_EXPIRED


def test_legacy_data_cleared_tier():
    sub = Subscription(user_id="user-1", tier="data_cleared", status="canceled")
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.DATA_CLEARED


def test_subscription_row_wins_over_profile(caplog):
    p = profile(subscription_status="active", subscription_tier="elite")
    sub = trial_sub(NOW - timedelta(days=1))
    with caplog.at_level(logging.WARNING):
        assert compute_account_mode(p, sub, NOW) == AccountMode.TRIAL_EXPIRED
    assert "disagrees with its subscription row" in caplog.text
    assert resolve_billing_state(p, sub).source == "subscription"


def test_profile_mirror_used_without_subscription():
    p = profile(
        subscription_status="trialing",
        subscription_tier="basic",
        trial_started_at=NOW - timedelta(days=1),
        trial_ends_at=NOW + timedelta(days=2),
    )
    assert compute_account_mode(p, None, NOW) == AccountMode.TRIAL_ACTIVE
    assert resolve_billing_state(p, None).source == "profile"


def test_naive_timestamps_are_read_as_utc():
    sub = trial_sub(NOW.replace(tzinfo=None) + timedelta(hours=1))
    assert compute_account_mode(profile(), sub, NOW) == AccountMode.TRIAL_ACTIVE


def test_account_mode_is_deterministic():
    sub = trial_sub(NOW - timedelta(days=3), status="canceled", canceled_at=NOW - timedelta(days=4))
    modes = {compute_account_mode(profile(), sub, NOW) for _ in range(5)}
    assert len(modes) == 1


def test_activation_timestamp():
    started = NOW - timedelta(days=1)
    sub = trial_sub(started + timedelta(days=3))
    assert get_activation_timestamp(profile(), sub) == started

    paid = Subscription(user_id="user-1", tier="basic", status="active", current_period_start=NOW)
    assert get_activation_timestamp(profile(), paid) == NOW
    assert get_activation_timestamp(profile(), None) is None


def test_no_retention_window_while_access_continues():
    sub = trial_sub(NOW + timedelta(days=1))
    assert get_retention_status(profile(), sub, NOW).has_retention_window is False


def test_trial_days_remaining_rounds_up():
    sub = trial_sub(NOW + timedelta(days=2, hours=1))
    assert trial_days_remaining(profile(), sub, NOW) == 3
    assert trial_days_remaining(profile(), trial_sub(NOW - timedelta(hours=1)), NOW) == 0
    active = Subscription(user_id="user-1", tier="basic", status="active")
    assert trial_days_remaining(profile(), active, NOW) is None
