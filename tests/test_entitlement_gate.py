from datetime import datetime, timedelta, timezone

import pytest

from app.core.entitlements import AGENTS, AccountMode
from app.core.errors import (
    CALL_WINDOW_CLOSED,
    TRIAL_ALREADY_ACTIVE,
    TRIAL_ALREADY_USED,
    CallWindowClosed,
    TrialDenied,
)
from app.models.profile import Profile
from app.models.subscription import Subscription
from app.schemas.entitlements import CallWindowConfig

NOW = datetime(2024, 6, 17, 16, 0, tzinfo=timezone.utc)  # Monday noon in New York


@pytest.mark.parametrize("mode", [AccountMode.TRIAL_ACTIVE, AccountMode.SUBSCRIBED])
@pytest.mark.parametrize("tier, expected", [
    ("basic", {"sync"}),
    ("advanced", {"sync", "aloha", "studio"}),
    ("elite", {"sync", "aloha", "studio", "insight"}),
])
def test_agent_matrix(gate, mode, tier, expected):
    for agent in AGENTS:
        assert gate.can_access_agent(mode, tier, agent) is (agent in expected)
    assert gate.accessible_agents(mode, tier) == frozenset(expected)


@pytest.mark.parametrize("mode", [AccountMode.PREVIEW, AccountMode.TRIAL_EXPIRED, AccountMode.DATA_CLEARED])
def test_inactive_modes_get_no_agents(gate, mode):
    for agent in AGENTS:
        assert gate.can_access_agent(mode, "elite", agent) is False


def test_mode_given_as_string(gate):
    assert gate.can_access_agent("subscribed", "advanced", "studio") is True
    assert gate.can_access_agent("not-a-mode", "elite", "sync") is False


def test_unknown_tier_or_agent_is_denied(gate):
    assert gate.can_access_agent(AccountMode.SUBSCRIBED, None, "sync") is False
    assert gate.can_access_agent(AccountMode.SUBSCRIBED, "platinum", "sync") is False
    assert gate.can_access_agent(AccountMode.SUBSCRIBED, "elite", "oracle") is False


def test_fresh_user_may_start_trial(gate):
    assert gate.can_start_trial("user-1", "alice@example.com", now=NOW) is None


def test_used_email_is_denied_for_any_account(db, gate):
    db.add(Profile(id="user-1", email="alice@example.com"))
    db.commit()
    gate.eligibility.mark_trial_as_used("user-1", "alice@example.com")
    db.commit()

    with pytest.raises(TrialDenied) as exc_info:
        gate.can_start_trial("user-2", "Alice@Example.com", now=NOW)
    assert exc_info.value.code == TRIAL_ALREADY_USED
    assert exc_info.value.status_code == 403


def test_active_trial_is_reported_before_used_email(db, gate):
    db.add(Profile(id="user-1", email="alice@example.com"))
    db.add(Subscription(user_id="user-1", tier="basic", status="trialing", trial_ends_at=NOW + timedelta(days=2)))
    db.commit()
    gate.eligibility.mark_trial_as_used("user-1", "alice@example.com")
    db.commit()

    with pytest.raises(TrialDenied) as exc_info:
        gate.can_start_trial("user-1", "alice@example.com", now=NOW)
    assert exc_info.value.code == TRIAL_ALREADY_ACTIVE
    assert exc_info.value.status_code == 400


def test_can_place_call_inside_window(gate):
    decision = gate.can_place_call(CallWindowConfig(), now=NOW)
    assert decision.allowed is True


def test_can_place_call_outside_window_raises(gate):
    saturday = datetime(2024, 6, 15, 18, 0, tzinfo=timezone.utc)
    with pytest.raises(CallWindowClosed) as exc_info:
        gate.can_place_call(CallWindowConfig(), now=saturday)

    body = exc_info.value.to_dict()
    assert body["code"] == CALL_WINDOW_CLOSED
    assert body["message"] == "Calls are not allowed on Saturday. Next allowed day: Monday"
    assert body["next_window_opens"] == "Next Monday at 09:00:00"
    assert exc_info.value.status_code == 409


def test_can_place_call_with_broken_config_raises(gate):
    with pytest.raises(CallWindowClosed) as exc_info:
        gate.can_place_call(CallWindowConfig(timezone="Not/AZone"), now=NOW)
    assert exc_info.value.decision.allowed is False
