from datetime import datetime, timedelta, timezone

import pytest

from app.models.profile import Profile
from app.models.subscription import Subscription
from app.models.trial_eligibility import TrialEligibility
from app.services.trial_eligibility import normalize_email


def add_profile(db, user_id="user-1", email="alice@example.com", **fields):
    profile = Profile(id=user_id, email=email, **fields)
    db.add(profile)
    db.commit()
    return profile


def test_normalize_email():
    assert normalize_email("  Alice@Example.COM ") == "alice@example.com"
    assert normalize_email(None) == ""


def test_unknown_email_has_not_used_trial(guard):
    assert guard.has_email_used_trial("nobody@example.com") is False
    assert guard.has_email_used_trial("") is False


def test_mark_then_lookup_is_case_insensitive(db, guard):
    add_profile(db)
    assert guard.mark_trial_as_used("user-1", "Alice@Example.com") is True
    db.commit()

    assert guard.has_email_used_trial("alice@example.com") is True
    assert guard.has_email_used_trial("  ALICE@EXAMPLE.COM  ") is True


def test_mark_stamps_normalized_email_on_profile(db, guard):
    profile = add_profile(db, email="Alice@Example.com")
    guard.mark_trial_as_used("user-1", profile.email)
    db.commit()
    assert db.get(Profile, "user-1").email_normalized == "alice@example.com"


def test_second_mark_returns_false_and_keeps_first_record(db, guard):
    add_profile(db)
    assert guard.mark_trial_as_used("user-1", "alice@example.com") is True
    db.commit()
    first = db.get(TrialEligibility, "alice@example.com")
    used_at, owner = first.used_at, first.user_id

    assert guard.mark_trial_as_used("user-2", "ALICE@example.com") is False
    db.commit()

    entry = db.get(TrialEligibility, "alice@example.com")
    assert entry.has_used_trial is True
    assert entry.used_at == used_at
    assert entry.user_id == owner == "user-1"
    assert db.query(TrialEligibility).count() == 1


def test_losing_a_concurrent_insert_returns_false(db, guard, monkeypatch):
    add_profile(db)
    guard.mark_trial_as_used("user-1", "alice@example.com")
    db.commit()
    db.expunge_all()

    # The other request's row is not visible to our read, only to the insert
    real_get = db.get
    monkeypatch.setattr(db, "get", lambda model, key: None if model is TrialEligibility else real_get(model, key))

    assert guard.mark_trial_as_used("user-2", "alice@example.com") is False
    monkeypatch.undo()
    assert db.query(TrialEligibility).count() == 1


def test_mark_requires_email(guard):
    with pytest.raises(ValueError):
        guard.mark_trial_as_used("user-1", "   ")


def test_legacy_trial_without_ledger_row_counts_as_used(db, guard):
    add_profile(db, email_normalized="alice@example.com")
    db.add(Subscription(
        user_id="user-1",
        tier="basic",
        status="canceled",
        trial_started_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
        trial_ends_at=datetime(2023, 1, 4, tzinfo=timezone.utc),
    ))
    db.commit()

    assert db.query(TrialEligibility).count() == 0
    assert guard.has_email_used_trial("Alice@Example.com") is True


def test_active_trial_from_subscription(db, guard):
    now = datetime(2024, 6, 17, tzinfo=timezone.utc)
    add_profile(db)
    db.add(Subscription(user_id="user-1", tier="basic", status="trialing", trial_ends_at=now + timedelta(days=1)))
    db.commit()

    assert guard.is_user_on_active_trial("user-1", now) is True
    assert guard.is_user_on_active_trial("user-1", now + timedelta(days=1)) is False


def test_active_trial_falls_back_to_profile_mirror(db, guard):
    now = datetime(2024, 6, 17, tzinfo=timezone.utc)
    add_profile(db, subscription_status="trialing", trial_ends_at=now + timedelta(hours=5))
    assert guard.is_user_on_active_trial("user-1", now) is True
    assert guard.is_user_on_active_trial("missing-user", now) is False


def test_subscription_row_overrides_profile_for_active_trial(db, guard):
    now = datetime(2024, 6, 17, tzinfo=timezone.utc)
    add_profile(db, subscription_status="trialing", trial_ends_at=now + timedelta(days=2))
    db.add(Subscription(user_id="user-1", tier="basic", status="canceled", trial_ends_at=now + timedelta(days=2)))
    db.commit()
    assert guard.is_user_on_active_trial("user-1", now) is False
