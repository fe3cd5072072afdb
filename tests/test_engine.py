"""
Subscription status derivation: trial, paid, expired, precedence,
days remaining and clock anomalies.
"""

from datetime import datetime, timedelta, timezone

import pytest

from gatekeeper.engine import compute_status, days_until
from gatekeeper.models import PlanTier, SubscriptionStatus, UserProfile

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_missing_profile_is_free_and_expired():
    status = compute_status(None, NOW)
    assert status == SubscriptionStatus.unentitled()
    assert status.plan == PlanTier.FREE
    assert status.is_expired is True
    assert status.days_remaining == 0


def test_fresh_free_profile_is_expired_paywall_first():
    status = compute_status(UserProfile(), NOW)
    assert status.is_expired is True
    assert status.should_show_paywall is True


@pytest.mark.parametrize("hours_left", [1, 23, 24, 25, 24 * 7])
def test_future_trial_without_subscription_is_active(hours_left):
    profile = UserProfile(plan="trial", trial_ends_at=NOW + timedelta(hours=hours_left))
    status = compute_status(profile, NOW)
    assert status.is_trial_active is True
    assert status.is_subscribed is False
    assert status.is_expired is False
    assert status.plan == PlanTier.TRIAL


def test_trial_on_free_plan_still_counts():
    profile = UserProfile(plan="free", trial_ends_at=NOW + timedelta(hours=5))
    status = compute_status(profile, NOW)
    assert status.is_trial_active is True
    assert status.plan == PlanTier.TRIAL


def test_both_windows_in_past_is_expired():
    profile = UserProfile(
        plan="pro",
        trial_ends_at=NOW - timedelta(days=10),
        subscription_ends_at=NOW - timedelta(seconds=1),
    )
    status = compute_status(profile, NOW)
    assert status.is_expired is True
    assert status.is_trial_active is False
    assert status.is_subscribed is False
    assert status.plan == PlanTier.FREE
    assert status.subscription_ends_at == profile.subscription_ends_at


def test_paid_subscription_masks_active_trial():
    profile = UserProfile(
        plan="premium",
        trial_ends_at=NOW + timedelta(days=2),
        subscription_ends_at=NOW + timedelta(days=30),
    )
    status = compute_status(profile, NOW)
    assert status.is_subscribed is True
    assert status.is_trial_active is False
    assert status.plan == PlanTier.PREMIUM
    assert status.days_remaining == 30


def test_paid_plan_without_end_date_never_expires():
    status = compute_status(UserProfile(plan="pro"), NOW)
    assert status.is_subscribed is True
    assert status.is_expired is False
    assert status.days_remaining == 0


def test_free_plan_is_never_subscribed_even_without_end_date():
    status = compute_status(UserProfile(plan="free", subscription_ends_at=None), NOW)
    assert status.is_subscribed is False


def test_subscription_ending_exactly_now_has_lapsed():
    status = compute_status(UserProfile(plan="pro", subscription_ends_at=NOW), NOW)
    assert status.is_subscribed is False
    assert status.is_expired is True


def test_days_remaining_rounds_up():
    profile = UserProfile(plan="trial", trial_ends_at=NOW + timedelta(hours=25))
    assert compute_status(profile, NOW).days_remaining == 2

    profile = UserProfile(plan="trial", trial_ends_at=NOW + timedelta(minutes=1))
    assert compute_status(profile, NOW).days_remaining == 1


def test_days_until_clamps_negative_durations():
    assert days_until(NOW - timedelta(days=3), NOW) == 0
    assert days_until(None, NOW) == 0


def test_naive_now_is_treated_as_utc():
    profile = UserProfile(plan="trial", trial_ends_at=NOW + timedelta(hours=1))
    status = compute_status(profile, NOW.replace(tzinfo=None))
    assert status.is_trial_active is True


def test_recompute_is_identical():
    profile = UserProfile(
        plan="pro",
        trial_ends_at=NOW + timedelta(days=1),
        subscription_ends_at=NOW + timedelta(days=12, hours=3),
    )
    assert compute_status(profile, NOW) == compute_status(profile, NOW)


def test_status_to_dict_serializes_plan_and_dates():
    profile = UserProfile(plan="trial", trial_ends_at=NOW + timedelta(days=1))
    payload = compute_status(profile, NOW).to_dict()
    assert payload["plan"] == "trial"
    assert payload["trial_ends_at"] == (NOW + timedelta(days=1)).isoformat()
    assert payload["subscription_ends_at"] is None
