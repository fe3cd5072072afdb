"""
Subscription entitlement derivation.

Pure: (profile, now) -> SubscriptionStatus. No I/O, no exceptions for normal
inputs. Precedence: paid subscription -> trial -> expired.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from .models import PlanTier, SubscriptionStatus, UserProfile, ensure_aware

SECONDS_PER_DAY = 86400


def days_until(end: Optional[datetime], now: datetime) -> int:
    """Whole days (rounded up) until `end`; 0 when absent or already past."""
    if end is None:
        return 0
    remaining = (end - now).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / SECONDS_PER_DAY)


def compute_status(profile: Optional[UserProfile], now: datetime) -> SubscriptionStatus:
    """Derive a fresh SubscriptionStatus for `profile` as of `now`."""
    now = ensure_aware(now)
    if profile is None:
        return SubscriptionStatus.unentitled()

    trial_ends_at = profile.trial_ends_at
    subscription_ends_at = profile.subscription_ends_at

    trial_active = trial_ends_at is not None and trial_ends_at > now
    # a paid plan with no end date never expires
    subscribed = profile.plan.is_paid and (
        subscription_ends_at is None or subscription_ends_at > now
    )

    if subscribed:
        return SubscriptionStatus(
            is_trial_active=False,
            is_subscribed=True,
            plan=profile.plan,
            trial_ends_at=trial_ends_at,
            subscription_ends_at=subscription_ends_at,
            days_remaining=days_until(subscription_ends_at, now),
            is_expired=False,
        )

    if trial_active:
        return SubscriptionStatus(
            is_trial_active=True,
            is_subscribed=False,
            plan=PlanTier.TRIAL,
            trial_ends_at=trial_ends_at,
            subscription_ends_at=subscription_ends_at,
            days_remaining=days_until(trial_ends_at, now),
            is_expired=False,
        )

    return SubscriptionStatus.unentitled(
        trial_ends_at=trial_ends_at,
        subscription_ends_at=subscription_ends_at,
    )
