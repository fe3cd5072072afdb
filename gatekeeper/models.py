from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

Role = Literal["user", "admin"]


class PlanTier(str, Enum):
    """Subscription tiers used as keys for feature gating."""

    FREE = "free"
    TRIAL = "trial"
    PRO = "pro"
    PREMIUM = "premium"

    @classmethod
    def parse(cls, value: object) -> "PlanTier":
        """Unknown or missing plan values resolve to the least-privileged tier."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for tier in cls:
            if tier.value == normalized:
                return tier
        return cls.FREE

    @property
    def is_paid(self) -> bool:
        return self in PAID_TIERS


PAID_TIERS = frozenset({PlanTier.PRO, PlanTier.PREMIUM})


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class AuthIdentity:
    """Identity emitted by the external auth provider."""

    id: str
    email_verified: bool = False

    def __post_init__(self) -> None:
        user_id = str(self.id).strip()
        if not user_id:
            raise ValueError("id is required")
        object.__setattr__(self, "id", user_id)
        object.__setattr__(self, "email_verified", bool(self.email_verified))


@dataclass(frozen=True)
class UserProfile:
    """Subscription and onboarding fields of a stored user profile."""

    onboarding_completed: bool = False
    role: Role = "user"
    plan: PlanTier = PlanTier.FREE
    trial_ends_at: Optional[datetime] = None
    subscription_ends_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        role = str(self.role or "user").strip().lower()
        object.__setattr__(self, "role", "admin" if role == "admin" else "user")
        object.__setattr__(self, "plan", PlanTier.parse(self.plan))
        object.__setattr__(self, "onboarding_completed", bool(self.onboarding_completed))
        object.__setattr__(self, "trial_ends_at", ensure_aware(self.trial_ends_at))
        object.__setattr__(self, "subscription_ends_at", ensure_aware(self.subscription_ends_at))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class SubscriptionStatus:
    """Entitlement view derived from a profile at a point in time."""

    is_trial_active: bool
    is_subscribed: bool
    plan: PlanTier
    trial_ends_at: Optional[datetime]
    subscription_ends_at: Optional[datetime]
    days_remaining: int
    is_expired: bool

    @classmethod
    def unentitled(
        cls,
        *,
        trial_ends_at: Optional[datetime] = None,
        subscription_ends_at: Optional[datetime] = None,
    ) -> "SubscriptionStatus":
        return cls(
            is_trial_active=False,
            is_subscribed=False,
            plan=PlanTier.FREE,
            trial_ends_at=trial_ends_at,
            subscription_ends_at=subscription_ends_at,
            days_remaining=0,
            is_expired=True,
        )

    @property
    def should_show_paywall(self) -> bool:
        return self.is_expired and not self.is_trial_active and not self.is_subscribed

    def to_dict(self) -> dict:
        return {
            "is_trial_active": self.is_trial_active,
            "is_subscribed": self.is_subscribed,
            "plan": self.plan.value,
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
            "subscription_ends_at": (
                self.subscription_ends_at.isoformat() if self.subscription_ends_at else None
            ),
            "days_remaining": self.days_remaining,
            "is_expired": self.is_expired,
        }


class GateState(str, Enum):
    """Conceptual route-gate states; never stored."""

    UNINITIALIZED = "uninitialized"
    PUBLIC_ALLOWED = "public_allowed"
    NEEDS_LOGIN = "needs_login"
    NEEDS_VERIFICATION = "needs_verification"
    NEEDS_ONBOARDING = "needs_onboarding"
    NEEDS_ROLE_ELEVATION = "needs_role_elevation"
    ALLOWED_AUTHENTICATED = "allowed_authenticated"


@dataclass(frozen=True)
class RouteDecision:
    """Allow, or redirect to a path. `redirect_to is None` means allow."""

    state: GateState
    redirect_to: Optional[str] = None

    @classmethod
    def allow(cls, state: GateState) -> "RouteDecision":
        return cls(state=state)

    @classmethod
    def redirect(cls, state: GateState, path: str) -> "RouteDecision":
        return cls(state=state, redirect_to=path)

    @property
    def is_allowed(self) -> bool:
        return self.redirect_to is None
