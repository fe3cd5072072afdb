"""
Gatekeeper API schemas.

Pydantic models for subscription status, feature checks and route decisions.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from gatekeeper.models import AuthIdentity, SubscriptionStatus, UserProfile


class SubscriptionStatusResponse(BaseModel):
    """Derived entitlement status for one user."""

    user_id: str
    is_trial_active: bool
    is_subscribed: bool
    plan: str
    trial_ends_at: Optional[datetime] = None
    subscription_ends_at: Optional[datetime] = None
    days_remaining: int
    is_expired: bool
    show_paywall: bool
    has_profile: bool = True
    degraded: bool = False  # True when the profile store could not be reached

    @classmethod
    def from_status(
        cls,
        user_id: str,
        status: SubscriptionStatus,
        *,
        has_profile: bool = True,
        degraded: bool = False,
    ) -> "SubscriptionStatusResponse":
        return cls(
            user_id=user_id,
            is_trial_active=status.is_trial_active,
            is_subscribed=status.is_subscribed,
            plan=status.plan.value,
            trial_ends_at=status.trial_ends_at,
            subscription_ends_at=status.subscription_ends_at,
            days_remaining=status.days_remaining,
            is_expired=status.is_expired,
            show_paywall=status.should_show_paywall,
            has_profile=has_profile,
            degraded=degraded,
        )


class FeatureAccessResponse(BaseModel):
    plan: str
    feature: str
    allowed: bool


class AuthIdentityPayload(BaseModel):
    id: str = Field(..., min_length=1)
    email_verified: bool = False

    def to_identity(self) -> AuthIdentity:
        return AuthIdentity(id=self.id, email_verified=self.email_verified)


class UserProfilePayload(BaseModel):
    onboarding_completed: bool = False
    role: Literal["user", "admin"] = "user"
    plan: str = "free"
    trial_ends_at: Optional[datetime] = None
    subscription_ends_at: Optional[datetime] = None

    def to_profile(self) -> UserProfile:
        return UserProfile(
            onboarding_completed=self.onboarding_completed,
            role=self.role,
            plan=self.plan,
            trial_ends_at=self.trial_ends_at,
            subscription_ends_at=self.subscription_ends_at,
        )


class RouteDecisionRequest(BaseModel):
    """Route-gate input snapshot."""

    initialized: bool = True
    user: Optional[AuthIdentityPayload] = None
    profile: Optional[UserProfilePayload] = None
    path: str = Field(..., min_length=1)


class RouteDecisionResponse(BaseModel):
    state: str
    allow: bool
    redirect_to: Optional[str] = None
