"""
Route gate: decides whether a path may be shown or where to redirect.

Rules are evaluated in strict priority order; the first match wins:
1. not initialized     -> no decision (caller shows a loading state)
2. anonymous, private  -> /login
3. unverified email    -> /verify-email (outranks onboarding and role checks)
4. verified + profile  -> /onboarding until completed; auth pages -> /dashboard
5. admin prefix        -> /dashboard unless role is admin
6. otherwise           -> allow
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from .models import AuthIdentity, GateState, RouteDecision, UserProfile

DEFAULT_PUBLIC_PATHS: FrozenSet[str] = frozenset(
    {"/", "/login", "/register", "/forgot-password", "/verify-email"}
)


@dataclass(frozen=True)
class RouteGateConfig:
    public_paths: FrozenSet[str] = DEFAULT_PUBLIC_PATHS
    admin_prefix: str = "/admin"
    login_path: str = "/login"
    verify_email_path: str = "/verify-email"
    onboarding_path: str = "/onboarding"
    dashboard_path: str = "/dashboard"
    # onboarding is deliberately absent so completion does not self-redirect
    onboarded_bounce_paths: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"/login", "/register", "/"})
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "public_paths", frozenset(self.public_paths))
        object.__setattr__(self, "onboarded_bounce_paths", frozenset(self.onboarded_bounce_paths))


DEFAULT_ROUTE_CONFIG = RouteGateConfig()


def decide_route(
    *,
    initialized: bool,
    user: Optional[AuthIdentity],
    profile: Optional[UserProfile],
    path: str,
    config: RouteGateConfig = DEFAULT_ROUTE_CONFIG,
) -> Optional[RouteDecision]:
    """Return the decision for this input snapshot, or None while uninitialized."""
    if not initialized:
        return None

    is_public = path in config.public_paths

    if user is None:
        if not is_public:
            return RouteDecision.redirect(GateState.NEEDS_LOGIN, config.login_path)
    elif not user.email_verified:
        if path != config.verify_email_path:
            return RouteDecision.redirect(GateState.NEEDS_VERIFICATION, config.verify_email_path)
    elif profile is not None:
        if not profile.onboarding_completed:
            if path != config.onboarding_path:
                return RouteDecision.redirect(GateState.NEEDS_ONBOARDING, config.onboarding_path)
        elif path in config.onboarded_bounce_paths:
            return RouteDecision.redirect(GateState.ALLOWED_AUTHENTICATED, config.dashboard_path)

    if path.startswith(config.admin_prefix) and (profile is None or not profile.is_admin):
        return RouteDecision.redirect(GateState.NEEDS_ROLE_ELEVATION, config.dashboard_path)

    if user is None:
        return RouteDecision.allow(GateState.PUBLIC_ALLOWED)
    return RouteDecision.allow(GateState.ALLOWED_AUTHENTICATED)
