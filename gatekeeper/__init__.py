"""
Access and entitlement gatekeeper for the wellness app.

This package provides:
- compute_status: subscription entitlement derived from profile timestamps
- FeatureCatalog: tier -> feature gating (fail-closed on unknown features)
- decide_route: ordered route-gate rules (login, verification, onboarding, admin)
- EntitlementSession: live status, periodic recheck, paywall flag
- NavigationSupervisor: applies route decisions as redirects
"""

from gatekeeper.catalog import FeatureCatalog, can_access_feature, get_default_catalog
from gatekeeper.clock import Clock, FixedClock, SystemClock
from gatekeeper.engine import compute_status
from gatekeeper.errors import GatekeeperError, ProfileUnavailableError
from gatekeeper.models import (
    AuthIdentity,
    GateState,
    PlanTier,
    RouteDecision,
    SubscriptionStatus,
    UserProfile,
)
from gatekeeper.navigation import NavigationSnapshot, NavigationSupervisor
from gatekeeper.routing import RouteGateConfig, decide_route
from gatekeeper.session import EntitlementSession, build_session

__all__ = [
    # Models
    "AuthIdentity",
    "GateState",
    "PlanTier",
    "RouteDecision",
    "SubscriptionStatus",
    "UserProfile",
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
    # Engine / catalog
    "compute_status",
    "FeatureCatalog",
    "can_access_feature",
    "get_default_catalog",
    # Routing
    "RouteGateConfig",
    "decide_route",
    # Orchestration
    "EntitlementSession",
    "build_session",
    "NavigationSnapshot",
    "NavigationSupervisor",
    # Errors
    "GatekeeperError",
    "ProfileUnavailableError",
]
