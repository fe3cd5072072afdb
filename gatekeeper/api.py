"""
Gatekeeper HTTP endpoints.

Entitlement status and route decisions for clients. Enforcement stays with
the callers; these responses drive UX (paywall, redirects).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from gatekeeper.catalog import FeatureCatalog, get_default_catalog
from gatekeeper.clock import Clock, SystemClock
from gatekeeper.config import GatekeeperSettings
from gatekeeper.engine import compute_status
from gatekeeper.errors import ProfileUnavailableError
from gatekeeper.models import GateState, PlanTier, SubscriptionStatus
from gatekeeper.profiles import HttpProfileStore, ProfileStore
from gatekeeper.routing import decide_route
from gatekeeper.schemas import (
    FeatureAccessResponse,
    RouteDecisionRequest,
    RouteDecisionResponse,
    SubscriptionStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["gatekeeper"])


def get_profile_store() -> ProfileStore:
    settings = GatekeeperSettings.from_env()
    if not settings.profile_store_url:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "PROFILE_STORE_NOT_CONFIGURED", "message": "Profile store is not configured"},
        )
    return HttpProfileStore(settings.profile_store_url)


def get_catalog() -> FeatureCatalog:
    return get_default_catalog()


def get_clock() -> Clock:
    return SystemClock()


@router.get("/entitlements/{user_id}/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user_id: str,
    store: ProfileStore = Depends(get_profile_store),
    clock: Clock = Depends(get_clock),
) -> SubscriptionStatusResponse:
    """
    Return the derived subscription status for a user.

    A store failure fails closed: the least-privileged status is returned
    with degraded=true rather than an error.
    """
    try:
        profile = await store.fetch_profile(user_id)
    except ProfileUnavailableError as e:
        logger.warning(
            "Profile unavailable, returning unentitled status",
            extra={"user_id": e.user_id, "error_code": e.error_code},
        )
        return SubscriptionStatusResponse.from_status(
            user_id, SubscriptionStatus.unentitled(), has_profile=False, degraded=True
        )

    return SubscriptionStatusResponse.from_status(
        user_id,
        compute_status(profile, clock.now()),
        has_profile=profile is not None,
    )


@router.get(
    "/entitlements/plans/{plan}/features/{feature}",
    response_model=FeatureAccessResponse,
)
def check_feature_access(
    plan: str,
    feature: str,
    catalog: FeatureCatalog = Depends(get_catalog),
) -> FeatureAccessResponse:
    tier = PlanTier.parse(plan)
    return FeatureAccessResponse(
        plan=tier.value,
        feature=feature,
        allowed=catalog.can_access_feature(tier, feature),
    )


@router.post("/navigation/decision", response_model=RouteDecisionResponse)
def get_route_decision(body: RouteDecisionRequest) -> RouteDecisionResponse:
    decision = decide_route(
        initialized=body.initialized,
        user=body.user.to_identity() if body.user else None,
        profile=body.profile.to_profile() if body.profile else None,
        path=body.path,
    )
    if decision is None:
        return RouteDecisionResponse(state=GateState.UNINITIALIZED.value, allow=False)
    return RouteDecisionResponse(
        state=decision.state.value,
        allow=decision.is_allowed,
        redirect_to=decision.redirect_to,
    )
