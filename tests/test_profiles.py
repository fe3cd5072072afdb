from datetime import datetime, timedelta, timezone

import httpx
import pytest

from gatekeeper.engine import compute_status
from gatekeeper.errors import ProfileUnavailableError
from gatekeeper.models import PlanTier, UserProfile
from gatekeeper.profiles import (
    HttpProfileStore,
    InMemoryProfileStore,
    parse_timestamp,
    profile_from_document,
)

END = datetime(2026, 4, 1, tzinfo=timezone.utc)


# ----- Document normalization -----

def test_none_document_is_no_profile():
    assert profile_from_document(None) is None
    assert profile_from_document({}) is None


def test_nested_subscription_document():
    profile = profile_from_document({
        "role": "admin",
        "onboardingCompleted": True,
        "subscription": {"plan": "premium", "status": "active", "endDate": END.isoformat()},
    })
    assert profile == UserProfile(
        onboarding_completed=True,
        role="admin",
        plan=PlanTier.PREMIUM,
        subscription_ends_at=END,
    )


def test_profile_alias_fields_are_read():
    profile = profile_from_document({"uid": "u1", "profile": {"onboardingCompleted": True, "role": "admin"}})
    assert profile.onboarding_completed is True
    assert profile.is_admin


def test_trial_status_promotes_free_plan_to_trial():
    profile = profile_from_document({
        "subscription": {"plan": "free", "status": "trial", "trialEndsAt": "2026-04-01T00:00:00Z"},
    })
    assert profile.plan == PlanTier.TRIAL
    assert profile.trial_ends_at == END


def test_trial_plan_reads_trial_end_from_end_date():
    profile = profile_from_document({
        "subscription": {"plan": "trial", "status": "active", "endDate": END.isoformat()},
    })
    assert profile.plan == PlanTier.TRIAL
    assert profile.trial_ends_at == END
    assert profile.subscription_ends_at is None

    status = compute_status(profile, END - timedelta(days=7))
    assert status.is_trial_active is True
    assert status.is_expired is False
    assert status.days_remaining == 7


def test_explicit_trial_end_wins_over_end_date():
    profile = profile_from_document({
        "subscription": {"status": "trial", "trialEndsAt": END.isoformat(), "endDate": "2026-05-01T00:00:00Z"},
    })
    assert profile.trial_ends_at == END


def test_active_subscription_without_plan_is_pro():
    profile = profile_from_document({"subscription": {"status": "active", "endDate": END.isoformat()}})
    assert profile.plan == PlanTier.PRO

    status = compute_status(profile, END - timedelta(days=3))
    assert status.is_subscribed is True
    assert status.plan == PlanTier.PRO


def test_active_free_plan_stays_free():
    profile = profile_from_document({"subscription": {"plan": "free", "status": "active", "endDate": END.isoformat()}})
    assert profile.plan == PlanTier.FREE


@pytest.mark.parametrize("status", ["expired", "cancelled", "canceled"])
def test_lapsed_status_demotes_to_free(status):
    profile = profile_from_document({"subscription": {"plan": "pro", "status": status}})
    assert profile.plan == PlanTier.FREE


def test_flat_snake_case_document():
    profile = profile_from_document({
        "onboarding_completed": True,
        "plan": "pro",
        "subscription_ends_at": END,
    })
    assert profile.plan == PlanTier.PRO
    assert profile.subscription_ends_at == END


def test_unknown_role_and_plan_are_least_privileged():
    profile = profile_from_document({"role": "owner", "plan": "gold"})
    assert profile.role == "user"
    assert profile.plan == PlanTier.FREE


def test_parse_timestamp_variants():
    assert parse_timestamp(END.timestamp()) == END
    assert parse_timestamp("2026-04-01T00:00:00") == END
    assert parse_timestamp(datetime(2026, 4, 1)) == END
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(True) is None


# ----- In-memory store -----

@pytest.mark.asyncio
async def test_in_memory_store_fetch_and_mark_expired():
    store = InMemoryProfileStore({"u1": {"subscription": {"plan": "pro", "status": "active"}}})
    assert (await store.fetch_profile("u1")).plan == PlanTier.PRO

    await store.mark_expired("u1")
    assert store.document("u1")["subscription"]["status"] == "expired"
    assert (await store.fetch_profile("u1")).plan == PlanTier.FREE
    assert await store.fetch_profile("missing") is None


# ----- HTTP store -----

def _store(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpProfileStore("https://profiles.example.com/", client=client)


@pytest.mark.asyncio
async def test_http_store_fetches_document():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"onboardingCompleted": True, "subscription": {"plan": "pro"}})

    profile = await _store(handler).fetch_profile("u1")
    assert seen["url"] == "https://profiles.example.com/users/u1"
    assert profile.plan == PlanTier.PRO
    assert profile.onboarding_completed is True


@pytest.mark.asyncio
async def test_http_store_404_is_no_profile():
    assert await _store(lambda request: httpx.Response(404)).fetch_profile("u1") is None


@pytest.mark.asyncio
async def test_http_store_server_error_raises_unavailable():
    with pytest.raises(ProfileUnavailableError) as exc:
        await _store(lambda request: httpx.Response(503)).fetch_profile("u1")
    assert exc.value.user_id == "u1"
    assert exc.value.to_dict()["error"] == "PROFILE_UNAVAILABLE"


@pytest.mark.asyncio
async def test_http_store_transport_error_raises_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ProfileUnavailableError) as exc:
        await _store(handler).fetch_profile("u1")
    assert isinstance(exc.value.cause, httpx.ConnectError)


@pytest.mark.asyncio
async def test_http_store_rejects_non_object_document():
    with pytest.raises(ProfileUnavailableError):
        await _store(lambda request: httpx.Response(200, json=[1, 2])).fetch_profile("u1")


@pytest.mark.asyncio
async def test_http_store_mark_expired_patches_status():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = request.content
        return httpx.Response(204)

    await _store(handler).mark_expired("u1")
    assert seen["method"] == "PATCH"
    assert b'"expired"' in seen["body"]
