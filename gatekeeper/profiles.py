"""
Profile store adapters.

The profile store itself is external; this module only normalizes its raw
documents into UserProfile and talks to it over HTTP or from memory.

Documents may carry:
- a nested "profile" alias (older clients read userProfile.profile.*)
- a nested "subscription" object: plan, status, trialEndsAt, endDate
- flat camelCase or snake_case fields
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx

from .errors import ProfileUnavailableError
from .models import PlanTier, UserProfile

logger = logging.getLogger(__name__)

LAPSED_SUBSCRIPTION_STATUSES = frozenset({"expired", "cancelled", "canceled"})


class ProfileStore(Protocol):
    async def fetch_profile(self, user_id: str) -> Optional[UserProfile]: ...

    async def mark_expired(self, user_id: str) -> None: ...


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept datetimes, ISO-8601 strings and epoch seconds; anything else is None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning("Unparseable profile timestamp", extra={"value": value})
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _first(sources: list, *keys: str) -> Any:
    for source in sources:
        for key in keys:
            if key in source and source[key] is not None:
                return source[key]
    return None


def profile_from_document(document: Optional[Mapping[str, Any]]) -> Optional[UserProfile]:
    """Normalize a raw profile document. None in, None out."""
    if not document:
        return None

    nested = document.get("profile")
    sources = [document]
    if isinstance(nested, Mapping):
        sources.append(nested)

    subscription = _first(sources, "subscription")
    if not isinstance(subscription, Mapping):
        subscription = {}
    sub_sources = [subscription] + sources

    raw_plan = _first(sub_sources, "plan")
    plan = PlanTier.parse(raw_plan)
    sub_status = str(subscription.get("status") or "").strip().lower()
    if sub_status in LAPSED_SUBSCRIPTION_STATUSES:
        plan = PlanTier.FREE
    elif sub_status == "trial" and not plan.is_paid:
        plan = PlanTier.TRIAL
    elif sub_status == "active" and not str(raw_plan or "").strip():
        # an active subscription without a named plan is the base paid tier
        plan = PlanTier.PRO

    trial_ends_at = parse_timestamp(_first(sub_sources, "trialEndsAt", "trial_ends_at"))
    subscription_ends_at = parse_timestamp(
        _first(sub_sources, "endDate", "end_date", "subscriptionEndsAt", "subscription_ends_at")
    )
    if plan == PlanTier.TRIAL and trial_ends_at is None:
        # trials are stored as {"plan": "trial", "endDate": <trial end>}
        trial_ends_at, subscription_ends_at = subscription_ends_at, None

    return UserProfile(
        onboarding_completed=bool(_first(sources, "onboardingCompleted", "onboarding_completed")),
        role=_first(sources, "role") or "user",
        plan=plan,
        trial_ends_at=trial_ends_at,
        subscription_ends_at=subscription_ends_at,
    )


class InMemoryProfileStore:
    """Dict-backed store for development and tests."""

    def __init__(self, documents: Optional[Dict[str, Mapping[str, Any]]] = None) -> None:
        self._documents: Dict[str, Dict[str, Any]] = {
            user_id: dict(doc) for user_id, doc in (documents or {}).items()
        }

    def put(self, user_id: str, document: Mapping[str, Any]) -> None:
        self._documents[user_id] = dict(document)

    def document(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._documents.get(user_id)

    def user_ids(self) -> list[str]:
        return sorted(self._documents)

    async def fetch_profile(self, user_id: str) -> Optional[UserProfile]:
        return profile_from_document(self._documents.get(user_id))

    async def mark_expired(self, user_id: str) -> None:
        document = self._documents.get(user_id)
        if document is None:
            return
        subscription = dict(document.get("subscription") or {})
        subscription["status"] = "expired"
        document["subscription"] = subscription


class HttpProfileStore:
    """Profile store reached over HTTP: GET/PATCH {base_url}/users/{user_id}."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    def _url(self, user_id: str) -> str:
        return f"{self._base_url}/users/{user_id}"

    async def _request(self, method: str, user_id: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, self._url(user_id), **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, self._url(user_id), **kwargs)

    async def fetch_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            response = await self._request("GET", user_id)
        except httpx.HTTPError as e:
            raise ProfileUnavailableError(user_id, "profile store unreachable", cause=e) from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ProfileUnavailableError(
                user_id, f"profile store returned HTTP {response.status_code}"
            )

        try:
            document = response.json()
        except ValueError as e:
            raise ProfileUnavailableError(user_id, "profile document is not JSON", cause=e) from e
        if document is not None and not isinstance(document, dict):
            raise ProfileUnavailableError(user_id, "profile document must be an object")
        return profile_from_document(document)

    async def mark_expired(self, user_id: str) -> None:
        try:
            response = await self._request(
                "PATCH", user_id, json={"subscription": {"status": "expired"}}
            )
        except httpx.HTTPError as e:
            raise ProfileUnavailableError(user_id, "profile store unreachable", cause=e) from e
        if response.status_code >= 400:
            raise ProfileUnavailableError(
                user_id, f"profile store returned HTTP {response.status_code}"
            )
