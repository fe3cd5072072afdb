from __future__ import annotations

import json
import logging
import os
import time
from datetime import datetime
from typing import Dict, Optional

from .models import PlanTier, SubscriptionStatus

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = 1


class StatusCache:
    """Last known SubscriptionStatus per user: Redis-backed with in-memory fallback.

    Only consulted when the profile store is unreachable, so a user keeps the
    entitlement they were last seen with instead of dropping to free.
    """

    def __init__(self, redis_url: Optional[str] = None, ttl_seconds: int = 86400) -> None:
        self._ttl_seconds = ttl_seconds
        self._redis = None
        self._mem: Dict[str, tuple[float, dict]] = {}
        redis_url = redis_url if redis_url is not None else os.getenv("REDIS_URL")

        if redis_url:
            try:
                import redis

                self._redis = redis.from_url(redis_url, decode_responses=True)
                self._redis.ping()
            except Exception:
                logger.warning("Status cache falling back to memory", extra={"redis_url": redis_url})
                self._redis = None

    @staticmethod
    def _require_user_id(user_id: str) -> str:
        normalized = str(user_id).strip()
        if not normalized:
            raise ValueError("user_id is required")
        return normalized

    @staticmethod
    def _key(user_id: str) -> str:
        return f"gatekeeper:status:v1:{user_id}"

    def get(self, user_id: str) -> Optional[SubscriptionStatus]:
        key = self._key(self._require_user_id(user_id))

        if self._redis is not None:
            raw = self._redis.get(key)
            if not raw:
                return None
            return decode_status(json.loads(raw))

        data = self._mem.get(key)
        if not data:
            return None

        cached_at, payload = data
        if time.monotonic() - cached_at > self._ttl_seconds:
            self._mem.pop(key, None)
            return None
        return decode_status(payload)

    def set(self, user_id: str, status: SubscriptionStatus, *, ttl_seconds: Optional[int] = None) -> None:
        key = self._key(self._require_user_id(user_id))
        ttl = ttl_seconds or self._ttl_seconds
        payload = encode_status(status)

        if self._redis is not None:
            self._redis.setex(key, ttl, json.dumps(payload))
            return

        self._mem[key] = (time.monotonic(), payload)

    def invalidate(self, user_id: str) -> None:
        key = self._key(self._require_user_id(user_id))
        if self._redis is not None:
            self._redis.delete(key)
        self._mem.pop(key, None)


def encode_status(status: SubscriptionStatus) -> dict:
    payload = status.to_dict()
    payload["schema_version"] = CACHE_SCHEMA_VERSION
    return payload


def decode_status(raw: dict) -> SubscriptionStatus:
    if int(raw.get("schema_version", CACHE_SCHEMA_VERSION)) != CACHE_SCHEMA_VERSION:
        raise ValueError("Unsupported status cache schema version")

    def _ts(value: Optional[str]) -> Optional[datetime]:
        return datetime.fromisoformat(value) if value else None

    return SubscriptionStatus(
        is_trial_active=bool(raw["is_trial_active"]),
        is_subscribed=bool(raw["is_subscribed"]),
        plan=PlanTier.parse(raw.get("plan")),
        trial_ends_at=_ts(raw.get("trial_ends_at")),
        subscription_ends_at=_ts(raw.get("subscription_ends_at")),
        days_remaining=max(0, int(raw.get("days_remaining", 0))),
        is_expired=bool(raw["is_expired"]),
    )
