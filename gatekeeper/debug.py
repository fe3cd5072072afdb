"""
Best-effort auth snapshot reporting to a remote debug log.

Fire-and-forget: at most one POST per min_interval_seconds, failures are
logged at debug level and never surface to callers.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from .models import AuthIdentity, UserProfile

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_SECONDS = 1.5


def build_snapshot_payload(
    *,
    initialized: bool,
    loading: bool,
    user: Optional[AuthIdentity],
    profile: Optional[UserProfile],
    location: Optional[str] = None,
) -> dict:
    return {
        "at": datetime.now(timezone.utc).isoformat(),
        "location": location,
        "auth": {
            "initialized": initialized,
            "loading": loading,
            "user_id": user.id if user else None,
            "email_verified": user.email_verified if user else None,
            "has_profile": profile is not None,
        },
    }


class DebugReporter:
    """Rate-gated reporter; the gate is advanced even when the POST fails."""

    def __init__(
        self,
        endpoint: Optional[str],
        *,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._endpoint = endpoint
        self._min_interval = min_interval_seconds
        self._client = client
        self._monotonic = monotonic
        self._last_sent: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return bool(self._endpoint)

    def _gate_open(self) -> bool:
        now = self._monotonic()
        if self._last_sent is not None and now - self._last_sent < self._min_interval:
            return False
        self._last_sent = now
        return True

    async def report(self, payload: dict) -> bool:
        """Return True when a POST was attempted and succeeded."""
        if not self.enabled or not self._gate_open():
            return False
        try:
            if self._client is not None:
                response = await self._client.post(self._endpoint, json=payload)
            else:
                async with httpx.AsyncClient(timeout=5.0) as client:
                    response = await client.post(self._endpoint, json=payload)
            return response.status_code < 400
        except Exception as e:
            logger.debug("Debug report failed", extra={"endpoint": self._endpoint, "error": str(e)})
            return False
