from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from gatekeeper.clock import Clock, SystemClock
from gatekeeper.engine import compute_status
from gatekeeper.models import PlanTier
from gatekeeper.profiles import ProfileStore

logger = logging.getLogger(__name__)


@dataclass
class ExpiryStats:
    started_at: str
    completed_at: Optional[str] = None
    checked: int = 0
    marked_expired: int = 0
    missing_profiles: int = 0
    errors: int = 0


async def run_subscription_expiry_cycle(
    store: ProfileStore,
    user_ids: Iterable[str],
    *,
    clock: Optional[Clock] = None,
) -> ExpiryStats:
    """Background expiry reconciliation.

    Responsibilities:
    - find users whose trial or paid plan has lapsed
    - mark them expired in the profile store so the stored plan stops
      advertising a tier the user no longer has
    """
    clock = clock or SystemClock()
    stats = ExpiryStats(started_at=datetime.now(timezone.utc).isoformat())

    for user_id in user_ids:
        stats.checked += 1
        try:
            profile = await store.fetch_profile(user_id)
            if profile is None:
                stats.missing_profiles += 1
                continue
            if profile.plan == PlanTier.FREE:
                continue
            if compute_status(profile, clock.now()).is_expired:
                await store.mark_expired(user_id)
                stats.marked_expired += 1
        except Exception:
            logger.exception("Expiry reconciliation failed", extra={"user_id": user_id})
            stats.errors += 1

    stats.completed_at = datetime.now(timezone.utc).isoformat()
    return stats


async def run_forever(store, list_user_ids, interval_seconds: int = 300) -> None:
    while True:
        stats = await run_subscription_expiry_cycle(store, list_user_ids())
        logger.info(
            "Expiry reconciliation cycle complete",
            extra={"checked": stats.checked, "marked_expired": stats.marked_expired, "errors": stats.errors},
        )
        await asyncio.sleep(interval_seconds)
