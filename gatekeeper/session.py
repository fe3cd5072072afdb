"""
Entitlement session: keeps the current SubscriptionStatus for the signed-in
user and answers paywall / feature-gating queries.

- Recomputes on every auth change and on a fixed interval.
- At most one check in flight; a newer auth event cancels and supersedes it.
- Checks within the coalescing window are collapsed unless forced.
- After close(), no listener or timer callback fires.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional, Set, Tuple

from .cache import StatusCache
from .catalog import FeatureCatalog, get_default_catalog
from .clock import Clock, SystemClock
from .config import DEFAULT_COALESCE_SECONDS, DEFAULT_RECHECK_INTERVAL_SECONDS, GatekeeperSettings
from .debug import DebugReporter, build_snapshot_payload
from .engine import compute_status
from .models import AuthIdentity, SubscriptionStatus, UserProfile
from .profiles import ProfileStore

logger = logging.getLogger(__name__)

ProfileListener = Callable[[Optional[AuthIdentity], Optional[UserProfile]], None]


class ListenerHandle:
    """Returned by subscribe(); cancel() detaches the listener."""

    def __init__(self, listeners: List[ProfileListener], listener: ProfileListener) -> None:
        self._listeners = listeners
        self._listener = listener
        self.active = True

    def cancel(self) -> None:
        if self.active and self._listener in self._listeners:
            self._listeners.remove(self._listener)
        self.active = False


class EntitlementSession:
    def __init__(
        self,
        profile_store: ProfileStore,
        *,
        catalog: Optional[FeatureCatalog] = None,
        clock: Optional[Clock] = None,
        status_cache: Optional[StatusCache] = None,
        debug_reporter: Optional[DebugReporter] = None,
        recheck_interval_seconds: float = DEFAULT_RECHECK_INTERVAL_SECONDS,
        coalesce_seconds: float = DEFAULT_COALESCE_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = profile_store
        self._catalog = catalog or get_default_catalog()
        self._clock = clock or SystemClock()
        self._status_cache = status_cache
        self._debug_reporter = debug_reporter
        self._recheck_interval = recheck_interval_seconds
        self._coalesce_seconds = coalesce_seconds
        self._monotonic = monotonic

        self._identity: Optional[AuthIdentity] = None
        self._profile: Optional[UserProfile] = None
        self._status = SubscriptionStatus.unentitled()
        self._status_user_id: Optional[str] = None
        self._paywall_visible = False
        self._loading = False

        self._alive = False
        self._generation = 0
        self._last_check_at: Optional[float] = None
        self._inflight: Optional[asyncio.Task] = None
        self._recheck_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._listeners: List[ProfileListener] = []

    # ----- state -----

    @property
    def identity(self) -> Optional[AuthIdentity]:
        return self._identity

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._profile

    @property
    def status(self) -> SubscriptionStatus:
        return self._status

    @property
    def paywall_visible(self) -> bool:
        return self._paywall_visible

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def is_alive(self) -> bool:
        return self._alive

    # ----- lifecycle -----

    async def start(self) -> None:
        if self._alive:
            return
        self._alive = True
        if self._recheck_interval > 0:
            self._recheck_task = asyncio.create_task(self._recheck_loop())

    async def close(self) -> None:
        self._alive = False
        self._listeners.clear()
        tasks = [t for t in (self._inflight, self._recheck_task, *self._background) if t is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight = None
        self._recheck_task = None
        self._background.clear()

    async def __aenter__(self) -> "EntitlementSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def subscribe(self, listener: ProfileListener) -> ListenerHandle:
        self._listeners.append(listener)
        return ListenerHandle(self._listeners, listener)

    # ----- checks -----

    async def on_auth_change(self, identity: Optional[AuthIdentity]) -> SubscriptionStatus:
        """Always re-evaluates; supersedes any check still in flight."""
        if not self._alive:
            return self._status
        self._identity = identity
        self._launch()
        await self._settle()
        return self._status

    async def check(self, *, force: bool = False) -> SubscriptionStatus:
        if not self._alive:
            return self._status
        if not force:
            if self._inflight is not None and not self._inflight.done():
                await self._settle()
                return self._status
            if (
                self._last_check_at is not None
                and self._monotonic() - self._last_check_at < self._coalesce_seconds
            ):
                return self._status
        self._launch()
        await self._settle()
        return self._status

    async def refresh(self) -> SubscriptionStatus:
        return await self.check(force=True)

    async def _settle(self) -> None:
        """Wait until no check is in flight, following any that superseded ours."""
        while self._inflight is not None and not self._inflight.done():
            await asyncio.wait({self._inflight})

    def _launch(self) -> asyncio.Task:
        self._generation += 1
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = asyncio.create_task(self._evaluate(self._generation, self._identity))
        return self._inflight

    async def _evaluate(self, generation: int, identity: Optional[AuthIdentity]) -> None:
        self._loading = True
        try:
            if identity is None:
                profile, status = None, SubscriptionStatus.unentitled()
            else:
                profile, status = await self._load(identity)

            if not self._alive or generation != self._generation:
                logger.debug("Discarding superseded entitlement check", extra={"generation": generation})
                return

            self._profile = profile
            self._status = status
            self._status_user_id = identity.id if identity else None
            self._last_check_at = self._monotonic()

            paywall = identity is not None and status.should_show_paywall
            if paywall and not self._paywall_visible:
                logger.info(
                    "Paywall shown: no active trial or subscription",
                    extra={"user_id": identity.id, "plan": status.plan.value},
                )
            self._paywall_visible = paywall
            self._notify(identity, profile)
            self._report(identity, profile)
        finally:
            if generation == self._generation:
                self._loading = False

    async def _load(self, identity: AuthIdentity) -> Tuple[Optional[UserProfile], SubscriptionStatus]:
        try:
            profile = await self._store.fetch_profile(identity.id)
        except Exception:
            logger.exception("Profile fetch failed", extra={"user_id": identity.id})
            return self._fallback(identity)

        status = compute_status(profile, self._clock.now())
        if self._status_cache is not None:
            try:
                self._status_cache.set(identity.id, status)
            except Exception:
                logger.warning("Status cache write failed", extra={"user_id": identity.id})
        return profile, status

    def _fallback(self, identity: AuthIdentity) -> Tuple[Optional[UserProfile], SubscriptionStatus]:
        """Previous known status for this user, re-derived at the current time."""
        same_user = self._status_user_id == identity.id
        previous: Optional[SubscriptionStatus] = self._status if same_user else None
        if previous is None and self._status_cache is not None:
            try:
                previous = self._status_cache.get(identity.id)
            except Exception:
                logger.warning("Status cache read failed", extra={"user_id": identity.id})
        if previous is None:
            return None, SubscriptionStatus.unentitled()

        snapshot = UserProfile(
            plan=previous.plan,
            trial_ends_at=previous.trial_ends_at,
            subscription_ends_at=previous.subscription_ends_at,
        )
        profile = self._profile if same_user else None
        return profile, compute_status(snapshot, self._clock.now())

    async def _recheck_loop(self) -> None:
        while self._alive:
            await asyncio.sleep(self._recheck_interval)
            if not self._alive or self._identity is None:
                continue
            try:
                await self.check()
            except Exception:
                logger.exception("Scheduled entitlement recheck failed")

    # ----- gating -----

    def has_access(self, feature: str) -> bool:
        return self._catalog.can_access_feature(self._status.plan, feature)

    def require_feature(self, feature: str) -> bool:
        """False means the action is blocked and the paywall is now visible."""
        if self.has_access(feature):
            return True
        self._paywall_visible = True
        logger.info(
            "Feature blocked, paywall shown",
            extra={
                "user_id": self._identity.id if self._identity else None,
                "feature": feature,
                "plan": self._status.plan.value,
            },
        )
        return False

    def dismiss_paywall(self) -> None:
        self._paywall_visible = False

    # ----- side effects -----

    def _notify(self, identity: Optional[AuthIdentity], profile: Optional[UserProfile]) -> None:
        for listener in list(self._listeners):
            try:
                listener(identity, profile)
            except Exception:
                logger.exception("Profile listener failed")

    def _report(self, identity: Optional[AuthIdentity], profile: Optional[UserProfile]) -> None:
        if self._debug_reporter is None or not self._debug_reporter.enabled:
            return
        payload = build_snapshot_payload(
            initialized=True, loading=False, user=identity, profile=profile
        )
        task = asyncio.create_task(self._debug_reporter.report(payload))
        self._background.add(task)
        task.add_done_callback(self._background.discard)


def build_session(profile_store: ProfileStore, settings: Optional[GatekeeperSettings] = None) -> EntitlementSession:
    """Wire a session from environment settings."""
    settings = settings or GatekeeperSettings.from_env()
    catalog = FeatureCatalog.from_file(settings.plans_path) if settings.plans_path else None
    return EntitlementSession(
        profile_store,
        catalog=catalog,
        status_cache=StatusCache(
            redis_url=settings.redis_url or "",
            ttl_seconds=settings.status_cache_ttl_seconds,
        ),
        debug_reporter=DebugReporter(settings.debug_log_url, min_interval_seconds=settings.coalesce_seconds),
        recheck_interval_seconds=settings.recheck_interval_seconds,
        coalesce_seconds=settings.coalesce_seconds,
    )
