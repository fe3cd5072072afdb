"""
Navigation supervisor: re-runs the route gate whenever its inputs change and
performs the redirect side effect once per distinct decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from .models import AuthIdentity, RouteDecision, UserProfile
from .routing import DEFAULT_ROUTE_CONFIG, RouteGateConfig, decide_route
from .session import EntitlementSession, ListenerHandle

logger = logging.getLogger(__name__)

Navigator = Callable[[str], None]


@dataclass(frozen=True)
class NavigationSnapshot:
    """Immutable route-gate inputs; replaced wholesale on every change."""

    initialized: bool = False
    user: Optional[AuthIdentity] = None
    profile: Optional[UserProfile] = None
    path: str = "/"


class NavigationSupervisor:
    def __init__(self, navigator: Navigator, *, config: RouteGateConfig = DEFAULT_ROUTE_CONFIG) -> None:
        self._navigator = navigator
        self._config = config
        self._snapshot = NavigationSnapshot()
        self._decision: Optional[RouteDecision] = None
        self._applied_redirect: Optional[str] = None
        self._evaluated = False
        self._handle: Optional[ListenerHandle] = None
        self._closed = False

    @property
    def snapshot(self) -> NavigationSnapshot:
        return self._snapshot

    @property
    def decision(self) -> Optional[RouteDecision]:
        return self._decision

    def attach(self, session: EntitlementSession) -> None:
        """Follow auth/profile changes published by the entitlement session."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = session.subscribe(self._on_session_change)

    def close(self) -> None:
        self._closed = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_session_change(self, user: Optional[AuthIdentity], profile: Optional[UserProfile]) -> None:
        self.update(initialized=True, user=user, profile=profile)

    def navigate_to(self, path: str) -> Optional[RouteDecision]:
        return self.update(path=path)

    def update(self, **changes) -> Optional[RouteDecision]:
        """Apply input changes and re-evaluate. Unchanged inputs are a no-op."""
        if self._closed:
            return self._decision

        snapshot = replace(self._snapshot, **changes)
        if snapshot == self._snapshot and self._evaluated:
            return self._decision

        self._evaluated = True
        self._snapshot = snapshot
        decision = decide_route(
            initialized=snapshot.initialized,
            user=snapshot.user,
            profile=snapshot.profile,
            path=snapshot.path,
            config=self._config,
        )
        self._decision = decision
        self._apply(decision)
        # the navigator may have re-entered update(); report where it settled
        return self._decision

    def _apply(self, decision: Optional[RouteDecision]) -> None:
        target = decision.redirect_to if decision is not None else None
        if target is None:
            self._applied_redirect = None
            return
        if target == self._applied_redirect:
            return

        self._applied_redirect = target
        logger.info(
            "Redirecting",
            extra={"from_path": self._snapshot.path, "to_path": target, "state": decision.state.value},
        )
        self._navigator(target)
