"""
Runtime settings for the gatekeeper, read from the environment.

Static gating configuration (public paths, admin prefix, tier table) lives in
RouteGateConfig and plans.json; only operational knobs come from here.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_RECHECK_INTERVAL_SECONDS = 300.0
DEFAULT_COALESCE_SECONDS = 1.5
DEFAULT_STATUS_CACHE_TTL_SECONDS = 86400


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid numeric setting, using default", extra={"setting": name, "value": raw})
        return default
    if value < 0:
        logger.warning("Negative setting, using default", extra={"setting": name, "value": raw})
        return default
    return value


@dataclass
class GatekeeperSettings:
    """Gatekeeper configuration from environment."""

    redis_url: Optional[str] = None
    plans_path: Optional[str] = None
    recheck_interval_seconds: float = DEFAULT_RECHECK_INTERVAL_SECONDS
    coalesce_seconds: float = DEFAULT_COALESCE_SECONDS
    status_cache_ttl_seconds: int = DEFAULT_STATUS_CACHE_TTL_SECONDS
    profile_store_url: Optional[str] = None
    debug_log_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "GatekeeperSettings":
        """Load configuration from environment variables."""
        return cls(
            redis_url=os.getenv("REDIS_URL") or None,
            plans_path=os.getenv("GATEKEEPER_PLANS_PATH") or None,
            recheck_interval_seconds=_float_env(
                "GATEKEEPER_RECHECK_INTERVAL_SECONDS", DEFAULT_RECHECK_INTERVAL_SECONDS
            ),
            coalesce_seconds=_float_env("GATEKEEPER_COALESCE_SECONDS", DEFAULT_COALESCE_SECONDS),
            status_cache_ttl_seconds=int(
                _float_env("GATEKEEPER_STATUS_CACHE_TTL_SECONDS", DEFAULT_STATUS_CACHE_TTL_SECONDS)
            ),
            profile_store_url=os.getenv("GATEKEEPER_PROFILE_STORE_URL") or None,
            debug_log_url=os.getenv("GATEKEEPER_DEBUG_LOG_URL") or None,
        )
