"""
Gatekeeper error hierarchy.

Provides:
- GatekeeperError: base for all gatekeeper failures
- ProfileUnavailableError: profile store unreachable or returned garbage
"""

from typing import Optional


class GatekeeperError(Exception):
    """Base exception for gatekeeper failures."""

    error_code = "GATEKEEPER_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class ProfileUnavailableError(GatekeeperError):
    """
    Raised when a profile fetch fails.

    Callers treat this as "profile unavailable", which gates like a free,
    unentitled profile unless a previous status is known.
    """

    error_code = "PROFILE_UNAVAILABLE"

    def __init__(
        self,
        user_id: str,
        detail: str,
        cause: Optional[Exception] = None,
    ):
        self.user_id = user_id
        self.detail = detail
        self.cause = cause
        super().__init__(f"Profile unavailable for {user_id}: {detail}")

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.detail,
            "user_id": self.user_id,
        }
