from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Deterministic clock for tests and replays."""

    def __init__(self, at: Optional[datetime] = None) -> None:
        self._at = at or datetime.now(timezone.utc)
        if self._at.tzinfo is None:
            self._at = self._at.replace(tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = at if at.tzinfo else at.replace(tzinfo=timezone.utc)

    def advance(self, delta: timedelta) -> datetime:
        self._at = self._at + delta
        return self._at
