"""
Time source and canonical day keys.

All day boundaries are UTC calendar dates. Services read time only through
an injected `Clock` so the daily state machine is deterministic under test.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_key(value: Union[datetime, date]) -> str:
    """
    Canonical completion-log key for a moment or date.

    Example:
        >>> day_key(datetime(2025, 3, 9, 23, 59, tzinfo=timezone.utc))
        '2025-03-09'
    """
    if isinstance(value, datetime):
        return ensure_utc(value).date().isoformat()  # type: ignore[union-attr]
    return value.isoformat()


def calendar_days_between(later: Union[datetime, date], earlier: Union[datetime, date]) -> int:
    """Number of UTC calendar-day boundaries between two moments."""
    later_date = ensure_utc(later).date() if isinstance(later, datetime) else later  # type: ignore[union-attr]
    earlier_date = (
        ensure_utc(earlier).date() if isinstance(earlier, datetime) else earlier  # type: ignore[union-attr]
    )
    return (later_date - earlier_date).days


class Clock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()

    def today_key(self) -> str:
        return day_key(self.now())


class FixedClock(Clock):
    """
    A clock pinned to a given instant, advanced explicitly.

    Used for replaying a day sequence in tests and scripts.
    """

    def __init__(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self._instant  # type: ignore[return-value]

    def set(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self._instant = self._instant + timedelta(days=days, hours=hours)  # type: ignore[operator]
        return self._instant  # type: ignore[return-value]
