"""Time sources.

Every timestamp that is written (``received_at``, ``created_at``, ``failed_at``,
``recorded_at``) and every window start that is computed comes from a ``Clock``.
All of them are absolute UTC instants; naive datetimes are rejected.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC.

    Raises:
        ValueError: If ``value`` is naive.
    """
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError(f"naive datetime has no reference frame: {value.isoformat()}")
    return value.astimezone(timezone.utc)


class Clock(ABC):
    """Source of the current instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current instant as an aware datetime."""


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return utc_now()


class FixedClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, instant: datetime):
        self._instant = ensure_utc(instant)
        self._tz = instant.tzinfo

    def now(self) -> datetime:
        # Report in the offset the clock was created with; the instant is the same.
        return self._instant.astimezone(self._tz)

    def set(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def advance(self, delta: timedelta) -> None:
        self._instant += delta


# Global instance
_clock: Clock | None = None


def get_clock() -> Clock:
    """Get the global clock instance."""
    global _clock
    if _clock is None:
        _clock = SystemClock()
    return _clock
