"""
Clock - Abstraction over "now" for date-relative logic.

Services and the query scope builder accept an explicit ``now``; when it is
omitted they ask the configured clock. Tests pin time with FixedClock.

Usage:
    from apps.core.clock import get_clock

    now = get_clock().now()
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from django.utils import timezone


class Clock(ABC):
    """Source of the current, timezone-aware time."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Wall clock, delegating to django.utils.timezone."""

    def now(self) -> datetime:
        return timezone.now()


class FixedClock(Clock):
    """
    Clock pinned to a given instant.

    Used by tests to make overdue/today/this-month filters deterministic.
    """

    def __init__(self, at: datetime):
        if timezone.is_naive(at):
            at = timezone.make_aware(at)
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance(self, **kwargs) -> None:
        """Move the pinned instant forward, e.g. advance(days=1)."""
        self._at = self._at + timedelta(**kwargs)


_clock: Clock = SystemClock()


def get_clock() -> Clock:
    """Get the process-wide clock."""
    return _clock


def set_clock(clock: Optional[Clock]) -> None:
    """Replace the process-wide clock; None restores the system clock."""
    global _clock
    _clock = clock or SystemClock()


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """Return ``now`` if given, otherwise the configured clock's time."""
    return now if now is not None else get_clock().now()
