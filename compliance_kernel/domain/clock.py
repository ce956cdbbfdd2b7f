"""
Clock -- Deterministic time abstraction.

Responsibility:
    Injectable clock so engines and services never call ``datetime.now()``
    directly. Deadline arithmetic (DSAR due dates, retention reviews, breach
    notification windows) is only reproducible when "now" is supplied.

Architecture position:
    Kernel > Domain -- pure, except SystemClock which is the one sanctioned
    I/O boundary for time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Abstract clock. ``now()`` returns a timezone-aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``
    or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._offset = timedelta()

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime) -> None:
        self._fixed_time = time
        self._offset = timedelta()

    def advance(self, seconds: int = 0, *, days: int = 0, hours: int = 0) -> None:
        self._offset += timedelta(days=days, hours=hours, seconds=seconds)
