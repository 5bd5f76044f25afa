"""
Time sources for the file pipeline.

Job timestamps, attachment ``created_at`` values, staged file names and the
stale-job cut-off all read a Clock handed in by the caller, so the queue
and the worker can be driven step by step in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware."""


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Starts at ``start`` (default EPOCH).  ``advance(seconds)`` moves it
    forward; ``tick()`` moves it one second and returns the new time, which
    gives each row created in a test a distinct, ordered timestamp.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or EPOCH

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current
