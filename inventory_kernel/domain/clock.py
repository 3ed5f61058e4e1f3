"""
Clock -- injectable source of "now" for request checkpoints and movements.

Every ``reviewed_at``, ``warehouse_delivered_at``, ``received_at`` and
movement ``occurred_at`` is read from a Clock handed to the component, never
from ``datetime.now()``.  Production wiring uses SystemClock; tests pin time
with DeterministicClock so checkpoint timestamps can be asserted exactly.
"""

import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class Clock(ABC):
    @abstractmethod
    def now_utc(self) -> datetime:
        """Current time as a timezone-aware UTC datetime."""
        ...


class SystemClock(Clock):
    def now_utc(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    One instance is shared by every component of an orchestrator, including
    worker threads in the concurrency tests, so reads and moves are locked.
    """

    def __init__(self, start: datetime | None = None):
        self._now = self._as_utc(start or DEFAULT_START)
        self._lock = threading.Lock()

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")
        return value.astimezone(UTC)

    def now_utc(self) -> datetime:
        with self._lock:
            return self._now

    def set_time(self, value: datetime) -> None:
        with self._lock:
            self._now = self._as_utc(value)

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward and return the new time."""
        if seconds < 0:
            raise ValueError("time does not run backwards")
        with self._lock:
            self._now += timedelta(seconds=seconds)
            return self._now
