"""Monotonic wall clock for event timestamps."""

from datetime import datetime, timezone
from typing import Callable
import threading

from audit_shipper.events.models import format_timestamp


class EventClock:
    """
    Wall clock that never runs backwards.

    Timestamps are assigned at record time and their order must match queue
    order. A reading earlier than the last one handed out (NTP step, manual
    clock change) is clamped to the last one.
    """

    def __init__(self, source: Callable[[], datetime] | None = None):
        """
        Initialize clock.

        Args:
            source: Callable returning the current time (defaults to UTC now)
        """
        self._source = source or (lambda: datetime.now(timezone.utc))
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def now(self) -> str:
        """Return the next timestamp (non-decreasing)."""
        with self._lock:
            current = self._source()
            if current.tzinfo is None:
                current = current.replace(tzinfo=timezone.utc)
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
            return format_timestamp(current)

    def observe(self, timestamp: datetime) -> None:
        """Raise the floor to ``timestamp`` (used for events restored from disk)."""
        with self._lock:
            if self._last is None or timestamp > self._last:
                self._last = timestamp
