"""In-memory ordered buffer of events awaiting delivery."""

from typing import Callable, Iterable
import threading

from audit_shipper.events.models import PendingEvent


class EventQueue:
    """
    FIFO buffer of PendingEvent.

    Mutated only by append (producers), drain (flush attempt), prepend
    (failure recovery) and clear. Every mutation takes the same lock, so
    producers on other threads never interleave with a flush's drain or
    requeue.
    """

    def __init__(self, initial: Iterable[PendingEvent] = ()):
        self._items: list[PendingEvent] = list(initial)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def append(self, event: PendingEvent) -> int:
        """Append event at the tail. Returns the new queue length."""
        with self._lock:
            self._items.append(event)
            return len(self._items)

    def append_new(self, build: Callable[[], PendingEvent]) -> tuple[PendingEvent, int]:
        """
        Build and append an event while holding the queue lock.

        The event's timestamp is taken in the same critical section as the
        append, so timestamp order equals queue order across threads.

        Returns:
            The appended event and the new queue length
        """
        with self._lock:
            event = build()
            self._items.append(event)
            return event, len(self._items)

    def drain(self) -> list[PendingEvent]:
        """Remove and return every queued event, oldest first."""
        with self._lock:
            batch = self._items
            self._items = []
            return batch

    def prepend(self, batch: Iterable[PendingEvent]) -> int:
        """Put ``batch`` back ahead of anything queued since it was drained."""
        with self._lock:
            self._items[:0] = list(batch)
            return len(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def snapshot(self) -> list[PendingEvent]:
        """Copy of the current contents, oldest first."""
        with self._lock:
            return list(self._items)
