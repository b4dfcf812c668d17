"""Flush engine: batch delivery of the pending queue with requeue on failure."""

from dataclasses import dataclass
from datetime import datetime, timezone
import asyncio
import logging

from audit_shipper.errors import DeliveryFailure
from audit_shipper.events.durability import DurabilityAdapter
from audit_shipper.events.queue import EventQueue
from audit_shipper.sink.base import RemoteSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlushResult:
    """
    Outcome of one flush trigger.

    - delivered: Events accepted by the sink in this attempt
    - skipped: Background trigger ignored because a flush was already in flight
    - failed: Delivery failed and the batch was requeued (background triggers only;
      explicit flushes raise DeliveryFailure instead)
    """
    delivered: int = 0
    skipped: bool = False
    failed: bool = False


@dataclass(frozen=True)
class FlushStatus:
    """Observable engine state for diagnostics."""
    pending: int
    in_flight: bool
    last_error: DeliveryFailure | None
    last_success_at: datetime | None
    consecutive_failures: int


class FlushEngine:
    """
    Delivers the whole pending queue to the sink as one batch.

    The queue is drained before the network call, so events recorded while a
    delivery is in flight land in a fresh queue and are not part of the batch.
    On failure the batch is put back at the head of the queue (restoring the
    original order ahead of anything recorded meanwhile) and the queue is
    persisted. Only one attempt runs at a time.
    """

    def __init__(
        self,
        queue: EventQueue,
        sink: RemoteSink,
        durability: DurabilityAdapter,
    ) -> None:
        self.queue = queue
        self.sink = sink
        self.durability = durability
        self.last_error: DeliveryFailure | None = None
        self.last_success_at: datetime | None = None
        self.consecutive_failures = 0
        self._lock = asyncio.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def status(self) -> FlushStatus:
        return FlushStatus(
            pending=len(self.queue),
            in_flight=self.in_flight,
            last_error=self.last_error,
            last_success_at=self.last_success_at,
            consecutive_failures=self.consecutive_failures,
        )

    async def flush(self) -> FlushResult:
        """
        Deliver the queue now, waiting for any in-flight attempt first.

        Returns:
            FlushResult with the number of events delivered (0 if the queue
            was empty)

        Raises:
            DeliveryFailure: If the sink rejected the batch (already requeued
                and persisted)
        """
        async with self._lock:
            return await self._attempt()

    async def flush_in_background(self) -> FlushResult:
        """
        Flush entry point for the scheduler and threshold trigger.

        Ignores the trigger if a flush is already in flight. Delivery failures
        are kept in ``last_error`` and retried on the next trigger.
        """
        if self._lock.locked():
            logger.debug("Flush already in flight, ignoring trigger")
            return FlushResult(skipped=True)

        async with self._lock:
            try:
                return await self._attempt()
            except DeliveryFailure:
                return FlushResult(failed=True)

    async def _attempt(self) -> FlushResult:
        batch = self.queue.drain()
        if not batch:
            return FlushResult()

        try:
            await self.sink.insert_batch(batch)
        except asyncio.CancelledError:
            self._requeue(batch)
            raise
        except Exception as e:
            self._requeue(batch)
            failure = e if isinstance(e, DeliveryFailure) else DeliveryFailure(
                f"Failed to deliver {len(batch)} audit events: {e}",
                batch_size=len(batch),
            )
            self.last_error = failure
            self.consecutive_failures += 1
            logger.warning(
                "Flush of %d audit events failed, saved to offline queue: %s",
                len(batch),
                e,
            )
            if failure is e:
                raise
            raise failure from e

        try:
            self.durability.clear_queue()
        except OSError as e:
            # Delivered events left in the snapshot are re-sent after a restart
            logger.warning("Could not clear offline queue after flush: %s", e)

        self.last_error = None
        self.consecutive_failures = 0
        self.last_success_at = datetime.now(timezone.utc)
        logger.debug("Flushed %d audit events", len(batch))
        return FlushResult(delivered=len(batch))

    def _requeue(self, batch) -> None:
        self.queue.prepend(batch)
        try:
            self.durability.save_queue(self.queue.snapshot())
        except OSError as e:
            logger.error(
                "Could not persist offline queue (%d events held in memory only): %s",
                len(self.queue),
                e,
            )
