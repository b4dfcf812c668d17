"""RemoteSink protocol for the audit event system of record."""

from typing import Protocol, Sequence

from audit_shipper.events.models import CommittedEvent, LogFilters, PendingEvent


class RemoteSink(Protocol):
    """
    Protocol for remote audit log sinks.

    Contract:
    - insert_batch is all-or-nothing: it returns once the whole batch is
      durably accepted and raises on any failure (rejection, unreachable,
      timeout). Partial acceptance is not modeled.
    - query returns committed events newest-first (by ``timestamp``).
    - Neither call deduplicates; a batch retried after a lost acknowledgement
      may be stored twice.
    """

    async def insert_batch(self, events: Sequence[PendingEvent]) -> None:
        """
        Durably store ``events`` as one batch.

        Raises:
            Exception: Any failure; the caller requeues the whole batch
        """
        ...

    async def query(
        self,
        filters: LogFilters,
        offset: int,
        limit: int,
    ) -> list[CommittedEvent]:
        """
        Return one page of committed events matching ``filters``.

        Args:
            filters: Optional action/actor/time-range filters (bounds inclusive)
            offset: Zero-based index of the first event in the page
            limit: Maximum page size

        Returns:
            Matching events, most recent first
        """
        ...
