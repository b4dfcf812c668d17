"""In-process sink for tests and embedding (always passed in explicitly)."""

from datetime import datetime, timezone
from typing import Sequence
import uuid

from audit_shipper.errors import DeliveryFailure
from audit_shipper.events.models import (
    CommittedEvent,
    LogFilters,
    PendingEvent,
    format_timestamp,
    parse_timestamp,
)


class InMemorySink:
    """
    RemoteSink keeping committed events in a list.

    Assigns a UUID ``id`` and ``created_at`` on acceptance and answers queries
    with the same semantics as the PostgREST sink. ``fail_next`` makes the
    next N inserts raise DeliveryFailure without storing anything.
    """

    def __init__(self) -> None:
        self.committed: list[CommittedEvent] = []
        self.batches: list[list[PendingEvent]] = []
        self.fail_next = 0

    async def insert_batch(self, events: Sequence[PendingEvent]) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise DeliveryFailure("Sink unavailable", batch_size=len(events))

        created_at = format_timestamp(datetime.now(timezone.utc))
        self.batches.append(list(events))
        for event in events:
            self.committed.append(
                CommittedEvent(
                    id=str(uuid.uuid4()),
                    created_at=created_at,
                    **event.model_dump(),
                )
            )

    async def query(
        self,
        filters: LogFilters,
        offset: int,
        limit: int,
    ) -> list[CommittedEvent]:
        # Later inserts win timestamp ties, so equal timestamps are newest-first too
        ranked = [
            (_sort_key(event), index, event)
            for index, event in enumerate(self.committed)
            if _matches(event, filters)
        ]
        ranked.sort(key=lambda item: item[:2], reverse=True)
        return [event for _, _, event in ranked[offset:offset + limit]]


def _matches(event: CommittedEvent, filters: LogFilters) -> bool:
    if filters.action_value and event.action != filters.action_value:
        return False
    if filters.actor_value and event.actor_id != filters.actor_value:
        return False

    start = filters.start_timestamp
    end = filters.end_timestamp
    if start or end:
        # Rows without a timestamp never satisfy a range filter (SQL NULL semantics)
        if event.timestamp is None:
            return False
        moment = parse_timestamp(event.timestamp)
        if start and moment < parse_timestamp(start):
            return False
        if end and moment > parse_timestamp(end):
            return False
    return True


def _sort_key(event: CommittedEvent) -> datetime:
    if event.timestamp is None:
        # NULLS FIRST under descending order, as PostgreSQL does
        return datetime.max.replace(tzinfo=timezone.utc)
    return parse_timestamp(event.timestamp)
