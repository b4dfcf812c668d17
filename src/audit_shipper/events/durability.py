"""Crash-safe persistence of the pending queue."""

from typing import Iterable
import json
import logging

from pydantic import ValidationError

from audit_shipper.errors import DurabilityCorruption
from audit_shipper.events.models import PendingEvent
from audit_shipper.events.store import DurableStore

logger = logging.getLogger(__name__)

OFFLINE_QUEUE_KEY = "audit_log_offline_queue"


def encode_snapshot(events: Iterable[PendingEvent]) -> bytes:
    """Serialize events to a JSON array of wire records."""
    return json.dumps(
        [event.to_record() for event in events],
        separators=(",", ":"),
    ).encode("utf-8")


def decode_snapshot(data: bytes) -> list[PendingEvent]:
    """
    Deserialize a JSON array of wire records.

    Raises:
        DurabilityCorruption: If data is not valid JSON, not an array, or
            any record is malformed
    """
    try:
        records = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DurabilityCorruption(f"Snapshot is not valid JSON: {e}") from e

    if not isinstance(records, list):
        raise DurabilityCorruption(
            f"Snapshot must be a JSON array, got {type(records).__name__}"
        )

    try:
        return [PendingEvent.from_record(record) for record in records]
    except (ValidationError, TypeError) as e:
        raise DurabilityCorruption(f"Snapshot contains a malformed event: {e}") from e


class DurabilityAdapter:
    """
    Saves and restores the pending queue through a DurableStore.

    Only touched after a failed flush (save), after a successful one (clear)
    and at startup (load); never on every record.
    """

    def __init__(self, store: DurableStore, key: str = OFFLINE_QUEUE_KEY) -> None:
        self.store = store
        self.key = key

    def save_queue(self, events: Iterable[PendingEvent]) -> None:
        """Overwrite the snapshot with ``events`` (in order)."""
        self.store.put(self.key, encode_snapshot(events))

    def load_queue(self) -> list[PendingEvent]:
        """
        Load the snapshot.

        Returns:
            Saved events in order, or an empty list if the snapshot is
            missing or corrupted (corruption is logged, not raised)
        """
        data = self.store.get(self.key)
        if data is None:
            return []

        try:
            events = decode_snapshot(data)
        except DurabilityCorruption as e:
            logger.warning("Discarding corrupted offline queue %r: %s", self.key, e)
            return []

        if events:
            logger.debug("Loaded %d entries from offline queue", len(events))
        return events

    def clear_queue(self) -> None:
        self.store.delete(self.key)
