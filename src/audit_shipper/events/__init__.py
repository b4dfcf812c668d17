"""
Local event buffering and durability.

This package provides the audit event models, the in-memory pending queue,
the monotonic timestamp clock, and crash-safe persistence of undelivered
events.

Storage Format:
- Offline queue: one store entry (key ``audit_log_offline_queue``) holding a
  JSON array of pending events
"""

from .models import (
    AuditAction,
    AuditEntityType,
    CommittedEvent,
    LogFilters,
    PendingEvent,
    encode_details,
    format_timestamp,
    parse_timestamp,
)
from .clock import EventClock
from .queue import EventQueue
from .store import DurableStore, FileKeyValueStore, MemoryKeyValueStore
from .durability import (
    OFFLINE_QUEUE_KEY,
    DurabilityAdapter,
    decode_snapshot,
    encode_snapshot,
)

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "CommittedEvent",
    "LogFilters",
    "PendingEvent",
    "encode_details",
    "format_timestamp",
    "parse_timestamp",
    "EventClock",
    "EventQueue",
    "DurableStore",
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    "OFFLINE_QUEUE_KEY",
    "DurabilityAdapter",
    "decode_snapshot",
    "encode_snapshot",
]
