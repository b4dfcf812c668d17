"""Shared fixtures for audit shipper tests."""

import asyncio
from typing import Sequence

import pytest

from audit_shipper.events.models import CommittedEvent, LogFilters, PendingEvent
from audit_shipper.events.store import MemoryKeyValueStore


class RecordingSink:
    """
    RemoteSink double that records every delivery attempt.

    - failures: exceptions raised by successive insert_batch calls (then success)
    - gate: when set to an asyncio.Event, insert_batch blocks until it is set
    - started: set as soon as an insert_batch call begins
    """

    def __init__(self) -> None:
        self.attempts: list[list[PendingEvent]] = []
        self.batches: list[list[PendingEvent]] = []
        self.failures: list[BaseException] = []
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()
        self.rows: list[CommittedEvent] = []
        self.queries: list[tuple[LogFilters, int, int]] = []

    async def insert_batch(self, events: Sequence[PendingEvent]) -> None:
        self.attempts.append(list(events))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        self.batches.append(list(events))

    async def query(self, filters: LogFilters, offset: int, limit: int) -> list[CommittedEvent]:
        self.queries.append((filters, offset, limit))
        return list(self.rows)


@pytest.fixture(autouse=True)
def patch_home(tmp_path, monkeypatch):
    """Point HOME at tmp_path and drop AUDIT_SHIPPER_* overrides from the environment."""
    monkeypatch.setenv("HOME", str(tmp_path))
    for var in (
        "AUDIT_SHIPPER_SINK_URL",
        "AUDIT_SHIPPER_API_KEY",
        "AUDIT_SHIPPER_BATCH_THRESHOLD",
        "AUDIT_SHIPPER_FLUSH_INTERVAL",
        "AUDIT_SHIPPER_STATE_DIR",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def make_event():
    """Factory for PendingEvent with sensible defaults."""
    counter = {"n": 0}

    def _make(action: str = "update", entity_type: str = "course", **overrides) -> PendingEvent:
        counter["n"] += 1
        fields = {
            "actor_id": "user-1",
            "action": action,
            "entity_type": entity_type,
            "entity_id": f"entity-{counter['n']}",
            "timestamp": f"2026-03-01T12:00:{counter['n']:02d}.000Z",
        }
        fields.update(overrides)
        return PendingEvent(**fields)

    return _make
