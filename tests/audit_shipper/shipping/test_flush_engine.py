"""Tests for the flush engine: batching, requeue on failure, mutual exclusion."""

import asyncio
import logging

import pytest

from audit_shipper.errors import DeliveryFailure
from audit_shipper.events.durability import OFFLINE_QUEUE_KEY, DurabilityAdapter
from audit_shipper.events.queue import EventQueue
from audit_shipper.shipping.flush import FlushEngine, FlushResult


@pytest.fixture
def engine(sink, store):
    return FlushEngine(EventQueue(), sink, DurabilityAdapter(store))


@pytest.mark.asyncio
async def test_flush_empty_queue_is_noop(engine, sink):
    result = await engine.flush()

    assert result == FlushResult(delivered=0)
    assert sink.attempts == []


@pytest.mark.asyncio
async def test_flush_delivers_in_record_order(engine, sink, make_event):
    events = [make_event(f"action-{i}") for i in range(5)]
    for event in events:
        engine.queue.append(event)

    result = await engine.flush()

    assert result.delivered == 5
    assert sink.batches == [events]
    assert len(engine.queue) == 0


@pytest.mark.asyncio
async def test_failed_flush_requeues_persists_and_raises(engine, sink, store, make_event, caplog):
    events = [make_event(), make_event()]
    for event in events:
        engine.queue.append(event)
    sink.failures = [DeliveryFailure("sink down", batch_size=2)]
    caplog.set_level(logging.WARNING)

    with pytest.raises(DeliveryFailure):
        await engine.flush()

    assert engine.queue.snapshot() == events
    assert engine.durability.load_queue() == events
    assert isinstance(engine.last_error, DeliveryFailure)
    assert engine.consecutive_failures == 1
    assert any("saved to offline queue" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_unexpected_sink_error_is_wrapped(engine, sink, make_event):
    engine.queue.append(make_event())
    sink.failures = [ConnectionResetError("peer reset")]

    with pytest.raises(DeliveryFailure) as exc_info:
        await engine.flush()

    assert isinstance(exc_info.value.__cause__, ConnectionResetError)
    assert exc_info.value.batch_size == 1
    assert len(engine.queue) == 1


@pytest.mark.asyncio
async def test_retry_after_failure_contains_every_earlier_event(engine, sink, make_event):
    first = [make_event(), make_event()]
    for event in first:
        engine.queue.append(event)
    sink.failures = [DeliveryFailure("sink down")]

    with pytest.raises(DeliveryFailure):
        await engine.flush()

    later = make_event()
    engine.queue.append(later)
    result = await engine.flush()

    assert result.delivered == 3
    assert sink.attempts == [first, first + [later]]
    assert sink.batches == [first + [later]]


@pytest.mark.asyncio
async def test_success_clears_snapshot_and_error_state(engine, sink, store, make_event):
    engine.queue.append(make_event())
    sink.failures = [DeliveryFailure("sink down")]
    with pytest.raises(DeliveryFailure):
        await engine.flush()
    assert store.get(OFFLINE_QUEUE_KEY) is not None

    await engine.flush()

    assert store.get(OFFLINE_QUEUE_KEY) is None
    assert engine.last_error is None
    assert engine.consecutive_failures == 0
    assert engine.last_success_at is not None


@pytest.mark.asyncio
async def test_events_recorded_during_failed_attempt_follow_the_batch(engine, sink, make_event):
    a, b, c = make_event("a"), make_event("b"), make_event("c")
    engine.queue.append(a)
    engine.queue.append(b)
    sink.gate = asyncio.Event()
    sink.failures = [DeliveryFailure("sink down")]

    attempt = asyncio.create_task(engine.flush())
    await sink.started.wait()
    assert len(engine.queue) == 0

    engine.queue.append(c)
    sink.gate.set()
    with pytest.raises(DeliveryFailure):
        await attempt

    assert sink.attempts == [[a, b]]
    assert engine.queue.snapshot() == [a, b, c]
    assert engine.durability.load_queue() == [a, b, c]


@pytest.mark.asyncio
async def test_events_recorded_during_successful_attempt_stay_queued(engine, sink, make_event):
    a, b = make_event("a"), make_event("b")
    engine.queue.append(a)
    sink.gate = asyncio.Event()

    attempt = asyncio.create_task(engine.flush())
    await sink.started.wait()
    engine.queue.append(b)
    sink.gate.set()
    result = await attempt

    assert result.delivered == 1
    assert sink.batches == [[a]]
    assert engine.queue.snapshot() == [b]


@pytest.mark.asyncio
async def test_background_flush_absorbs_failure(engine, sink, make_event):
    engine.queue.append(make_event())
    sink.failures = [DeliveryFailure("sink down")]

    result = await engine.flush_in_background()

    assert result == FlushResult(failed=True)
    assert isinstance(engine.last_error, DeliveryFailure)
    assert len(engine.queue) == 1


@pytest.mark.asyncio
async def test_background_trigger_ignored_while_flush_in_flight(engine, sink, make_event):
    engine.queue.append(make_event())
    sink.gate = asyncio.Event()

    attempt = asyncio.create_task(engine.flush())
    await sink.started.wait()
    assert engine.in_flight

    engine.queue.append(make_event())
    skipped = await engine.flush_in_background()
    sink.gate.set()
    await attempt

    assert skipped == FlushResult(skipped=True)
    assert len(sink.attempts) == 1
    assert len(engine.queue) == 1


@pytest.mark.asyncio
async def test_explicit_flush_waits_for_in_flight_attempt(engine, sink, make_event):
    first, second = make_event("first"), make_event("second")
    engine.queue.append(first)
    sink.gate = asyncio.Event()

    in_flight = asyncio.create_task(engine.flush())
    await sink.started.wait()
    engine.queue.append(second)
    waiting = asyncio.create_task(engine.flush())
    await asyncio.sleep(0)
    assert not waiting.done()

    sink.gate.set()
    await in_flight
    result = await waiting

    assert result.delivered == 1
    assert sink.batches == [[first], [second]]


@pytest.mark.asyncio
async def test_cancelled_attempt_requeues_batch(engine, sink, make_event):
    events = [make_event(), make_event()]
    for event in events:
        engine.queue.append(event)
    sink.gate = asyncio.Event()

    attempt = asyncio.create_task(engine.flush())
    await sink.started.wait()
    attempt.cancel()
    with pytest.raises(asyncio.CancelledError):
        await attempt

    assert engine.queue.snapshot() == events
    assert engine.durability.load_queue() == events


@pytest.mark.asyncio
async def test_status_reports_engine_state(engine, sink, make_event):
    engine.queue.append(make_event())
    sink.failures = [DeliveryFailure("sink down")]
    await engine.flush_in_background()

    status = engine.status()

    assert status.pending == 1
    assert status.in_flight is False
    assert status.consecutive_failures == 1
    assert status.last_success_at is None
