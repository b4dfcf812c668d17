"""Unit tests for audit event models and helpers."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from audit_shipper.events.models import (
    AuditAction,
    AuditEntityType,
    CommittedEvent,
    LogFilters,
    PendingEvent,
    encode_details,
    format_timestamp,
    parse_timestamp,
)


def test_format_timestamp_uses_utc_milliseconds_and_z_suffix():
    moment = datetime(2026, 3, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
    assert format_timestamp(moment) == "2026-03-01T12:30:45.123Z"


def test_format_timestamp_converts_offsets_to_utc():
    moment = datetime(2026, 3, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
    assert format_timestamp(moment) == "2026-03-01T12:00:00.000Z"


def test_format_timestamp_treats_naive_as_utc():
    assert format_timestamp(datetime(2026, 3, 1, 12, 0, 0)) == "2026-03-01T12:00:00.000Z"


def test_parse_timestamp_accepts_z_suffix():
    parsed = parse_timestamp("2026-03-01T12:00:00.500Z")
    assert parsed == datetime(2026, 3, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)


def test_encode_details_is_compact_json():
    encoded = encode_details({"old": "B", "new": "A"})
    assert encoded == '{"old":"B","new":"A"}'
    assert json.loads(encoded) == {"old": "B", "new": "A"}


def test_encode_details_empty_mapping_is_none():
    assert encode_details({}) is None
    assert encode_details(None) is None
    assert encode_details("") is None


def test_encode_details_passes_strings_through():
    assert encode_details('{"k":"v"}') == '{"k":"v"}'


def test_pending_event_record_uses_wire_names():
    event = PendingEvent(
        actor_id="user-1",
        action=AuditAction.LOGIN,
        entity_type=AuditEntityType.USER,
        entity_id="user-1",
        timestamp="2026-03-01T12:00:00.000Z",
    )

    record = event.to_record()

    assert record == {
        "user_id": "user-1",
        "action": "login",
        "entity_type": "user",
        "entity_id": "user-1",
        "details": None,
        "ip_address": None,
        "timestamp": "2026-03-01T12:00:00.000Z",
    }
    assert PendingEvent.from_record(record) == event


def test_pending_event_requires_action_and_timestamp():
    with pytest.raises(ValidationError):
        PendingEvent.from_record({"entity_type": "course"})


def test_committed_event_allows_missing_timestamp():
    row = {
        "id": "5b1c7a1e-0000-4000-8000-000000000001",
        "user_id": None,
        "action": "export",
        "entity_type": "grade",
        "created_at": "2026-03-01T12:00:01.000Z",
    }

    event = CommittedEvent.model_validate(row)

    assert event.timestamp is None
    assert event.actor_id is None
    assert event.created_at == "2026-03-01T12:00:01.000Z"


def test_committed_event_details_dict():
    event = CommittedEvent(id="1", action="update", entity_type="grade", details='{"new":"A"}')
    assert event.details_dict() == {"new": "A"}

    broken = CommittedEvent(id="2", action="update", entity_type="grade", details="not json")
    assert broken.details_dict() == {}


def test_log_filters_treat_empty_strings_as_absent():
    filters = LogFilters(action="", actor_id="", start="", end=None)

    assert filters.action_value is None
    assert filters.actor_value is None
    assert filters.start_timestamp is None
    assert filters.end_timestamp is None


def test_log_filters_format_datetime_bounds():
    filters = LogFilters(
        start=datetime(2026, 3, 1, tzinfo=timezone.utc),
        end="2026-03-02T00:00:00.000Z",
    )

    assert filters.start_timestamp == "2026-03-01T00:00:00.000Z"
    assert filters.end_timestamp == "2026-03-02T00:00:00.000Z"
