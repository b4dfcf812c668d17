"""Audit event models and well-known vocabularies."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping
import json

from pydantic import BaseModel, ConfigDict, Field


class AuditAction:
    """Well-known audit actions. Any non-empty string is accepted."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LOGIN = "login"
    LOGOUT = "logout"
    EXPORT = "export"
    GRADE_CHANGE = "grade_change"


class AuditEntityType:
    """Well-known entity types. Any non-empty string is accepted."""
    COURSE = "course"
    ASSIGNMENT = "assignment"
    GRADE = "grade"
    USER = "user"
    ENROLLMENT = "enrollment"
    QUIZ = "quiz"
    MESSAGE = "message"
    ANNOUNCEMENT = "announcement"


class PendingEvent(BaseModel):
    """
    Audit record not yet acknowledged by the remote sink.

    Field names follow the ``audit_logs`` table on the wire (``user_id`` for
    the actor). No identifier is assigned locally; the sink mints one on
    acceptance.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    actor_id: str | None = Field(default=None, alias="user_id")
    action: str
    entity_type: str
    entity_id: str | None = None
    details: str | None = None  # compact JSON object
    ip_address: str | None = None
    timestamp: str  # UTC ISO 8601, millisecond precision

    def to_record(self) -> dict[str, object]:
        """Serialize to the wire/snapshot record."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, data: dict[str, object]) -> "PendingEvent":
        """
        Deserialize from a wire/snapshot record.

        Raises:
            pydantic.ValidationError: If required fields are missing
        """
        return cls.model_validate(data)


class CommittedEvent(BaseModel):
    """Remote sink's view of an accepted event (adds ``id`` and ``created_at``)."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    actor_id: str | None = Field(default=None, alias="user_id")
    action: str
    entity_type: str
    entity_id: str | None = None
    details: str | None = None
    ip_address: str | None = None
    timestamp: str | None = None
    created_at: str | None = None

    def details_dict(self) -> dict[str, object]:
        """Decode ``details`` (empty dict when absent or not a JSON object)."""
        if not self.details:
            return {}
        try:
            decoded = json.loads(self.details)
        except json.JSONDecodeError:
            return {}
        return decoded if isinstance(decoded, dict) else {}


@dataclass(frozen=True)
class LogFilters:
    """
    Read-path filters. Every field is optional; empty strings count as absent.

    Bounds are inclusive and compared against the event ``timestamp``.
    """
    action: str | None = None
    actor_id: str | None = None
    start: datetime | str | None = None
    end: datetime | str | None = None

    @property
    def start_timestamp(self) -> str | None:
        return _bound(self.start)

    @property
    def end_timestamp(self) -> str | None:
        return _bound(self.end)

    @property
    def action_value(self) -> str | None:
        return self.action or None

    @property
    def actor_value(self) -> str | None:
        return self.actor_id or None


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as UTC ISO 8601 with milliseconds and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode_details(details: Mapping[str, object] | str | None) -> str | None:
    """
    Encode event details to compact JSON.

    Strings are taken as already serialized. Empty mappings become None.
    """
    if details is None:
        return None
    if isinstance(details, str):
        return details or None
    if not details:
        return None
    return json.dumps(dict(details), separators=(",", ":"))


def _bound(value: datetime | str | None) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp (``Z`` suffix accepted) into an aware datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
