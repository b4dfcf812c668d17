"""
Durable, batched audit event shipping.

Events are buffered locally, flushed to a remote sink in batches (by count
threshold or on a timer), persisted to a local store when delivery fails, and
read back through a filtered, paginated query path.

Storage Format:
- Offline queue: ~/.audit-shipper/state/audit_log_offline_queue.json (JSON array)
- Config: ~/.audit-shipper/config.yaml
"""

from audit_shipper.errors import (
    AuditShipperError,
    DeliveryFailure,
    DurabilityCorruption,
    InvalidEvent,
    QueryFailure,
)
from audit_shipper.events.models import (
    AuditAction,
    AuditEntityType,
    CommittedEvent,
    LogFilters,
    PendingEvent,
)
from audit_shipper.shipping.flush import FlushResult
from audit_shipper.shipping.service import AuditLogService

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLogService",
    "AuditShipperError",
    "CommittedEvent",
    "DeliveryFailure",
    "DurabilityCorruption",
    "FlushResult",
    "InvalidEvent",
    "LogFilters",
    "PendingEvent",
    "QueryFailure",
]
