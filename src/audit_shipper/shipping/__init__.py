"""
Delivery and retrieval of audit events.

Responsibilities:
- Flush engine: batch delivery with requeue + durable snapshot on failure
- Scheduler: periodic flush on a fixed interval
- Query service: filtered, paginated reads from the sink
- AuditLogService: the facade producers and admin tools use
"""

from audit_shipper.shipping.flush import FlushEngine, FlushResult, FlushStatus
from audit_shipper.shipping.scheduler import FlushScheduler
from audit_shipper.shipping.query import DEFAULT_PAGE_SIZE, QueryService
from audit_shipper.shipping.service import AuditLogService

__all__ = [
    "FlushEngine",
    "FlushResult",
    "FlushStatus",
    "FlushScheduler",
    "DEFAULT_PAGE_SIZE",
    "QueryService",
    "AuditLogService",
]
