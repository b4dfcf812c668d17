"""
Remote sink interface and implementations.

The sink is the external system of record: it accepts batches of pending
events and later serves committed events back to the read path.
"""

from audit_shipper.sink.base import RemoteSink
from audit_shipper.sink.memory import InMemorySink
from audit_shipper.sink.postgrest import PostgrestSink, build_query_params

__all__ = [
    "RemoteSink",
    "InMemorySink",
    "PostgrestSink",
    "build_query_params",
]
