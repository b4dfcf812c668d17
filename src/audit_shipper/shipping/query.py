"""Read path over committed audit events."""

from audit_shipper.errors import QueryFailure
from audit_shipper.events.models import CommittedEvent, LogFilters
from audit_shipper.sink.base import RemoteSink

DEFAULT_PAGE_SIZE = 50


class QueryService:
    """Filtered, paginated retrieval from the sink. Never touches the local queue."""

    def __init__(self, sink: RemoteSink, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError(f"Page size must be at least 1, got {page_size}")
        self.sink = sink
        self.page_size = page_size

    async def fetch(
        self,
        filters: LogFilters | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[CommittedEvent]:
        """
        Fetch one page of committed events, most recent first.

        Args:
            filters: Optional filters; None or an empty LogFilters returns the
                latest events across all actors and actions
            offset: Zero-based index of the first event
            limit: Page size (defaults to ``page_size``)

        Raises:
            ValueError: If offset is negative or limit is below 1
            QueryFailure: If the sink query fails (not retried)
        """
        if offset < 0:
            raise ValueError(f"Offset must be non-negative, got {offset}")
        if limit is None:
            limit = self.page_size
        if limit < 1:
            raise ValueError(f"Limit must be at least 1, got {limit}")

        try:
            return await self.sink.query(filters or LogFilters(), offset, limit)
        except QueryFailure:
            raise
        except Exception as e:
            raise QueryFailure(f"Audit log query failed: {e}") from e
