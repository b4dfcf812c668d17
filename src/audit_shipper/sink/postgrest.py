"""PostgREST (Supabase) sink writing to and reading from an ``audit_logs`` table."""

from typing import Sequence
import logging

import httpx
from pydantic import ValidationError

from audit_shipper.errors import DeliveryFailure, QueryFailure
from audit_shipper.events.models import CommittedEvent, LogFilters, PendingEvent

logger = logging.getLogger(__name__)


class PostgrestSink:
    """
    RemoteSink backed by a PostgREST endpoint.

    Batches are inserted with one ``POST`` (a JSON array is a single
    statement on the server, so the insert is all-or-nothing). Reads map
    filters onto PostgREST operators (``eq.``, ``gte.``, ``lte.``).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = "audit_logs",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize sink.

        Args:
            base_url: Project URL (e.g. https://xyz.supabase.co)
            api_key: API key, sent as ``apikey`` and bearer token
            table: Target table name
            timeout: Transport timeout in seconds
            client: Optional preconfigured client (closed by the caller)
        """
        self.endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def insert_batch(self, events: Sequence[PendingEvent]) -> None:
        """
        Insert ``events`` in one request.

        Raises:
            DeliveryFailure: On transport errors or non-2xx responses
        """
        payload = [event.to_record() for event in events]
        headers = {**self._headers, "Prefer": "return=minimal"}
        try:
            response = await self._client.post(self.endpoint, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryFailure(
                f"Failed to insert {len(payload)} audit events into {self.endpoint}: {e}",
                batch_size=len(payload),
            ) from e

        logger.debug("Inserted %d audit events into %s", len(payload), self.endpoint)

    async def query(
        self,
        filters: LogFilters,
        offset: int,
        limit: int,
    ) -> list[CommittedEvent]:
        """
        Fetch one page of committed events, newest first.

        Raises:
            QueryFailure: On transport errors, non-2xx responses or
                unparseable rows
        """
        params = build_query_params(filters, offset, limit)
        try:
            response = await self._client.get(self.endpoint, params=params, headers=self._headers)
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPError as e:
            raise QueryFailure(f"Audit log query failed: {e}") from e
        except ValueError as e:
            raise QueryFailure(f"Audit log query returned invalid JSON: {e}") from e

        if not isinstance(rows, list):
            raise QueryFailure(f"Audit log query returned {type(rows).__name__}, expected a list")

        try:
            return [CommittedEvent.model_validate(row) for row in rows]
        except ValidationError as e:
            raise QueryFailure(f"Audit log query returned a malformed row: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_query_params(filters: LogFilters, offset: int, limit: int) -> list[tuple[str, str]]:
    """Translate filters and page window into PostgREST query parameters."""
    params: list[tuple[str, str]] = [("select", "*")]

    if filters.action_value:
        params.append(("action", f"eq.{filters.action_value}"))
    if filters.actor_value:
        params.append(("user_id", f"eq.{filters.actor_value}"))
    if filters.start_timestamp:
        params.append(("timestamp", f"gte.{filters.start_timestamp}"))
    if filters.end_timestamp:
        params.append(("timestamp", f"lte.{filters.end_timestamp}"))

    params.append(("order", "timestamp.desc"))
    params.append(("offset", str(offset)))
    params.append(("limit", str(limit)))
    return params
