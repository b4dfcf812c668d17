"""Audit log service: record, flush, identity and read path in one facade."""

from typing import Mapping
from uuid import UUID
import asyncio
import logging

from audit_shipper.config import ShipperConfig
from audit_shipper.errors import DeliveryFailure, InvalidEvent
from audit_shipper.events.clock import EventClock
from audit_shipper.events.durability import DurabilityAdapter
from audit_shipper.events.models import (
    AuditAction,
    AuditEntityType,
    CommittedEvent,
    LogFilters,
    PendingEvent,
    encode_details,
    parse_timestamp,
)
from audit_shipper.events.queue import EventQueue
from audit_shipper.events.store import DurableStore, FileKeyValueStore
from audit_shipper.shipping.flush import FlushEngine, FlushResult, FlushStatus
from audit_shipper.shipping.query import DEFAULT_PAGE_SIZE, QueryService
from audit_shipper.shipping.scheduler import FlushScheduler
from audit_shipper.sink.base import RemoteSink
from audit_shipper.sink.postgrest import PostgrestSink

logger = logging.getLogger(__name__)


class AuditLogService:
    """
    Batched, crash-safe audit event shipping.

    Lifecycle:
    - Construction loads the offline queue snapshot, so restored events sit
      ahead of anything recorded in this process.
    - ``start()`` (or ``async with``) launches the periodic flush.
    - ``close()`` stops the periodic flush and waits for in-flight background
      flushes. It does not flush; call ``flush()`` or ``clear_actor()`` first
      if a final delivery attempt is wanted.

    ``record()`` is synchronous and never waits on the network. When the
    queue reaches ``batch_threshold`` it schedules a flush on the owning event
    loop and returns.
    """

    def __init__(
        self,
        sink: RemoteSink,
        store: DurableStore,
        batch_threshold: int = 10,
        flush_interval: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: EventClock | None = None,
    ) -> None:
        if batch_threshold < 1:
            raise ValueError(f"batch_threshold must be at least 1, got {batch_threshold}")

        self.sink = sink
        self.batch_threshold = batch_threshold
        self.clock = clock or EventClock()
        self.durability = DurabilityAdapter(store)

        restored = self.durability.load_queue()
        self.queue = EventQueue(restored)
        if restored:
            logger.info("Restored %d undelivered audit events from offline queue", len(restored))
            self._observe_restored(restored[-1])

        self.engine = FlushEngine(self.queue, sink, self.durability)
        self.scheduler = FlushScheduler(self.engine.flush_in_background, flush_interval)
        self.queries = QueryService(sink, page_size)

        self._current_actor: str | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._background: set[asyncio.Task] = set()
        self._owns_sink = False

    @classmethod
    def from_config(
        cls,
        config: ShipperConfig,
        sink: RemoteSink | None = None,
    ) -> "AuditLogService":
        """
        Build a service from configuration.

        Uses a FileKeyValueStore under ``config.state_dir``. Without an
        explicit sink, a PostgrestSink is built from ``config.sink_url``.

        Raises:
            ValueError: If no sink is given and ``config.sink_url`` is not set
        """
        owns_sink = sink is None
        if sink is None:
            if not config.sink_url:
                raise ValueError(
                    "No sink configured: set sink_url in the config file or AUDIT_SHIPPER_SINK_URL"
                )
            sink = PostgrestSink(
                config.sink_url,
                config.sink_api_key,
                table=config.table,
                timeout=config.request_timeout,
            )

        service = cls(
            sink,
            FileKeyValueStore(config.state_dir),
            batch_threshold=config.batch_threshold,
            flush_interval=config.flush_interval,
            page_size=config.page_size,
        )
        service._owns_sink = owns_sink
        return service

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self.scheduler.start()

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.wait_for_background_flushes()
        if self._owns_sink and isinstance(self.sink, PostgrestSink):
            await self.sink.aclose()

    async def __aenter__(self) -> "AuditLogService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def wait_for_background_flushes(self) -> None:
        """Wait until every threshold-triggered flush scheduled so far has finished."""
        # Run spawns already queued from other threads
        await asyncio.sleep(0)
        while self._background:
            await asyncio.gather(*list(self._background))

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def current_actor(self) -> str | None:
        return self._current_actor

    def set_current_actor(self, actor_id: str | UUID | None) -> None:
        """Attach ``actor_id`` to every subsequently recorded event (None for anonymous)."""
        self._current_actor = str(actor_id) if actor_id is not None else None

    async def clear_actor(self) -> FlushResult:
        """
        Flush, then drop the current actor.

        A failed flush does not discard anything: the events stay queued (and
        persisted) and the service continues with the anonymous identity.
        """
        try:
            result = await self.flush()
        except DeliveryFailure as e:
            logger.warning(
                "Final flush before clearing actor failed, %d events remain queued: %s",
                len(self.queue),
                e,
            )
            result = FlushResult(failed=True)

        self._current_actor = None
        return result

    def begin_session(self, actor_id: str | UUID) -> PendingEvent:
        """Set the current actor and record a login."""
        self.set_current_actor(actor_id)
        return self.record(AuditAction.LOGIN, AuditEntityType.USER, entity_id=str(actor_id))

    async def end_session(self) -> FlushResult:
        """Record a logout for the current actor, then flush and clear it."""
        self.record(AuditAction.LOGOUT, AuditEntityType.USER, entity_id=self._current_actor)
        return await self.clear_actor()

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: str | None = None,
        details: Mapping[str, object] | str | None = None,
        ip_address: str | None = None,
    ) -> PendingEvent:
        """
        Queue an audit event.

        Args:
            action: Action performed (see AuditAction)
            entity_type: Type of entity affected (see AuditEntityType)
            entity_id: ID of the affected entity, if any
            details: Extra context, as a mapping or pre-serialized JSON
            ip_address: Client address, if known

        Returns:
            The queued event (timestamped now)

        Raises:
            InvalidEvent: If action or entity_type is empty
        """
        if not action or not action.strip():
            raise InvalidEvent("Audit event action must not be empty")
        if not entity_type or not entity_type.strip():
            raise InvalidEvent("Audit event entity_type must not be empty")

        encoded = encode_details(details)
        actor = self._current_actor

        event, size = self.queue.append_new(
            lambda: PendingEvent(
                actor_id=actor,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=encoded,
                ip_address=ip_address,
                timestamp=self.clock.now(),
            )
        )

        if size >= self.batch_threshold:
            self._schedule_flush()
        return event

    async def flush(self) -> FlushResult:
        """
        Deliver everything queued now.

        Raises:
            DeliveryFailure: If the sink rejected the batch (it stays queued)
        """
        return await self.engine.flush()

    @property
    def status(self) -> FlushStatus:
        return self.engine.status()

    def pending(self) -> list[PendingEvent]:
        """Events not yet acknowledged by the sink, oldest first."""
        return self.queue.snapshot()

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def fetch_logs(
        self,
        filters: LogFilters | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[CommittedEvent]:
        """
        Fetch committed events, most recent first.

        Raises:
            QueryFailure: If the sink query fails
        """
        return await self.queries.fetch(filters, offset, limit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _schedule_flush(self) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None:
            self._spawn_background_flush()
        elif self._loop is not None and self._loop.is_running():
            # Task creation happens on the owning loop so close() can await it
            self._loop.call_soon_threadsafe(self._spawn_background_flush)
        else:
            logger.debug("No running event loop, threshold flush deferred to next trigger")

    def _spawn_background_flush(self) -> None:
        task = asyncio.get_running_loop().create_task(self.engine.flush_in_background())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _observe_restored(self, last: PendingEvent) -> None:
        try:
            self.clock.observe(parse_timestamp(last.timestamp))
        except ValueError:
            logger.debug("Restored event has unparseable timestamp %r", last.timestamp)
