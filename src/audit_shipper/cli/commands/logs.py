"""Audit log record and query CLI commands."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
import asyncio
import json

import typer
from rich.table import Table

from audit_shipper.cli.helpers import console, parse_details, parse_until, require_sink_or_exit
from audit_shipper.config import ShipperConfig
from audit_shipper.errors import DeliveryFailure, InvalidEvent, QueryFailure
from audit_shipper.events.models import CommittedEvent, LogFilters, PendingEvent
from audit_shipper.shipping.flush import FlushResult
from audit_shipper.shipping.service import AuditLogService

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S.%f"]


async def _record_and_flush(
    config: ShipperConfig,
    actor: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None,
    details: dict[str, str],
    ip_address: str | None,
) -> tuple[PendingEvent, FlushResult]:
    service = AuditLogService.from_config(config)
    try:
        service.set_current_actor(actor)
        event = service.record(
            action,
            entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=ip_address,
        )
        return event, await service.flush()
    finally:
        await service.close()


def record(
    ctx: typer.Context,
    action: str = typer.Argument(..., help="Action performed (e.g. login, update, grade_change)"),
    entity_type: str = typer.Argument(..., help="Type of entity affected (e.g. user, course)"),
    entity_id: Optional[str] = typer.Option(None, "--entity-id", help="ID of the affected entity"),
    actor: Optional[str] = typer.Option(None, "--actor", help="Actor ID to attach (anonymous if omitted)"),
    detail: Optional[List[str]] = typer.Option(
        None, "--detail", help="Extra context as key=value (repeatable)"
    ),
    ip_address: Optional[str] = typer.Option(None, "--ip", help="Client IP address"),
) -> None:
    """Record one audit event and ship it (with anything still queued offline).

    Examples:
        audit-shipper record login user --entity-id u-123 --actor u-123

        audit-shipper record grade_change grade --detail old=B --detail new=A
    """
    config: ShipperConfig = ctx.obj
    details = parse_details(detail)
    require_sink_or_exit(config)

    try:
        event, result = asyncio.run(
            _record_and_flush(config, actor, action, entity_type, entity_id, details, ip_address)
        )
    except InvalidEvent as exc:
        console.print(f"[red]Invalid event:[/red] {exc}")
        raise typer.Exit(1)
    except DeliveryFailure as exc:
        console.print(f"[yellow]⚠️  Delivery failed, event saved to offline queue:[/yellow] {exc}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Recorded [cyan]{event.action}[/cyan] on {event.entity_type} at {event.timestamp}")
    console.print(f"[dim]Delivered {result.delivered} audit events[/dim]")


async def _fetch(config: ShipperConfig, filters: LogFilters, offset: int, limit: int | None) -> list[CommittedEvent]:
    service = AuditLogService.from_config(config)
    try:
        return await service.fetch_logs(filters, offset=offset, limit=limit)
    finally:
        await service.close()


def logs(
    ctx: typer.Context,
    action: Optional[str] = typer.Option(None, "--action", help="Only this action"),
    actor: Optional[str] = typer.Option(None, "--actor", help="Only this actor ID"),
    since: Optional[datetime] = typer.Option(
        None, "--since", formats=_DATE_FORMATS, help="Events at or after this time (UTC)"
    ),
    until: Optional[str] = typer.Option(
        None, "--until", help="Events at or before this time (UTC); a bare date includes that whole day"
    ),
    offset: int = typer.Option(0, "--offset", min=0, help="Zero-based index of the first event"),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Page size (default from config)"),
    json_output: bool = typer.Option(False, "--json", help="Print raw JSON instead of a table"),
) -> None:
    """Show committed audit events, most recent first."""
    config: ShipperConfig = ctx.obj
    require_sink_or_exit(config)
    filters = LogFilters(action=action, actor_id=actor, start=since, end=parse_until(until))

    try:
        entries = asyncio.run(_fetch(config, filters, offset, limit))
    except QueryFailure as exc:
        console.print(f"[red]Query failed:[/red] {exc}")
        raise typer.Exit(1)

    if json_output:
        console.print_json(json.dumps([entry.model_dump(mode="json", by_alias=True) for entry in entries]))
        return

    if not entries:
        console.print("[yellow]No audit events found[/yellow]")
        return

    table = Table(title="Audit Log", show_header=True)
    table.add_column("Timestamp", style="cyan")
    table.add_column("Actor", style="magenta")
    table.add_column("Action", style="green")
    table.add_column("Entity")
    table.add_column("Details", overflow="fold")
    table.add_column("ID", style="dim")

    for entry in entries:
        entity = entry.entity_type if not entry.entity_id else f"{entry.entity_type}:{entry.entity_id}"
        details = ", ".join(f"{key}={value}" for key, value in entry.details_dict().items())
        table.add_row(
            entry.timestamp or "-",
            entry.actor_id or "-",
            entry.action,
            entity,
            details,
            entry.id,
        )

    console.print(table)
    console.print(f"[dim]Showing {len(entries)} events from offset {offset}[/dim]")
