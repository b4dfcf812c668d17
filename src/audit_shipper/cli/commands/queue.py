"""Offline queue CLI commands."""

from __future__ import annotations

import asyncio

import typer
from rich.table import Table

from audit_shipper.cli.helpers import console, require_sink_or_exit
from audit_shipper.config import ShipperConfig
from audit_shipper.errors import DeliveryFailure
from audit_shipper.events.durability import DurabilityAdapter
from audit_shipper.events.store import FileKeyValueStore
from audit_shipper.shipping.flush import FlushResult
from audit_shipper.shipping.service import AuditLogService

app = typer.Typer(
    name="queue",
    help="Inspect and ship the offline queue of undelivered audit events.",
    no_args_is_help=True,
)


@app.command("show")
def show_cmd(ctx: typer.Context) -> None:
    """List undelivered events saved after a failed flush."""
    config: ShipperConfig = ctx.obj
    events = DurabilityAdapter(FileKeyValueStore(config.state_dir)).load_queue()

    if not events:
        console.print("[green]Offline queue is empty[/green]")
        return

    table = Table(title=f"Offline Queue ({len(events)} events)", show_header=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Actor", style="magenta")
    table.add_column("Action", style="green")
    table.add_column("Entity")
    table.add_column("Details", overflow="fold")

    for index, event in enumerate(events, start=1):
        entity = event.entity_type if not event.entity_id else f"{event.entity_type}:{event.entity_id}"
        table.add_row(
            str(index),
            event.timestamp,
            event.actor_id or "-",
            event.action,
            entity,
            event.details or "",
        )

    console.print(table)


async def _flush(config: ShipperConfig) -> FlushResult:
    service = AuditLogService.from_config(config)
    try:
        return await service.flush()
    finally:
        await service.close()


@app.command("flush")
def flush_cmd(ctx: typer.Context) -> None:
    """Ship the offline queue to the sink now."""
    config: ShipperConfig = ctx.obj
    require_sink_or_exit(config)

    try:
        result = asyncio.run(_flush(config))
    except DeliveryFailure as exc:
        console.print(f"[red]Flush failed:[/red] {exc}")
        console.print("[dim]Events remain in the offline queue and will be retried.[/dim]")
        raise typer.Exit(1)

    if result.delivered == 0:
        console.print("[green]Nothing to flush[/green]")
    else:
        console.print(f"[green]✓[/green] Delivered {result.delivered} audit events")
