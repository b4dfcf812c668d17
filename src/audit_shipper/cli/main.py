"""audit-shipper command line entry point."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from audit_shipper.cli.commands import logs as logs_commands
from audit_shipper.cli.commands import queue as queue_commands
from audit_shipper.cli.helpers import configure_logging, load_config_or_exit

app = typer.Typer(
    name="audit-shipper",
    help="Record, ship and query audit events.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", help="YAML config file (default ~/.audit-shipper/config.yaml)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose)
    ctx.obj = load_config_or_exit(config)


app.add_typer(queue_commands.app, name="queue")
app.command("record")(logs_commands.record)
app.command("logs")(logs_commands.logs)


if __name__ == "__main__":
    app()
