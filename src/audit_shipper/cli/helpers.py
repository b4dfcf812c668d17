"""Shared CLI helpers: console, logging setup, config loading."""

from datetime import datetime, timedelta
from pathlib import Path
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from audit_shipper.config import ShipperConfig, load_config

console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through Rich (INFO, or DEBUG when verbose)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def load_config_or_exit(path: Path | None) -> ShipperConfig:
    """Load configuration, printing the error and exiting 1 if it is invalid."""
    try:
        return load_config(path)
    except ValueError as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise typer.Exit(1)


def parse_details(pairs: list[str] | None) -> dict[str, str]:
    """
    Parse ``key=value`` pairs from repeated --detail options.

    Raises:
        typer.BadParameter: If a pair has no ``=``
    """
    details: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--detail")
        details[key] = value
    return details


def require_sink_or_exit(config: ShipperConfig) -> None:
    """Exit 1 unless a remote sink URL is configured."""
    if not config.sink_url:
        console.print(
            "[red]No sink configured:[/red] set sink_url in the config file or AUDIT_SHIPPER_SINK_URL"
        )
        console.print("[dim]Undelivered events stay in the offline queue.[/dim]")
        raise typer.Exit(1)


def parse_until(value: str | None) -> datetime | None:
    """
    Parse the --until bound.

    A bare date (``YYYY-MM-DD``) covers that whole day, up to 23:59:59.999.
    Anything else is read as an ISO 8601 datetime (naive values are UTC).

    Raises:
        typer.BadParameter: If the value is neither
    """
    if value is None:
        return None
    try:
        day = datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        pass
    else:
        return day + timedelta(days=1, milliseconds=-1)

    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(
            f"Expected YYYY-MM-DD or an ISO 8601 datetime, got {value!r}", param_hint="--until"
        )
