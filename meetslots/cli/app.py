"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Optional, Tuple

import pendulum
import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.json_store import JsonFileStore
from ..config import AppConfig, load_config
from ..domain.exceptions import InvalidZone, NotFound, SchedulingError
from ..domain.models import Weekday
from ..domain.slot_calculator import SlotCalculator
from ..domain.zones import format_local, get_zone
from ..services.availability import AvailabilityService
from ..services.booking import BookingService
from ..services.host_settings import HostSettingsService

app = typer.Typer(
    name="meetslots",
    help="Resolve and book meeting slots across time zones",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
DataOption = Annotated[Optional[Path], typer.Option("--data", help="Path to the JSON data file. Overrides the config.")]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _bootstrap(config_file: Optional[Path], data_file: Optional[Path]) -> Tuple[AppConfig, JsonFileStore]:
    """Load config and data store, exiting with a readable message on failure."""
    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    _configure_logging(config.log_level)

    try:
        store = JsonFileStore.load(data_file or config.data_file)
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    return config, store


def _build_calculator(config: AppConfig) -> SlotCalculator:
    return SlotCalculator(
        anchor=config.booking.projection_anchor,
        display_format=config.booking.display_format,
    )


@app.command()
def slots(
    event_type_id: Annotated[str, typer.Argument(help="Event type to book")],
    timezone: Annotated[Optional[str], typer.Option("--tz", help="Invitee's IANA time zone. Defaults to the configured zone.")] = None,
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD) in the invitee's zone. Defaults to today.")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print slots as JSON.")] = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List bookable slots for an event type on one date.

    Examples:

        meetslots slots quick-chat --tz Asia/Dubai --date 2026-01-07

        meetslots slots quick-chat --tz Europe/Berlin --json
    """
    config, store = _bootstrap(config_file, data_file)
    timezone = timezone or config.defaults.timezone

    try:
        get_zone(timezone)
    except InvalidZone as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    selected_date = date or pendulum.now(timezone).to_date_string()

    service = AvailabilityService(
        store=store,
        slot_calculator=_build_calculator(config),
        max_booking_days=config.booking.max_booking_days,
    )
    result = asyncio.run(
        service.get_available_slots(
            event_type_id=event_type_id,
            selected_date=selected_date,
            invitee_timezone=timezone,
        )
    )

    if not result.success:
        console.print(f"[bold red]Error:[/bold red] {result.error}")
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps([slot.to_dict() for slot in result.slots]))
        return

    console.print()
    if not result.slots:
        console.print(
            f"[yellow]⚠ No available slots on {selected_date}.[/yellow]\n"
            "Try another date."
        )
    else:
        console.print(f"[bold green]✓ {len(result.slots)} available slot(s) on {selected_date} ({timezone}):[/bold green]\n")
        for slot in result.slots:
            console.print(f"  {slot.format_display()}  [dim]{slot.start.to_iso8601_string()}[/dim]")
    console.print()


@app.command()
def book(
    event_type_id: Annotated[str, typer.Argument(help="Event type to book")],
    start: Annotated[str, typer.Option("--start", help="Slot start as ISO 8601, e.g. 2026-01-07T14:00:00Z")],
    name: Annotated[str, typer.Option("--name", help="Invitee name")],
    email: Annotated[str, typer.Option("--email", help="Invitee email")],
    timezone: Annotated[Optional[str], typer.Option("--tz", help="Invitee's IANA time zone. Defaults to the configured zone.")] = None,
    notes: Annotated[str, typer.Option("--notes", help="Optional notes for the host")] = "",
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Book a slot for an invitee.
    """
    config, store = _bootstrap(config_file, data_file)

    service = BookingService(store=store)
    result = asyncio.run(
        service.create_booking(
            {
                "event_type_id": event_type_id,
                "start_time": start,
                "invitee_name": name,
                "invitee_email": email,
                "invitee_timezone": timezone or config.defaults.timezone,
                "invitee_notes": notes,
            }
        )
    )

    if not result.success:
        console.print(f"[bold red]✗ Booking failed:[/bold red] {result.error}")
        raise typer.Exit(1)

    console.print(f"\n[bold green]✓ Booked![/bold green] Reservation ID: [bold]{result.booking_id}[/bold]\n")


@app.command()
def bookings(
    host_id: Annotated[str, typer.Argument(help="Host whose bookings to list")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List a host's upcoming bookings.
    """
    _, store = _bootstrap(config_file, data_file)

    try:
        _, host_timezone = asyncio.run(store.get_weekly_schedule(host_id))
    except NotFound as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    upcoming = asyncio.run(BookingService(store=store).get_upcoming_bookings(host_id))

    if not upcoming:
        console.print("[yellow]No upcoming bookings.[/yellow]")
        return

    table = Table(title=f"Upcoming bookings ({host_timezone})", show_header=True, header_style="bold cyan")
    table.add_column("When", style="bold yellow")
    table.add_column("Event type")
    table.add_column("Invitee")
    table.add_column("E-Mail", style="dim")

    for reservation in upcoming:
        table.add_row(
            format_local(reservation.interval.start, host_timezone, "ddd DD.MM.YYYY HH:mm"),
            reservation.event_type_id,
            reservation.invitee.name,
            reservation.invitee.email,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def schedule(
    host_id: Annotated[str, typer.Argument(help="Host whose schedule to show")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show a host's weekly availability.
    """
    _, store = _bootstrap(config_file, data_file)

    try:
        weekly, host_timezone = asyncio.run(HostSettingsService(store=store).get_availability(host_id))
    except NotFound as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Availability of {host_id} ({host_timezone})", show_header=True, header_style="bold cyan")
    table.add_column("Day", style="bold yellow")
    table.add_column("Blocks")

    for weekday in Weekday:
        blocks = weekly.blocks_for(weekday)
        table.add_row(weekday.label, ", ".join(str(block) for block in blocks) if blocks else "[dim]unavailable[/dim]")

    console.print()
    console.print(table)
    console.print()


@app.command()
def set_schedule(
    host_id: Annotated[str, typer.Argument(help="Host to update")],
    schedule_file: Annotated[Path, typer.Argument(help="YAML or JSON file with the weekly availability")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Replace a host's weekly availability.
    """
    _, store = _bootstrap(config_file, data_file)

    try:
        with open(schedule_file, "r", encoding="utf-8") as f:
            availability = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        console.print(f"[bold red]Error:[/bold red] Could not read {schedule_file}: {e}")
        raise typer.Exit(1)

    result = asyncio.run(HostSettingsService(store=store).update_schedule(host_id, availability))

    if not result.success:
        console.print(f"[bold red]Error:[/bold red] {result.error}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Availability updated for {host_id}.[/green]")


@app.command()
def set_timezone(
    host_id: Annotated[str, typer.Argument(help="Host to update")],
    timezone: Annotated[str, typer.Argument(help="IANA time zone, e.g. America/New_York")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Change a host's time zone.
    """
    _, store = _bootstrap(config_file, data_file)

    result = asyncio.run(HostSettingsService(store=store).update_timezone(host_id, timezone))

    if not result.success:
        console.print(f"[bold red]Error:[/bold red] {result.error}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Timezone for {host_id} set to {timezone}.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]meetslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
