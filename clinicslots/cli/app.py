"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import InMemoryClinicStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SchedulingError
from ..domain.models import AvailabilityResult
from ..services.availability import AvailabilityService
from ..services.booking import BookingService

app = typer.Typer(
    name="clinicslots",
    help="Doctor availability and appointment scheduling",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DemoOption = Annotated[
    bool,
    typer.Option("--demo", help="Use the bundled sample clinic instead of the configured data file."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show engine log output.")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.ERROR,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file: Optional[Path], demo: bool) -> AppConfig:
    """Load the config file; demo mode runs on defaults when none exists."""
    config_path = config_file or get_default_config_path()
    if demo and not config_path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _build_store(config: AppConfig, demo: bool) -> InMemoryClinicStore:
    if demo:
        return InMemoryClinicStore.sample(
            defaults=config.defaults,
            cancelled_status=config.cancelled_status,
        )

    if config.data_file is None:
        raise ValueError("No data_file configured. Set data_file in config.yaml or use --demo.")

    return InMemoryClinicStore.from_json(
        config.data_file,
        defaults=config.defaults,
        cancelled_status=config.cancelled_status,
    )


def _build_services(config_file: Optional[Path], demo: bool, verbose: bool):
    _configure_logging(verbose)
    config = _load_config(config_file, demo)
    store = _build_store(config, demo)
    availability = AvailabilityService.from_store(
        store,
        timezone=config.timezone,
        cancelled_status=config.cancelled_status,
    )
    return config, store, availability


def _parse_date_option(value: str, tz: str) -> pendulum.Date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _render_availability(result: AvailabilityResult) -> None:
    header = f"{result.doctor_id} · {result.date.format('dddd, DD.MM.YYYY')}"

    if not result.has_schedule:
        console.print(Panel.fit(
            f"[yellow]{result.unavailable_reason}[/yellow]",
            title=header
        ))
        return

    if not result.available_slots:
        console.print(Panel.fit("[yellow]No bookable slots left on this day.[/yellow]", title=header))
        return

    table = Table(
        title=f"{header} ({result.slot_duration_minutes} min slots)",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="bold")
    table.add_column("Status")

    for slot in result.available_slots:
        status = "[green]free[/green]" if slot.available else f"[red]{slot.reason}[/red]"
        table.add_row(slot.time, status)

    console.print()
    console.print(table)
    if result.is_fully_booked:
        console.print("[yellow]⚠ Fully booked.[/yellow]")
    console.print()


@app.command()
def availability(
    doctor_id: Annotated[str, typer.Argument(help="Doctor identifier")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    hospital: Annotated[Optional[str], typer.Option("--hospital", help="Only consider this hospital's schedules.")] = None,
    config_file: ConfigOption = None,
    demo: DemoOption = False,
    verbose: VerboseOption = False,
):
    """
    Show the slot list for one doctor on one date.

    Examples:

        clinicslots availability dr-ada 2026-11-02 --demo
    """
    try:
        config, _, service = _build_services(config_file, demo, verbose)
        target = _parse_date_option(day, config.timezone)
        result = asyncio.run(service.get_availability(doctor_id, target, hospital))
        _render_availability(result)

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def dates(
    doctor_id: Annotated[str, typer.Argument(help="Doctor identifier")],
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD), defaults to today")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD), defaults to start + 7 days")] = None,
    hospital: Annotated[Optional[str], typer.Option("--hospital", help="Only consider this hospital's schedules.")] = None,
    config_file: ConfigOption = None,
    demo: DemoOption = False,
    verbose: VerboseOption = False,
):
    """
    Classify each date in a range as available, fully booked or unavailable.
    """
    try:
        config, _, service = _build_services(config_file, demo, verbose)
        tz = config.timezone

        start_date = _parse_date_option(start, tz) if start else pendulum.today(tz).date()
        end_date = _parse_date_option(end, tz) if end else start_date.add(days=7)

        result = asyncio.run(service.get_available_dates(doctor_id, start_date, end_date, hospital))

        table = Table(
            title=f"{doctor_id}: {start_date.format('DD.MM.YYYY')} - {end_date.format('DD.MM.YYYY')}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Date", style="bold")
        table.add_column("Status")

        labels = {}
        for d in result.available_dates:
            labels[d] = "[green]available[/green]"
        for d in result.fully_booked_dates:
            labels[d] = "[yellow]fully booked[/yellow]"
        for d in result.unavailable_dates:
            labels[d] = "[red]unavailable[/red]"

        for d in result.all_dates():
            table.add_row(d.format("dd DD.MM.YYYY"), labels[d])

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def check(
    doctor_id: Annotated[str, typer.Argument(help="Doctor identifier")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:mm)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes, defaults to the doctor's")] = None,
    config_file: ConfigOption = None,
    demo: DemoOption = False,
    verbose: VerboseOption = False,
):
    """
    Check whether a proposed booking would overlap an existing one.
    """
    try:
        config, _, service = _build_services(config_file, demo, verbose)
        target = _parse_date_option(day, config.timezone)
        conflict = asyncio.run(service.check_booking_conflict(doctor_id, target, time, duration))

        if conflict is None:
            console.print(f"\n[green]✓ {time} on {target.isoformat()} is free.[/green]\n")
        else:
            console.print(f"\n[yellow]⚠ {conflict.message()}[/yellow]")
            console.print(f"   Overlaps: {', '.join(conflict.conflicting_appointment_ids)}\n")
            raise typer.Exit(2)

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    doctor_id: Annotated[str, typer.Argument(help="Doctor identifier")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:mm)")],
    patient: Annotated[str, typer.Option("--patient", "-p", help="Patient identifier")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes, defaults to the doctor's")] = None,
    hospital: Annotated[Optional[str], typer.Option("--hospital", help="Hospital the appointment takes place at.")] = None,
    config_file: ConfigOption = None,
    demo: DemoOption = False,
    verbose: VerboseOption = False,
):
    """
    Admit a booking into the loaded clinic data (in-process only, nothing is saved).
    """
    try:
        config, store, service = _build_services(config_file, demo, verbose)
        target = _parse_date_option(day, config.timezone)
        booking = BookingService(service, store)

        outcome = asyncio.run(booking.book(
            doctor_id=doctor_id,
            day=target,
            start_time=time,
            patient_id=patient,
            duration_minutes=duration,
            hospital_id=hospital,
        ))

        if outcome.booked:
            appointment = outcome.appointment
            console.print(Panel.fit(
                f"[bold green]✓ Booked[/bold green]\n\n"
                f"[bold]Appointment:[/bold] {appointment.appointment_id}\n"
                f"[bold]When:[/bold] {appointment.date.isoformat()} {appointment.start_time} "
                f"({appointment.duration_minutes} min)",
                title=doctor_id
            ))
        else:
            console.print(f"\n[yellow]⚠ {outcome.conflict.message()}[/yellow]\n")
            raise typer.Exit(2)

    except (FileNotFoundError, ValueError, SchedulingError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def list_doctors(
    config_file: ConfigOption = None,
    demo: DemoOption = False,
):
    """
    List all doctors in the clinic data.
    """
    try:
        _, store, _ = _build_services(config_file, demo, verbose=False)

        table = Table(
            title="Doctors",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("ID", style="bold yellow")
        table.add_column("Name")
        table.add_column("Slot", justify="right")
        table.add_column("Break", justify="right", style="dim")

        for doctor in store.doctors():
            table.add_row(
                doctor.doctor_id,
                doctor.name,
                f"{doctor.appointment_duration_minutes} min",
                f"{doctor.break_minutes} min",
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]clinicslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
