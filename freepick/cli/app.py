"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Annotated

import pendulum
import typer
from pendulum import Date
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.google_calendar_client import GoogleCalendarClient
from ..adapters.mock_calendar_client import MockCalendarClient
from ..adapters.token_store import TokenStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import FreePickError
from ..domain.models import AvailabilityTrace
from ..services.availability_finder import AvailabilityFinderService

app = typer.Typer(
    name="freepick",
    help="Share your open Google Calendar time as copyable text",
    add_completion=False
)

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load an explicit config file, the default one, or built-in defaults."""
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()


def _parse_date(value: str, tz: str, label: str) -> Date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse {label} '{value}': {e}[/red]")
        raise typer.Exit(1)


def _determine_date_range(
    *,
    tz: str,
    this_week: bool,
    next_week: bool,
    start_option: Optional[str],
    end_option: Optional[str]
):
    """
    Resolve the desired date range based on shortcut flags or explicit dates.
    Returns (start_date, end_date).
    """
    if this_week and next_week:
        console.print("[red]Error: --this-week and --next-week cannot be combined.[/red]")
        raise typer.Exit(1)

    today = pendulum.now(tz).date()

    if this_week:
        return today, today.end_of("week")

    if next_week:
        next_monday = today.next(pendulum.MONDAY)
        return next_monday, next_monday.add(days=6)

    start_date = _parse_date(start_option, tz, "start date") if start_option else today
    end_date = _parse_date(end_option, tz, "end date") if end_option else start_date.add(days=7)

    return start_date, end_date


def _build_calendar_client(config: AppConfig, mock: bool):
    if mock:
        return MockCalendarClient()
    token = TokenStore().get_access_token()
    return GoogleCalendarClient(access_token=token, timeout=config.request_timeout)


def _print_trace(trace: AvailabilityTrace) -> None:
    table = Table(title="Trace", show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold")
    table.add_column("Events", justify="right")
    table.add_column("Birthdays", justify="right")
    table.add_column("All-day skipped", justify="right")
    table.add_column("Gaps", justify="right")
    table.add_column("Slots", justify="right")

    for day in trace.days:
        table.add_row(
            day.date.to_date_string(),
            str(day.events_considered),
            str(day.birthdays_excluded),
            str(day.all_day_excluded),
            str(day.gaps),
            str(day.slots),
        )

    console.print(table)
    if trace.skipped_dates:
        skipped = ", ".join(day.to_date_string() for day in trace.skipped_dates)
        console.print(f"[dim]Skipped (excluded weekdays): {skipped}[/dim]")


@app.command()
def find(
    calendars: Annotated[Optional[List[str]], typer.Option("--calendar", "-C", help="Calendar id or configured alias. Repeatable.")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD), inclusive")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot duration in minutes")] = None,
    start_hour: Annotated[Optional[int], typer.Option("--start-hour", help="Working hours start (0-23)")] = None,
    end_hour: Annotated[Optional[int], typer.Option("--end-hour", help="Working hours end (0-23)")] = None,
    buffer_before: Annotated[Optional[int], typer.Option("--buffer-before", help="Minutes kept free before each event")] = None,
    buffer_after: Annotated[Optional[int], typer.Option("--buffer-after", help="Minutes kept free after each event")] = None,
    merge: Annotated[Optional[bool], typer.Option("--merge/--no-merge", help="Show whole free intervals instead of fixed slots.")] = None,
    ignore_all_day: Annotated[Optional[bool], typer.Option("--ignore-all-day/--block-all-day", help="Ignore all-day events (birthdays are always ignored).")] = None,
    exclude_days: Annotated[Optional[List[int]], typer.Option("--exclude-day", "-x", help="Weekday to skip, 0=Sunday .. 6=Saturday. Repeatable.")] = None,
    no_exclude: Annotated[bool, typer.Option("--no-exclude", help="Search every weekday, overriding excluded days from the config.")] = False,
    locale: Annotated[Optional[str], typer.Option("--locale", help="Output language: ja or en")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use bundled mock data instead of Google Calendar.")] = False,
    this_week: Annotated[bool, typer.Option("--this-week", help="Search from today until the end of this week.")] = False,
    next_week: Annotated[bool, typer.Option("--next-week", help="Search next week (Monday-Sunday).")] = False,
    trace: Annotated[bool, typer.Option("--trace", help="Show how each day was computed.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Find open time and print it as shareable text.

    Examples:

        # Next 7 days from the primary calendar
        freepick find

        # Two calendars, 60 minute slots, 15 minutes buffer after events
        freepick find -C primary -C team --duration 60 --buffer-after 15

        # Whole free intervals next week, ignoring all-day events
        freepick find --next-week --merge --ignore-all-day

        # Include weekends
        freepick find --no-exclude

        # Use mock data (no token needed)
        freepick find --mock --start 2025-01-06 --end 2025-01-10
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        tz = config.timezone

        start_date, end_date = _determine_date_range(
            tz=tz,
            this_week=this_week,
            next_week=next_week,
            start_option=start,
            end_option=end
        )

        calendar_ids = config.resolve_calendars(calendars) if calendars else None

        if no_exclude:
            if exclude_days:
                raise ValueError("--no-exclude cannot be combined with --exclude-day")
            exclude_days = []

        slot_config = config.build_slot_config(
            start_date,
            end_date,
            calendar_ids=calendar_ids,
            duration_minutes=duration,
            start_hour=start_hour,
            end_hour=end_hour,
            buffer_before_minutes=buffer_before,
            buffer_after_minutes=buffer_after,
            merge_consecutive=merge,
            ignore_all_day_events=ignore_all_day,
            exclude_days=exclude_days,
        )
        slot_config.validate()

        if mock:
            console.print("[yellow]⚠  MOCK MODE: using bundled test data[/yellow]\n")

        hours = slot_config.working_hours
        console.print("[bold cyan]📊 Search:[/bold cyan]")
        console.print(f"   Calendars: {', '.join(slot_config.calendar_ids)}")
        console.print(f"   Dates: {start_date.to_date_string()} - {end_date.to_date_string()} ({tz})")
        console.print(f"   Working hours: {hours.start_hour:02d}:00 - {hours.end_hour:02d}:00")
        if slot_config.merge_consecutive:
            console.print("   Slots: whole free intervals")
        else:
            console.print(f"   Slots: {slot_config.slot_duration_minutes} minutes")
        console.print()

        client = _build_calendar_client(config, mock)
        service = AvailabilityFinderService(
            calendar_client=client,
            fetch_timeout=config.request_timeout,
        )

        report = asyncio.run(
            service.find_availability(
                slot_config,
                trace=trace,
                locale=locale or config.locale,
            )
        )

        if report.partial_failure is not None:
            for failure in report.partial_failure.failures:
                console.print(
                    f"[yellow]⚠ Calendar {failure.calendar_id} could not be read: {failure.reason}[/yellow]"
                )
            console.print("[yellow]The slots below only reflect the remaining calendars.[/yellow]\n")

        result = report.result
        if result.slots:
            console.print(f"[bold green]✓ {result.total_slots} slot(s) found[/bold green]\n")

        # Plain print keeps the text copyable without rich markup
        print(result.formatted_text)

        if trace and result.trace is not None:
            _print_trace(result.trace)

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except (FreePickError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def list_calendars(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Path to config file"
    ),
    mock: bool = typer.Option(False, "--mock", help="List the mock calendars.")
):
    """
    List the calendars of the connected account, plus configured aliases.
    """
    try:
        config = _load_config(config_file)
        client = _build_calendar_client(config, mock)
        calendars = client.list_calendars()

        if not calendars:
            console.print("[yellow]No calendars found.[/yellow]")
            return

        aliases = {alias.calendar_id: alias.name for alias in config.calendars}

        table = Table(
            title="Calendars",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Name", style="bold yellow")
        table.add_column("Calendar id", style="dim")
        table.add_column("Alias")
        table.add_column("Access")

        for calendar in calendars:
            name = calendar["summary"] + (" (primary)" if calendar.get("primary") else "")
            table.add_row(
                name,
                calendar["id"],
                aliases.get(calendar["id"], ""),
                calendar.get("access_role", ""),
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, FreePickError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def set_token(
    token: str = typer.Option(
        ...,
        prompt="Google access token",
        hide_input=True,
        help="OAuth access token with the calendar.readonly scope"
    )
):
    """
    Store a Google Calendar access token for later runs.
    """
    try:
        store = TokenStore()
        store.save_token(token)
        if store.insecure_storage_warning:
            console.print(f"[yellow]⚠ {store.insecure_storage_warning}[/yellow]")
        console.print(f"\n[green]✓ Token saved ({store.cache_backend}).[/green]\n")

    except FreePickError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def clear_token():
    """
    Remove the stored access token.
    """
    TokenStore().clear()
    console.print("\n[green]✓ Token removed.[/green]\n")


@app.command()
def test_auth(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Path to config file"
    )
):
    """
    Test Google Calendar access with the stored token.
    """
    try:
        config = _load_config(config_file)
        client = _build_calendar_client(config, mock=False)
        calendar = client.test_connection()

        console.print(Panel.fit(
            f"[bold green]✓ Connected to Google Calendar[/bold green]\n\n"
            f"[bold]Calendar:[/bold] {calendar.get('summary', 'N/A')}\n"
            f"[bold]Id:[/bold] {calendar.get('id', 'N/A')}\n"
            f"[bold]Time zone:[/bold] {calendar.get('timeZone', 'N/A')}",
            title="✓ Connection test"
        ))
        console.print()

    except (FileNotFoundError, FreePickError, ValueError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]freepick[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
