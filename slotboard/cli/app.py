"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Annotated, TypeVar

import pendulum
import typer
from rich.console import Console
from rich.table import Table

from ..adapters.ai_parser import HttpSlotParser
from ..adapters.board_store import BoardStore
from ..adapters.memory_store import MemoryTabularStore
from ..adapters.sheets_client import SheetsClient
from ..config import AppConfig, get_default_config_path
from ..domain.decomposition import DisplayDecomposer
from ..domain.exceptions import PersistenceError, SlotboardError
from ..domain.statistics import totals
from ..services.board_session import BoardSession, PendingMutation, SyncStatus

app = typer.Typer(
    name="slotboard",
    help="Record, book and review interviewer availability",
    add_completion=False
)

console = Console()

T = TypeVar("T")

WEEKDAY_HEADERS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use a local JSON file instead of the spreadsheet.")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    slotboard keeps a coordinator's availability board in a spreadsheet.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    config_path = config_file or get_default_config_path()
    if mock and not config_path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _report_failure(mutation: Optional[PendingMutation], error: PersistenceError) -> None:
    what = mutation.description if mutation else "reload"
    console.print(f"[bold red]Not saved ({what}):[/bold red] {error}")


def _run(
    config: AppConfig,
    mock: bool,
    action: Callable[[BoardSession], Awaitable[T]],
    load: bool = True,
) -> T:
    """
    Build a session, load the board, run ``action`` and wait for all writes.
    """
    if mock:
        tabular = MemoryTabularStore(data_file=config.get_mock_data_file())
    else:
        token = config.store.resolve_access_token()
        if not token:
            console.print(
                f"[bold red]Error:[/bold red] No access token. Set {config.store.token_env} "
                "or store.access_token in the config."
            )
            raise typer.Exit(1)
        tabular = SheetsClient(
            spreadsheet_id=config.store.spreadsheet_id,
            access_token=token,
            api_base_url=config.store.api_base_url,
            timeout=config.store.timeout_seconds,
        )

    store = BoardStore(tabular, cache_ttl_seconds=config.store.cache_ttl_seconds)
    session = BoardSession(
        store,
        decomposer=DisplayDecomposer(
            step_minutes=config.display.step_minutes,
            max_units=config.display.max_units,
        ),
        palette=config.palette,
        on_error=_report_failure,
    )

    async def runner() -> T:
        if mock:
            await session.ensure_tables()
        if load:
            await session.load()
        try:
            return await action(session)
        finally:
            await session.drain()

    try:
        result = asyncio.run(runner())
    finally:
        if mock:
            tabular.save()
    return result


def _finish(mutation: PendingMutation, success: str) -> None:
    if mutation.status == SyncStatus.PERSISTED:
        console.print(f"[green]✓ {success}[/green]")
    elif mutation.status in (SyncStatus.REVERTED, SyncStatus.FAILED):
        raise typer.Exit(1)


def _parse_month(value: Optional[str]) -> pendulum.Date:
    if not value:
        return pendulum.today().date()
    try:
        return pendulum.from_format(f"{value}-01", "YYYY-MM-DD").date()
    except ValueError as e:
        console.print(f"[red]Could not parse month (expected YYYY-MM): {e}[/red]")
        raise typer.Exit(1)


def _parse_range(value: str) -> tuple:
    start, sep, end = value.partition("-")
    if not sep:
        console.print(f"[red]Time range must look like 09:00-12:00, got {value!r}[/red]")
        raise typer.Exit(1)
    return start.strip(), end.strip()


def _guard(command: Callable[[], None]) -> None:
    try:
        command()
    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except (SlotboardError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def init_store(config_file: ConfigOption = None, mock: MockOption = False):
    """
    Create the Slots, Interviewers and Notes tables if they are missing.
    """
    def command():
        config = _load_config(config_file, mock)

        async def action(session: BoardSession):
            return await session.ensure_tables()

        created = _run(config, mock, action, load=False)
        if created:
            console.print(f"[green]✓ Created tables: {', '.join(created)}[/green]")
        else:
            console.print("[green]✓ All tables present[/green]")

    _guard(command)


@app.command()
def show(
    month: Annotated[Optional[str], typer.Option("--month", "-m", help="Month to show (YYYY-MM). Defaults to the current month.")] = None,
    people: Annotated[Optional[List[str]], typer.Option("--person", "-p", help="Only show these people (repeatable).")] = None,
    keys: Annotated[bool, typer.Option("--keys", help="Print the unit key next to every entry.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the month calendar with availability in fixed-size units.
    """
    def command():
        config = _load_config(config_file, mock)
        shown = _parse_month(month)

        async def action(session: BoardSession):
            selected = None
            if people:
                selected = set()
                for name in people:
                    person = session.find_person(name)
                    if person is None:
                        console.print(f"[yellow]Warning: unknown person {name}, skipping[/yellow]")
                        continue
                    selected.add(person.id)
            names = {person.id: person.name for person in session.people}
            return session.month_view(shown.year, shown.month, selected), names

        days, names = _run(config, mock, action)

        table = Table(
            title=shown.format("MMMM YYYY"),
            show_header=True,
            header_style="bold cyan",
            show_lines=True,
        )
        for header in WEEKDAY_HEADERS:
            table.add_column(header, vertical="top")

        for week_start in range(0, len(days), 7):
            cells = []
            for day in days[week_start:week_start + 7]:
                style = "bold" if day.in_month else "dim"
                lines = [f"[{style}]{day.date.day}[/{style}]"]
                if day.note:
                    lines.append(f"[italic]{day.note.content}[/italic]")
                for unit in day.units:
                    marker = "[red]●[/red]" if unit.booked else "[green]○[/green]"
                    line = f"{marker} {unit.start_time} {names.get(unit.owner_id, '?')}"
                    if keys:
                        line += f" [dim]{unit.key}[/dim]"
                    lines.append(line)
                cells.append("\n".join(lines))
            table.add_row(*cells)

        console.print()
        console.print(table)
        console.print()

    _guard(command)


@app.command()
def add(
    name: Annotated[str, typer.Argument(help="Interviewer name; created if unknown.")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    end: Annotated[str, typer.Argument(help="End time (HH:MM)")],
    booked: Annotated[bool, typer.Option("--booked", help="Mark the new slot as booked.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Add one availability slot.
    """
    def command():
        config = _load_config(config_file, mock)

        async def action(session: BoardSession):
            return await session.add_slot(name, date, start, end, booked=booked).settled()

        _finish(_run(config, mock, action), f"Added {name} on {date} {start}-{end}")

    _guard(command)


@app.command()
def edit(
    key: Annotated[str, typer.Argument(help="Slot id or unit key (see `show --keys`).")],
    start: Annotated[str, typer.Argument(help="Start of the edited range (HH:MM)")],
    end: Annotated[str, typer.Argument(help="End of the edited range (HH:MM)")],
    booked: Annotated[bool, typer.Option("--booked/--open", help="Booked state of the edited range.")] = True,
    owner: Annotated[Optional[str], typer.Option("--owner", help="Hand the edited range to another interviewer.")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Book or resize a slot; the rest of the slot keeps its previous state.

    Examples:

        # Book 10:00-10:30 inside a 09:00-12:00 slot
        slotboard edit 3f2c... 10:00 10:30 --booked
    """
    def command():
        config = _load_config(config_file, mock)

        async def action(session: BoardSession):
            return await session.edit_slot(key, start, end, booked=booked, owner_name=owner).settled()

        mutation = _run(config, mock, action)
        state = "booked" if booked else "open"
        _finish(mutation, f"{start}-{end} is now {state}")
        if mutation.change and mutation.change.created:
            console.print(f"  Split off {len(mutation.change.created)} remainder slot(s)")

    _guard(command)


@app.command()
def delete(
    key: Annotated[str, typer.Argument(help="Slot id or unit key (see `show --keys`).")],
    start: Annotated[Optional[str], typer.Option("--from", help="Start of the range to cut out (HH:MM).")] = None,
    end: Annotated[Optional[str], typer.Option("--to", help="End of the range to cut out (HH:MM).")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Delete a slot, or cut a range out of it with --from/--to.
    """
    def command():
        config = _load_config(config_file, mock)

        async def action(session: BoardSession):
            return await session.delete_slot(key, start, end).settled()

        _finish(_run(config, mock, action), "Deleted")

    _guard(command)


@app.command()
def batch_add(
    name: Annotated[str, typer.Argument(help="Interviewer name; created if unknown.")],
    dates: Annotated[List[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD), repeatable.")],
    ranges: Annotated[List[str], typer.Option("--range", "-r", help="Time range like 09:00-12:00, repeatable.")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Add the same time ranges on several dates.
    """
    def command():
        config = _load_config(config_file, mock)
        time_ranges = [_parse_range(value) for value in ranges]

        async def action(session: BoardSession):
            return await session.batch_add(name, dates, time_ranges).settled()

        mutation = _run(config, mock, action)
        count = len(mutation.change.created) if mutation.change else 0
        _finish(mutation, f"Added {count} slot(s) for {name}")

    _guard(command)


@app.command()
def import_text(
    text: Annotated[str, typer.Argument(help="Free text such as 'Alex: 5/12 9am-11am'")],
    year: Annotated[Optional[int], typer.Option("--year", help="Year for dates without one.")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Import without asking.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Let the text parser propose slots, review them, and import them.
    """
    def command():
        config = _load_config(config_file, mock)
        parser = HttpSlotParser(config.ai.parse_url, timeout=config.ai.timeout_seconds)
        reference_year = year or pendulum.today().year

        proposals = parser.parse(text, reference_year)
        if not proposals:
            console.print("[yellow]⚠ The parser found no slots in the text.[/yellow]")
            return

        table = Table(title="Proposed slots", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="bold yellow")
        table.add_column("Date")
        table.add_column("Time")
        for proposal in proposals:
            table.add_row(proposal.interviewer_name, proposal.date, f"{proposal.start_time}-{proposal.end_time}")
        console.print(table)

        if not yes and not typer.confirm("Import these slots?", default=True):
            raise typer.Exit(0)

        async def action(session: BoardSession):
            return await session.import_parsed(proposals).settled()

        _finish(_run(config, mock, action), f"Imported {len(proposals)} slot(s)")

    _guard(command)


@app.command()
def note(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    content: Annotated[Optional[str], typer.Argument(help="Note text; empty deletes the note.")] = None,
    color: Annotated[str, typer.Option("--color", help="yellow, blue, green, red or purple")] = "yellow",
    remove: Annotated[bool, typer.Option("--delete", help="Delete the note of this day.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Set or delete the note of a day.
    """
    def command():
        config = _load_config(config_file, mock)

        async def action(session: BoardSession):
            if remove:
                return await session.delete_note(date).settled()
            return await session.save_note(date, content or "", color).settled()

        _finish(_run(config, mock, action), f"Note for {date} deleted" if remove else f"Note for {date} saved")

    _guard(command)


@app.command()
def stats(
    month: Annotated[Optional[str], typer.Option("--month", "-m", help="Month (YYYY-MM). Defaults to the current month.")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Available and booked units per interviewer for a month.
    """
    def command():
        config = _load_config(config_file, mock)
        shown = _parse_month(month)

        async def action(session: BoardSession):
            return session.statistics(shown.year, shown.month)

        entries = _run(config, mock, action)
        if not entries:
            console.print("[yellow]No availability recorded for this month.[/yellow]")
            return

        table = Table(
            title=f"Statistics {shown.format('YYYY-MM')}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Interviewer", style="bold yellow")
        table.add_column("Available", justify="right")
        table.add_column("Booked", justify="right")
        table.add_column("Total", justify="right")

        for entry in entries:
            table.add_row(
                entry.name,
                f"{entry.available_units:g}",
                f"{entry.booked_units:g}",
                f"{entry.total_units:g}",
            )

        available, booked = totals(entries, {entry.person_id for entry in entries})
        table.add_row("[bold]Total[/bold]", f"{available:g}", f"{booked:g}", f"{available + booked:g}")

        console.print()
        console.print(table)
        console.print()

    _guard(command)


@app.command()
def people(
    month: Annotated[Optional[str], typer.Option("--month", "-m", help="Only people with slots in this month (YYYY-MM).")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List all interviewers.
    """
    def command():
        config = _load_config(config_file, mock)
        shown = _parse_month(month) if month else None

        async def action(session: BoardSession):
            if shown is not None:
                return session.roster(shown.year, shown.month)
            return list(session.people)

        roster = _run(config, mock, action)
        if not roster:
            console.print("[yellow]No interviewers yet.[/yellow]")
            return

        table = Table(title="Interviewers", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="bold yellow")
        table.add_column("Colour")
        table.add_column("Id", style="dim")
        for person in roster:
            table.add_row(person.name, f"[{person.color}]■[/] {person.color}", person.id)

        console.print()
        console.print(table)
        console.print()

    _guard(command)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotboard[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
