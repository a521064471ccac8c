"""
Main Command-Line Interface for the OJT weekly cycle.

Provides a single entry point for administrators: inspecting the weekly
summary, starting and stopping the loop, advancing weeks, and installing the
cron schedule.
"""
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.table import Table
from typer import Option
from typing_extensions import Annotated

from ojt_cycle.application.exceptions import (
    AnchorRequiredError,
    ApplicationError,
    NotActiveError,
    StorageError,
)
from ojt_cycle.cli.status import DEFAULT_TIMEOUT_SECONDS, render_results, run_status_checks
from ojt_cycle.config import settings
from ojt_cycle.domain.cycle_service import AdvanceOutcome, AdvanceResult
from ojt_cycle.infrastructure import cron_manager, log_utils

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from ojt_cycle.application.weekly_summary import WeeklySummaryService

console = Console()

app = typer.Typer(
    name="ojt",
    help="Administer the OJT weekly report cycle.",
    add_completion=False,
)

_OUTCOME_STYLES = {
    AdvanceOutcome.CREATED: "green",
    AdvanceOutcome.ALREADY_PRESENT: "yellow",
    AdvanceOutcome.NOT_ACTIVE: "yellow",
    AdvanceOutcome.SKIPPED: "yellow",
    AdvanceOutcome.NO_HISTORY: "red",
}


def _build_service(at: Optional[str] = None) -> "WeeklySummaryService":
    """Lazy container lookup; ``at`` pins the clock to a simulated instant."""
    from ojt_cycle.application.weekly_summary import WeeklySummaryService
    from ojt_cycle.domain.clock import Clock, FixedClock
    from ojt_cycle.infrastructure.di_container import build_container, get_container

    if at is None:
        return get_container().resolve(WeeklySummaryService)

    instant = _parse_instant(at)
    return build_container(overrides={Clock: FixedClock(instant)}).resolve(WeeklySummaryService)


def _parse_instant(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        console.print("[red]Invalid --at value. Use YYYY-MM-DD or YYYY-MM-DDTHH:MM.[/red]")
        raise typer.Exit(code=1)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=settings.cycle_tz)
    return parsed


def _print_advance(result: AdvanceResult) -> None:
    style = _OUTCOME_STYLES.get(result.outcome, "white")
    console.print(f"[{style}]{result.outcome.value}[/{style}]: {result.message}")


@app.command()
def summary(
    at: Annotated[Optional[str], Option("--at", help="Evaluate as of this instant (ISO format).")] = None,
) -> None:
    """Show every week with each student's submission status."""
    service = _build_service(at)
    try:
        view = service.get_cycle_view()
    except StorageError as exc:
        console.print(f"[red]Could not load weekly summary: {exc}[/red]")
        raise typer.Exit(code=1)

    state = "[green]active[/green]" if view.loop_active else "[yellow]stopped[/yellow]"
    anchor = view.anchor_date.isoformat() if view.anchor_date else "-"
    console.print(f"Weekly loop: {state} (anchor {anchor})")

    if not view.weeks:
        console.print("[yellow]No weeks to show. Start the cycle with `ojt start --start-date`.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Week")
    table.add_column("Dates")
    for student in view.students:
        table.add_column(student.full_name)

    for row in view.weeks:
        cells = [str(row.window.week_number), f"{row.start_label} - {row.end_label}"]
        for student in view.students:
            status = row.submissions[student.id]
            if status.submitted:
                cells.append(f"[green]{status.status}[/green]")
            elif status.eligible_now:
                cells.append("[cyan]open[/cyan]")
            elif status.window_closed:
                cells.append("[red]missed[/red]")
            else:
                cells.append("-")
        table.add_row(*cells)
    console.print(table)


@app.command()
def weeks() -> None:
    """List the persisted week history."""
    service = _build_service()
    try:
        history = service.scheduler.week_store.list_all()
    except StorageError as exc:
        console.print(f"[red]Could not load weeks: {exc}[/red]")
        raise typer.Exit(code=1)

    if not history:
        console.print("[yellow]No weeks have been created yet.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Week")
    table.add_column("Start")
    table.add_column("End")
    for window in history:
        table.add_row(str(window.week_number), window.start_date.isoformat(), window.end_date.isoformat())
    console.print(table)


@app.command()
def start(
    start_date_str: Annotated[
        Optional[str],
        Option("--start-date", help="Start date of Week 1 in YYYY-MM-DD format. Required for the first week."),
    ] = None,
) -> None:
    """Start (or re-anchor) the weekly loop."""
    anchor: Optional[date] = None
    if start_date_str:
        try:
            anchor = datetime.strptime(start_date_str, "%Y-%m-%d").date()
        except ValueError:
            console.print("[red]Invalid start date format. Use YYYY-MM-DD.[/red]")
            raise typer.Exit(code=1)

    service = _build_service()
    try:
        result = service.start_cycle(anchor)
    except AnchorRequiredError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    except StorageError as exc:
        console.print(f"[red]Could not start the weekly loop: {exc}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]{result.message}[/green]")


@app.command()
def stop() -> None:
    """Stop the weekly loop. Existing weeks are kept."""
    service = _build_service()
    try:
        service.stop_cycle()
    except StorageError as exc:
        console.print(f"[red]Could not stop the weekly loop: {exc}[/red]")
        raise typer.Exit(code=1)
    console.print("[yellow]Weekly loop stopped.[/yellow]")


@app.command()
def advance(
    force: Annotated[bool, Option("--force", help="Create the next week now, even mid-week.")] = False,
    at: Annotated[Optional[str], Option("--at", help="Run as of this instant (ISO format).")] = None,
) -> None:
    """Advance to the next week if the current one has elapsed."""
    service = _build_service(at)
    try:
        if force:
            result = service.force_advance()
        else:
            result = service.scheduler.advance_if_due(service.scheduler.clock.now())
    except StorageError as exc:
        console.print(f"[red]Week advance failed: {exc}[/red]")
        raise typer.Exit(code=1)

    _print_advance(result)
    if result.outcome is AdvanceOutcome.NO_HISTORY:
        raise typer.Exit(code=1)


@app.command()
def submit(
    student_id: Annotated[str, Option("--student", help="Student identifier.")],
    week_number: Annotated[int, Option("--week", min=1, help="Week number to submit for.")],
    at: Annotated[Optional[str], Option("--at", help="Run as of this instant (ISO format).")] = None,
) -> None:
    """Record a pending weekly report for a student during the Saturday band."""
    service = _build_service(at)
    try:
        result = service.submit_for_student(student_id, week_number)
    except NotActiveError as exc:
        console.print(f"[yellow]{exc}[/yellow]")
        return
    except ApplicationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    console.print(f"{result.outcome.value}: {result.message}")


@app.command()
def status(
    timeout: Annotated[float, Option("--timeout", help="Override per-dependency timeout in seconds.")] = DEFAULT_TIMEOUT_SECONDS,
) -> None:
    """Check the database, the cycle tables and the weekly loop."""
    results = run_status_checks(timeout=timeout)
    typer.echo(render_results(results))
    exit_code = 0 if all(result.ok for result in results) else 1
    raise typer.Exit(code=exit_code)


@app.command(name="init-db")
def init_db() -> None:
    """Create the cycle tables if they do not exist."""
    service = _build_service()
    try:
        service.scheduler.week_store.ensure_schema()
    except StorageError as exc:
        console.print(f"[red]Schema creation failed: {exc}[/red]")
        raise typer.Exit(code=1)
    console.print("[green]Schema ready.[/green]")


@app.command()
def crontab(
    install: Annotated[bool, Option("--install", help="Install the schedule with crontab(1).")] = False,
) -> None:
    """Write (and optionally install) the weekly advance cron schedule."""
    path = cron_manager.save_crontab_file()
    console.print(f"Crontab saved to {path}")
    if install:
        try:
            backup = cron_manager.activate_crontab(path)
        except RuntimeError as exc:
            log_utils.error(str(exc))
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1)
        console.print(f"[green]Crontab activated[/green] (previous schedule backed up to {backup})")


@app.command(help="View the most recent lines from the history log.")
def logs(
    lines: Annotated[int, Option("--lines", "-n", help="Number of lines to show.")] = 50,
) -> None:
    log_path = settings.log_path
    if not log_path.exists():
        console.print(f"[yellow]Log file not found: {log_path}[/yellow]")
        raise typer.Exit(code=1)
    with log_path.open("r", encoding="utf-8") as log_file:
        tail = log_file.readlines()[-lines:]
    for line in tail:
        typer.echo(line.rstrip("\n"))


if __name__ == "__main__":
    app()
