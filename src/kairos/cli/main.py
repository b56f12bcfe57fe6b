"""Main CLI interface for Kairos."""

import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from kairos.core.clock import is_valid_time
from kairos.core.config import (
    CONFIG_DIR_NAME,
    KairosConfig,
    load_config,
    save_config,
)
from kairos.core.context import Services, build_services
from kairos.core.errors import AlreadyActive, KairosError
from kairos.core.export import range_report, sessions_to_csv, sessions_to_json

console = Console()

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(error: Exception) -> NoReturn:
    """Print a Kairos error and abort the command."""
    console.print(f"[red]Error: {error}[/red]")
    raise click.Abort() from error


def _services(ctx: click.Context) -> Services:
    return ctx.find_root().obj


def _parse_day(value: str, services: Services) -> datetime:
    try:
        day = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise click.BadParameter(f"invalid date: {value} (use YYYY-MM-DD)") from e
    return services.clock.start_of_day(day)


def _parse_month(value: str):
    try:
        parsed = datetime.strptime(value, "%Y-%m")
    except ValueError as e:
        raise click.BadParameter("invalid format, use YYYY-MM (e.g. 2025-01)") from e
    return parsed.year, parsed.month


def _format_hours(hours: Optional[float]) -> str:
    return "active" if hours is None else f"{hours:.2f}h"


@click.group()
@click.version_option(package_name="kairos")
@click.option("--verbose", "-v", is_flag=True, help="Show informational log output")
@click.option(
    "--no-auto-archive", is_flag=True, help="Skip archiving past months on startup"
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, no_auto_archive: bool):
    """Kairos - track working hours against a weekly goal."""
    _configure_logging(verbose)
    if ctx.invoked_subcommand == "init":
        return

    try:
        config = load_config()
        services = build_services(config)
    except KairosError as e:
        _fail(e)

    ctx.obj = services
    ctx.call_on_close(services.close)
    # "archive" runs the walk itself in the foreground.
    if (
        config.auto_archive
        and not no_auto_archive
        and ctx.invoked_subcommand != "archive"
    ):
        services.start_auto_archive()


@main.command()
@click.option(
    "--project-path",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Directory that will hold the .kairos data directory",
)
@click.option("--goal", type=float, default=None, help="Weekly goal in hours")
@click.option("--timezone", "tz", default=None, help="Time zone, e.g. Europe/Vienna")
def init(project_path: str, goal: Optional[float], tz: Optional[str]):
    """Initialize Kairos data in a directory."""
    root = Path(project_path).resolve()
    config_file = root / CONFIG_DIR_NAME / "config.json"

    try:
        config = load_config(root) if config_file.exists() else KairosConfig(root=root)
        updates = {}
        if goal is not None:
            updates["weekly_goal"] = goal
        if tz:
            updates["timezone"] = tz
        if updates:
            config = KairosConfig(root=root, **{**config.to_file_dict(), **updates})
        path = save_config(config)
    except (KairosError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✅ Initialized Kairos in {root}[/green]")
    console.print(f"[dim]Config: {path}[/dim]")


@main.command("clockin")
@click.argument("note", nargs=-1)
@click.option("--time", "-t", "start_time", help="Override start time (HH:MM)")
@click.option(
    "--close-at", help="Close a forgotten active session at this time (HH:MM)"
)
@click.pass_context
def clockin(ctx, note, start_time: Optional[str], close_at: Optional[str]):
    """Start a work session."""
    services = _services(ctx)
    lifecycle = services.lifecycle
    note_text = " ".join(note)

    active = lifecycle.active()
    if active is not None and not close_at and sys.stdin.isatty():
        console.print(
            f"Active session started at {active.start_time:%H:%M} on {active.date}."
        )
        while True:
            answer = click.prompt(
                "Forgot to clock out? Enter clockout time (HH:MM), or press Enter to cancel",
                default="",
                show_default=False,
            ).strip()
            if not answer:
                console.print("[yellow]Clock-in cancelled; active session is still open[/yellow]")
                raise click.Abort()
            if is_valid_time(answer):
                close_at = answer
                break
            console.print("Invalid time format. Use HH:MM (for example, 18:30).")

    try:
        session = lifecycle.clock_in(
            note_text, start_override=start_time, close_active_at=close_at
        )
    except AlreadyActive as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("[dim]Use --close-at HH:MM to close it first.[/dim]")
        raise click.Abort() from e
    except KairosError as e:
        _fail(e)

    console.print(
        f"[green]Clocked in at {session.start_time:%H:%M}[/green] ({session.short_id})"
    )
    if session.date != services.clock.today():
        console.print(f"[dim]Attributed to {session.date}[/dim]")
    if note_text:
        console.print(f"Note: {note_text}")


@main.command("clockout")
@click.argument("break_arg", metavar="[BREAK_MINUTES]", required=False, type=click.IntRange(min=0))
@click.option(
    "--break", "-b", "break_minutes", type=click.IntRange(min=0), default=None,
    help="Override break time in minutes",
)
@click.option("--time", "-t", "end_time", help="Override end time (HH:MM)")
@click.option("--note", "-n", default=None, help="Replace the session note")
@click.pass_context
def clockout(ctx, break_arg, break_minutes, end_time, note):
    """End the current work session.

    Break time defaults to the day's rule (30 min Mon-Thu, 0 on Friday).
    """
    services = _services(ctx)
    if break_minutes is None:
        break_minutes = break_arg

    try:
        session = services.lifecycle.clock_out(
            break_minutes=break_minutes, end_override=end_time, note=note
        )
    except KairosError as e:
        _fail(e)

    console.print(
        f"[green]Clocked out: {session.end_time:%H:%M}[/green] | "
        f"Duration: {session.duration_hours:.2f}h | Break: {session.break_minutes}min"
    )


@main.command()
@click.pass_context
def status(ctx):
    """Show today's progress."""
    services = _services(ctx)
    try:
        progress = services.tracker.day_progress()
        active = services.lifecycle.active()
    except KairosError as e:
        _fail(e)

    console.print(f"[bold]Today:[/bold] {progress.date:%A, %b %d}")
    console.print(f"[bold]Hours worked:[/bold] {progress.total_hours:.2f}")
    if active is not None:
        now = services.clock.now().astimezone(timezone.utc)
        elapsed = now - active.start_time.astimezone(timezone.utc)
        minutes = int(elapsed.total_seconds() // 60)
        console.print(
            f"[bold]Status:[/bold] Currently working since {active.start_time:%H:%M} "
            f"({minutes // 60}h {minutes % 60}m elapsed)"
        )
    else:
        console.print("[bold]Status:[/bold] Not clocked in")


@main.command()
@click.argument("which", required=False)
@click.pass_context
def week(ctx, which: Optional[str]):
    """Show the weekly summary (current week, "last", or YYYY-MM-DD)."""
    services = _services(ctx)
    tracker = services.tracker
    try:
        if not which:
            progress = tracker.week_progress()
        elif which == "last":
            progress = tracker.last_week_progress()
        else:
            progress = tracker.week_progress_for_date(_parse_day(which, services))
    except KairosError as e:
        _fail(e)

    if progress.remaining_hours >= 0:
        summary = f"Remaining: {progress.remaining_hours:.2f}h"
    else:
        summary = f"Overtime: +{-progress.remaining_hours:.2f}h"

    table = Table(
        title=f"Week {progress.week_start:%b %d} - {progress.week_end:%b %d}"
    )
    table.add_column("Date", style="cyan")
    table.add_column("Day", style="magenta")
    table.add_column("Hours", style="green", justify="right")

    today = services.clock.today()
    for offset, name in enumerate(DAY_NAMES):
        day = progress.week_start.date() + timedelta(days=offset)
        label = f"{name} *" if day == today else name
        table.add_row(f"{day:%m/%d}", label, f"{progress.days_worked.get(day, 0.0):.2f}")

    console.print(table)
    console.print(
        f"Total: {progress.total_hours:.2f}/{progress.goal_hours:g}h | {summary}"
    )
    if progress.remaining_work_days and progress.required_daily_hours:
        console.print(
            f"[dim]Need {progress.required_daily_hours:.2f}h/day over "
            f"{progress.remaining_work_days} work day(s)[/dim]"
        )


@main.command()
@click.pass_context
def month(ctx):
    """Show the summary for the current month."""
    services = _services(ctx)
    try:
        progress = services.tracker.month_progress()
    except KairosError as e:
        _fail(e)

    console.print(
        f"Month: {progress.month:%B %Y} | Total hours: {progress.total_hours:.2f} | "
        f"Weeks tracked: {progress.week_count} | Daily avg: {progress.daily_average:.2f} hrs"
    )
    for week_number in sorted(progress.week_hours):
        console.print(f"  W{week_number}: {progress.week_hours[week_number]:.2f}h")


@main.command()
@click.pass_context
def sessions(ctx):
    """List this week's sessions with their IDs."""
    services = _services(ctx)
    try:
        progress = services.tracker.week_progress()
    except KairosError as e:
        _fail(e)

    if not progress.sessions:
        console.print("[yellow]No sessions this week[/yellow]")
        return

    table = Table(title="Sessions")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Date", style="magenta")
    table.add_column("Start", style="blue")
    table.add_column("End", style="blue")
    table.add_column("Hours", style="green", justify="right")
    table.add_column("Note")

    for session in progress.sessions:
        end = f"{session.end_time:%H:%M}" if session.end_time else "🟢 Active"
        table.add_row(
            session.short_id,
            f"{session.date:%b %d}",
            f"{session.start_time:%H:%M}",
            end,
            _format_hours(session.duration_hours),
            session.note or "",
        )

    console.print(table)


@main.command()
@click.argument("session_id", required=False)
@click.option("--break", "-b", "break_minutes", type=click.IntRange(min=0), default=None,
              help="Break time in minutes")
@click.option("--note", "-n", default=None, help="Replace the note")
@click.option("--time", "-t", "start_time", help="Override start time (HH:MM)")
@click.option("--end", "-e", "end_time", help="Override end time (HH:MM)")
@click.pass_context
def edit(ctx, session_id, break_minutes, note, start_time, end_time):
    """Edit a session (defaults to the active one)."""
    services = _services(ctx)
    try:
        if not session_id:
            active = services.lifecycle.active()
            if active is None:
                console.print("[red]Error: no active session. Use: kairos edit <id>[/red]")
                raise click.Abort()
            session_id = active.id
        session = services.lifecycle.edit(
            session_id,
            break_minutes=break_minutes,
            note=note,
            start=start_time,
            end=end_time,
        )
    except KairosError as e:
        _fail(e)

    console.print(f"[green]Session {session.short_id} updated[/green]")


@main.command()
@click.argument("session_id")
@click.option("--force", "-f", is_flag=True, help="Delete without confirmation")
@click.pass_context
def delete(ctx, session_id: str, force: bool):
    """Delete a session by ID."""
    services = _services(ctx)
    if not force:
        console.print(
            f"Delete session {session_id}? This cannot be undone. Use --force to confirm."
        )
        return

    try:
        session = services.lifecycle.delete(session_id)
    except KairosError as e:
        _fail(e)

    console.print(f"[green]Session {session.short_id} deleted[/green]")


@main.command("range")
@click.argument("period", required=False)
@click.option("--start", "-s", help="Start date (YYYY-MM-DD)")
@click.option("--end", "-e", help="End date (YYYY-MM-DD)")
@click.pass_context
def range_command(ctx, period, start, end):
    """Show hours for a date range (default: last 7 days)."""
    services = _services(ctx)
    clock = services.clock
    now = clock.now()
    start_dt = clock.start_of_day((now - timedelta(days=7)).date())
    end_dt = now

    if period == "last-week":
        start_dt = clock.start_of_day((now - timedelta(days=7)).date())
    elif period == "last-month":
        start_dt = clock.start_of_day((now - timedelta(days=30)).date())
    elif period:
        start_dt = _parse_day(period, services)
        end_dt = clock.end_of_day(start_dt.date())
    if start:
        start_dt = _parse_day(start, services)
    if end:
        end_dt = clock.end_of_day(_parse_day(end, services).date())

    try:
        report = range_report(services.ledger, start_dt, end_dt)
    except KairosError as e:
        _fail(e)

    console.print(f"Range: {report.start:%b %d, %Y} - {report.end:%b %d, %Y}")
    console.print(
        f"Total: {report.total_hours:.2f} hours ({report.session_count} sessions)"
    )
    if report.by_date:
        console.print("\nDaily breakdown:")
        for day, hours in report.by_date.items():
            console.print(f"  {day}: {hours:.2f}h")


@main.command()
@click.argument("fmt", required=False, type=click.Choice(["csv", "json"]))
@click.option("--format", "-f", "format_option", type=click.Choice(["csv", "json"]),
              default="csv", help="Output format")
@click.option("--start", "-s", help="Start date (YYYY-MM-DD), default 30 days ago")
@click.option("--end", "-e", help="End date (YYYY-MM-DD), default today")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file")
@click.pass_context
def export(ctx, fmt, format_option, start, end, output):
    """Export sessions to CSV or JSON."""
    services = _services(ctx)
    clock = services.clock
    now = clock.now()
    fmt = fmt or format_option
    start_dt = _parse_day(start, services) if start else clock.start_of_day(
        (now - timedelta(days=30)).date()
    )
    end_dt = clock.end_of_day(_parse_day(end, services).date()) if end else now

    try:
        rows = services.ledger.get_started_in_range(start_dt, end_dt)
    except KairosError as e:
        _fail(e)

    stream = open(output, "w", newline="") if output else click.get_text_stream("stdout")
    try:
        if fmt == "csv":
            sessions_to_csv(rows, stream)
        else:
            stream.write(sessions_to_json(rows, now.date()) + "\n")
    finally:
        if output:
            stream.close()

    if output:
        console.print(f"[green]Exported {len(rows)} session(s) to {output}[/green]")


@main.command()
@click.pass_context
def config(ctx):
    """Show the current configuration and work rules."""
    services = _services(ctx)
    cfg = services.config
    rules = services.rules
    console.print(f"[bold]Config file:[/bold] {cfg.config_file}")
    console.print(f"[bold]Database:[/bold] {cfg.database_path}")
    console.print(f"[bold]History:[/bold] {cfg.history_path}")
    console.print(f"[bold]Time zone:[/bold] {cfg.timezone}")
    console.print(f"[bold]Auto-archive:[/bold] {'on' if cfg.auto_archive else 'off'}")
    console.print(
        f"[bold]Rules:[/bold] Weekly: {rules.weekly_goal:.2f}h | "
        f"Daily: {rules.daily_target_hours:.2f}h | "
        f"Break: {rules.default_break_minutes}min "
        f"({DAY_NAMES[rules.reduced_break_weekday]}: {rules.reduced_break_minutes}min)"
    )


@main.group()
def archive():
    """Archive past months to Markdown files."""


@archive.command("auto")
@click.pass_context
def archive_auto(ctx):
    """Archive all complete months before the current one."""
    services = _services(ctx)
    try:
        archived = services.archiver.auto_archive_past_months()
    except KairosError as e:
        _fail(e)

    if not archived:
        console.print("No months to archive (current month or already archived)")
        return
    console.print(f"[green]Archived {len(archived)} month(s):[/green]")
    for label in archived:
        console.print(f"  - {label}.md")


@archive.command("month")
@click.argument("month_arg", metavar="YYYY-MM")
@click.option("--clean", is_flag=True, help="Remove archived sessions from the database")
@click.pass_context
def archive_month(ctx, month_arg: str, clean: bool):
    """Archive a specific month."""
    services = _services(ctx)
    year, month_number = _parse_month(month_arg)
    try:
        path = services.archiver.archive_month(year, month_number, delete_after=clean)
    except KairosError as e:
        _fail(e)

    console.print(f"[green]Archived {month_arg} to {path}[/green]")
    if clean:
        console.print("Database cleaned for this month")


@archive.command("list")
@click.pass_context
def archive_list(ctx):
    """List archived months."""
    archives = _services(ctx).archiver.list_archives()
    if not archives:
        console.print("No archives found")
        return
    console.print("Archived months:")
    for name in archives:
        console.print(f"  {name}")


@archive.command("show")
@click.argument("month_arg", metavar="YYYY-MM")
@click.pass_context
def archive_show(ctx, month_arg: str):
    """Print an archived month."""
    year, month_number = _parse_month(month_arg)
    try:
        content = _services(ctx).archiver.read_archive(year, month_number)
    except KairosError as e:
        _fail(e)
    click.echo(content)


@main.command()
@click.argument("months", required=False, type=click.IntRange(min=1), default=3)
@click.pass_context
def history(ctx, months: int):
    """Show a summary of the last archived months."""
    context = _services(ctx).archiver.history_context(months)
    if not context:
        console.print("No historical data found. Run 'kairos archive auto' first.")
        return
    click.echo(context)


for _alias, _command in [
    ("in", clockin),
    ("out", clockout),
    ("today", status),
    ("ls", sessions),
    ("rm", delete),
]:
    main.add_command(_command, name=_alias)


if __name__ == "__main__":
    main()
