"""CLI commands for pomolog using Typer."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.prompt import FloatPrompt, IntPrompt, Prompt
from rich.table import Table
from rich.text import Text

from pomolog import __version__
from pomolog.core.config import get_config
from pomolog.core.errors import ConfigurationError, FeedbackValidationError, PomologError
from pomolog.timer.models import (
    Mood,
    SessionStage,
    TimerConfiguration,
    productivity_label,
    satisfaction_label,
)

# Initialize Typer app
app = typer.Typer(
    name="pomolog",
    help="Pomodoro focus sessions with mood and productivity feedback.",
    add_completion=False,
)

config_app = typer.Typer(help="Show or change configuration.")
app.add_typer(config_app, name="config")

console = Console()


def setup_logging(log_level: str, log_file: Path | None = None, stream: bool = True) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if stream:
        handlers.append(logging.StreamHandler())

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def render_countdown(snapshot) -> Panel:
    """Countdown panel for the phase the engine is running."""
    timer = snapshot.timer
    width = 30
    filled = round(timer.progress_fraction * width)
    bar = "█" * filled + "░" * (width - filled)

    color = "red" if snapshot.stage is SessionStage.FOCUS else "green"
    body = Text()
    body.append(f"{timer.time_left_display}\n", style=f"bold {color}")
    body.append(bar, style=color)
    if timer.is_paused:
        body.append("\npaused", style="yellow")

    title = "Focus" if snapshot.stage is SessionStage.FOCUS else "Break"
    return Panel(body, title=title, border_style=color, width=width + 4)


def _ask_setup(total: int | None, focus: int | None, defaults: TimerConfiguration) -> TimerConfiguration:
    """Prompt for session lengths until they describe a runnable session."""
    while True:
        if total is None:
            total = IntPrompt.ask("Total session minutes", default=defaults.total_session_minutes)
        if focus is None:
            focus = IntPrompt.ask("Focus minutes", default=defaults.focus_minutes)

        config = TimerConfiguration(total_session_minutes=total, focus_minutes=focus)
        try:
            config.validate()
            return config
        except ConfigurationError as e:
            console.print(f"[red]{e}[/red]")
            total = focus = None


def _ask_mood() -> Mood:
    console.print("[bold]How do you feel?[/bold]")
    while True:
        x = FloatPrompt.ask("  Sad (0) to happy (1)", default=0.5)
        y = FloatPrompt.ask("  Irritated (0) to calm (1)", default=0.5)
        try:
            return Mood(x=x, y=y)
        except FeedbackValidationError as e:
            console.print(f"[red]{e}[/red]")


@app.command()
def run(
    total: int = typer.Option(None, "--total", "-t", help="Total session minutes"),
    focus: int = typer.Option(None, "--focus", "-f", help="Focus minutes"),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Run one focus session and its break in the terminal.

    Press Ctrl+C at any point to abandon the session; nothing is saved.
    """
    config = get_config()
    config.ensure_directories()
    setup_logging(log_level, config.log_dir / "pomolog.log", stream=False)

    async def wait_for_phase(orchestrator, stage: SessionStage) -> None:
        coordinator = orchestrator.coordinator
        with Live(render_countdown(coordinator.snapshot()), console=console, transient=True) as live:
            while coordinator.stage is stage:
                live.update(render_countdown(coordinator.snapshot()))
                await asyncio.sleep(0.2)

    async def run_session():
        from pomolog.core.orchestrator import Orchestrator
        from pomolog.timer.scheduler import AsyncioScheduler

        orchestrator = Orchestrator(config=config, scheduler=AsyncioScheduler())
        await orchestrator.start()
        coordinator = orchestrator.coordinator

        try:
            setup = _ask_setup(total, focus, await orchestrator.last_setup())
            await orchestrator.start_session(setup)
            console.print(
                f"\n[green]Focus for {setup.focus_minutes} min, "
                f"then a {setup.break_minutes} min break.[/green] Ctrl+C to abandon.\n"
            )

            await wait_for_phase(orchestrator, SessionStage.FOCUS)
            console.print("[bold red]Focus complete![/bold red]\n")

            mood = _ask_mood()
            productivity = IntPrompt.ask(
                "Productivity (1-10)",
                choices=[str(i) for i in range(1, 11)],
                default=7,
                show_choices=False,
            )
            coordinator.submit_focus_feedback(mood, productivity)
            console.print(f"\n[green]Break time.[/green] Mood color {mood.color}\n")

            await wait_for_phase(orchestrator, SessionStage.BREAK)
            console.print("[bold green]Break complete![/bold green]\n")

            activity = Prompt.ask("What did you do on your break?", default="")
            satisfaction = IntPrompt.ask(
                "Break length: too short (-10) to too long (10)",
                choices=[str(i) for i in range(-10, 11)],
                default=0,
                show_choices=False,
            )
            result = await coordinator.submit_break_feedback(activity, satisfaction)

            while not result.ok:
                console.print(f"[red]Session not saved:[/red] {result.error}")
                if not typer.confirm("Retry saving?", default=True):
                    break
                result = await coordinator.retry_save()

            if result.ok and result.record is not None:
                record = result.record
                console.print(Panel(
                    f"Session: {record.session_minutes} min "
                    f"(focus {record.focus_minutes} min)\n"
                    f"Productivity: {record.prod_level} ({productivity_label(record.prod_level)})\n"
                    f"Break: {record.break_activity or '-'} "
                    f"({satisfaction_label(record.break_satisfaction)})",
                    title="Session saved",
                    border_style="green",
                ))
        finally:
            await orchestrator.stop()

    try:
        asyncio.run(run_session())
    except KeyboardInterrupt:
        console.print("\n[yellow]Session abandoned (not saved)[/yellow]")
    except PomologError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command()
def sessions(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of sessions to show"),
) -> None:
    """Show recently saved sessions."""
    config = get_config()

    async def get_sessions():
        from pomolog.core.orchestrator import Orchestrator

        orchestrator = Orchestrator(config=config)
        await orchestrator.start()
        try:
            return await orchestrator.recent_sessions(limit=limit)
        finally:
            await orchestrator.stop()

    try:
        records = asyncio.run(get_sessions())
    except PomologError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not records:
        console.print("[yellow]No sessions saved yet.[/yellow]")
        return

    table = Table(title="Sessions", show_header=True, header_style="bold cyan")
    table.add_column("When")
    table.add_column("Total", justify="right")
    table.add_column("Focus", justify="right")
    table.add_column("Productivity", justify="right")
    table.add_column("Mood", justify="center")
    table.add_column("Break")
    table.add_column("Break length")

    for record in records:
        mood = Mood(x=record.mood_x, y=record.mood_y)
        table.add_row(
            record.created_at.astimezone().strftime("%Y-%m-%d %H:%M"),
            f"{record.session_minutes}m",
            f"{record.focus_minutes}m",
            str(record.prod_level),
            f"[{mood.color}]●[/]",
            record.break_activity or "-",
            satisfaction_label(record.break_satisfaction),
        )

    console.print(table)


@app.command()
def stats(
    days: int = typer.Option(7, "--days", "-d", help="Days to summarize"),
) -> None:
    """Summarize recent sessions."""
    config = get_config()

    async def get_stats():
        from pomolog.core.orchestrator import Orchestrator

        orchestrator = Orchestrator(config=config)
        await orchestrator.start()
        try:
            return await orchestrator.session_stats(days=days)
        finally:
            await orchestrator.stop()

    try:
        summary = asyncio.run(get_stats())
    except PomologError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(Panel(
        f"[bold]{summary.window_minutes}[/bold] min over {summary.window_sessions} sessions\n"
        f"Productive: {summary.productive_percent}%\n"
        f"Daily average: {summary.average_daily_minutes} min\n"
        f"All time: {summary.total_sessions} sessions, "
        f"{summary.average_session_minutes} min average",
        title=f"Last {summary.days} days",
        border_style="blue",
    ))

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Day")
    table.add_column("Minutes", justify="right")
    table.add_column("")

    peak = max((d.minutes for d in summary.daily_totals), default=0) or 1
    for total in summary.daily_totals:
        bar = "█" * round(total.minutes / peak * 20)
        table.add_row(f"{total.weekday} {total.day.isoformat()}", str(total.minutes), bar)

    console.print(table)


@config_app.command("show")
def config_show() -> None:
    """Show current configuration."""
    config = get_config()

    table = Table(title="pomolog Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")

    # Paths
    table.add_row("[bold]Paths[/bold]", "")
    table.add_row("  Data Directory", str(config.data_dir))
    table.add_row("  Log Directory", str(config.log_dir))
    table.add_row("  Config File", str(config.config_file))
    table.add_row("  Database", str(config.db_path))

    # Timer
    table.add_row("[bold]Timer[/bold]", "")
    table.add_row("  Total Session", f"{config.timer.total_session_minutes} min")
    table.add_row("  Focus", f"{config.timer.focus_minutes} min")
    table.add_row("  Tick Interval", f"{config.timer.tick_interval_seconds}s")

    # Store
    table.add_row("[bold]Store[/bold]", "")
    table.add_row("  Backend", config.store.backend)
    if config.store.backend == "remote":
        table.add_row("  URL", config.store.remote_url or "[yellow]Not Set[/yellow]")
        table.add_row("  API Key", "***" if config.store.remote_api_key else "[yellow]Not Set[/yellow]")
    table.add_row("  User", config.user_id or "[yellow]Not signed in[/yellow]")

    # Web
    table.add_row("[bold]Web API[/bold]", "")
    table.add_row("  URL", f"http://{config.web.host}:{config.web.port}")

    console.print(table)


@config_app.command("set-defaults")
def config_set_defaults(
    total: int = typer.Option(..., "--total", "-t", help="Total session minutes"),
    focus: int = typer.Option(..., "--focus", "-f", help="Focus minutes"),
) -> None:
    """Save default session lengths to the config file."""
    config = get_config()

    try:
        TimerConfiguration(total_session_minutes=total, focus_minutes=focus).validate()
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    config.timer.total_session_minutes = total
    config.timer.focus_minutes = focus
    config.save()
    console.print(
        f"[green]Defaults saved:[/green] {focus} min focus, {total - focus} min break "
        f"({config.config_file})"
    )


@app.command()
def dashboard(
    host: str = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(None, "--port", "-p", help="Port to bind to"),
) -> None:
    """Serve the web API for browser views."""
    config = get_config()
    config.ensure_directories()
    setup_logging(config.log_level)

    host = host or config.web.host
    port = port or config.web.port

    console.print("[green]Starting pomolog web API...[/green]")
    console.print(f"Timer at [blue]http://{host}:{port}/api/timer[/blue]")
    console.print("Press Ctrl+C to stop\n")

    from pomolog.web.app import run_server

    try:
        run_server(host=host, port=port)
    except KeyboardInterrupt:
        console.print("\n[yellow]Web API stopped[/yellow]")


@app.command()
def backup() -> None:
    """Copy the local session database into the backups folder."""
    from pomolog.storage.database import Database

    config = get_config()
    if not config.db_path.exists():
        console.print("[yellow]No database yet; nothing to back up.[/yellow]")
        raise typer.Exit(1)

    path = Database(config.db_path).backup()
    console.print(f"[green]Backed up to[/green] {path}")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"pomolog v{__version__}")


if __name__ == "__main__":
    app()
