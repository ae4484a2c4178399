"""CLI commands for Study Forest using Typer."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from study_forest import __version__
from study_forest.core.alerts import BellAlert, SilentAlert
from study_forest.core.config import Config, get_config
from study_forest.core.controller import SessionController, create_controller
from study_forest.storage.database import Database

T = TypeVar("T")

app = typer.Typer(
    name="study-forest",
    help="Focus/break study timer with eye-strain reminders.",
    add_completion=False,
)

console = Console()

PLANT_EMOJI = {"tree": "🌳", "flower": "🌸", "bush": "🌿"}


def setup_logging(log_level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def _foreground_pid_file(config: Config) -> Path:
    return config.data_dir / "foreground.pid"


def _get_foreground_pid(config: Config) -> int | None:
    """PID of a live `start` run, if any. Stale PID files are removed."""
    pid_file = _foreground_pid_file(config)
    if not pid_file.exists():
        return None
    try:
        pid = int(pid_file.read_text().strip())
        # Check if process is actually running
        os.kill(pid, 0)
        return pid
    except (ValueError, OSError):
        pid_file.unlink(missing_ok=True)
        return None


def _refuse_if_foreground(config: Config) -> None:
    """A foreground run owns the session and would overwrite changes made from here."""
    pid = _get_foreground_pid(config)
    if pid is not None:
        console.print(
            f"[red]A session is running in the foreground (PID: {pid}). "
            "Control it from that terminal.[/red]"
        )
        raise typer.Exit(1)


def _prepare_run(config: Config, log_level: str | None = None) -> None:
    """Create data directories and configure logging for a foreground run."""
    config.ensure_directories()
    setup_logging(log_level or config.log_level, config.log_dir / "study_forest.log")


def _run_with_controller(
    config: Config, action: Callable[[SessionController], Awaitable[T]]
) -> T:
    """Load state, run ``action`` against the controller, then dispose it."""

    async def runner() -> T:
        controller = await create_controller(config, alert=SilentAlert())
        try:
            await controller.load()
            return await action(controller)
        finally:
            await controller.dispose()

    try:
        return asyncio.run(runner())
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _status_table(snapshot: dict) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value")

    state = snapshot["state"]
    if state == "idle":
        table.add_row("Phase", "[dim]No active session[/dim]")
    else:
        label = "🎯 Focus" if state == "focus" else "☕ Break"
        if snapshot["paused"]:
            label += " [yellow](paused)[/yellow]"
        table.add_row("Phase", label)
        table.add_row("Remaining", f"[bold]{snapshot['remaining']}[/bold]")
        table.add_row("Progress", f"{snapshot['progress_percent']:.0f}%")

    if snapshot["next_eye_reminder"]:
        table.add_row("Next eye break", snapshot["next_eye_reminder"])
    if snapshot["eye_reminder_visible"]:
        table.add_row(
            "👁️  30-30-30",
            f"Look 30 feet away ({snapshot['eye_countdown_seconds']}s)",
        )
    if snapshot["break_reminder_visible"]:
        table.add_row("⏰ Break", "You've been studying for a while, take a break!")

    table.add_row("History", str(snapshot["history_count"]))
    table.add_row("Forest", f"{snapshot['forest_count']} plants")
    return table


@app.command()
def start(
    new: bool = typer.Option(
        False,
        "--new",
        "-n",
        help="Start a fresh focus phase even if a session is in progress",
    ),
    pause_on_exit: bool = typer.Option(
        False,
        "--pause-on-exit",
        help="Pause the session on Ctrl+C instead of letting it keep counting",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR); defaults to the configured level",
    ),
) -> None:
    """Run a focus/break cycle in the foreground.

    A session left running by a previous invocation is resumed, with the
    time spent away deducted.
    """
    config = get_config()
    _prepare_run(config, log_level)

    pid = _get_foreground_pid(config)
    if pid is not None:
        console.print(f"[yellow]Already running in the foreground (PID: {pid})[/yellow]")
        raise typer.Exit(1)

    async def run_cycle() -> None:
        controller = await create_controller(config, alert=BellAlert(console))
        controller.reminders.on_break_reminder = lambda: console.print(
            "[bold yellow]⏰ Time for a break![/bold yellow]"
        )
        controller.reminders.on_eye_reminder = lambda: console.print(
            "[bold blue]👁️  30-30-30: look at something 30 feet away for 30 seconds[/bold blue]"
        )

        try:
            await controller.load()

            if new or controller.session is None:
                await controller.start_focus()
            elif controller.session.is_paused:
                await controller.resume()

            console.print("Press Ctrl+C to leave\n")

            with Live(_status_table(controller.snapshot()), console=console, refresh_per_second=2) as live:
                while controller.session is not None:
                    await asyncio.sleep(0.5)
                    live.update(_status_table(controller.snapshot()))

            console.print("[green]Cycle complete! 🌱[/green]")
        finally:
            if pause_on_exit and controller.session is not None:
                await controller.pause()
            await controller.dispose()

    pid_file = _foreground_pid_file(config)
    pid_file.write_text(str(os.getpid()))
    try:
        asyncio.run(run_cycle())
    except KeyboardInterrupt:
        console.print("\n[yellow]Left the session[/yellow]")
    finally:
        pid_file.unlink(missing_ok=True)


@app.command()
def status() -> None:
    """Show the current session."""
    config = get_config()
    snapshot = _run_with_controller(config, lambda c: _snapshot(c))
    console.print(Panel(_status_table(snapshot), title="Study Forest", border_style="green"))


async def _snapshot(controller: SessionController) -> dict:
    return controller.snapshot()


@app.command()
def pause() -> None:
    """Pause the running session."""
    config = get_config()
    _refuse_if_foreground(config)

    async def do_pause(controller: SessionController) -> bool:
        if controller.session is None or controller.session.is_paused:
            return False
        await controller.pause()
        return True

    if _run_with_controller(config, do_pause):
        console.print("[yellow]Session paused[/yellow]")
    else:
        console.print("[dim]No running session[/dim]")


@app.command()
def resume() -> None:
    """Resume a paused session (run `start` to watch it)."""
    config = get_config()
    _refuse_if_foreground(config)

    async def do_resume(controller: SessionController) -> bool:
        if controller.session is None or not controller.session.is_paused:
            return False
        await controller.resume()
        return True

    if _run_with_controller(config, do_resume):
        console.print("[green]Session resumed[/green]")
    else:
        console.print("[dim]No paused session[/dim]")


@app.command()
def stop() -> None:
    """Abandon the current cycle without recording it."""
    config = get_config()
    _refuse_if_foreground(config)

    async def do_stop(controller: SessionController) -> bool:
        if controller.session is None:
            return False
        await controller.stop()
        return True

    if _run_with_controller(config, do_stop):
        console.print("[yellow]Session stopped[/yellow]")
    else:
        console.print("[dim]No active session[/dim]")


@app.command()
def history() -> None:
    """Show completed sessions, most recent first."""
    config = get_config()

    async def get_history(controller: SessionController):
        return controller.history.entries

    entries = _run_with_controller(config, get_history)

    if not entries:
        console.print("[dim]No sessions recorded yet. Start your first focus session![/dim]")
        return

    table = Table(title="Session History", show_header=True, header_style="bold cyan")
    table.add_column("Type")
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Duration", justify="right")

    for entry in entries:
        kind = "🎯 Focus" if entry.phase.value == "focus" else "☕ Break"
        table.add_row(
            kind,
            entry.date_label,
            f"{entry.start_time_label} - {entry.end_time_label}",
            entry.duration_label,
        )

    console.print(table)


@app.command()
def forest() -> None:
    """Show the plants grown by completed focus phases."""
    config = get_config()

    async def get_forest(controller: SessionController):
        return controller.forest.entries, controller.forest.counts_by_kind()

    entries, counts = _run_with_controller(config, get_forest)

    if not entries:
        console.print("🌱 [dim]Complete focus sessions to grow your forest![/dim]")
        return

    console.print(Panel(
        " ".join(PLANT_EMOJI.get(e.kind, "🌱") for e in entries),
        title=f"🌲 Your Forest ({len(entries)} plants)",
        border_style="green",
    ))

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Kind")
    table.add_column("Count", justify="right")
    for kind, count in sorted(counts.items()):
        table.add_row(f"{PLANT_EMOJI.get(kind, '🌱')} {kind}", str(count))
    console.print(table)


@app.command(name="clear-history")
def clear_history(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete all session history."""
    if not yes and not typer.confirm("Clear all session history?"):
        raise typer.Exit(0)

    config = get_config()
    _run_with_controller(config, lambda c: c.clear_history())
    console.print("[green]History cleared[/green]")


@app.command(name="clear-forest")
def clear_forest(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove every plant from the forest."""
    if not yes and not typer.confirm("Clear your forest?"):
        raise typer.Exit(0)

    config = get_config()
    _run_with_controller(config, lambda c: c.clear_forest())
    console.print("[green]Forest cleared[/green]")


@app.command()
def space() -> None:
    """Print the space id used for replication."""
    config = get_config()
    space_id = _run_with_controller(config, lambda c: _space_id(c))
    console.print(space_id)


async def _space_id(controller: SessionController) -> str | None:
    return controller.space_id


@app.command(name="config")
def config_show(
    init: bool = typer.Option(False, "--init", help="Write the current configuration to the config file"),
) -> None:
    """Show current configuration."""
    config = get_config()

    if init:
        config.save()
        console.print(f"[green]Configuration written to {config.config_file}[/green]")

    table = Table(title="Study Forest Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")

    table.add_row("[bold]Paths[/bold]", "")
    table.add_row("  Data Directory", str(config.data_dir))
    table.add_row("  Log Directory", str(config.log_dir))
    table.add_row("  Database", str(config.db_path))

    table.add_row("[bold]Timer[/bold]", "")
    table.add_row("  Focus", f"{config.timer.focus_minutes} min")
    table.add_row("  Break", f"{config.timer.break_minutes} min")

    table.add_row("[bold]Reminders[/bold]", "")
    table.add_row("  Break Reminder", f"every {config.reminders.break_interval_minutes} min")
    table.add_row("  Eye Reminder", f"every {config.reminders.eye_interval_minutes} min")
    table.add_row("  Eye Countdown", f"{config.reminders.eye_countdown_seconds}s")

    table.add_row("[bold]History[/bold]", "")
    table.add_row("  Max Entries", str(config.history.max_entries))

    table.add_row("[bold]Sync[/bold]", "")
    table.add_row("  Enabled", str(config.sync.enabled))
    table.add_row("  API URL", config.sync.api_url)
    table.add_row("  Space ID", config.sync.space_id or "[dim]generated[/dim]")

    console.print(table)


@app.command()
def backup() -> None:
    """Copy the database to the backups directory."""
    config = get_config()
    if not config.db_path.exists():
        console.print("[yellow]No database yet[/yellow]")
        raise typer.Exit(1)

    path = Database(config.db_path).backup()
    console.print(f"[green]Backed up to {path}[/green]")


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"Study Forest v{__version__} (Python {sys.version.split()[0]})")


if __name__ == "__main__":
    app()
