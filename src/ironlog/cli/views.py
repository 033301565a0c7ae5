"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of training data.
"""

import threading
from typing import Callable

from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from ..core.models import (
    Day,
    Loadout,
    PersonalRecord,
    PlateauStatus,
    Settings,
    WarmupStep,
    Workout,
    WorkoutSet,
    WorkoutSummary,
)
from ..core.exercises import ExerciseRegistry
from ..core.plates import compute_loadout, format_plate_breakdown
from ..core.rest_policy import format_time
from ..core.timer import RestClock

console = Console()


# =============================================================================
# Cues and live clock
# =============================================================================


class TerminalCues:
    """Clock cues rendered as terminal bells and short messages."""

    def __init__(self, sound: bool = True, out: Console | None = None):
        self.sound = sound
        self.out = out if out is not None else console

    def warning(self, remaining: int) -> None:
        if self.sound:
            self.out.bell()

    def round_complete(self) -> None:
        if self.sound:
            self.out.bell()

    def complete(self) -> None:
        if self.sound:
            self.out.bell()
        self.out.print("[bold green]Time![/bold green]")


def _clock_text(clock: RestClock, remaining: int, total: int) -> Text:
    label = {"rest": "Rest", "countdown": "Time cap", "emom": "EMOM", "interval": "Interval"}[clock.mode]
    text = Text(f"{label} {format_time(remaining)} / {format_time(total)}", style="bold cyan")
    if clock.sequence is not None:
        text.append(f"  round {clock.current_round}/{clock.total_rounds}", style="dim")
        if clock.mode == "interval":
            text.append(f"  {clock.sequence.phase}", style="yellow")
    return text


def run_live_clock(clock: RestClock, start: Callable[[], None]) -> bool:
    """
    Run a clock in the foreground, redrawing on every tick.

    ``start`` kicks off the run (e.g. ``lambda: clock.start(90)``).
    Ctrl+C stops the clock.

    Returns:
        True if the run finished, False if interrupted
    """
    finished = threading.Event()
    previous_tick, previous_done = clock.on_tick, clock.on_done

    with Live(Text(""), console=console, refresh_per_second=8, transient=False) as live:

        def on_tick(remaining: int, total: int) -> None:
            live.update(_clock_text(clock, remaining, total))

        def on_done() -> None:
            finished.set()

        clock.on_tick, clock.on_done = on_tick, on_done
        try:
            start()
            if clock.is_active:
                live.update(_clock_text(clock, clock.remaining, clock.total_seconds))
            while not finished.wait(0.1):
                pass
        except KeyboardInterrupt:
            clock.stop()
            return False
        finally:
            clock.on_tick, clock.on_done = previous_tick, previous_done
    return True


# =============================================================================
# Plate math views
# =============================================================================


def _w(weight: float) -> str:
    return f"{weight:g}"


def format_loadout(loadout: Loadout, units: str) -> str:
    """One-line description of a loadout, flagging plates that could not be made."""
    text = f"{_w(loadout.total_weight)} {units}: {format_plate_breakdown(loadout)}"
    if loadout.shortfall > 0:
        text += f" [yellow](short {_w(loadout.shortfall)} per side)[/yellow]"
    return text


def format_warmup_table(
    steps: list[WarmupStep],
    work_weight: float,
    bar_weight: float,
    settings: Settings,
) -> Table:
    table = Table(title=f"Warmup to {_w(work_weight)} {settings.units}")
    table.add_column("Set", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("Plates per side")

    for step in steps:
        loadout = compute_loadout(step.weight, bar_weight, settings.available_plates)
        table.add_row(step.label, _w(step.weight), str(step.reps), format_plate_breakdown(loadout))

    loadout = compute_loadout(work_weight, bar_weight, settings.available_plates)
    table.add_row("[bold]Work[/bold]", f"[bold]{_w(work_weight)}[/bold]", "", format_plate_breakdown(loadout))
    return table


# =============================================================================
# Session views
# =============================================================================


def format_day_plan(
    day: Day,
    targets: dict[str, float],
    catalog: ExerciseRegistry,
    settings: Settings,
) -> Table:
    """Prescription of a day with target weights and plates."""
    table = Table(title=f"{day.name} ({day.day_id})")
    table.add_column("Exercise", style="cyan")
    table.add_column("Section")
    table.add_column("Sets x Reps", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Plates per side")

    for section in day.sections:
        for entry in section.exercises:
            exercise = catalog.get(entry.exercise_id)
            if exercise is None:
                table.add_row(f"[red]{entry.exercise_id}?[/red]", section.section_type, "", "", "")
                continue
            if exercise.tracking_type == "time":
                scheme = f"{entry.sets} x {_w(entry.duration_minutes or 0)} min"
            else:
                scheme = f"{entry.sets} x {entry.reps}"
            if section.is_round_based:
                scheme += f" ({section.rounds} rounds)"
            target = targets.get(exercise.exercise_id, 0.0)
            plates = ""
            target_text = ""
            if exercise.tracking_type == "weight":
                target_text = f"{_w(target)} {settings.units}"
                if exercise.is_barbell:
                    bar = exercise.bar_weight or settings.bar_weight
                    plates = format_plate_breakdown(
                        compute_loadout(target, bar, settings.available_plates)
                    )
            table.add_row(exercise.name, section.section_type, scheme, target_text, plates)
    return table


def format_session_sets(sets: list[WorkoutSet], catalog: ExerciseRegistry) -> Table:
    """Numbered set list of the active workout (numbers are 1-based positions)."""
    table = Table(title="Sets")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Exercise", style="cyan")
    table.add_column("Set")
    table.add_column("Target", justify="right")
    table.add_column("Done", justify="right")
    table.add_column("RPE", justify="right")

    for i, s in enumerate(sets, 1):
        exercise = catalog.get(s.exercise_id)
        name = exercise.name if exercise is not None else s.exercise_id
        if s.is_warmup:
            label = f"warmup {s.note}".strip()
        elif s.round_number is not None:
            label = f"R{s.round_number} set {s.set_number}"
        else:
            label = f"set {s.set_number}"

        if s.is_duration:
            target = f"{_w(s.target_duration or 0)} min"
            done = f"{_w(s.actual_duration)} min" if s.completed else ""
        elif s.target_weight > 0:
            target = f"{_w(s.target_weight)} x {s.target_reps}"
            done = f"{_w(s.actual_weight)} x {s.actual_reps}" if s.completed else ""
        else:
            target = f"{s.target_reps} reps"
            done = f"{s.actual_reps} reps" if s.completed else ""

        mark = "[green]✓[/green] " if s.completed else ""
        table.add_row(str(i), name, label, target, mark + done, str(s.rpe) if s.rpe else "")
    return table


def print_summary(summary: WorkoutSummary, catalog: ExerciseRegistry, units: str) -> None:
    w = summary.workout
    console.print()
    console.print(
        f"[bold green]Workout complete[/bold green]  "
        f"{w.duration_minutes} min, volume {_w(w.total_volume)} {units}"
    )
    for record in summary.new_records:
        exercise = catalog.get(record.exercise_id)
        name = exercise.name if exercise is not None else record.exercise_id
        console.print(
            f"  [bold magenta]New PR[/bold magenta] {name} {record.record_type}: "
            f"{_w(record.weight)} x {record.reps} (e1RM {_w(record.estimated_1rm)})"
        )
    for exercise_id, status in summary.plateau.items():
        if status.message:
            console.print(f"  [yellow]{status.message}[/yellow]")


# =============================================================================
# History, records and status
# =============================================================================


def format_history_table(workouts: list[Workout], units: str) -> Table:
    table = Table(title="Workout History")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Date", style="cyan")
    table.add_column("Program")
    table.add_column("Day")
    table.add_column("Minutes", justify="right")
    table.add_column(f"Volume ({units})", justify="right")
    table.add_column("Notes")

    for w in workouts:
        table.add_row(
            str(w.workout_id),
            w.date,
            w.program_id,
            w.day_id,
            str(w.duration_minutes),
            _w(w.total_volume),
            w.notes,
        )
    return table


def format_records_table(records: list[PersonalRecord], catalog: ExerciseRegistry, units: str) -> Table:
    table = Table(title="Personal Records")
    table.add_column("Exercise", style="cyan")
    table.add_column("Type")
    table.add_column(f"Weight ({units})", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("e1RM", justify="right")
    table.add_column("Date")

    for r in records:
        exercise = catalog.get(r.exercise_id)
        table.add_row(
            exercise.name if exercise is not None else r.exercise_id,
            r.record_type,
            _w(r.weight),
            str(r.reps),
            _w(r.estimated_1rm),
            r.date or "",
        )
    return table


_STATUS_STYLE = {
    "progressing": "green",
    "consider_alternate_scheme": "yellow",
    "exhausted": "red",
}


def format_status_table(rows: list[tuple[str, float, PlateauStatus]], units: str) -> Table:
    """Rows of (exercise name, next weight, plateau status)."""
    table = Table(title="Progression Status")
    table.add_column("Exercise", style="cyan")
    table.add_column(f"Next ({units})", justify="right")
    table.add_column("Deloads", justify="right")
    table.add_column("Status")

    for name, weight, status in rows:
        style = _STATUS_STYLE[status.status]
        table.add_row(name, _w(weight), str(status.deload_count), f"[{style}]{status.status}[/{style}]")
    return table


# =============================================================================
# Messages
# =============================================================================


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{message} [y/N]: ")
    return response.lower() in ("y", "yes")
