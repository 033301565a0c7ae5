"""Training commands: next, workout (interactive session), history, status."""

from typing import Annotated, Optional

import typer

from ...core.exercises import ExerciseRegistry
from ...core.models import Program, Readiness, Settings
from ...core.progression import ProgressionEngine
from ...core.rest_policy import format_time
from ...core.session import SessionStateError, SessionStateMachine
from ...core.timer import ClockStateError
from .. import views
from ..app import (
    DEFAULT_PROGRAM,
    DataDirOption,
    ProgramOption,
    app,
    get_catalog,
    get_program,
    get_settings,
    get_store,
    make_clock,
)

_WORKOUT_HELP = """\
  [cyan]d N [reps][/cyan]     complete / undo set N (optionally with reps done)
  [cyan]r N[/cyan]            cycle RPE of set N
  [cyan]w EX WEIGHT[/cyan]    change target weight of exercise EX
  [cyan]m EX MINUTES[/cyan]   change target duration of exercise EX
  [cyan]p N[/cyan]            plates for set N
  [cyan]t N[/cyan]            start the timer of section N (1-based)
  [cyan]x[/cyan]              skip the running timer
  [cyan]+S / -S[/cyan]        add or remove S seconds on the running timer
  [cyan]n TEXT[/cyan]         set workout notes
  [cyan]s[/cyan]              show sets
  [cyan]f[/cyan]              finish workout
  [cyan]c[/cyan]              cancel workout (discard)
"""


def _targets(engine: ProgressionEngine, program: Program, day_exercise_ids: list[str], catalog: ExerciseRegistry) -> dict[str, float]:
    targets: dict[str, float] = {}
    for exercise_id in day_exercise_ids:
        exercise = catalog.get(exercise_id)
        if exercise is not None:
            targets[exercise_id] = engine.next_weight(exercise, program)
    return targets


@app.command("next")
def next_workout(
    data_dir: DataDirOption = None,
    program_id: ProgramOption = DEFAULT_PROGRAM,
) -> None:
    """
    Show the next training day with target weights and plates.
    """
    store = get_store(data_dir)
    catalog = get_catalog()
    settings = get_settings()
    program = get_program(program_id)
    engine = ProgressionEngine(store)

    day = engine.next_training_day(program)
    targets = _targets(engine, program, day.exercise_ids(), catalog)
    views.console.print(views.format_day_plan(day, targets, catalog, settings))


def _set_by_number(session: SessionStateMachine, raw: str):
    try:
        index = int(raw)
    except ValueError:
        raise ValueError(f"Not a set number: {raw!r}")
    if not 1 <= index <= len(session.sets):
        raise ValueError(f"Set number must be between 1 and {len(session.sets)}")
    return session.sets[index - 1]


def _handle_command(
    session: SessionStateMachine,
    catalog: ExerciseRegistry,
    settings: Settings,
    line: str,
) -> bool:
    """Apply one interactive command.  Returns False once the workout is over."""
    parts = line.split()
    cmd, args = parts[0].lower(), parts[1:]

    if cmd == "d" and args:
        target = _set_by_number(session, args[0])
        reps = int(args[1]) if len(args) > 1 else None
        outcome = session.complete_set(target.set_id, reps)
        if outcome.timer_started:
            views.print_info(f"Timer started: {format_time(int((target.target_duration or 0) * 60))}")
        elif outcome.workout_set.completed and outcome.rest_seconds:
            views.print_info(f"Rest {format_time(outcome.rest_seconds)}")
        elif not outcome.workout_set.completed:
            views.print_info("Set reopened")
    elif cmd == "r" and args:
        updated = session.cycle_rpe(_set_by_number(session, args[0]).set_id)
        views.print_info(f"RPE: {updated.rpe if updated.rpe is not None else '-'}")
    elif cmd == "w" and len(args) == 2:
        catalog.require(args[0])
        session.edit_target_weight(args[0], float(args[1]))
        views.console.print(views.format_session_sets(session.sets, catalog))
    elif cmd == "m" and len(args) == 2:
        catalog.require(args[0])
        session.edit_target_duration(args[0], float(args[1]))
    elif cmd == "p" and args:
        loadout = session.plate_breakdown(_set_by_number(session, args[0]).set_id)
        views.console.print(views.format_loadout(loadout, settings.units))
    elif cmd == "t" and args:
        mode = session.start_section_timer(int(args[0]) - 1)
        views.print_info(f"{mode} timer started")
    elif cmd == "x":
        session.clock.skip()
    elif cmd[0] in "+-" and cmd[1:].isdigit():
        session.clock.adjust(int(cmd))
        views.print_info(f"Timer: {format_time(session.clock.remaining)}")
    elif cmd == "n":
        session.set_notes(line[1:].strip())
        views.print_success("Notes saved")
    elif cmd == "s":
        views.console.print(views.format_session_sets(session.sets, catalog))
    elif cmd == "f":
        summary = session.finish()
        views.print_summary(summary, catalog, settings.units)
        return False
    elif cmd == "c":
        if views.confirm_action("Discard this workout?"):
            session.cancel()
            views.print_info("Workout cancelled.")
            return False
    elif cmd in ("h", "?"):
        views.console.print(_WORKOUT_HELP)
    else:
        views.print_error(f"Unknown command: {line!r} (h for help)")
    return True


@app.command()
def workout(
    data_dir: DataDirOption = None,
    program_id: ProgramOption = DEFAULT_PROGRAM,
    day_id: Annotated[Optional[str], typer.Option("--day", help="Train this day instead of the next one")] = None,
    bodyweight: Annotated[Optional[float], typer.Option("--bodyweight", help="Readiness: bodyweight")] = None,
    feel: Annotated[Optional[int], typer.Option("--feel", help="Readiness: how you feel, 1-5")] = None,
    sleep: Annotated[Optional[float], typer.Option("--sleep", help="Readiness: hours slept")] = None,
) -> None:
    """
    Run an interactive workout session.
    """
    store = get_store(data_dir)
    catalog = get_catalog()
    settings = get_settings()
    program = get_program(program_id)
    engine = ProgressionEngine(store)

    if day_id is not None:
        day = program.day_by_id(day_id)
        if day is None:
            views.print_error(f"Program {program.program_id} has no day {day_id!r}")
            raise typer.Exit(1)
    else:
        day = engine.next_training_day(program)

    readiness = None
    if bodyweight is not None or feel is not None or sleep is not None:
        try:
            readiness = Readiness(bodyweight=bodyweight, feel=feel, sleep_hours=sleep)
        except ValueError as e:
            views.print_error(str(e))
            raise typer.Exit(1)

    def on_done() -> None:
        views.console.print("[bold green]Timer done[/bold green]")

    clock = make_clock(on_done=on_done, cues=views.TerminalCues(sound=settings.timer_sound))
    session = SessionStateMachine(engine, store, catalog, clock, settings)
    session.begin(day, program, readiness)

    views.console.print(f"[bold cyan]{program.name}[/bold cyan]: {day.name}")
    views.console.print(views.format_session_sets(session.sets, catalog))
    views.console.print("[dim]h for help[/dim]")

    while session.is_active:
        try:
            line = views.console.input("> ").strip()
        except EOFError:
            views.print_warning("Input closed; finishing workout.")
            views.print_summary(session.finish(), catalog, settings.units)
            break
        try:
            if session.process_clock_events():
                views.print_info("Timed set recorded")
            if not line:
                continue
            if not _handle_command(session, catalog, settings, line):
                break
        except (ValueError, KeyError, SessionStateError, ClockStateError, IndexError) as e:
            views.print_error(str(e))

    clock.stop()


@app.command()
def history(
    data_dir: DataDirOption = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of workouts to show")] = 20,
) -> None:
    """
    Show completed workouts, most recent first.
    """
    store = get_store(data_dir)
    settings = get_settings()
    workouts = store.list_workouts()[:limit]
    if not workouts:
        views.print_info("No workouts yet.")
        return
    views.console.print(views.format_history_table(workouts, settings.units))


@app.command()
def status(
    data_dir: DataDirOption = None,
    program_id: ProgramOption = DEFAULT_PROGRAM,
) -> None:
    """
    Show next weight and plateau status for every lift of a program.
    """
    store = get_store(data_dir)
    catalog = get_catalog()
    settings = get_settings()
    program = get_program(program_id)
    engine = ProgressionEngine(store)

    seen: list[str] = []
    for day in program.days:
        for exercise_id in day.exercise_ids():
            if exercise_id not in seen:
                seen.append(exercise_id)

    rows = []
    messages = []
    for exercise_id in seen:
        exercise = catalog.get(exercise_id)
        if exercise is None or exercise.tracking_type != "weight":
            continue
        plateau = engine.plateau_status(exercise, program)
        rows.append((exercise.name, engine.next_weight(exercise, program), plateau))
        if plateau.message:
            messages.append(plateau.message)

    views.console.print(views.format_status_table(rows, settings.units))
    for message in messages:
        views.print_warning(message)
