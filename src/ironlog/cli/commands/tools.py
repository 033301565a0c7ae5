"""Calculator and timer commands: plates, warmup, e1rm, rest, interval, emom."""

from datetime import datetime
from typing import Annotated, Optional

import typer

from ...core.models import WorkoutSet
from ...core.plates import compute_loadout, generate_warmup_ladder
from ...core.progression import estimated_one_rep_max
from ...core.rest_policy import calculate_rest_seconds, format_time
from ...io.serializers import ValidationError, parse_plates
from .. import views
from ..app import app, get_catalog, get_settings, make_clock


def _resolve_bar(bar: float | None, exercise_id: str | None) -> float:
    settings = get_settings()
    if bar is not None:
        return bar
    if exercise_id is not None:
        try:
            exercise = get_catalog().require(exercise_id)
        except ValueError as e:
            raise typer.BadParameter(str(e))
        if exercise.bar_weight > 0:
            return exercise.bar_weight
    return settings.bar_weight


@app.command()
def plates(
    weight: Annotated[float, typer.Argument(help="Target weight including the bar")],
    bar: Annotated[Optional[float], typer.Option("--bar", help="Bar weight (default from settings)")] = None,
    available: Annotated[
        Optional[str],
        typer.Option("--plates", help="Comma-separated plate list, e.g. 45,35,25,10,5,2.5"),
    ] = None,
) -> None:
    """
    Show the plates to load on each side of the bar.
    """
    settings = get_settings()
    bar_weight = bar if bar is not None else settings.bar_weight
    try:
        plate_list = parse_plates(available) if available else settings.available_plates
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    loadout = compute_loadout(weight, bar_weight, plate_list)
    views.console.print(views.format_loadout(loadout, settings.units))


@app.command()
def warmup(
    weight: Annotated[float, typer.Argument(help="Work set weight")],
    bar: Annotated[Optional[float], typer.Option("--bar", help="Bar weight (default from settings)")] = None,
    exercise: Annotated[
        Optional[str], typer.Option("--exercise", "-e", help="Take the bar weight from this exercise"),
    ] = None,
) -> None:
    """
    Show the warmup ladder up to a work weight.
    """
    settings = get_settings()
    bar_weight = _resolve_bar(bar, exercise)
    steps = generate_warmup_ladder(weight, bar_weight)
    views.console.print(views.format_warmup_table(steps, weight, bar_weight, settings))


@app.command()
def e1rm(
    weight: Annotated[float, typer.Argument(help="Weight lifted")],
    reps: Annotated[int, typer.Argument(help="Reps completed")],
) -> None:
    """
    Estimate a one-rep max (Epley formula).
    """
    settings = get_settings()
    estimate = estimated_one_rep_max(weight, reps)
    views.console.print(f"Estimated 1RM: [bold]{estimate:g} {settings.units}[/bold]")


@app.command()
def rest(
    seconds: Annotated[
        Optional[int], typer.Argument(help="Rest length; computed from the options below when omitted"),
    ] = None,
    exercise: Annotated[Optional[str], typer.Option("--exercise", "-e", help="Exercise just trained")] = None,
    target_reps: Annotated[int, typer.Option("--target", help="Target reps of the set")] = 5,
    reps: Annotated[Optional[int], typer.Option("--reps", help="Reps completed (default: target)")] = None,
    set_number: Annotated[int, typer.Option("--set", help="Work set number")] = 1,
    rpe: Annotated[Optional[int], typer.Option("--rpe", help="Reported RPE (6-10)")] = None,
    missed_previous: Annotated[
        bool, typer.Option("--missed-previous", help="The previous set also missed its target"),
    ] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Only print the recommended rest")] = False,
) -> None:
    """
    Run a rest countdown.

    Give the seconds directly, or describe the set just finished and the
    recommended rest is computed.
    """
    settings = get_settings()

    if seconds is None and exercise is not None:
        now = datetime.now().isoformat(timespec="seconds")
        try:
            ex = get_catalog().require(exercise)
            finished = WorkoutSet(
                workout_id=0,
                exercise_id=ex.exercise_id,
                set_number=set_number,
                target_reps=target_reps,
                actual_reps=target_reps if reps is None else reps,
                completed=True,
                timestamp=now,
                rpe=rpe,
            )
        except ValueError as e:
            views.print_error(str(e))
            raise typer.Exit(1)
        previous = None
        if missed_previous:
            previous = WorkoutSet(
                workout_id=0, exercise_id=ex.exercise_id, set_number=max(1, set_number - 1),
                target_reps=target_reps, actual_reps=0, completed=True, timestamp=now,
            )
        seconds = calculate_rest_seconds(ex, finished, previous)
    elif seconds is None:
        seconds = settings.default_rest_seconds

    if seconds < 0:
        views.print_error("Rest must be non-negative")
        raise typer.Exit(1)

    views.print_info(f"Rest: {format_time(seconds)}")
    if dry_run:
        return

    clock = make_clock(cues=views.TerminalCues(sound=settings.timer_sound))
    if views.run_live_clock(clock, lambda: clock.start(seconds)):
        views.print_success("Rest over")
    else:
        views.print_warning("Timer stopped")


@app.command()
def interval(
    work: Annotated[int, typer.Argument(help="Work seconds per round")],
    rest_seconds: Annotated[int, typer.Argument(help="Rest seconds per round")],
    rounds: Annotated[int, typer.Option("--rounds", "-r", help="Number of rounds")] = 8,
) -> None:
    """
    Run a work/rest interval timer.
    """
    if work <= 0 or rest_seconds < 0 or rounds < 1:
        views.print_error("Work must be positive, rest non-negative and rounds at least 1")
        raise typer.Exit(1)

    settings = get_settings()

    def on_round(current: int, total: int) -> None:
        views.console.print(f"Round {current}/{total} done")

    clock = make_clock(on_round_complete=on_round, cues=views.TerminalCues(sound=settings.timer_sound))
    if views.run_live_clock(clock, lambda: clock.start_interval(work, rest_seconds, rounds)):
        views.print_success(f"Intervals complete: {rounds} rounds")
    else:
        views.print_warning("Timer stopped")


@app.command()
def emom(
    rounds: Annotated[int, typer.Option("--rounds", "-r", help="Number of rounds")] = 10,
    every: Annotated[int, typer.Option("--every", help="Round length in seconds")] = 60,
) -> None:
    """
    Run an every-minute-on-the-minute timer.
    """
    if every <= 0 or rounds < 1:
        views.print_error("Round length must be positive and rounds at least 1")
        raise typer.Exit(1)

    settings = get_settings()

    def on_round(current: int, total: int) -> None:
        views.console.print(f"Round {current}/{total} done")

    clock = make_clock(on_round_complete=on_round, cues=views.TerminalCues(sound=settings.timer_sound))
    if views.run_live_clock(clock, lambda: clock.start_emom(every, rounds)):
        views.print_success(f"EMOM complete: {rounds} rounds")
    else:
        views.print_warning("Timer stopped")
