"""Shared Typer app object, shared option types, and environment helpers."""

from pathlib import Path
from typing import Annotated, Optional

import typer

from ..core.config import TICK_SECONDS
from ..core.engine.config_loader import load_settings
from ..core.exercises import ExerciseRegistry, load_registry
from ..core.models import Program, Settings
from ..core.programs import load_programs
from ..core.timer import ClockCues, RestClock, ThreadScheduler
from ..io.history_store import TrainingStore, get_default_data_dir

DEFAULT_PROGRAM = "starting_strength"

# Tick length for every live clock the CLI runs
CLOCK_TICK_SECONDS = TICK_SECONDS

# Shared --data-dir option type used across all commands
DataDirOption = Annotated[
    Optional[Path],
    typer.Option("--data-dir", "-d", help="Directory holding the training log (default: ~/.ironlog/data)"),
]

ProgramOption = Annotated[
    str,
    typer.Option("--program", "-p", help="Program id, e.g. starting_strength"),
]

app = typer.Typer(
    name="ironlog",
    help="Strength training log with linear progression, plate math and rest timers.",
    no_args_is_help=True,
)


def get_store(data_dir: Path | None) -> TrainingStore:
    """Get the training store at ``data_dir`` or the default location."""
    store = TrainingStore(data_dir if data_dir is not None else get_default_data_dir())
    store.init()
    return store


def get_settings() -> Settings:
    return load_settings()


def get_catalog() -> ExerciseRegistry:
    return load_registry()


def get_program(program_id: str) -> Program:
    """
    Look up a program by id.

    Raises:
        typer.BadParameter: If no such program is installed
    """
    programs = load_programs()
    if program_id not in programs:
        valid = ", ".join(sorted(programs)) or "none"
        raise typer.BadParameter(f"Unknown program '{program_id}'. Available: {valid}")
    return programs[program_id]


def make_clock(on_tick=None, on_done=None, on_round_complete=None, cues: ClockCues | None = None) -> RestClock:
    """A rest clock ticking on a background thread."""
    return RestClock(
        scheduler=ThreadScheduler(),
        on_tick=on_tick,
        on_done=on_done,
        on_round_complete=on_round_complete,
        cues=cues,
        tick_seconds=CLOCK_TICK_SECONDS,
    )
