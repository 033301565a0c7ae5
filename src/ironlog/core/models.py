"""
Data models for IronLog.

All core dataclasses representing the exercise library, programs,
workouts, sets and personal records.  Validation of individual values
happens in ``__post_init__`` so that an illegal record can never be
constructed (and ``dataclasses.replace`` re-validates on every change).
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from .config import (
    DEFAULT_BAR_WEIGHT,
    DEFAULT_EMOM_INTERVAL,
    DEFAULT_PLATES,
    DEFAULT_REST_SECONDS,
    DEFAULT_UNITS,
    DEADLIFT_INCREMENT,
    DELOAD_PERCENT,
    FAILURE_RETRIES,
    LOWER_INCREMENT,
    MAX_DELOADS,
    RPE_VALUES,
    UPPER_INCREMENT,
)

Category = Literal["barbell", "dumbbell", "bodyweight", "machine", "cardio", "outdoor"]
LiftKind = Literal["deadlift", "squat", "upper"]
TrackingType = Literal["weight", "reps_only", "time"]
SectionType = Literal["straight", "circuit", "superset", "emom", "amrap", "warmup", "cooldown"]
WorkoutStatus = Literal["in_progress", "completed"]
PlateauState = Literal["progressing", "consider_alternate_scheme", "exhausted"]

CATEGORIES: tuple[str, ...] = ("barbell", "dumbbell", "bodyweight", "machine", "cardio", "outdoor")
TRACKING_TYPES: tuple[str, ...] = ("weight", "reps_only", "time")
SECTION_TYPES: tuple[str, ...] = (
    "straight", "circuit", "superset", "emom", "amrap", "warmup", "cooldown",
)
ROUND_BASED_SECTIONS: tuple[str, ...] = ("circuit", "superset")


def _validate_date(date_str: str) -> None:
    """Validate date string is ISO format YYYY-MM-DD."""
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        raise ValueError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD")
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError as e:
        raise ValueError(f"Invalid date: {date_str}") from e


# =============================================================================
# EXERCISE LIBRARY
# =============================================================================


@dataclass(frozen=True)
class ExerciseClass:
    """
    Resolved classification of an exercise.

    ``category`` drives rest and warmup decisions; ``lift`` picks the
    progression increment (deadlift-class, squat-class, or everything
    else).  Built once when the catalog is loaded via ``resolve``.
    """

    category: Category
    lift: LiftKind = "upper"

    def __post_init__(self) -> None:
        if self.category not in CATEGORIES:
            raise ValueError(f"Invalid category: {self.category!r}")
        if self.lift not in ("deadlift", "squat", "upper"):
            raise ValueError(f"Invalid lift kind: {self.lift!r}")

    @classmethod
    def resolve(cls, category: str, name: str) -> "ExerciseClass":
        """Classify an exercise from its category string and display name."""
        lowered = name.lower()
        if "deadlift" in lowered:
            lift: LiftKind = "deadlift"
        elif "squat" in lowered:
            lift = "squat"
        else:
            lift = "upper"
        return cls(category=category, lift=lift)  # type: ignore[arg-type]

    @property
    def is_barbell(self) -> bool:
        return self.category == "barbell"


@dataclass(frozen=True)
class Exercise:
    """
    One entry of the exercise library.

    Immutable during a session; changed only through the catalog files.
    """

    exercise_id: str
    name: str
    exercise_class: ExerciseClass
    tracking_type: TrackingType = "weight"
    bar_weight: float = 0.0  # Barbell lifts only
    base_weight: float = 0.0  # Starting load for non-barbell lifts
    default_rest_seconds: int = DEFAULT_REST_SECONDS
    weight_increment: float = 5.0
    muscle_groups: tuple[str, ...] = ()
    default_sets: int = 3
    default_reps: int = 5

    def __post_init__(self) -> None:
        if not self.exercise_id:
            raise ValueError("exercise_id must be non-empty")
        if self.tracking_type not in TRACKING_TYPES:
            raise ValueError(f"Invalid tracking_type: {self.tracking_type!r}")
        if self.bar_weight < 0 or self.base_weight < 0:
            raise ValueError("bar_weight and base_weight must be non-negative")
        if self.weight_increment < 0:
            raise ValueError("weight_increment must be non-negative")
        if self.default_rest_seconds < 0:
            raise ValueError("default_rest_seconds must be non-negative")

    @property
    def category(self) -> str:
        return self.exercise_class.category

    @property
    def is_barbell(self) -> bool:
        return self.exercise_class.is_barbell

    @property
    def start_weight(self) -> float:
        """Weight used when there is no history: the empty bar, else the base weight."""
        return self.bar_weight if self.bar_weight > 0 else self.base_weight


# =============================================================================
# PROGRAMS
# =============================================================================


@dataclass(frozen=True)
class ProgressionSettings:
    """Program-level linear progression parameters."""

    upper_increment: float = UPPER_INCREMENT
    lower_increment: float = LOWER_INCREMENT
    deadlift_increment: float = DEADLIFT_INCREMENT
    failure_retries: int = FAILURE_RETRIES
    deload_percent: float = DELOAD_PERCENT
    max_deloads: int = MAX_DELOADS

    def __post_init__(self) -> None:
        if self.failure_retries < 1:
            raise ValueError("failure_retries must be at least 1")
        if not 0 < self.deload_percent < 100:
            raise ValueError("deload_percent must be between 0 and 100")
        if self.max_deloads < 1:
            raise ValueError("max_deloads must be at least 1")


@dataclass
class ProgramExercise:
    """An exercise prescription inside a section."""

    exercise_id: str
    sets: int = 3
    reps: int = 5
    duration_minutes: float | None = None  # Time-tracked exercises only

    def __post_init__(self) -> None:
        if self.sets < 1:
            raise ValueError("sets must be at least 1")
        if self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.duration_minutes is not None and self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")


@dataclass
class Section:
    """
    A group of exercises within a training day sharing one structure.

    For circuit/superset sections ``sets`` on each exercise means sets per
    round, and ``rest_between_rounds`` is taken after the last exercise of
    each round.
    """

    exercises: list[ProgramExercise]
    section_type: SectionType = "straight"
    rounds: int = 1
    rest_between_rounds: int = 0
    interval_seconds: int = DEFAULT_EMOM_INTERVAL  # EMOM round length
    time_cap_minutes: float | None = None  # AMRAP

    def __post_init__(self) -> None:
        if self.section_type not in SECTION_TYPES:
            raise ValueError(f"Invalid section_type: {self.section_type!r}")
        if self.rounds < 1:
            raise ValueError("rounds must be at least 1")
        if self.rest_between_rounds < 0:
            raise ValueError("rest_between_rounds must be non-negative")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

    @property
    def is_round_based(self) -> bool:
        return self.section_type in ROUND_BASED_SECTIONS


@dataclass
class Day:
    """One training day of a program."""

    day_id: str
    name: str
    sections: list[Section] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.exercise_entries():
            raise ValueError(f"Day {self.day_id!r} has no exercises")

    def exercise_entries(self) -> list[ProgramExercise]:
        """All exercise prescriptions of the day, sections flattened in order."""
        return [pe for section in self.sections for pe in section.exercises]

    def exercise_ids(self) -> list[str]:
        """Distinct exercise ids in first-appearance order."""
        seen: dict[str, None] = {}
        for pe in self.exercise_entries():
            seen.setdefault(pe.exercise_id, None)
        return list(seen)


@dataclass
class Program:
    """
    A training program: ordered days plus progression parameters.

    ``alternating`` programs rotate through their days (A/B/A...);
    others always train day 0.
    """

    program_id: str
    name: str
    days: list[Day]
    alternating: bool = False
    days_per_week: int = 3
    progression: ProgressionSettings | None = None

    def __post_init__(self) -> None:
        if not self.days:
            raise ValueError(f"Program {self.program_id!r} has no days")
        ids = [d.day_id for d in self.days]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Program {self.program_id!r} has duplicate day ids")

    def day_by_id(self, day_id: str) -> Day | None:
        for day in self.days:
            if day.day_id == day_id:
                return day
        return None

    @property
    def settings(self) -> ProgressionSettings:
        """Progression block, falling back to the library defaults."""
        return self.progression if self.progression is not None else ProgressionSettings()


# =============================================================================
# WORKOUTS AND SETS
# =============================================================================


@dataclass(frozen=True)
class Readiness:
    """Optional pre-session readiness check-in."""

    bodyweight: float | None = None
    feel: int | None = None  # 1 (awful) .. 5 (great)
    sleep_hours: float | None = None

    def __post_init__(self) -> None:
        if self.bodyweight is not None and self.bodyweight <= 0:
            raise ValueError("bodyweight must be positive")
        if self.feel is not None and not 1 <= self.feel <= 5:
            raise ValueError("feel must be between 1 and 5")
        if self.sleep_hours is not None and not 0 <= self.sleep_hours <= 24:
            raise ValueError("sleep_hours must be between 0 and 24")


@dataclass
class Workout:
    """
    One training session instance.

    Created as ``in_progress`` when a session begins; ``completed`` is
    terminal.
    """

    program_id: str
    day_id: str
    date: str  # ISO format: YYYY-MM-DD
    start_time: str  # ISO timestamp
    workout_id: int | None = None
    end_time: str | None = None
    status: WorkoutStatus = "in_progress"
    duration_minutes: int = 0
    total_volume: float = 0.0
    readiness: Readiness | None = None
    notes: str = ""
    ai_analysis: str | None = None

    def __post_init__(self) -> None:
        _validate_date(self.date)
        if self.status not in ("in_progress", "completed"):
            raise ValueError(f"Invalid status: {self.status}")
        if self.duration_minutes < 0:
            raise ValueError("duration_minutes must be non-negative")
        if self.total_volume < 0:
            raise ValueError("total_volume must be non-negative")

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


@dataclass
class WorkoutSet:
    """
    A single set within a workout.

    ``set_number`` 0 is reserved for warmups.  Duration-tracked sets carry
    ``target_duration`` (minutes) and zero weight/reps.  Partial and over
    completion are both legal; a completed set always has a timestamp.
    """

    workout_id: int
    exercise_id: str
    set_number: int
    target_weight: float = 0.0
    actual_weight: float = 0.0
    target_reps: int = 0
    actual_reps: int = 0
    target_duration: float | None = None
    actual_duration: float = 0.0
    completed: bool = False
    is_warmup: bool = False
    rpe: int | None = None
    round_number: int | None = None
    rest_seconds: int = 0
    note: str = ""
    timestamp: str | None = None
    order: int = 0
    set_id: int | None = None

    def __post_init__(self) -> None:
        if self.set_number < 0:
            raise ValueError("set_number must be non-negative")
        if self.target_weight < 0 or self.actual_weight < 0:
            raise ValueError("weights must be non-negative")
        if self.target_reps < 0 or self.actual_reps < 0:
            raise ValueError("reps must be non-negative")
        if self.actual_duration < 0:
            raise ValueError("actual_duration must be non-negative")
        if self.rpe not in RPE_VALUES:
            raise ValueError(f"Invalid rpe: {self.rpe}. Must be one of {RPE_VALUES}")
        if self.completed and self.timestamp is None:
            raise ValueError("A completed set must carry a timestamp")

    @property
    def is_duration(self) -> bool:
        return self.target_duration is not None

    @property
    def volume(self) -> float:
        if not self.completed or self.is_warmup or self.is_duration:
            return 0.0
        return self.actual_weight * self.actual_reps


@dataclass
class PersonalRecord:
    """Best weight/reps pair for one (exercise, rep scheme) key."""

    exercise_id: str
    record_type: str  # e.g. "5rm"
    weight: float
    reps: int
    estimated_1rm: float
    workout_id: int | None = None
    date: str | None = None
    record_id: int | None = None

    def is_beaten_by(self, weight: float, reps: int) -> bool:
        """Strict domination: heavier, or the same weight for more reps."""
        return weight > self.weight or (weight == self.weight and reps > self.reps)


@dataclass
class HistoryEntry:
    """A completed workout together with its sets for one exercise."""

    workout: Workout
    sets: list[WorkoutSet] = field(default_factory=list)

    @property
    def work_sets(self) -> list[WorkoutSet]:
        return [s for s in self.sets if not s.is_warmup]

    @property
    def top_weight(self) -> float | None:
        """Heaviest target weight among the work sets, or None if there are none."""
        weights = [s.target_weight for s in self.work_sets]
        return max(weights) if weights else None


# =============================================================================
# ENGINE RESULTS
# =============================================================================


@dataclass(frozen=True)
class Loadout:
    """Plates per side of the bar for a target weight."""

    per_side: tuple[float, ...]
    total_weight: float
    shortfall: float = 0.0  # Per-side remainder the available plates could not make


@dataclass(frozen=True)
class WarmupStep:
    weight: float
    reps: int
    label: str


@dataclass(frozen=True)
class PlateauStatus:
    status: PlateauState
    message: str | None = None
    deload_count: int = 0


@dataclass
class WorkoutSummary:
    """Result of finishing a workout."""

    workout: Workout
    new_records: list[PersonalRecord] = field(default_factory=list)
    plateau: dict[str, PlateauStatus] = field(default_factory=dict)


@dataclass
class Settings:
    """User settings: units, equipment, and timer preferences."""

    units: str = DEFAULT_UNITS
    bar_weight: float = DEFAULT_BAR_WEIGHT
    available_plates: list[float] = field(default_factory=lambda: list(DEFAULT_PLATES))
    default_rest_seconds: int = DEFAULT_REST_SECONDS
    timer_sound: bool = True
    timer_vibrate: bool = True

    def __post_init__(self) -> None:
        if self.units not in ("lbs", "kg"):
            raise ValueError(f"Invalid units: {self.units!r}. Must be 'lbs' or 'kg'.")
        if self.bar_weight < 0:
            raise ValueError("bar_weight must be non-negative")
        if any(p <= 0 for p in self.available_plates):
            raise ValueError("available_plates must all be positive")
