"""
Linear progression: next weight, next day, plateau detection, E1RM.

Implements Starting Strength style novice linear progression (NLP):

  success  (every work set done at or above target reps) → add increment
  failure  → retry the same weight until ``failure_retries`` failed
             sessions in a row, then deload by ``deload_percent``
  plateau  → repeated deloads inside one weight zone first suggest an
             alternate set/rep scheme (3x3), then declare NLP exhausted

The module-level functions are pure and take history as input
(most recent session first).  ``ProgressionEngine`` binds them to a
HistoryStore collaborator.
"""

from typing import Protocol

from .config import (
    ALTERNATE_SCHEME_DELOADS,
    DELOAD_DROP_RATIO,
    PROGRESSION_HISTORY_LIMIT,
    WEIGHT_ROUNDING,
    WEIGHT_ZONE_TOLERANCE,
)
from .models import (
    Day,
    Exercise,
    HistoryEntry,
    PlateauStatus,
    Program,
    ProgressionSettings,
    Workout,
)
from .plates import round_half_up, round_to_nearest


class HistoryStore(Protocol):
    """Read side of workout storage, completed workouts only."""

    def get_exercise_history(self, exercise_id: str, limit: int) -> list[HistoryEntry]: ...

    def get_consecutive_failures(self, exercise_id: str, weight: float) -> int: ...

    def get_deload_count(self, exercise_id: str, zone_reference: float) -> int: ...

    def get_workouts_for_program(self, program_id: str) -> list[Workout]: ...


# =============================================================================
# Session outcome helpers
# =============================================================================


def is_successful_session(entry: HistoryEntry) -> bool:
    """All work sets completed with at least the target reps."""
    work_sets = entry.work_sets
    if not work_sets:
        return False
    return all(s.completed and s.actual_reps >= s.target_reps for s in work_sets)


def count_consecutive_failures(history: list[HistoryEntry], weight: float) -> int:
    """
    Count failed sessions at ``weight``, most recent first.

    Stops at the first session that either succeeded or has no work sets
    at that weight.
    """
    count = 0
    for entry in history:
        at_weight = [s for s in entry.work_sets if s.target_weight == weight]
        if not at_weight:
            break
        if any(not s.completed or s.actual_reps < s.target_reps for s in at_weight):
            count += 1
        else:
            break
    return count


def count_deloads(history: list[HistoryEntry], zone_reference: float) -> int:
    """
    Count deloads that happened inside the weight zone around ``zone_reference``.

    A deload is a session whose top work weight dropped below 95% of the
    session before it, where that earlier weight lies within 15% of the
    reference.  A non-positive reference has no zone and yields 0.

    Args:
        history: Sessions for one exercise, most recent first
        zone_reference: Current working weight for the exercise

    Returns:
        Number of deloads in the zone
    """
    if zone_reference <= 0:
        return 0

    deloads = 0
    for newer, older in zip(history, history[1:]):
        newer_top = newer.top_weight
        older_top = older.top_weight
        if newer_top is None or older_top is None:
            continue
        in_zone = abs(older_top - zone_reference) / zone_reference < WEIGHT_ZONE_TOLERANCE
        if newer_top < older_top * DELOAD_DROP_RATIO and in_zone:
            deloads += 1
    return deloads


def current_working_weight(history: list[HistoryEntry]) -> float | None:
    """Target weight of the first work set of the most recent session."""
    if not history:
        return None
    work_sets = history[0].work_sets
    return work_sets[0].target_weight if work_sets else None


# =============================================================================
# Progression rules
# =============================================================================


def get_increment(exercise: Exercise, program: Program | None) -> float:
    """
    Weight added after a successful session.

    Programs without a progression block use the exercise's own increment;
    otherwise deadlift-class lifts take the deadlift increment, squat-class
    lifts the lower-body increment, and everything else the upper-body one.
    """
    if program is None or program.progression is None:
        return exercise.weight_increment

    settings = program.progression
    lift = exercise.exercise_class.lift
    if lift == "deadlift":
        return settings.deadlift_increment
    if lift == "squat":
        return settings.lower_increment
    return settings.upper_increment


def next_weight(
    exercise: Exercise,
    program: Program | None,
    history: list[HistoryEntry],
    consecutive_failures: int | None = None,
) -> float:
    """
    Decide the target weight for the next session of an exercise.

    Args:
        exercise: Exercise being planned
        program: Program supplying increments and deload rules
        history: Recent sessions for the exercise, most recent first
        consecutive_failures: Failure count at the last weight, if already
            known (otherwise counted from ``history``)

    Returns:
        Next target weight; the exercise start weight when there is no
        usable history
    """
    if exercise.tracking_type != "weight" or not history:
        return exercise.start_weight

    work_sets = history[0].work_sets
    if not work_sets:
        return exercise.start_weight

    last_weight = work_sets[0].target_weight

    if is_successful_session(history[0]):
        return last_weight + get_increment(exercise, program)

    if consecutive_failures is None:
        consecutive_failures = count_consecutive_failures(history, last_weight)

    settings = program.settings if program is not None else ProgressionSettings()
    if consecutive_failures < settings.failure_retries:
        return last_weight

    deloaded = round_to_nearest(
        last_weight * (1 - settings.deload_percent / 100), WEIGHT_ROUNDING
    )
    return max(deloaded, exercise.start_weight)


def next_training_day(program: Program, completed_workouts: list[Workout]) -> Day:
    """
    Pick the next day of a program.

    Alternating programs with two or more days continue the rotation after
    the most recently completed day; everything else trains day 0.
    """
    if not program.alternating or len(program.days) < 2:
        return program.days[0]

    completed = [w for w in completed_workouts if w.is_completed]
    if not completed:
        return program.days[0]

    last = max(completed, key=lambda w: (w.date, w.start_time))
    ids = [d.day_id for d in program.days]
    last_idx = ids.index(last.day_id) if last.day_id in ids else -1
    return program.days[(last_idx + 1) % len(program.days)]


def plateau_status(
    exercise: Exercise,
    program: Program | None,
    deload_count: int,
) -> PlateauStatus:
    """
    Classify progress on a lift from the number of deloads in its weight zone.

    Returns:
        ``exhausted`` at ``max_deloads`` or more, ``consider_alternate_scheme``
        at two or more, otherwise ``progressing`` (no message)
    """
    settings = program.settings if program is not None else ProgressionSettings()
    max_deloads = settings.max_deloads

    if deload_count >= max_deloads:
        return PlateauStatus(
            status="exhausted",
            message=(
                f"{exercise.name} has stalled after {deload_count} deloads. "
                "Consider switching to an intermediate program (Texas Method, HLM, or 531)."
            ),
            deload_count=deload_count,
        )

    if deload_count >= ALTERNATE_SCHEME_DELOADS:
        return PlateauStatus(
            status="consider_alternate_scheme",
            message=(
                f"{exercise.name} has deloaded {deload_count} times at this weight zone. "
                "Consider switching to 3x3 before moving to intermediate."
            ),
            deload_count=deload_count,
        )

    return PlateauStatus(status="progressing", message=None, deload_count=deload_count)


def estimated_one_rep_max(weight: float, reps: int) -> float:
    """
    Estimate a one-rep max with the Epley formula.

    1RM = weight × (1 + reps/30), rounded to the nearest whole unit.
    A single is its own 1RM; non-positive inputs give 0.
    """
    if reps <= 0 or weight <= 0:
        return 0
    if reps == 1:
        return weight
    return round_half_up(weight * (1 + reps / 30))


# =============================================================================
# Store-bound facade
# =============================================================================


class ProgressionEngine:
    """Progression rules bound to a history store."""

    def __init__(self, history: HistoryStore):
        self.history = history

    def next_weight(self, exercise: Exercise, program: Program | None) -> float:
        history = self.history.get_exercise_history(
            exercise.exercise_id, PROGRESSION_HISTORY_LIMIT
        )
        failures = None
        last = current_working_weight(history)
        if last is not None and not is_successful_session(history[0]):
            failures = self.history.get_consecutive_failures(exercise.exercise_id, last)
        return next_weight(exercise, program, history, failures)

    def next_training_day(self, program: Program) -> Day:
        workouts = self.history.get_workouts_for_program(program.program_id)
        return next_training_day(program, workouts)

    def plateau_status(
        self,
        exercise: Exercise,
        program: Program | None,
        zone_reference: float | None = None,
    ) -> PlateauStatus:
        """
        Plateau status around the exercise's current working weight.

        ``zone_reference`` defaults to the most recent work weight.
        """
        if zone_reference is None:
            zone_reference = current_working_weight(
                self.history.get_exercise_history(exercise.exercise_id, 1)
            )
        if not zone_reference or zone_reference <= 0:
            return plateau_status(exercise, program, 0)
        deloads = self.history.get_deload_count(exercise.exercise_id, zone_reference)
        return plateau_status(exercise, program, deloads)
