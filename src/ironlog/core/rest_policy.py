"""
Smart rest-time heuristic.

Rest after a set starts from a per-category base and is stretched by
effort (RPE), missed reps, late barbell sets and back-to-back misses:

  rest = base(category) × f_rpe
       + 30 s × missed reps
       + 15 s × (set_number − 3)      barbell work sets beyond the third
       + 30 s                         if the previous set also missed
                                      (or was skipped)
  clamped to [30 s, 600 s]
"""

from .config import (
    DEFAULT_REST_SECONDS,
    LATE_SET_START,
    REST_AFTER_REPEATED_MISS,
    REST_BASE_BY_CATEGORY,
    REST_MAX_SECONDS,
    REST_MIN_SECONDS,
    REST_PER_LATE_SET,
    REST_PER_MISSED_REP,
    RPE_EASY_FACTOR,
    RPE_HARD_FACTOR,
    RPE_MAX_FACTOR,
)
from .models import Exercise, WorkoutSet
from .plates import round_half_up


def base_rest_seconds(exercise: Exercise) -> int:
    """Rest before any adjustment, from the exercise category."""
    if exercise.category in REST_BASE_BY_CATEGORY:
        return REST_BASE_BY_CATEGORY[exercise.category]
    return exercise.default_rest_seconds or DEFAULT_REST_SECONDS


def rpe_factor(rpe: int | None) -> float:
    """Multiplier applied to the base rest for a reported RPE (8 or unset = 1.0)."""
    if rpe is None:
        return 1.0
    if rpe <= 7:
        return RPE_EASY_FACTOR
    if rpe >= 10:
        return RPE_MAX_FACTOR
    if rpe == 9:
        return RPE_HARD_FACTOR
    return 1.0


def calculate_rest_seconds(
    exercise: Exercise,
    finished_set: WorkoutSet,
    previous_set: WorkoutSet | None = None,
) -> int:
    """
    Recommended rest after a completed set.

    Args:
        exercise: Exercise the set belongs to
        finished_set: The set just completed
        previous_set: The preceding work set of the same exercise, if any;
            left undone it counts as a miss

    Returns:
        Rest in whole seconds within [REST_MIN_SECONDS, REST_MAX_SECONDS]
    """
    rest = base_rest_seconds(exercise) * rpe_factor(finished_set.rpe)

    if finished_set.target_reps and finished_set.actual_reps < finished_set.target_reps:
        rest += (finished_set.target_reps - finished_set.actual_reps) * REST_PER_MISSED_REP

    if exercise.is_barbell and finished_set.set_number > LATE_SET_START:
        rest += (finished_set.set_number - LATE_SET_START) * REST_PER_LATE_SET

    if previous_set is not None and previous_set.actual_reps < previous_set.target_reps:
        rest += REST_AFTER_REPEATED_MISS

    return int(max(REST_MIN_SECONDS, min(REST_MAX_SECONDS, round_half_up(rest))))


def format_time(seconds: int) -> str:
    """Format seconds as M:SS."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"
