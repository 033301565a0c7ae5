"""
Configuration constants for the IronLog training engine.

All adjustable parameters are centralized here for easy tuning.
Program-level progression values (increments, retries, deload size) are
only defaults; a program's own progression block overrides them.
"""

from typing import Final

# =============================================================================
# UNITS AND EQUIPMENT
# =============================================================================

DEFAULT_UNITS: Final[str] = "lbs"
DEFAULT_BAR_WEIGHT: Final[float] = 45.0
DEFAULT_PLATES: Final[tuple[float, ...]] = (45, 35, 25, 10, 5, 2.5)
WEIGHT_ROUNDING: Final[float] = 5.0  # Loadable jump for deloads and warmups

# =============================================================================
# WARMUP LADDER
# =============================================================================

WARMUP_BAR_REPS: Final[int] = 5
WARMUP_REST_SECONDS: Final[int] = 60

# (fraction of work weight, reps, label, minimum work/bar ratio, must exceed bar)
WARMUP_RUNGS: Final[tuple[tuple[float, int, str, float, bool], ...]] = (
    (0.40, 5, "40%", 1.5, True),
    (0.60, 3, "60%", 2.0, False),
    (0.80, 2, "80%", 2.5, False),
)

# =============================================================================
# LINEAR PROGRESSION (Starting Strength NLP defaults)
# =============================================================================

UPPER_INCREMENT: Final[float] = 5.0
LOWER_INCREMENT: Final[float] = 5.0
DEADLIFT_INCREMENT: Final[float] = 10.0
FAILURE_RETRIES: Final[int] = 3  # Failed sessions at one weight before deloading
DELOAD_PERCENT: Final[float] = 10.0
MAX_DELOADS: Final[int] = 3  # Deloads in one weight zone before NLP is exhausted

# =============================================================================
# PLATEAU DETECTION
# =============================================================================

ALTERNATE_SCHEME_DELOADS: Final[int] = 2  # Deloads before suggesting 3x3
DELOAD_DROP_RATIO: Final[float] = 0.95  # Next top weight below 95% of previous = deload
WEIGHT_ZONE_TOLERANCE: Final[float] = 0.15  # "Same zone" = within 15% of reference

# =============================================================================
# HISTORY WINDOWS
# =============================================================================

PROGRESSION_HISTORY_LIMIT: Final[int] = 5
FAILURE_HISTORY_LIMIT: Final[int] = 10
DELOAD_HISTORY_LIMIT: Final[int] = 30

# =============================================================================
# REST HEURISTIC
# =============================================================================

DEFAULT_REST_SECONDS: Final[int] = 180

REST_BASE_BY_CATEGORY: Final[dict[str, int]] = {
    "barbell": 180,  # compounds
    "dumbbell": 90,
    "machine": 90,
    "bodyweight": 60,
}

RPE_VALUES: Final[tuple[int | None, ...]] = (None, 6, 7, 8, 9, 10)
RPE_EASY_FACTOR: Final[float] = 0.7  # RPE <= 7
RPE_HARD_FACTOR: Final[float] = 1.3  # RPE 9
RPE_MAX_FACTOR: Final[float] = 1.6  # RPE 10

REST_PER_MISSED_REP: Final[int] = 30
REST_PER_LATE_SET: Final[int] = 15  # Each barbell work set beyond LATE_SET_START
LATE_SET_START: Final[int] = 3
REST_AFTER_REPEATED_MISS: Final[int] = 30

REST_MIN_SECONDS: Final[int] = 30
REST_MAX_SECONDS: Final[int] = 600

# =============================================================================
# TIMER
# =============================================================================

TICK_SECONDS: Final[float] = 1.0
WARNING_CUE_SECONDS: Final[tuple[int, ...]] = (5, 3, 1)
DEFAULT_EMOM_INTERVAL: Final[int] = 60
