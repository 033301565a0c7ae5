"""
JSON serialization for training data models.

Handles conversion between dataclasses and JSON-compatible dicts.
"""

import json
from typing import Any

from ..core.config import RPE_VALUES
from ..core.models import PersonalRecord, Readiness, Workout, WorkoutSet, _validate_date


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_date(date_str: str) -> str:
    """
    Validate date string is ISO format.

    Args:
        date_str: Date string to validate

    Returns:
        The same YYYY-MM-DD string

    Raises:
        ValidationError: If date format is invalid
    """
    if not isinstance(date_str, str):
        raise ValidationError(f"Invalid date: {date_str!r}")
    try:
        _validate_date(date_str)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return date_str


def validate_non_negative(value: int | float, name: str) -> int | float:
    """
    Validate that a value is non-negative.

    Raises:
        ValidationError: If value is negative
    """
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def validate_rpe(rpe: Any) -> int | None:
    if rpe not in RPE_VALUES:
        raise ValidationError(f"Invalid rpe: {rpe}. Must be one of {RPE_VALUES}")
    return rpe


def parse_plates(text: str) -> list[float]:
    """
    Parse a comma-separated plate list such as "45,35,25,10,5,2.5".

    Raises:
        ValidationError: If an entry is not a positive number
    """
    plates: list[float] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            plate = float(part)
        except ValueError as e:
            raise ValidationError(f"Invalid plate: {part!r}") from e
        if plate <= 0:
            raise ValidationError(f"Plates must be positive, got {plate:g}")
        plates.append(plate)
    if not plates:
        raise ValidationError("No plates given")
    return plates


# =============================================================================
# Readiness
# =============================================================================


def readiness_to_dict(readiness: Readiness) -> dict[str, Any]:
    return {
        "bodyweight": readiness.bodyweight,
        "feel": readiness.feel,
        "sleep_hours": readiness.sleep_hours,
    }


def dict_to_readiness(data: dict[str, Any]) -> Readiness:
    try:
        return Readiness(
            bodyweight=data.get("bodyweight"),
            feel=data.get("feel"),
            sleep_hours=data.get("sleep_hours"),
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


# =============================================================================
# Workouts
# =============================================================================


def workout_to_dict(workout: Workout) -> dict[str, Any]:
    """
    Convert Workout to JSON-compatible dict.

    Optional fields are only written when set.
    """
    d: dict[str, Any] = {
        "workout_id": workout.workout_id,
        "program_id": workout.program_id,
        "day_id": workout.day_id,
        "date": workout.date,
        "start_time": workout.start_time,
        "end_time": workout.end_time,
        "status": workout.status,
        "duration_minutes": workout.duration_minutes,
        "total_volume": workout.total_volume,
        "notes": workout.notes,
    }
    if workout.readiness is not None:
        d["readiness"] = readiness_to_dict(workout.readiness)
    if workout.ai_analysis is not None:
        d["ai_analysis"] = workout.ai_analysis
    return d


def dict_to_workout(data: dict[str, Any]) -> Workout:
    """
    Convert dict to Workout.

    Raises:
        ValidationError: If data is invalid
    """
    for key in ("workout_id", "program_id", "day_id", "date", "start_time"):
        if key not in data:
            raise ValidationError(f"Workout missing '{key}'")
    validate_date(data["date"])
    if data.get("status", "in_progress") not in ("in_progress", "completed"):
        raise ValidationError(f"Invalid status: {data.get('status')}")
    validate_non_negative(data.get("duration_minutes", 0), "duration_minutes")
    validate_non_negative(data.get("total_volume", 0), "total_volume")

    readiness = data.get("readiness")
    return Workout(
        workout_id=int(data["workout_id"]),
        program_id=str(data["program_id"]),
        day_id=str(data["day_id"]),
        date=data["date"],
        start_time=str(data["start_time"]),
        end_time=data.get("end_time"),
        status=data.get("status", "in_progress"),
        duration_minutes=int(data.get("duration_minutes", 0)),
        total_volume=float(data.get("total_volume", 0.0)),
        readiness=dict_to_readiness(readiness) if readiness else None,
        notes=data.get("notes") or "",
        ai_analysis=data.get("ai_analysis"),
    )


# =============================================================================
# Sets
# =============================================================================


def workout_set_to_dict(s: WorkoutSet) -> dict[str, Any]:
    """Convert WorkoutSet to JSON-compatible dict."""
    d: dict[str, Any] = {
        "set_id": s.set_id,
        "workout_id": s.workout_id,
        "exercise_id": s.exercise_id,
        "set_number": s.set_number,
        "target_weight": s.target_weight,
        "actual_weight": s.actual_weight,
        "target_reps": s.target_reps,
        "actual_reps": s.actual_reps,
        "completed": s.completed,
        "is_warmup": s.is_warmup,
        "rpe": s.rpe,
        "rest_seconds": s.rest_seconds,
        "timestamp": s.timestamp,
        "order": s.order,
    }
    if s.target_duration is not None:
        d["target_duration"] = s.target_duration
        d["actual_duration"] = s.actual_duration
    if s.round_number is not None:
        d["round_number"] = s.round_number
    if s.note:
        d["note"] = s.note
    return d


def dict_to_workout_set(data: dict[str, Any]) -> WorkoutSet:
    """
    Convert dict to WorkoutSet.

    Raises:
        ValidationError: If data is invalid
    """
    for key in ("set_id", "workout_id", "exercise_id", "set_number"):
        if key not in data:
            raise ValidationError(f"Set missing '{key}'")
    validate_non_negative(data["set_number"], "set_number")
    validate_non_negative(data.get("target_weight", 0), "target_weight")
    validate_non_negative(data.get("actual_weight", 0), "actual_weight")
    validate_non_negative(data.get("target_reps", 0), "target_reps")
    validate_non_negative(data.get("actual_reps", 0), "actual_reps")
    validate_rpe(data.get("rpe"))
    completed = bool(data.get("completed", False))
    if completed and not data.get("timestamp"):
        raise ValidationError(f"Completed set {data['set_id']} has no timestamp")

    target_duration = data.get("target_duration")
    return WorkoutSet(
        set_id=int(data["set_id"]),
        workout_id=int(data["workout_id"]),
        exercise_id=str(data["exercise_id"]),
        set_number=int(data["set_number"]),
        target_weight=float(data.get("target_weight", 0.0)),
        actual_weight=float(data.get("actual_weight", 0.0)),
        target_reps=int(data.get("target_reps", 0)),
        actual_reps=int(data.get("actual_reps", 0)),
        target_duration=float(target_duration) if target_duration is not None else None,
        actual_duration=float(data.get("actual_duration", 0.0)),
        completed=completed,
        is_warmup=bool(data.get("is_warmup", False)),
        rpe=data.get("rpe"),
        round_number=data.get("round_number"),
        rest_seconds=int(data.get("rest_seconds", 0)),
        note=data.get("note", ""),
        timestamp=data.get("timestamp"),
        order=int(data.get("order", 0)),
    )


# =============================================================================
# Personal records
# =============================================================================


def record_to_dict(record: PersonalRecord) -> dict[str, Any]:
    return {
        "record_id": record.record_id,
        "exercise_id": record.exercise_id,
        "record_type": record.record_type,
        "weight": record.weight,
        "reps": record.reps,
        "estimated_1rm": record.estimated_1rm,
        "workout_id": record.workout_id,
        "date": record.date,
    }


def dict_to_record(data: dict[str, Any]) -> PersonalRecord:
    """
    Convert dict to PersonalRecord.

    Raises:
        ValidationError: If data is invalid
    """
    for key in ("exercise_id", "record_type", "weight", "reps"):
        if key not in data:
            raise ValidationError(f"Record missing '{key}'")
    validate_non_negative(data["weight"], "weight")
    validate_non_negative(data["reps"], "reps")
    if data.get("date") is not None:
        validate_date(data["date"])
    record_id = data.get("record_id")
    workout_id = data.get("workout_id")
    return PersonalRecord(
        record_id=int(record_id) if record_id is not None else None,
        exercise_id=str(data["exercise_id"]),
        record_type=str(data["record_type"]),
        weight=float(data["weight"]),
        reps=int(data["reps"]),
        estimated_1rm=float(data.get("estimated_1rm", 0.0)),
        workout_id=int(workout_id) if workout_id is not None else None,
        date=data.get("date"),
    )


def to_json_line(data: dict[str, Any]) -> str:
    """One compact JSON object per line."""
    return json.dumps(data, separators=(",", ":"))
