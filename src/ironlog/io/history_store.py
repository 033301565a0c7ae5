"""
JSONL-based storage for workouts, sets and personal records.

Handles reading, writing, and querying the training log.
"""

import json
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..core.config import DELOAD_HISTORY_LIMIT, FAILURE_HISTORY_LIMIT
from ..core.engine.config_loader import get_user_dir
from ..core.models import HistoryEntry, PersonalRecord, Workout, WorkoutSet
from ..core.progression import count_consecutive_failures, count_deloads
from .serializers import (
    ValidationError,
    dict_to_record,
    dict_to_workout,
    dict_to_workout_set,
    record_to_dict,
    to_json_line,
    workout_set_to_dict,
    workout_to_dict,
)

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1

T = TypeVar("T")


class TrainingStore:
    """
    Training log stored as three JSONL files in one directory.

    - workouts.jsonl: one Workout per line
    - sets.jsonl: one WorkoutSet per line
    - records.jsonl: one PersonalRecord per line

    Every write rewrites the affected file.  Ids are assigned by the
    store, one counter per file.

    Serves both the history reads used by the progression engine and the
    writes made by a running session.
    """

    def __init__(self, data_dir: str | Path):
        """
        Initialize the store.

        Args:
            data_dir: Directory holding the JSONL files
        """
        self.data_dir = Path(data_dir)
        self.workouts_path = self.data_dir / "workouts.jsonl"
        self.sets_path = self.data_dir / "sets.jsonl"
        self.records_path = self.data_dir / "records.jsonl"

    def exists(self) -> bool:
        """Check if the store has been initialized."""
        return self.workouts_path.exists()

    def init(self) -> None:
        """
        Create the data directory and empty files if they don't exist.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.workouts_path, self.sets_path, self.records_path):
            if not path.exists():
                path.touch()

    # =========================================================================
    # File access
    # =========================================================================

    def _read(self, path: Path, parse: Callable[[dict[str, Any]], T]) -> list[T]:
        if not path.exists():
            return []
        items: list[T] = []
        with open(path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    items.append(parse(json.loads(line)))
                except (json.JSONDecodeError, ValidationError, ValueError, TypeError) as e:
                    raise ValidationError(f"Error parsing line {line_num} in {path}: {e}") from e
        return items

    def _write(self, path: Path, rows: list[dict[str, Any]]) -> None:
        self.init()
        with open(path, "w", encoding="utf-8") as f:
            for row in rows:
                f.write(to_json_line(row) + "\n")

    def load_workouts(self) -> list[Workout]:
        return self._read(self.workouts_path, dict_to_workout)

    def load_sets(self) -> list[WorkoutSet]:
        return self._read(self.sets_path, dict_to_workout_set)

    def load_records(self) -> list[PersonalRecord]:
        return self._read(self.records_path, dict_to_record)

    def _save_workouts(self, workouts: list[Workout]) -> None:
        self._write(self.workouts_path, [workout_to_dict(w) for w in workouts])

    def _save_sets(self, sets: list[WorkoutSet]) -> None:
        self._write(self.sets_path, [workout_set_to_dict(s) for s in sets])

    def _save_records(self, records: list[PersonalRecord]) -> None:
        self._write(self.records_path, [record_to_dict(r) for r in records])

    # =========================================================================
    # Workouts
    # =========================================================================

    def create_workout(self, workout: Workout) -> Workout:
        """Persist a new workout and return it with its assigned id."""
        workouts = self.load_workouts()
        next_id = max((w.workout_id or 0 for w in workouts), default=0) + 1
        created = replace(workout, workout_id=next_id)
        workouts.append(created)
        self._save_workouts(workouts)
        logger.debug("Created workout %d", next_id)
        return created

    def get_workout(self, workout_id: int) -> Workout | None:
        for w in self.load_workouts():
            if w.workout_id == workout_id:
                return w
        return None

    def update_workout(self, workout: Workout) -> None:
        """
        Replace a stored workout.

        Raises:
            KeyError: If the workout does not exist
            ValidationError: If the stored workout is already completed
        """
        workouts = self.load_workouts()
        for i, existing in enumerate(workouts):
            if existing.workout_id == workout.workout_id:
                if existing.is_completed:
                    raise ValidationError(f"Workout {workout.workout_id} is completed")
                workouts[i] = workout
                self._save_workouts(workouts)
                return
        raise KeyError(workout.workout_id)

    def delete_workout(self, workout_id: int) -> None:
        """Delete a workout together with any sets still attached to it."""
        workouts = self.load_workouts()
        remaining = [w for w in workouts if w.workout_id != workout_id]
        if len(remaining) != len(workouts):
            self._save_workouts(remaining)
        sets = self.load_sets()
        kept = [s for s in sets if s.workout_id != workout_id]
        if len(kept) != len(sets):
            self._save_sets(kept)
        logger.debug("Deleted workout %d", workout_id)

    def attach_analysis(self, workout_id: int, text: str) -> Workout:
        """
        Store an analysis text on a completed workout.

        Raises:
            KeyError: If the workout does not exist
            ValidationError: If the workout is not completed
        """
        workouts = self.load_workouts()
        for i, existing in enumerate(workouts):
            if existing.workout_id == workout_id:
                if not existing.is_completed:
                    raise ValidationError(f"Workout {workout_id} is not completed")
                workouts[i] = replace(existing, ai_analysis=text)
                self._save_workouts(workouts)
                return workouts[i]
        raise KeyError(workout_id)

    def list_workouts(self, completed_only: bool = True) -> list[Workout]:
        """Workouts most recent first."""
        workouts = self.load_workouts()
        if completed_only:
            workouts = [w for w in workouts if w.is_completed]
        return sorted(workouts, key=lambda w: (w.date, w.start_time), reverse=True)

    # =========================================================================
    # Sets
    # =========================================================================

    def create_set(self, workout_set: WorkoutSet) -> WorkoutSet:
        sets = self.load_sets()
        next_id = max((s.set_id or 0 for s in sets), default=0) + 1
        created = replace(workout_set, set_id=next_id)
        sets.append(created)
        self._save_sets(sets)
        return created

    def update_set(self, workout_set: WorkoutSet) -> None:
        """
        Replace a stored set.

        Raises:
            KeyError: If the set does not exist
        """
        sets = self.load_sets()
        for i, existing in enumerate(sets):
            if existing.set_id == workout_set.set_id:
                sets[i] = workout_set
                self._save_sets(sets)
                return
        raise KeyError(workout_set.set_id)

    def delete_set(self, set_id: int) -> None:
        sets = self.load_sets()
        self._save_sets([s for s in sets if s.set_id != set_id])

    def get_sets_for_workout(self, workout_id: int) -> list[WorkoutSet]:
        return sorted(
            (s for s in self.load_sets() if s.workout_id == workout_id),
            key=lambda s: s.order,
        )

    # =========================================================================
    # History queries
    # =========================================================================

    def get_exercise_history(self, exercise_id: str, limit: int) -> list[HistoryEntry]:
        """
        Completed sessions that trained an exercise, most recent first.

        Args:
            exercise_id: Exercise to look up
            limit: Maximum number of sessions

        Returns:
            HistoryEntry per session holding only that exercise's sets
        """
        by_workout: dict[int, list[WorkoutSet]] = {}
        for s in self.load_sets():
            if s.exercise_id == exercise_id:
                by_workout.setdefault(s.workout_id, []).append(s)

        history: list[HistoryEntry] = []
        for workout in self.list_workouts(completed_only=True):
            sets = by_workout.get(workout.workout_id or 0)
            if not sets:
                continue
            history.append(HistoryEntry(workout=workout, sets=sorted(sets, key=lambda s: s.order)))
            if len(history) >= limit:
                break
        return history

    def get_consecutive_failures(self, exercise_id: str, weight: float) -> int:
        history = self.get_exercise_history(exercise_id, FAILURE_HISTORY_LIMIT)
        return count_consecutive_failures(history, weight)

    def get_deload_count(self, exercise_id: str, zone_reference: float) -> int:
        history = self.get_exercise_history(exercise_id, DELOAD_HISTORY_LIMIT)
        return count_deloads(history, zone_reference)

    def get_workouts_for_program(self, program_id: str) -> list[Workout]:
        """Completed workouts of a program, most recent first."""
        return [w for w in self.list_workouts(completed_only=True) if w.program_id == program_id]

    # =========================================================================
    # Personal records
    # =========================================================================

    def get_personal_record(self, exercise_id: str, record_type: str) -> PersonalRecord | None:
        for r in self.load_records():
            if r.exercise_id == exercise_id and r.record_type == record_type:
                return r
        return None

    def upsert_personal_record(self, record: PersonalRecord) -> PersonalRecord:
        """Insert or replace the record for (exercise_id, record_type)."""
        records = self.load_records()
        for i, existing in enumerate(records):
            if existing.exercise_id == record.exercise_id and existing.record_type == record.record_type:
                saved = replace(record, record_id=existing.record_id)
                records[i] = saved
                self._save_records(records)
                return saved
        next_id = max((r.record_id or 0 for r in records), default=0) + 1
        saved = replace(record, record_id=next_id)
        records.append(saved)
        self._save_records(records)
        return saved

    def get_records_for_exercise(self, exercise_id: str) -> list[PersonalRecord]:
        """Records of one exercise, fewest reps first."""
        return sorted(
            (r for r in self.load_records() if r.exercise_id == exercise_id),
            key=lambda r: r.reps,
        )

    def all_records(self) -> list[PersonalRecord]:
        return sorted(self.load_records(), key=lambda r: (r.exercise_id, r.reps))

    # =========================================================================
    # Export / import
    # =========================================================================

    def export_all(self) -> dict[str, Any]:
        """Everything in the store as one JSON-compatible dict."""
        return {
            "_export_date": datetime.now().isoformat(timespec="seconds"),
            "_version": EXPORT_VERSION,
            "workouts": [workout_to_dict(w) for w in self.load_workouts()],
            "sets": [workout_set_to_dict(s) for s in self.load_sets()],
            "records": [record_to_dict(r) for r in self.load_records()],
        }

    def import_all(self, data: dict[str, Any]) -> None:
        """
        Replace the stored collections with an export.

        All entries are validated before anything is written.

        Raises:
            ValidationError: If any entry is invalid
        """
        if not isinstance(data, dict):
            raise ValidationError("Import data must be a JSON object")

        def parse(key: str, fn: Callable[[dict[str, Any]], T]) -> list[T]:
            rows = data.get(key, [])
            if not isinstance(rows, list):
                raise ValidationError(f"'{key}' must be a list")
            parsed = []
            for i, row in enumerate(rows):
                try:
                    parsed.append(fn(row))
                except (ValidationError, ValueError, TypeError, AttributeError) as e:
                    raise ValidationError(f"Invalid entry {i} in '{key}': {e}") from e
            return parsed

        workouts = parse("workouts", dict_to_workout)
        sets = parse("sets", dict_to_workout_set)
        records = parse("records", dict_to_record)

        self._save_workouts(workouts)
        self._save_sets(sets)
        self._save_records(records)
        logger.info(
            "Imported %d workouts, %d sets, %d records",
            len(workouts), len(sets), len(records),
        )

    def clear(self) -> None:
        """Remove all data (dangerous - use with caution)."""
        for path in (self.workouts_path, self.sets_path, self.records_path):
            if path.exists():
                path.write_text("")


def get_default_data_dir() -> Path:
    """Default store directory: <user dir>/data."""
    return get_user_dir() / "data"


def get_default_store() -> TrainingStore:
    """
    Get a TrainingStore at the default location.
    """
    return TrainingStore(get_default_data_dir())
