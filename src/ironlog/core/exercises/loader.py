"""
YAML → Exercise loader.

Loads the exercise library from the bundled
``src/ironlog/library/exercises.yaml``.  Each entry under the top-level
``exercises:`` key is keyed by exercise id.

User overrides: entries in ``~/.ironlog/exercises.yaml`` are deep-merged
over the bundled entry with the same id, so only changed keys need to be
listed.  An id that is not bundled is added as a new exercise.

Category and lift kind are resolved into an ExerciseClass here, once,
so nothing downstream matches on exercise names.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Any

from ..engine.config_loader import deep_merge, get_package_dir, get_user_dir, load_yaml_file
from ..models import CATEGORIES, Exercise, ExerciseClass

_REQUIRED_FIELDS: frozenset[str] = frozenset({"name", "category"})


def exercise_from_dict(exercise_id: str, d: dict[str, Any]) -> Exercise:
    """Convert a raw library entry to an Exercise.

    Raises ValueError if a required field is absent or a value is illegal.
    """
    missing = _REQUIRED_FIELDS - set(d)
    if missing:
        raise ValueError(f"missing fields: {sorted(missing)}")
    if d["category"] not in CATEGORIES:
        raise ValueError(f"unknown category {d['category']!r}")

    name = str(d["name"])
    try:
        return Exercise(
            exercise_id=exercise_id,
            name=name,
            exercise_class=ExerciseClass.resolve(str(d["category"]), name),
            tracking_type=str(d.get("tracking", "weight")),  # type: ignore[arg-type]
            bar_weight=float(d.get("bar_weight", 0.0)),
            base_weight=float(d.get("base_weight", 0.0)),
            default_rest_seconds=int(d.get("rest_seconds", 180)),
            weight_increment=float(d.get("increment", 5.0)),
            muscle_groups=tuple(str(m) for m in d.get("muscle_groups", ())),
            default_sets=int(d.get("sets", 3)),
            default_reps=int(d.get("reps", 5)),
        )
    except TypeError as e:
        raise ValueError(str(e)) from e


def _entries(path: Path) -> dict[str, Any]:
    raw = load_yaml_file(path)
    entries = raw.get("exercises", {})
    if not isinstance(entries, dict):
        warnings.warn(f"ironlog: {path} has no 'exercises' mapping", stacklevel=3)
        return {}
    return entries


def load_exercises_from_yaml(user_dir: Path | None = None) -> dict[str, Exercise]:
    """Return {exercise_id: Exercise} from the bundled library plus user overrides.

    Entries that fail validation are skipped with a warning.
    """
    merged: dict[str, Any] = {}

    bundled = get_package_dir() / "library" / "exercises.yaml"
    if bundled.exists():
        merged = _entries(bundled)

    user_path = (user_dir if user_dir is not None else get_user_dir()) / "exercises.yaml"
    if user_path.exists():
        for exercise_id, entry in _entries(user_path).items():
            base = merged.get(exercise_id)
            if isinstance(base, dict) and isinstance(entry, dict):
                merged[exercise_id] = deep_merge(base, entry)
            else:
                merged[exercise_id] = entry

    result: dict[str, Exercise] = {}
    for exercise_id, entry in merged.items():
        if not isinstance(entry, dict):
            warnings.warn(f"ironlog: skipping exercise '{exercise_id}' (not a mapping)", stacklevel=2)
            continue
        try:
            result[str(exercise_id)] = exercise_from_dict(str(exercise_id), entry)
        except ValueError as exc:
            warnings.warn(f"ironlog: skipping exercise '{exercise_id}' ({exc})", stacklevel=2)
    return result
