"""
Exercise registry.

All known exercises live in an ExerciseRegistry built from the YAML
library.  Sessions look exercises up with ``get`` (None for unknown
ids); the CLI uses ``require`` to fail with a helpful message.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from ..models import Exercise


class ExerciseRegistry:
    """In-memory exercise catalog keyed by exercise id."""

    def __init__(self, exercises: Iterable[Exercise] = ()):
        self._exercises: dict[str, Exercise] = {e.exercise_id: e for e in exercises}

    def __len__(self) -> int:
        return len(self._exercises)

    def __iter__(self) -> Iterator[Exercise]:
        return iter(self._exercises.values())

    def __contains__(self, exercise_id: object) -> bool:
        return exercise_id in self._exercises

    def get(self, exercise_id: str) -> Exercise | None:
        return self._exercises.get(exercise_id)

    def require(self, exercise_id: str) -> Exercise:
        """
        Return the Exercise for the given exercise_id.

        Raises:
            ValueError: If exercise_id is not in the registry
        """
        if exercise_id not in self._exercises:
            valid = ", ".join(sorted(self._exercises))
            raise ValueError(f"Unknown exercise '{exercise_id}'. Valid IDs: {valid}")
        return self._exercises[exercise_id]

    def add(self, exercise: Exercise) -> None:
        self._exercises[exercise.exercise_id] = exercise


def load_registry(user_dir: Path | None = None) -> ExerciseRegistry:
    """
    Build the registry from the bundled library and user overrides.

    Raises:
        RuntimeError: If no exercise could be loaded at all
    """
    from .loader import load_exercises_from_yaml

    loaded = load_exercises_from_yaml(user_dir)
    if not loaded:
        raise RuntimeError(
            "ironlog: no exercises could be loaded. "
            "Check that src/ironlog/library/exercises.yaml is present and valid."
        )
    return ExerciseRegistry(loaded.values())
