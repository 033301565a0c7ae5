"""
Exercise library for IronLog.

Exercises are loaded from YAML and resolved into typed Exercise
records with their ExerciseClass attached.
"""

from .loader import exercise_from_dict, load_exercises_from_yaml
from .registry import ExerciseRegistry, load_registry

__all__ = [
    "ExerciseRegistry",
    "exercise_from_dict",
    "load_exercises_from_yaml",
    "load_registry",
]
