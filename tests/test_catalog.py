"""
Exercise library, program templates and settings loading.

User override files are written into a temporary user directory passed
explicitly as ``user_dir``.
"""

import textwrap

import pytest

from ironlog.core.engine.config_loader import deep_merge, get_user_dir, load_settings
from ironlog.core.exercises import ExerciseRegistry, exercise_from_dict, load_exercises_from_yaml, load_registry
from ironlog.core.programs import load_programs, program_from_dict


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")


class TestDeepMerge:
    def test_nested_keys_merge(self):
        base = {"a": 1, "nested": {"x": 1, "y": 2}}
        merged = deep_merge(base, {"nested": {"y": 3}, "b": 2})
        assert merged == {"a": 1, "b": 2, "nested": {"x": 1, "y": 3}}
        assert base["nested"]["y"] == 2


class TestExerciseLibrary:
    def test_bundled_library_loads(self, tmp_path):
        exercises = load_exercises_from_yaml(tmp_path)
        assert {"squat", "bench_press", "deadlift", "plank", "push_up"} <= set(exercises)

    def test_classification(self, tmp_path):
        exercises = load_exercises_from_yaml(tmp_path)
        assert exercises["deadlift"].exercise_class.lift == "deadlift"
        assert exercises["front_squat"].exercise_class.lift == "squat"
        assert exercises["bench_press"].exercise_class.lift == "upper"
        assert exercises["squat"].is_barbell
        assert exercises["plank"].tracking_type == "time"

    def test_user_override_merges_keys(self, tmp_path):
        _write(
            tmp_path / "exercises.yaml",
            """
            exercises:
              squat:
                bar_weight: 35
              goblet_squat:
                name: Goblet Squat
                category: dumbbell
                base_weight: 30
            """,
        )
        exercises = load_exercises_from_yaml(tmp_path)
        assert exercises["squat"].bar_weight == 35
        assert exercises["squat"].name == "Squat"
        assert exercises["goblet_squat"].start_weight == 30

    def test_invalid_entry_skipped_with_warning(self, tmp_path):
        _write(
            tmp_path / "exercises.yaml",
            """
            exercises:
              mystery:
                name: Mystery Lift
                category: spaceship
            """,
        )
        with pytest.warns(UserWarning, match="mystery"):
            exercises = load_exercises_from_yaml(tmp_path)
        assert "mystery" not in exercises
        assert "squat" in exercises

    def test_unparseable_user_file_ignored(self, tmp_path):
        _write(tmp_path / "exercises.yaml", "exercises: [unclosed\n")
        with pytest.warns(UserWarning):
            exercises = load_exercises_from_yaml(tmp_path)
        assert "squat" in exercises

    def test_exercise_from_dict_requires_name(self):
        with pytest.raises(ValueError, match="name"):
            exercise_from_dict("x", {"category": "barbell"})

    def test_exercise_from_dict_defaults(self):
        e = exercise_from_dict("curl", {"name": "Curl", "category": "dumbbell"})
        assert e.tracking_type == "weight"
        assert e.default_rest_seconds == 180
        assert e.weight_increment == 5.0


class TestRegistry:
    def test_lookup(self, tmp_path):
        registry = load_registry(tmp_path)
        assert "squat" in registry
        assert registry.get("unicorn") is None
        assert registry.require("squat").name == "Squat"

    def test_require_unknown_lists_ids(self):
        registry = ExerciseRegistry([exercise_from_dict("curl", {"name": "Curl", "category": "dumbbell"})])
        with pytest.raises(ValueError, match="Valid IDs: curl"):
            registry.require("squat")

    def test_add_and_iterate(self):
        registry = ExerciseRegistry()
        registry.add(exercise_from_dict("curl", {"name": "Curl", "category": "dumbbell"}))
        assert len(registry) == 1
        assert [e.exercise_id for e in registry] == ["curl"]


class TestPrograms:
    def test_bundled_programs(self, tmp_path):
        programs = load_programs(tmp_path)
        ss = programs["starting_strength"]
        assert ss.alternating
        assert [d.day_id for d in ss.days] == ["A", "B"]
        assert ss.settings.deadlift_increment == 10
        assert ss.days[0].exercise_ids() == ["squat", "bench_press", "deadlift"]

    def test_sectioned_program(self, tmp_path):
        circuit = load_programs(tmp_path)["full_body_circuit"]
        types = [s.section_type for s in circuit.days[0].sections]
        assert types == ["straight", "circuit", "emom", "cooldown"]
        assert circuit.days[0].sections[1].rest_between_rounds == 90

    def test_flat_day_becomes_straight_section(self):
        program = program_from_dict(
            {
                "program_id": "p",
                "name": "P",
                "days": [{"day_id": "x", "exercises": [{"exercise_id": "squat", "sets": 5, "reps": 5}]}],
            }
        )
        section = program.days[0].sections[0]
        assert section.section_type == "straight"
        assert section.exercises[0].sets == 5
        assert program.progression is None

    def test_user_program_added(self, tmp_path):
        _write(
            tmp_path / "programs" / "mine.yaml",
            """
            program_id: mine
            name: My Program
            days:
              - day_id: only
                exercises:
                  - {exercise_id: deadlift, sets: 1, reps: 3}
            """,
        )
        programs = load_programs(tmp_path)
        assert programs["mine"].days[0].exercise_entries()[0].reps == 3
        assert "starting_strength" in programs

    def test_user_program_overrides_bundled(self, tmp_path):
        _write(
            tmp_path / "programs" / "ss.yaml",
            """
            program_id: starting_strength
            progression:
              failure_retries: 2
            """,
        )
        ss = load_programs(tmp_path)["starting_strength"]
        assert ss.settings.failure_retries == 2
        assert ss.settings.deadlift_increment == 10

    def test_invalid_program_skipped(self, tmp_path):
        _write(
            tmp_path / "programs" / "broken.yaml",
            """
            program_id: broken
            name: Broken
            days: []
            """,
        )
        with pytest.warns(UserWarning, match="broken"):
            programs = load_programs(tmp_path)
        assert "broken" not in programs


class TestSettings:
    def test_bundled_defaults(self, tmp_path):
        settings = load_settings(tmp_path)
        assert settings.units == "lbs"
        assert settings.bar_weight == 45
        assert settings.available_plates == [45, 35, 25, 10, 5, 2.5]

    def test_user_override(self, tmp_path):
        _write(tmp_path / "settings.yaml", "units: kg\nbar_weight: 20\navailable_plates: [25, 20, 10, 5, 2.5, 1.25]\n")
        settings = load_settings(tmp_path)
        assert settings.units == "kg"
        assert settings.bar_weight == 20
        assert settings.available_plates[-1] == 1.25

    def test_invalid_override_falls_back(self, tmp_path):
        _write(tmp_path / "settings.yaml", "units: stone\n")
        with pytest.warns(UserWarning, match="settings.yaml"):
            settings = load_settings(tmp_path)
        assert settings.units == "lbs"

    def test_user_dir_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("IRONLOG_HOME", str(tmp_path))
        assert get_user_dir() == tmp_path
        _write(tmp_path / "settings.yaml", "bar_weight: 35\n")
        assert load_settings().bar_weight == 35
