"""
Training store and serializer tests.
"""

import json

import pytest

from ironlog.core.models import PersonalRecord, Readiness, Workout, WorkoutSet
from ironlog.io.history_store import TrainingStore
from ironlog.io.serializers import (
    ValidationError,
    dict_to_workout,
    dict_to_workout_set,
    parse_plates,
    validate_date,
    workout_set_to_dict,
    workout_to_dict,
)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path):
    s = TrainingStore(tmp_path / "data")
    s.init()
    return s


def _workout(date: str, status: str = "completed", day_id: str = "a", program_id: str = "starting_strength") -> Workout:
    return Workout(
        program_id=program_id,
        day_id=day_id,
        date=date,
        start_time=f"{date}T10:00:00",
        status=status,
    )


def _add_session(
    store: TrainingStore,
    date: str,
    weight: float,
    reps: list[int],
    exercise_id: str = "squat",
    target: int = 5,
    status: str = "completed",
) -> Workout:
    workout = store.create_workout(_workout(date, status=status))
    for n, done in enumerate(reps, 1):
        store.create_set(
            WorkoutSet(
                workout_id=workout.workout_id,
                exercise_id=exercise_id,
                set_number=n,
                target_weight=weight,
                actual_weight=weight,
                target_reps=target,
                actual_reps=done,
                completed=True,
                timestamp=f"{date}T10:1{n}:00",
                order=n,
            )
        )
    return workout


class TestWorkouts:
    def test_init_creates_files(self, tmp_path):
        store = TrainingStore(tmp_path / "new")
        assert not store.exists()
        store.init()
        assert store.exists()
        assert store.sets_path.exists()
        assert store.records_path.exists()

    def test_create_assigns_increasing_ids(self, store):
        a = store.create_workout(_workout("2026-03-02"))
        b = store.create_workout(_workout("2026-03-04"))
        assert (a.workout_id, b.workout_id) == (1, 2)

    def test_round_trip_keeps_readiness(self, store):
        w = _workout("2026-03-02", status="in_progress")
        w.readiness = Readiness(bodyweight=182.5, feel=3, sleep_hours=6)
        created = store.create_workout(w)
        loaded = store.get_workout(created.workout_id)
        assert loaded.readiness == Readiness(bodyweight=182.5, feel=3, sleep_hours=6)

    def test_update_in_progress(self, store):
        created = store.create_workout(_workout("2026-03-02", status="in_progress"))
        created.notes = "Heavy day"
        store.update_workout(created)
        assert store.get_workout(created.workout_id).notes == "Heavy day"

    def test_completed_workout_is_immutable(self, store):
        created = store.create_workout(_workout("2026-03-02"))
        created.notes = "changed"
        with pytest.raises(ValidationError):
            store.update_workout(created)

    def test_update_missing_raises(self, store):
        with pytest.raises(KeyError):
            store.update_workout(Workout("p", "a", "2026-03-02", "2026-03-02T10:00:00", workout_id=99))

    def test_attach_analysis_to_completed(self, store):
        created = store.create_workout(_workout("2026-03-02"))
        store.attach_analysis(created.workout_id, "Solid session")
        assert store.get_workout(created.workout_id).ai_analysis == "Solid session"

    def test_attach_analysis_requires_completed(self, store):
        created = store.create_workout(_workout("2026-03-02", status="in_progress"))
        with pytest.raises(ValidationError):
            store.attach_analysis(created.workout_id, "too early")

    def test_delete_removes_sets(self, store):
        workout = _add_session(store, "2026-03-02", 135, [5, 5])
        other = _add_session(store, "2026-03-04", 140, [5])
        store.delete_workout(workout.workout_id)
        assert store.get_workout(workout.workout_id) is None
        assert [s.workout_id for s in store.load_sets()] == [other.workout_id]

    def test_list_most_recent_first(self, store):
        store.create_workout(_workout("2026-03-02"))
        store.create_workout(_workout("2026-03-06"))
        store.create_workout(_workout("2026-03-04"))
        store.create_workout(_workout("2026-03-08", status="in_progress"))
        assert [w.date for w in store.list_workouts()] == ["2026-03-06", "2026-03-04", "2026-03-02"]
        assert len(store.list_workouts(completed_only=False)) == 4

    def test_workouts_for_program(self, store):
        store.create_workout(_workout("2026-03-02"))
        store.create_workout(_workout("2026-03-04", program_id="other"))
        assert [w.program_id for w in store.get_workouts_for_program("starting_strength")] == ["starting_strength"]


class TestSets:
    def test_update_set(self, store):
        _add_session(store, "2026-03-02", 135, [5])
        s = store.load_sets()[0]
        s.rpe = 8
        store.update_set(s)
        assert store.load_sets()[0].rpe == 8

    def test_update_missing_set_raises(self, store):
        with pytest.raises(KeyError):
            store.update_set(WorkoutSet(workout_id=1, exercise_id="squat", set_number=1, set_id=42))

    def test_sets_for_workout_sorted_by_order(self, store):
        workout = store.create_workout(_workout("2026-03-02", status="in_progress"))
        for order in (2, 0, 1):
            store.create_set(WorkoutSet(workout_id=workout.workout_id, exercise_id="squat", set_number=order + 1, order=order))
        assert [s.order for s in store.get_sets_for_workout(workout.workout_id)] == [0, 1, 2]

    def test_delete_set(self, store):
        _add_session(store, "2026-03-02", 135, [5, 5])
        first = store.load_sets()[0]
        store.delete_set(first.set_id)
        assert first.set_id not in [s.set_id for s in store.load_sets()]


class TestHistoryQueries:
    def test_exercise_history_most_recent_first(self, store):
        _add_session(store, "2026-03-02", 135, [5, 5, 5])
        _add_session(store, "2026-03-04", 140, [5, 5, 5])
        _add_session(store, "2026-03-03", 100, [8], exercise_id="bench_press")
        history = store.get_exercise_history("squat", 5)
        assert [h.workout.date for h in history] == ["2026-03-04", "2026-03-02"]
        assert all(s.exercise_id == "squat" for h in history for s in h.sets)

    def test_history_excludes_in_progress(self, store):
        _add_session(store, "2026-03-02", 135, [5])
        _add_session(store, "2026-03-04", 140, [5], status="in_progress")
        assert [h.workout.date for h in store.get_exercise_history("squat", 5)] == ["2026-03-02"]

    def test_history_limit(self, store):
        for day in range(1, 8):
            _add_session(store, f"2026-03-0{day}", 100 + day * 5, [5])
        assert len(store.get_exercise_history("squat", 5)) == 5

    def test_consecutive_failures(self, store):
        _add_session(store, "2026-03-02", 200, [5, 5, 5])
        _add_session(store, "2026-03-04", 205, [5, 4, 3])
        _add_session(store, "2026-03-06", 205, [5, 5, 4])
        assert store.get_consecutive_failures("squat", 205) == 2

    def test_deload_count(self, store):
        _add_session(store, "2026-03-02", 205, [5, 5, 4])
        _add_session(store, "2026-03-04", 185, [5, 5, 5])
        _add_session(store, "2026-03-06", 205, [5, 4, 4])
        _add_session(store, "2026-03-09", 185, [5, 5, 5])
        assert store.get_deload_count("squat", 185) == 2
        assert store.get_deload_count("squat", 0) == 0


class TestRecords:
    def test_insert_then_replace(self, store):
        first = store.upsert_personal_record(
            PersonalRecord(exercise_id="squat", record_type="5rm", weight=225, reps=5, estimated_1rm=263)
        )
        second = store.upsert_personal_record(
            PersonalRecord(exercise_id="squat", record_type="5rm", weight=235, reps=5, estimated_1rm=274)
        )
        assert first.record_id == second.record_id
        assert len(store.load_records()) == 1
        assert store.get_personal_record("squat", "5rm").weight == 235

    def test_missing_record(self, store):
        assert store.get_personal_record("squat", "3rm") is None

    def test_records_for_exercise_by_reps(self, store):
        for reps in (5, 1, 3):
            store.upsert_personal_record(
                PersonalRecord(exercise_id="squat", record_type=f"{reps}rm", weight=200, reps=reps, estimated_1rm=0)
            )
        assert [r.reps for r in store.get_records_for_exercise("squat")] == [1, 3, 5]


class TestCorruption:
    def test_bad_line_reports_line_number(self, store):
        _add_session(store, "2026-03-02", 135, [5])
        with open(store.workouts_path, "a", encoding="utf-8") as f:
            f.write("{not json}\n")
        with pytest.raises(ValidationError, match="line 2"):
            store.load_workouts()

    def test_blank_lines_ignored(self, store):
        _add_session(store, "2026-03-02", 135, [5])
        with open(store.workouts_path, "a", encoding="utf-8") as f:
            f.write("\n\n")
        assert len(store.load_workouts()) == 1

    def test_missing_files_read_empty(self, tmp_path):
        assert TrainingStore(tmp_path / "nowhere").load_workouts() == []


class TestExportImport:
    def test_export_then_import_into_new_store(self, store, tmp_path):
        _add_session(store, "2026-03-02", 135, [5, 5])
        store.upsert_personal_record(
            PersonalRecord(exercise_id="squat", record_type="5rm", weight=135, reps=5, estimated_1rm=158)
        )
        data = json.loads(json.dumps(store.export_all()))
        assert data["_version"] == 1

        target = TrainingStore(tmp_path / "restored")
        target.import_all(data)
        assert target.load_workouts() == store.load_workouts()
        assert target.load_sets() == store.load_sets()
        assert target.load_records() == store.load_records()

    def test_invalid_import_writes_nothing(self, store):
        _add_session(store, "2026-03-02", 135, [5])
        data = store.export_all()
        data["sets"].append({"set_id": 9, "workout_id": 1, "exercise_id": "squat", "set_number": -1})
        with pytest.raises(ValidationError, match="sets"):
            store.import_all(data)
        assert len(store.load_sets()) == 1

    def test_import_rejects_non_object(self, store):
        with pytest.raises(ValidationError):
            store.import_all([])

    def test_clear(self, store):
        _add_session(store, "2026-03-02", 135, [5])
        store.clear()
        assert store.load_workouts() == []
        assert store.load_sets() == []


class TestSerializers:
    def test_validate_date(self):
        assert validate_date("2026-03-02") == "2026-03-02"
        with pytest.raises(ValidationError):
            validate_date("03/02/2026")
        with pytest.raises(ValidationError):
            validate_date("2026-02-30")

    def test_optional_set_fields_omitted(self):
        d = workout_set_to_dict(WorkoutSet(workout_id=1, exercise_id="squat", set_number=1, set_id=1))
        assert "target_duration" not in d
        assert "round_number" not in d
        assert "note" not in d

    def test_duration_set_fields(self):
        s = WorkoutSet(workout_id=1, exercise_id="plank", set_number=1, set_id=3, target_duration=1.5, round_number=2)
        assert dict_to_workout_set(workout_set_to_dict(s)) == s

    def test_completed_set_needs_timestamp(self):
        with pytest.raises(ValidationError):
            dict_to_workout_set({"set_id": 1, "workout_id": 1, "exercise_id": "squat", "set_number": 1, "completed": True})

    def test_invalid_rpe(self):
        with pytest.raises(ValidationError):
            dict_to_workout_set({"set_id": 1, "workout_id": 1, "exercise_id": "squat", "set_number": 1, "rpe": 4})

    def test_workout_missing_key(self):
        d = workout_to_dict(_workout("2026-03-02"))
        del d["day_id"]
        with pytest.raises(ValidationError, match="day_id"):
            dict_to_workout(d)

    def test_parse_plates(self):
        assert parse_plates("45, 25,10,2.5") == [45, 25, 10, 2.5]
        with pytest.raises(ValidationError):
            parse_plates("45,heavy")
        with pytest.raises(ValidationError):
            parse_plates("45,-5")
        with pytest.raises(ValidationError):
            parse_plates(" , ")
